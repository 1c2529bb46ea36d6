"""Pure decision rules used by the access resolver.

Nothing here performs I/O, so every rule can be tested with plain values:
- Purchase validity windows (lifetime, access-until, access-days, indefinite)
- Subscription benefit matching per content type
- Capability and allowance derivation
- Selection of the authoritative purchase / current subscription
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from .models import (
    UNLIMITED,
    VIDEO_BEARING_TYPES,
    AccessReason,
    AccessType,
    Allowance,
    Capabilities,
    ContentType,
    PurchaseRecord,
    SubscriptionGrant,
)


# Plan-level capability overrides that may appear in a benefits map
CAPABILITY_OVERRIDE_KEYS = ("can_download", "can_preview", "can_play")


# ==============================================================================
# Purchases
# ==============================================================================


@dataclass(frozen=True)
class PurchaseEvaluation:
    """Outcome of checking one purchase against ``now``."""

    valid: bool
    access_type: AccessType
    reason: AccessReason
    expires_at: datetime | None = None


def purchase_expiry(purchase: PurchaseRecord) -> datetime | None:
    """Instant after which a purchase stops granting access, if any.

    ``access_until`` wins over ``access_days``; lifetime purchases and
    purchases without either field never expire.
    """
    if purchase.lifetime_access:
        return None
    if purchase.access_until is not None:
        return purchase.access_until
    if purchase.access_days is not None:
        return purchase.created_at + timedelta(days=purchase.access_days)
    return None


def evaluate_purchase(purchase: PurchaseRecord, now: datetime) -> PurchaseEvaluation:
    """Evaluate a completed purchase. Expiry boundaries are inclusive."""
    if purchase.lifetime_access:
        return PurchaseEvaluation(
            valid=True,
            access_type=AccessType.PURCHASE_LIFETIME,
            reason=AccessReason.LIFETIME_PURCHASE,
        )

    if purchase.access_until is not None or purchase.access_days is not None:
        expires_at = purchase_expiry(purchase)
        return PurchaseEvaluation(
            valid=now <= expires_at,
            access_type=AccessType.PURCHASE_TIME_LIMITED,
            reason=AccessReason.VALID_PURCHASE,
            expires_at=expires_at,
        )

    return evaluate_unbounded_purchase(purchase)


def evaluate_unbounded_purchase(purchase: PurchaseRecord) -> PurchaseEvaluation:
    """Completed purchase with no lifetime flag, no access_until, no access_days.

    Such rows grant indefinite access. They are probably legacy data rather
    than a product decision; see DESIGN.md before relying on this.
    """
    return PurchaseEvaluation(
        valid=True,
        access_type=AccessType.PURCHASE_INDEFINITE,
        reason=AccessReason.PURCHASE_NO_EXPIRATION,
    )


def select_latest_completed(
    purchases: Iterable[PurchaseRecord],
) -> PurchaseRecord | None:
    """Most recent completed purchase, or None."""
    completed = [p for p in purchases if p.is_completed]
    if not completed:
        return None
    return max(completed, key=lambda p: p.created_at)


# ==============================================================================
# Subscriptions
# ==============================================================================


@dataclass(frozen=True)
class BenefitMatch:
    """The benefits-map entry that unlocked a content type."""

    key: str
    value: bool | int
    video_only: bool = False


def benefit_grants(value: object) -> bool:
    """A benefit grants when it is True or a positive integer limit."""
    if isinstance(value, bool):
        return value
    return isinstance(value, int) and value > 0


def benefit_keys(content_type: ContentType) -> list[tuple[str, bool]]:
    """Benefit keys checked for a content type, in order, with video-only flag."""
    keys = [
        (f"{content_type.value}_access", False),
        (f"{content_type.value}s_access", False),
        ("all_content", False),
    ]
    if content_type in VIDEO_BEARING_TYPES:
        keys.append(("video_access", True))
        keys.append((f"{content_type.value}_videos", True))
    return keys


def match_benefit(
    benefits: dict[str, bool | int], content_type: ContentType
) -> BenefitMatch | None:
    """Find the first benefit entry that grants ``content_type``."""
    for key, video_only in benefit_keys(content_type):
        value = benefits.get(key)
        if benefit_grants(value):
            return BenefitMatch(key=key, value=value, video_only=video_only)
    return None


def subscription_capabilities(
    match: BenefitMatch, benefits: dict[str, bool | int]
) -> Capabilities:
    """Capabilities for a subscription grant.

    Content matches start with everything, video-only matches with play and
    preview. Boolean ``can_*`` entries in the benefits map override either.
    """
    flags = {
        "can_download": not match.video_only,
        "can_preview": True,
        "can_play": True,
    }
    for key in CAPABILITY_OVERRIDE_KEYS:
        override = benefits.get(key)
        if isinstance(override, bool):
            flags[key] = override
    return Capabilities(**flags)


def allowance_for(match: BenefitMatch) -> Allowance:
    """Integer limits pass through; True means unlimited."""
    if isinstance(match.value, bool):
        return UNLIMITED
    return match.value


def select_current_grant(
    candidates: Iterable[SubscriptionGrant], now: datetime
) -> SubscriptionGrant | None:
    """Most recent start date among active, time-valid grants."""
    current = [g for g in candidates if g.is_current(now)]
    if not current:
        return None
    return max(current, key=lambda g: g.start_date)
