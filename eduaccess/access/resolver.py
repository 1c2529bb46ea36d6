"""Content access resolution.

Decides, for one subject and one piece of purchasable content, whether access
is granted and through which channel. Channels are checked in a fixed order
and the first one that grants wins:

1. Creator: the subject created the content (full access, never expires)
2. Purchase: the most recent completed purchase is still inside its window
3. Subscription: the current subscription's benefits cover the content type
   (for students, the linked teacher's subscription is tried next)

A denial is a normal decision. Only a failing lookup (or a timeout) raises,
and it always raises: a broken store must never look like "no access".
"""

import asyncio
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar
from uuid import UUID

from eduaccess.core.logging import get_logger

from .errors import AccessDeniedError, CollaboratorFailure, NotClaimableError
from .interfaces import (
    Clock,
    ContentLookup,
    PurchaseLookup,
    SubjectLookup,
    SubscriptionLookup,
    SystemClock,
)
from .models import (
    UNLIMITED,
    AccessChannel,
    AccessDecision,
    AccessReason,
    AccessType,
    Capabilities,
    ContentRef,
    ContentType,
    Purchasable,
    SubjectKind,
    SubscriptionGrant,
    ensure_utc_aware,
)
from .policy import (
    BenefitMatch,
    allowance_for,
    evaluate_purchase,
    match_benefit,
    subscription_capabilities,
)


logger = get_logger(__name__)

T = TypeVar("T")


class AccessResolver:
    """Stateless access resolver.

    Build one at startup and share it; every call is independent.
    """

    def __init__(
        self,
        content_lookup: ContentLookup,
        purchase_lookup: PurchaseLookup,
        subscription_lookup: SubscriptionLookup,
        clock: Clock | None = None,
        subject_lookup: SubjectLookup | None = None,
        require_published: bool = True,
        timeout: float | None = None,
    ):
        """Initialize with collaborators.

        Args:
            content_lookup: Resolves content references to purchasables
            purchase_lookup: Finds the latest completed purchase
            subscription_lookup: Finds the current subscription grant
            clock: Source of ``now`` when callers don't pass one
            subject_lookup: Enables student access through a linked teacher
            require_published: Deny unpublished content to non-creators
            timeout: Upper bound in seconds for one resolution
        """
        self.content_lookup = content_lookup
        self.purchase_lookup = purchase_lookup
        self.subscription_lookup = subscription_lookup
        self.clock = clock or SystemClock()
        self.subject_lookup = subject_lookup
        self.require_published = require_published
        self.timeout = timeout

    # ==========================================================================
    # Public API
    # ==========================================================================

    async def resolve(
        self,
        subject_id: UUID,
        content_type: ContentType | str,
        content_id: UUID,
        now: datetime | None = None,
    ) -> AccessDecision:
        """Resolve a subject's access to a content reference.

        Returns:
            AccessDecision (``reason=not_claimable`` when the reference is
            unknown, ``has_access=False`` when nothing grants access)

        Raises:
            CollaboratorFailure: A lookup failed or the call timed out
        """
        now = self._now(now)
        known_type = ContentType.parse(content_type)

        if known_type is None:
            logger.warning(
                "access_unknown_content_type",
                content_type=str(content_type),
                content_id=str(content_id),
            )
            decision = AccessDecision(
                has_access=False,
                access_type=AccessType.NONE,
                reason=AccessReason.NOT_CLAIMABLE,
                subject_id=subject_id,
                evaluated_at=now,
                content_id=content_id,
            )
        else:
            ref = ContentRef(known_type, content_id)
            decision = await self._bounded(self._resolve_ref(subject_id, ref, now))
        self._log_decision(decision)
        return decision

    async def resolve_video(
        self,
        subject_id: UUID,
        video_id: str,
        now: datetime | None = None,
    ) -> AccessDecision:
        """Resolve access to the purchasable that owns a video.

        The video is located through the content store's video index.
        """
        now = self._now(now)

        decision = await self._bounded(self._resolve_video(subject_id, video_id, now))
        self._log_decision(decision)
        return decision

    async def require(
        self,
        subject_id: UUID,
        content_type: ContentType | str,
        content_id: UUID,
        now: datetime | None = None,
    ) -> AccessDecision:
        """Like ``resolve`` but raise instead of returning a denial.

        Raises:
            NotClaimableError: The content reference is unknown
            AccessDeniedError: No channel grants access
            CollaboratorFailure: A lookup failed or the call timed out
        """
        decision = await self.resolve(subject_id, content_type, content_id, now)
        if not decision.is_claimable:
            raise NotClaimableError(decision.target)
        if not decision.has_access:
            raise AccessDeniedError(decision)
        return decision

    # ==========================================================================
    # Resolution
    # ==========================================================================

    async def _resolve_ref(
        self, subject_id: UUID, ref: ContentRef, now: datetime
    ) -> AccessDecision:
        purchasable = await self._call(
            "content_lookup",
            self.content_lookup.find_purchasable(ref.content_type, ref.content_id),
        )
        if purchasable is None:
            return AccessDecision(
                has_access=False,
                access_type=AccessType.NONE,
                reason=AccessReason.NOT_CLAIMABLE,
                subject_id=subject_id,
                evaluated_at=now,
                content_type=ref.content_type,
                content_id=ref.content_id,
            )
        return await self._evaluate(subject_id, purchasable, now)

    async def _resolve_video(
        self, subject_id: UUID, video_id: str, now: datetime
    ) -> AccessDecision:
        purchasable = await self._call(
            "content_lookup", self.content_lookup.find_by_video(video_id)
        )
        if purchasable is None:
            return AccessDecision(
                has_access=False,
                access_type=AccessType.NONE,
                reason=AccessReason.NOT_CLAIMABLE,
                subject_id=subject_id,
                evaluated_at=now,
                video_id=video_id,
            )
        return await self._evaluate(subject_id, purchasable, now, video_id=video_id)

    async def _evaluate(
        self,
        subject_id: UUID,
        purchasable: Purchasable,
        now: datetime,
        video_id: str | None = None,
    ) -> AccessDecision:
        """Run the channels in priority order against a resolved purchasable."""
        base = {
            "subject_id": subject_id,
            "evaluated_at": now,
            "content_type": purchasable.content_type,
            "content_id": purchasable.content_id,
            "video_id": video_id,
            "purchasable_id": purchasable.purchasable_id,
        }

        # 1. Creator - always full access, published or not
        if purchasable.creator_id is not None and purchasable.creator_id == subject_id:
            return AccessDecision(
                has_access=True,
                access_type=AccessType.CREATOR,
                reason=AccessReason.CREATOR_OWNERSHIP,
                capabilities=Capabilities.full(),
                remaining_allowances=UNLIMITED,
                checked_channels=(AccessChannel.CREATOR,),
                **base,
            )

        if self.require_published and not purchasable.is_published:
            return AccessDecision(
                has_access=False,
                access_type=AccessType.NONE,
                reason=AccessReason.NOT_PUBLISHED,
                checked_channels=(AccessChannel.CREATOR,),
                **base,
            )

        # 2. Purchase
        purchase = await self._call(
            "purchase_lookup",
            self.purchase_lookup.find_latest_completed(
                subject_id, purchasable.purchasable_id
            ),
        )
        if purchase is not None:
            evaluation = evaluate_purchase(purchase, now)
            if evaluation.valid:
                return AccessDecision(
                    has_access=True,
                    access_type=evaluation.access_type,
                    reason=evaluation.reason,
                    expires_at=evaluation.expires_at,
                    capabilities=Capabilities.full(),
                    remaining_allowances=UNLIMITED,
                    purchase_id=purchase.purchase_id,
                    checked_channels=(AccessChannel.CREATOR, AccessChannel.PURCHASE),
                    **base,
                )
            logger.debug(
                "purchase_expired",
                subject_id=str(subject_id),
                purchase_id=str(purchase.purchase_id),
                expired_at=evaluation.expires_at.isoformat(),
            )

        # 3. Subscription (own, then linked teacher's)
        checked = (
            AccessChannel.CREATOR,
            AccessChannel.PURCHASE,
            AccessChannel.SUBSCRIPTION,
        )
        grant, match = await self._subscription_match(subject_id, purchasable, now)
        via_teacher_id = None
        if match is None:
            via_teacher_id = await self._linked_teacher(subject_id)
            if via_teacher_id is not None:
                grant, match = await self._subscription_match(
                    via_teacher_id, purchasable, now
                )

        if match is not None:
            return AccessDecision(
                has_access=True,
                access_type=AccessType.SUBSCRIPTION,
                reason=(
                    AccessReason.TEACHER_SUBSCRIPTION
                    if via_teacher_id is not None
                    else AccessReason.SUBSCRIPTION_BENEFIT
                ),
                expires_at=grant.end_date,
                capabilities=subscription_capabilities(match, grant.benefits),
                remaining_allowances=allowance_for(match),
                subscription_id=grant.subscription_id,
                via_teacher_id=via_teacher_id,
                checked_channels=checked,
                **base,
            )

        return AccessDecision(
            has_access=False,
            access_type=AccessType.NONE,
            reason=AccessReason.NO_GRANT_FOUND,
            checked_channels=checked,
            **base,
        )

    async def _subscription_match(
        self, holder_id: UUID, purchasable: Purchasable, now: datetime
    ) -> tuple[SubscriptionGrant | None, BenefitMatch | None]:
        grant = await self._call(
            "subscription_lookup",
            self.subscription_lookup.find_current(holder_id, now=now),
        )
        if grant is None:
            return None, None

        # A lookup may ignore `now` and pick with its own clock
        if not grant.is_current(now):
            return None, None

        return grant, match_benefit(grant.benefits, purchasable.content_type)

    async def _linked_teacher(self, subject_id: UUID) -> UUID | None:
        if self.subject_lookup is None:
            return None

        subject = await self._call(
            "subject_lookup", self.subject_lookup.find_subject(subject_id)
        )
        # Only regular users (students) claim through a teacher
        if subject is None or subject.kind is not SubjectKind.USER:
            return None
        if subject.linked_teacher_id in (None, subject_id):
            return None
        return subject.linked_teacher_id

    # ==========================================================================
    # Private Helpers
    # ==========================================================================

    def _now(self, now: datetime | None) -> datetime:
        return ensure_utc_aware(now) if now is not None else self.clock.now()

    async def _call(self, collaborator: str, awaitable: Awaitable[T]) -> T:
        """Await a lookup, turning any failure into CollaboratorFailure."""
        try:
            return await awaitable
        except CollaboratorFailure:
            raise
        except Exception as e:
            logger.error(
                "access_collaborator_failed",
                collaborator=collaborator,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CollaboratorFailure(collaborator, str(e)) from e

    async def _bounded(self, awaitable: Awaitable[AccessDecision]) -> AccessDecision:
        if self.timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError as e:
            logger.error("access_resolution_timeout", timeout=self.timeout)
            raise CollaboratorFailure(
                "resolver", f"resolution timed out after {self.timeout}s"
            ) from e

    def _log_decision(self, decision: AccessDecision) -> None:
        logger.info(
            "access_resolved",
            subject_id=str(decision.subject_id),
            target=decision.target,
            has_access=decision.has_access,
            access_type=decision.access_type.value,
            reason=decision.reason.value,
        )
