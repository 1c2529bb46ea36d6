"""Access-control entities and the Cassandra read model.

The resolver reads four kinds of records:
- Purchasable: a piece of content that can be bought, subscribed to or created
- PurchaseRecord: a subject's purchase of a purchasable
- SubscriptionGrant: a subject's subscription and its plan benefits
- Subject: the acting principal (only needed for teacher-linked students)

and produces one AccessDecision value per call.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Literal
from uuid import UUID


if TYPE_CHECKING:
    from cassandra.cluster import Row


UNLIMITED: Literal["unlimited"] = "unlimited"

Allowance = int | Literal["unlimited"]


class ContentType(str, Enum):
    """Kinds of purchasable content."""

    FILE = "file"
    WORKSHOP = "workshop"
    COURSE = "course"
    TOOL = "tool"
    LESSON_PLAN = "lesson_plan"
    GAME = "game"

    @classmethod
    def parse(cls, value: "ContentType | str") -> "ContentType | None":
        """Coerce a raw type, or None when it names no known type."""
        try:
            return cls(value)
        except ValueError:
            return None


# Content types whose main payload is video
VIDEO_BEARING_TYPES = frozenset({ContentType.WORKSHOP, ContentType.COURSE})


class SubjectKind(str, Enum):
    """Kind of acting principal."""

    OWNER = "owner"  # Platform owner / administrator
    CREATOR = "creator"  # Content creator
    USER = "user"  # Regular user (teacher or student)


class PaymentStatus(str, Enum):
    """Payment status of a purchase."""

    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class AccessType(str, Enum):
    """Channel through which access was granted."""

    CREATOR = "creator"
    PURCHASE_LIFETIME = "purchase_lifetime"
    PURCHASE_TIME_LIMITED = "purchase_time_limited"
    PURCHASE_INDEFINITE = "purchase_indefinite"
    SUBSCRIPTION = "subscription"
    NONE = "none"


class AccessReason(str, Enum):
    """Why a decision came out the way it did."""

    CREATOR_OWNERSHIP = "creator_ownership"
    LIFETIME_PURCHASE = "lifetime_purchase"
    VALID_PURCHASE = "valid_purchase"
    PURCHASE_NO_EXPIRATION = "purchase_no_expiration"
    SUBSCRIPTION_BENEFIT = "subscription_benefit"
    TEACHER_SUBSCRIPTION = "teacher_subscription"
    NOT_CLAIMABLE = "not_claimable"
    NOT_PUBLISHED = "not_published"
    NO_GRANT_FOUND = "no_grant_found"


class AccessChannel(str, Enum):
    """Access sources in evaluation order."""

    CREATOR = "creator"
    PURCHASE = "purchase"
    SUBSCRIPTION = "subscription"


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Read-model entities
# ==============================================================================


@dataclass(frozen=True)
class Subject:
    """The acting principal."""

    subject_id: UUID
    kind: SubjectKind = SubjectKind.USER
    linked_teacher_id: UUID | None = None

    @classmethod
    def from_row(cls, row: "Row") -> "Subject":
        """Create instance from Cassandra row."""
        return cls(
            subject_id=row.subject_id,
            kind=SubjectKind(row.kind),
            linked_teacher_id=row.linked_teacher_id,
        )


@dataclass(frozen=True)
class ContentRef:
    """A (type, id) pair identifying purchasable content."""

    content_type: ContentType
    content_id: UUID

    def __str__(self) -> str:
        return f"{self.content_type.value}:{self.content_id}"


@dataclass(frozen=True)
class Purchasable:
    """Canonical record for access-checked content."""

    purchasable_id: UUID
    content_type: ContentType
    content_id: UUID
    creator_id: UUID | None
    is_published: bool = True
    title: str | None = None

    @classmethod
    def from_row(cls, row: "Row") -> "Purchasable":
        """Create instance from Cassandra row."""
        return cls(
            purchasable_id=row.purchasable_id,
            content_type=ContentType(row.content_type),
            content_id=row.content_id,
            creator_id=row.creator_id,
            is_published=bool(row.is_published),
            title=row.title,
        )


@dataclass(frozen=True)
class PurchaseRecord:
    """A subject's purchase of a purchasable."""

    purchase_id: UUID
    subject_id: UUID
    purchasable_id: UUID
    created_at: datetime
    payment_status: PaymentStatus = PaymentStatus.COMPLETED
    lifetime_access: bool = False
    access_until: datetime | None = None
    access_days: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @classmethod
    def from_row(cls, row: "Row") -> "PurchaseRecord":
        """Create instance from Cassandra row."""
        return cls(
            purchase_id=row.purchase_id,
            subject_id=row.subject_id,
            purchasable_id=row.purchasable_id,
            created_at=ensure_utc_aware(row.created_at),
            payment_status=PaymentStatus(row.payment_status),
            lifetime_access=bool(row.lifetime_access),
            access_until=ensure_utc_aware(row.access_until),
            access_days=row.access_days,
        )


@dataclass(frozen=True)
class SubscriptionGrant:
    """A subject's subscription with the benefits of its plan.

    ``benefits`` maps a capability name to ``True``/``False`` or an integer
    limit, e.g. ``{"workshop_access": True, "file_access": 10}``.
    """

    subscription_id: UUID
    subject_id: UUID
    start_date: datetime
    end_date: datetime | None = None
    active: bool = True
    plan_id: UUID | None = None
    benefits: dict[str, bool | int] = field(default_factory=dict)

    def is_current(self, now: datetime) -> bool:
        """Active and inside its [start, end] window (both ends inclusive)."""
        if not self.active or now < self.start_date:
            return False
        return self.end_date is None or now <= self.end_date

    @classmethod
    def from_row(cls, row: "Row") -> "SubscriptionGrant":
        """Create instance from Cassandra row."""
        return cls(
            subscription_id=row.subscription_id,
            subject_id=row.subject_id,
            start_date=ensure_utc_aware(row.start_date),
            end_date=ensure_utc_aware(row.end_date),
            active=bool(row.active),
            plan_id=row.plan_id,
            benefits=json.loads(row.benefits) if row.benefits else {},
        )


# ==============================================================================
# Decision value object
# ==============================================================================


@dataclass(frozen=True)
class Capabilities:
    """Independently grantable capabilities."""

    can_download: bool = False
    can_preview: bool = False
    can_play: bool = False

    @classmethod
    def full(cls) -> "Capabilities":
        return cls(can_download=True, can_preview=True, can_play=True)

    @classmethod
    def none(cls) -> "Capabilities":
        return cls()


@dataclass(frozen=True)
class AccessDecision:
    """Result of one access resolution. Never mutated after creation."""

    has_access: bool
    access_type: AccessType
    reason: AccessReason
    subject_id: UUID
    evaluated_at: datetime
    content_type: ContentType | None = None
    content_id: UUID | None = None
    video_id: str | None = None
    expires_at: datetime | None = None
    capabilities: Capabilities = field(default_factory=Capabilities.none)
    remaining_allowances: Allowance | None = None
    purchasable_id: UUID | None = None
    purchase_id: UUID | None = None
    subscription_id: UUID | None = None
    via_teacher_id: UUID | None = None
    checked_channels: tuple[AccessChannel, ...] = ()

    @property
    def is_claimable(self) -> bool:
        """False only when the content reference did not resolve at all."""
        return self.reason != AccessReason.NOT_CLAIMABLE

    @property
    def target(self) -> str:
        """Human-readable content reference for messages and logs."""
        if self.content_type is not None:
            return f"{self.content_type.value}:{self.content_id}"
        if self.video_id is not None:
            return f"video:{self.video_id}"
        return f"unknown:{self.content_id}"

    def to_dict(self) -> dict:
        """Convert to dictionary for logging and serialization."""
        return {
            "has_access": self.has_access,
            "access_type": self.access_type.value,
            "reason": self.reason.value,
            "subject_id": str(self.subject_id),
            "content_type": self.content_type.value if self.content_type else None,
            "content_id": str(self.content_id) if self.content_id else None,
            "video_id": self.video_id,
            "evaluated_at": self.evaluated_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "can_download": self.capabilities.can_download,
            "can_preview": self.capabilities.can_preview,
            "can_play": self.capabilities.can_play,
            "remaining_allowances": self.remaining_allowances,
            "purchasable_id": str(self.purchasable_id) if self.purchasable_id else None,
            "via_teacher_id": str(self.via_teacher_id) if self.via_teacher_id else None,
            "checked_channels": [c.value for c in self.checked_channels],
        }


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PURCHASABLES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.purchasables (
    content_type TEXT,
    content_id UUID,
    purchasable_id UUID,
    creator_id UUID,
    is_published BOOLEAN,
    title TEXT,
    PRIMARY KEY ((content_type), content_id)
)
"""

# Explicit video identifier -> content reference index
PURCHASABLES_BY_VIDEO_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.purchasables_by_video (
    video_id TEXT,
    content_type TEXT,
    content_id UUID,
    PRIMARY KEY (video_id)
)
"""

PURCHASES_BY_SUBJECT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.purchases_by_subject (
    subject_id UUID,
    purchasable_id UUID,
    created_at TIMESTAMP,
    purchase_id UUID,
    payment_status TEXT,
    lifetime_access BOOLEAN,
    access_until TIMESTAMP,
    access_days INT,
    PRIMARY KEY ((subject_id, purchasable_id), created_at, purchase_id)
) WITH CLUSTERING ORDER BY (created_at DESC, purchase_id ASC)
"""

SUBSCRIPTIONS_BY_SUBJECT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.subscriptions_by_subject (
    subject_id UUID,
    start_date TIMESTAMP,
    subscription_id UUID,
    end_date TIMESTAMP,
    active BOOLEAN,
    plan_id UUID,
    benefits TEXT,
    PRIMARY KEY ((subject_id), start_date, subscription_id)
) WITH CLUSTERING ORDER BY (start_date DESC, subscription_id ASC)
"""

ACCESS_SUBJECTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.access_subjects (
    subject_id UUID,
    kind TEXT,
    linked_teacher_id UUID,
    PRIMARY KEY (subject_id)
)
"""

ACCESS_DECISIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.access_decisions_by_subject (
    subject_id UUID,
    evaluated_at TIMESTAMP,
    decision_id UUID,
    content_type TEXT,
    content_id UUID,
    has_access BOOLEAN,
    access_type TEXT,
    reason TEXT,
    expires_at TIMESTAMP,
    request_id TEXT,
    PRIMARY KEY ((subject_id), evaluated_at, decision_id)
) WITH CLUSTERING ORDER BY (evaluated_at DESC, decision_id ASC)
AND default_time_to_live = 7776000
"""

ACCESS_TABLES_CQL = [
    PURCHASABLES_TABLE_CQL,
    PURCHASABLES_BY_VIDEO_TABLE_CQL,
    PURCHASES_BY_SUBJECT_TABLE_CQL,
    SUBSCRIPTIONS_BY_SUBJECT_TABLE_CQL,
    ACCESS_SUBJECTS_TABLE_CQL,
    ACCESS_DECISIONS_TABLE_CQL,
]


def get_access_tables_cql(keyspace: str) -> list[str]:
    """Get all CQL statements for the access tables."""
    return [cql.format(keyspace=keyspace) for cql in ACCESS_TABLES_CQL]
