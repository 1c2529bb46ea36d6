"""Collaborator interfaces consumed by the access resolver.

The host application supplies implementations (Cassandra-backed ones live in
``repository.py``); tests supply in-memory or mocked ones.
"""

from datetime import UTC, datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from .models import (
    AccessDecision,
    ContentType,
    Purchasable,
    PurchaseRecord,
    Subject,
    SubscriptionGrant,
)


class ContentLookup(Protocol):
    """Resolves content references to canonical purchasables."""

    async def find_purchasable(
        self, content_type: ContentType, content_id: UUID
    ) -> Purchasable | None: ...

    async def find_by_video(self, video_id: str) -> Purchasable | None: ...


class PurchaseLookup(Protocol):
    """Finds the authoritative purchase for a subject and purchasable."""

    async def find_latest_completed(
        self, subject_id: UUID, purchasable_id: UUID
    ) -> PurchaseRecord | None: ...


class SubscriptionLookup(Protocol):
    """Finds a subject's current subscription grant."""

    async def find_current(
        self, subject_id: UUID, now: datetime | None = None
    ) -> SubscriptionGrant | None:
        """Grant current at ``now``; implementations fall back to their clock."""
        ...


class SubjectLookup(Protocol):
    """Finds subject details (kind, linked teacher)."""

    async def find_subject(self, subject_id: UUID) -> Subject | None: ...


class DecisionRecorder(Protocol):
    """Consumes decisions after they were served, e.g. as audit records."""

    async def record(self, decision: AccessDecision) -> None: ...


@runtime_checkable
class DecisionLog(Protocol):
    """A recorder whose records can be read back."""

    async def record(self, decision: AccessDecision) -> None: ...

    async def recent_for_subject(
        self, subject_id: UUID, since: datetime, limit: int = 100
    ) -> list[dict]: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock frozen at one instant. Used by scripts and tests."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def now(self) -> datetime:
        return self.instant
