# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra-backed collaborators for the access resolver.

Each class reads one table of the access read model (see ``models.py``) and
implements one lookup interface. The tables are populated by the catalog,
payments and subscription services; this module only writes the audit table.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from eduaccess.core.context import get_request_id
from eduaccess.core.logging import get_logger

from .interfaces import Clock, SystemClock
from .models import (
    AccessDecision,
    ContentType,
    Purchasable,
    PurchaseRecord,
    Subject,
    SubscriptionGrant,
)
from .policy import select_current_grant, select_latest_completed


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class CassandraContentLookup:
    """Resolves content references and video ids to purchasables."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_purchasable = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.purchasables
            WHERE content_type = ? AND content_id = ?
        """)

        self._get_video_ref = self.session.prepare(f"""
            SELECT content_type, content_id FROM {self.keyspace}.purchasables_by_video
            WHERE video_id = ?
        """)

    async def find_purchasable(
        self, content_type: ContentType, content_id: UUID
    ) -> Purchasable | None:
        result = await self.session.aexecute(
            self._get_purchasable, [content_type.value, content_id]
        )
        row = result.one()
        return Purchasable.from_row(row) if row else None

    async def find_by_video(self, video_id: str) -> Purchasable | None:
        """Follow the video index to the owning purchasable."""
        result = await self.session.aexecute(self._get_video_ref, [video_id])
        ref = result.one()
        if not ref:
            return None
        return await self.find_purchasable(
            ContentType(ref.content_type), ref.content_id
        )


class CassandraPurchaseLookup:
    """Finds the authoritative purchase for (subject, purchasable)."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        # Clustered by created_at DESC, so rows arrive newest first
        self._get_purchases = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.purchases_by_subject
            WHERE subject_id = ? AND purchasable_id = ?
        """)

    async def find_latest_completed(
        self, subject_id: UUID, purchasable_id: UUID
    ) -> PurchaseRecord | None:
        rows = await self.session.aexecute(
            self._get_purchases, [subject_id, purchasable_id]
        )
        return select_latest_completed(PurchaseRecord.from_row(row) for row in rows)


class CassandraSubscriptionLookup:
    """Finds a subject's current subscription grant."""

    def __init__(self, session: "Session", keyspace: str, clock: Clock | None = None):
        self.session = session
        self.keyspace = keyspace
        self.clock = clock or SystemClock()
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_subscriptions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.subscriptions_by_subject
            WHERE subject_id = ?
        """)

    async def find_current(
        self, subject_id: UUID, now: datetime | None = None
    ) -> SubscriptionGrant | None:
        """Grant current at ``now`` (the lookup clock when omitted)."""
        rows = await self.session.aexecute(self._get_subscriptions, [subject_id])
        grants = [SubscriptionGrant.from_row(row) for row in rows]
        return select_current_grant(grants, now or self.clock.now())


class CassandraSubjectLookup:
    """Reads subject kind and linked teacher."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._get_subject = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.access_subjects
            WHERE subject_id = ?
        """)

    async def find_subject(self, subject_id: UUID) -> Subject | None:
        result = await self.session.aexecute(self._get_subject, [subject_id])
        row = result.one()
        return Subject.from_row(row) if row else None


class CassandraDecisionRecorder:
    """Writes served decisions to the audit table (90 day TTL)."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._insert_decision = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.access_decisions_by_subject
            (subject_id, evaluated_at, decision_id, content_type, content_id,
             has_access, access_type, reason, expires_at, request_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._get_recent = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.access_decisions_by_subject
            WHERE subject_id = ? AND evaluated_at >= ?
            LIMIT ?
        """)

    async def record(self, decision: AccessDecision) -> None:
        await self.session.aexecute(
            self._insert_decision,
            [
                decision.subject_id,
                decision.evaluated_at,
                uuid4(),
                decision.content_type.value if decision.content_type else None,
                decision.content_id,
                decision.has_access,
                decision.access_type.value,
                decision.reason.value,
                decision.expires_at,
                get_request_id() or None,
            ],
        )

    async def recent_for_subject(
        self, subject_id: UUID, since: datetime, limit: int = 100
    ) -> list[dict]:
        """Audit rows for a subject since a given instant, newest first."""
        rows = await self.session.aexecute(self._get_recent, [subject_id, since, limit])
        return [
            {
                "evaluated_at": row.evaluated_at,
                "content_type": row.content_type,
                "content_id": row.content_id,
                "has_access": row.has_access,
                "access_type": row.access_type,
                "reason": row.reason,
                "expires_at": row.expires_at,
                "request_id": row.request_id,
            }
            for row in rows
        ]
