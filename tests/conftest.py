"""Shared fixtures for the eduaccess test suite."""

import os
import tempfile


# Settings are cached on first use; configure the test environment before
# anything imports eduaccess.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "json")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="eduaccess-logs-"))

from collections.abc import Callable, Iterator  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from unittest.mock import AsyncMock, Mock  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from eduaccess.access.cache import AccessDecisionCache  # noqa: E402
from eduaccess.access.interfaces import FixedClock  # noqa: E402
from eduaccess.access.models import (  # noqa: E402
    ContentType,
    PaymentStatus,
    Purchasable,
    PurchaseRecord,
    SubscriptionGrant,
)
from eduaccess.access.repository import CassandraDecisionRecorder  # noqa: E402
from eduaccess.access.resolver import AccessResolver  # noqa: E402
from eduaccess.auth.security import create_access_token  # noqa: E402


NOW = datetime(2025, 1, 2, 12, 0, tzinfo=UTC)


# ==============================================================================
# Identities
# ==============================================================================


@pytest.fixture
def subject_id() -> UUID:
    return uuid4()


@pytest.fixture
def creator_id() -> UUID:
    return uuid4()


# ==============================================================================
# Read-model factories
# ==============================================================================


@pytest.fixture
def make_purchasable(creator_id: UUID) -> Callable[..., Purchasable]:
    """Factory for Purchasable records (workshop by default)."""

    def _make(
        content_type: ContentType = ContentType.WORKSHOP,
        creator: UUID | None = None,
        is_published: bool = True,
    ) -> Purchasable:
        return Purchasable(
            purchasable_id=uuid4(),
            content_type=content_type,
            content_id=uuid4(),
            creator_id=creator or creator_id,
            is_published=is_published,
            title="Fractions with pizza",
        )

    return _make


@pytest.fixture
def purchasable(make_purchasable) -> Purchasable:
    return make_purchasable()


@pytest.fixture
def make_purchase(subject_id: UUID, purchasable: Purchasable):
    """Factory for completed PurchaseRecords of ``purchasable``."""

    def _make(
        created_at: datetime = datetime(2024, 12, 1, tzinfo=UTC),
        payment_status: PaymentStatus = PaymentStatus.COMPLETED,
        lifetime_access: bool = False,
        access_until: datetime | None = None,
        access_days: int | None = None,
    ) -> PurchaseRecord:
        return PurchaseRecord(
            purchase_id=uuid4(),
            subject_id=subject_id,
            purchasable_id=purchasable.purchasable_id,
            created_at=created_at,
            payment_status=payment_status,
            lifetime_access=lifetime_access,
            access_until=access_until,
            access_days=access_days,
        )

    return _make


@pytest.fixture
def make_grant(subject_id: UUID):
    """Factory for SubscriptionGrants."""

    def _make(
        benefits: dict[str, bool | int],
        holder_id: UUID | None = None,
        start_date: datetime = datetime(2024, 6, 1, tzinfo=UTC),
        end_date: datetime | None = datetime(2025, 6, 1, tzinfo=UTC),
        active: bool = True,
    ) -> SubscriptionGrant:
        return SubscriptionGrant(
            subscription_id=uuid4(),
            subject_id=holder_id or subject_id,
            start_date=start_date,
            end_date=end_date,
            active=active,
            plan_id=uuid4(),
            benefits=benefits,
        )

    return _make


# ==============================================================================
# Collaborators
# ==============================================================================


@pytest.fixture
def content_lookup(purchasable: Purchasable) -> AsyncMock:
    """Content lookup that knows exactly one purchasable."""
    lookup = AsyncMock()

    async def find_purchasable(content_type, content_id):
        if (
            purchasable.content_type == content_type
            and purchasable.content_id == content_id
        ):
            return purchasable
        return None

    lookup.find_purchasable = AsyncMock(side_effect=find_purchasable)
    lookup.find_by_video = AsyncMock(return_value=None)
    return lookup


@pytest.fixture
def purchase_lookup() -> AsyncMock:
    lookup = AsyncMock()
    lookup.find_latest_completed = AsyncMock(return_value=None)
    return lookup


@pytest.fixture
def subscription_lookup() -> AsyncMock:
    lookup = AsyncMock()
    lookup.find_current = AsyncMock(return_value=None)
    return lookup


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def resolver(
    content_lookup: AsyncMock,
    purchase_lookup: AsyncMock,
    subscription_lookup: AsyncMock,
    clock: FixedClock,
) -> AccessResolver:
    return AccessResolver(
        content_lookup=content_lookup,
        purchase_lookup=purchase_lookup,
        subscription_lookup=subscription_lookup,
        clock=clock,
    )


# ==============================================================================
# HTTP
# ==============================================================================


@pytest.fixture
def decision_recorder() -> Mock:
    recorder = Mock(spec=CassandraDecisionRecorder)
    recorder.record = AsyncMock(return_value=None)
    recorder.recent_for_subject = AsyncMock(return_value=[])
    return recorder


@pytest.fixture
def client(resolver: AccessResolver, decision_recorder: Mock) -> Iterator[TestClient]:
    """Test client with the access components wired to mocked lookups.

    The lifespan is not run, so no Cassandra or Redis connection is attempted.
    """
    from eduaccess.main import app

    app.state.access_resolver = resolver
    app.state.access_cache = AccessDecisionCache(resolver)
    app.state.decision_recorder = decision_recorder

    yield TestClient(app)

    for attr in ("access_resolver", "access_cache", "decision_recorder"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)


def _token(subject: UUID, kind: str) -> str:
    return create_access_token({"sub": str(subject), "kind": kind})


@pytest.fixture
def user_token(subject_id: UUID) -> str:
    """Access token for the default test subject."""
    return _token(subject_id, "user")


@pytest.fixture
def creator_token(creator_id: UUID) -> str:
    return _token(creator_id, "creator")


@pytest.fixture
def owner_token() -> str:
    return _token(uuid4(), "owner")


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def owner_headers(owner_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {owner_token}"}
