"""Construction and dependency injection for the access module.

The resolver, cache and recorder are built once in the application lifespan
and stored on ``app.state``; routes receive them through these dependencies.
"""

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status

from eduaccess.config.settings import Settings
from eduaccess.core.logging import get_logger

from .cache import AccessDecisionCache
from .interfaces import DecisionRecorder
from .repository import (
    CassandraContentLookup,
    CassandraDecisionRecorder,
    CassandraPurchaseLookup,
    CassandraSubjectLookup,
    CassandraSubscriptionLookup,
)
from .resolver import AccessResolver


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = get_logger(__name__)


def build_access_resolver(session: "Session", settings: Settings) -> AccessResolver:
    """Wire an AccessResolver to the Cassandra read model."""
    keyspace = settings.cassandra_keyspace
    subject_lookup = (
        CassandraSubjectLookup(session, keyspace)
        if settings.access_teacher_claims_enabled
        else None
    )
    return AccessResolver(
        content_lookup=CassandraContentLookup(session, keyspace),
        purchase_lookup=CassandraPurchaseLookup(session, keyspace),
        subscription_lookup=CassandraSubscriptionLookup(session, keyspace),
        subject_lookup=subject_lookup,
        require_published=settings.access_require_published,
        timeout=settings.access_resolve_timeout_seconds,
    )


def build_access_cache(
    resolver: AccessResolver, settings: Settings, redis: "Redis | None"
) -> AccessDecisionCache:
    """Wrap the resolver in a decision cache (pass-through when disabled)."""
    return AccessDecisionCache(
        resolver=resolver,
        redis=redis if settings.access_cache_enabled else None,
        ttl_seconds=settings.access_cache_ttl_seconds,
    )


def build_decision_recorder(
    session: "Session", settings: Settings
) -> CassandraDecisionRecorder | None:
    if not settings.access_audit_enabled:
        return None
    return CassandraDecisionRecorder(session, settings.cassandra_keyspace)


def _component(request: Request, name: str):
    """Fetch a lifespan-built component; 503 while it is missing.

    Components are absent when Cassandra was unreachable at startup.
    """
    component = getattr(request.app.state, name, None)
    if component is None:
        logger.warning("access_component_missing", component=name)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access checks are unavailable, try again later",
        )
    return component


def get_access_resolver(request: Request) -> AccessResolver:
    """Get the AccessResolver from app state."""
    return _component(request, "access_resolver")


def get_access_cache(request: Request) -> AccessDecisionCache:
    """Get the AccessDecisionCache from app state."""
    return _component(request, "access_cache")


def get_decision_recorder(request: Request) -> DecisionRecorder | None:
    """Get the decision recorder, or None when auditing is off."""
    return getattr(request.app.state, "decision_recorder", None)


AccessResolverDep = Annotated[AccessResolver, Depends(get_access_resolver)]
AccessCacheDep = Annotated[AccessDecisionCache, Depends(get_access_cache)]
DecisionRecorderDep = Annotated[
    DecisionRecorder | None, Depends(get_decision_recorder)
]
