"""Redis read-through cache for access decisions.

Decisions are cached per (subject, content type, content id). A cached
decision never outlives the access it describes: the TTL is capped at the
seconds left until ``expires_at``, and a cached grant read after its expiry is
ignored. Unknown content (``not_claimable``) is never cached so newly
published content becomes visible immediately.
"""

import math
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from eduaccess.core.logging import get_logger

from .errors import AccessDeniedError, CollaboratorFailure, NotClaimableError
from .models import AccessDecision, ContentType
from .resolver import AccessResolver
from .schemas import AccessDecisionResponse


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = get_logger(__name__)


def cache_key(subject_id: UUID, content_type: ContentType, content_id: UUID) -> str:
    """Redis key for a cached decision."""
    return f"access:{subject_id}:{content_type.value}:{content_id}"


class AccessDecisionCache:
    """Caching front for an AccessResolver. Pass-through without Redis."""

    def __init__(
        self,
        resolver: AccessResolver,
        redis: "Redis | None" = None,
        ttl_seconds: int = 300,
    ):
        self.resolver = resolver
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    async def resolve(
        self,
        subject_id: UUID,
        content_type: ContentType | str,
        content_id: UUID,
    ) -> AccessDecision:
        """Resolve at the resolver's current time, serving from cache when fresh.

        Unknown content types skip the cache; the resolver answers not_claimable.
        """
        known_type = ContentType.parse(content_type)
        if self.redis is None or known_type is None:
            return await self.resolver.resolve(subject_id, content_type, content_id)
        content_type = known_type

        now = self.resolver.clock.now()
        key = cache_key(subject_id, content_type, content_id)

        cached = await self._redis_call("get", self.redis.get(key))
        if cached is not None:
            decision = AccessDecisionResponse.model_validate_json(cached).to_decision()
            if decision.expires_at is None or now <= decision.expires_at:
                logger.debug("access_cache_hit", key=key)
                return decision
            logger.debug("access_cache_stale", key=key)

        decision = await self.resolver.resolve(subject_id, content_type, content_id, now)

        ttl = self.ttl_for(decision, now)
        if ttl > 0:
            payload = AccessDecisionResponse.from_decision(decision).model_dump_json()
            await self._redis_call("setex", self.redis.setex(key, ttl, payload))

        return decision

    async def require(
        self,
        subject_id: UUID,
        content_type: ContentType | str,
        content_id: UUID,
    ) -> AccessDecision:
        """Cached counterpart of ``AccessResolver.require``."""
        decision = await self.resolve(subject_id, content_type, content_id)
        if not decision.is_claimable:
            raise NotClaimableError(decision.target)
        if not decision.has_access:
            raise AccessDeniedError(decision)
        return decision

    async def invalidate(
        self,
        subject_id: UUID,
        content_type: ContentType | str,
        content_id: UUID,
    ) -> bool:
        """Drop a cached decision. Returns True if an entry was removed."""
        known_type = ContentType.parse(content_type)
        if self.redis is None or known_type is None:
            return False

        key = cache_key(subject_id, known_type, content_id)
        deleted = await self._redis_call("delete", self.redis.delete(key))

        logger.info("access_cache_invalidated", key=key, deleted=bool(deleted))
        return bool(deleted)

    def ttl_for(self, decision: AccessDecision, now: datetime) -> int:
        """Seconds to keep a decision; 0 means don't cache."""
        if not decision.is_claimable:
            return 0
        if decision.expires_at is None:
            return self.ttl_seconds

        remaining = (decision.expires_at - now).total_seconds()
        if remaining <= 0:
            return 0
        # Round down so the entry is gone before access ends
        return min(self.ttl_seconds, math.floor(remaining))

    async def _redis_call(self, operation: str, awaitable):
        try:
            return await awaitable
        except Exception as e:
            logger.error(
                "access_cache_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CollaboratorFailure("decision_cache", str(e)) from e
