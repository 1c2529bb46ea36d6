"""HTTP endpoints for content access checks.

Provides:
- GET    /v1/access/check/{content_type}/{content_id} - Decision for the caller
- GET    /v1/access/video/{video_id} - Decision for the content owning a video
- GET    /v1/access/content/{content_type}/{content_id} - Guard (403 on denial)
- Owner endpoints for checking other subjects, cache invalidation and audit
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from eduaccess.auth import CurrentSubject, OwnerSubject
from eduaccess.core.logging import get_logger

from .dependencies import AccessCacheDep, AccessResolverDep, DecisionRecorderDep
from .errors import AccessDeniedError, CollaboratorFailure, NotClaimableError
from .interfaces import DecisionLog, DecisionRecorder
from .models import AccessDecision, ContentType
from .schemas import (
    AccessAuditEntry,
    AccessDecisionResponse,
    CacheInvalidatedResponse,
)


logger = get_logger(__name__)

router = APIRouter(prefix="/v1/access", tags=["access"])
admin_router = APIRouter(prefix="/v1/admin/access", tags=["admin-access"])


def _unavailable(e: CollaboratorFailure) -> HTTPException:
    logger.warning(
        "access_check_unavailable",
        collaborator=e.collaborator,
        error=str(e),
    )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Access could not be verified, try again later",
    )


def _not_found(target: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Content {target} not found",
    )


async def _record(recorder: DecisionRecorder | None, decision: AccessDecision) -> None:
    """Write the decision to the audit sink; failures never change the response."""
    if recorder is None:
        return
    try:
        await recorder.record(decision)
    except Exception as e:
        logger.warning(
            "access_audit_failed",
            error=str(e),
            error_type=type(e).__name__,
            subject_id=str(decision.subject_id),
        )


# ==============================================================================
# Subject Endpoints
# ==============================================================================


@router.get(
    "/check/{content_type}/{content_id}",
    response_model=AccessDecisionResponse,
    summary="Check access to content",
)
async def check_access(
    content_type: ContentType,
    content_id: UUID,
    cache: AccessCacheDep,
    recorder: DecisionRecorderDep,
    current_subject: CurrentSubject,
) -> AccessDecisionResponse:
    """Return the caller's access decision, granted or not.

    Channel priority: creator, then purchase, then subscription.
    """
    try:
        decision = await cache.resolve(current_subject.id, content_type, content_id)
    except CollaboratorFailure as e:
        raise _unavailable(e) from e

    if not decision.is_claimable:
        raise _not_found(decision.target)

    await _record(recorder, decision)
    return AccessDecisionResponse.from_decision(decision)


@router.get(
    "/video/{video_id}",
    response_model=AccessDecisionResponse,
    summary="Check access to a video",
)
async def check_video_access(
    video_id: str,
    resolver: AccessResolverDep,
    recorder: DecisionRecorderDep,
    current_subject: CurrentSubject,
) -> AccessDecisionResponse:
    """Return the caller's access decision for the content that owns a video."""
    try:
        decision = await resolver.resolve_video(current_subject.id, video_id)
    except CollaboratorFailure as e:
        raise _unavailable(e) from e

    if not decision.is_claimable:
        raise _not_found(decision.target)

    await _record(recorder, decision)
    return AccessDecisionResponse.from_decision(decision)


@router.get(
    "/content/{content_type}/{content_id}",
    response_model=AccessDecisionResponse,
    summary="Require access to content",
)
async def require_access(
    content_type: ContentType,
    content_id: UUID,
    cache: AccessCacheDep,
    recorder: DecisionRecorderDep,
    current_subject: CurrentSubject,
) -> AccessDecisionResponse:
    """Guard used before serving content: 403 when access is denied."""
    try:
        decision = await cache.require(current_subject.id, content_type, content_id)
    except NotClaimableError as e:
        raise _not_found(str(e.ref)) from e
    except AccessDeniedError as e:
        await _record(recorder, e.decision)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied ({e.decision.reason.value})",
        ) from e
    except CollaboratorFailure as e:
        raise _unavailable(e) from e

    await _record(recorder, decision)
    return AccessDecisionResponse.from_decision(decision)


# ==============================================================================
# Owner Endpoints
# ==============================================================================


@admin_router.get(
    "/check/{subject_id}/{content_type}/{content_id}",
    response_model=AccessDecisionResponse,
    summary="Check another subject's access",
)
async def admin_check_access(
    subject_id: UUID,
    content_type: ContentType,
    content_id: UUID,
    resolver: AccessResolverDep,
    _: OwnerSubject,
) -> AccessDecisionResponse:
    """Resolve a subject's access without the cache (support tooling)."""
    try:
        decision = await resolver.resolve(subject_id, content_type, content_id)
    except CollaboratorFailure as e:
        raise _unavailable(e) from e

    if not decision.is_claimable:
        raise _not_found(decision.target)

    return AccessDecisionResponse.from_decision(decision)


@admin_router.delete(
    "/cache/{subject_id}/{content_type}/{content_id}",
    response_model=CacheInvalidatedResponse,
    summary="Invalidate a cached decision",
)
async def admin_invalidate_cache(
    subject_id: UUID,
    content_type: ContentType,
    content_id: UUID,
    cache: AccessCacheDep,
    _: OwnerSubject,
) -> CacheInvalidatedResponse:
    """Drop a cached decision, e.g. right after a refund or plan change."""
    try:
        invalidated = await cache.invalidate(subject_id, content_type, content_id)
    except CollaboratorFailure as e:
        raise _unavailable(e) from e

    return CacheInvalidatedResponse(invalidated=invalidated)


@admin_router.get(
    "/audit/{subject_id}",
    response_model=list[AccessAuditEntry],
    summary="List recent decisions for a subject",
)
async def admin_audit_log(
    subject_id: UUID,
    recorder: DecisionRecorderDep,
    _: OwnerSubject,
    days: int = Query(7, ge=1, le=90),
    limit: int = Query(100, ge=1, le=1000),
) -> list[AccessAuditEntry]:
    """Decisions served to a subject over the last ``days`` days."""
    if not isinstance(recorder, DecisionLog):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Access audit is disabled",
        )

    since = datetime.now(UTC) - timedelta(days=days)
    try:
        rows = await recorder.recent_for_subject(subject_id, since, limit)
    except Exception as e:
        raise _unavailable(CollaboratorFailure("decision_recorder", str(e))) from e
    return [AccessAuditEntry(**row) for row in rows]
