"""Pydantic schemas for access decisions.

Used both as the HTTP response body and as the cache serialization format.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    AccessChannel,
    AccessDecision,
    AccessReason,
    AccessType,
    Capabilities,
    ContentType,
)


class CapabilitiesResponse(BaseModel):
    """Capability flags of a decision."""

    model_config = ConfigDict(from_attributes=True)

    can_download: bool = False
    can_preview: bool = False
    can_play: bool = False


class AccessDecisionResponse(BaseModel):
    """Response schema for one access decision."""

    has_access: bool = Field(..., description="Whether access is granted")
    access_type: AccessType = Field(..., description="Channel that granted access")
    reason: AccessReason = Field(..., description="Why the decision was made")
    subject_id: UUID
    content_type: ContentType | None = None
    content_id: UUID | None = None
    video_id: str | None = None
    evaluated_at: datetime
    expires_at: datetime | None = Field(
        None, description="When access ends (None = no expiry or no access)"
    )
    capabilities: CapabilitiesResponse = Field(default_factory=CapabilitiesResponse)
    remaining_allowances: int | Literal["unlimited"] | None = Field(
        None, description="Remaining uses, 'unlimited', or None without access"
    )
    purchasable_id: UUID | None = None
    purchase_id: UUID | None = None
    subscription_id: UUID | None = None
    via_teacher_id: UUID | None = Field(
        None, description="Teacher whose subscription granted access"
    )
    checked_channels: list[AccessChannel] = Field(default_factory=list)

    @classmethod
    def from_decision(cls, decision: AccessDecision) -> "AccessDecisionResponse":
        """Create response from an AccessDecision."""
        return cls(
            has_access=decision.has_access,
            access_type=decision.access_type,
            reason=decision.reason,
            subject_id=decision.subject_id,
            content_type=decision.content_type,
            content_id=decision.content_id,
            video_id=decision.video_id,
            evaluated_at=decision.evaluated_at,
            expires_at=decision.expires_at,
            capabilities=CapabilitiesResponse.model_validate(decision.capabilities),
            remaining_allowances=decision.remaining_allowances,
            purchasable_id=decision.purchasable_id,
            purchase_id=decision.purchase_id,
            subscription_id=decision.subscription_id,
            via_teacher_id=decision.via_teacher_id,
            checked_channels=list(decision.checked_channels),
        )

    def to_decision(self) -> AccessDecision:
        """Rebuild the AccessDecision value (used when reading the cache)."""
        return AccessDecision(
            has_access=self.has_access,
            access_type=self.access_type,
            reason=self.reason,
            subject_id=self.subject_id,
            evaluated_at=self.evaluated_at,
            content_type=self.content_type,
            content_id=self.content_id,
            video_id=self.video_id,
            expires_at=self.expires_at,
            capabilities=Capabilities(
                can_download=self.capabilities.can_download,
                can_preview=self.capabilities.can_preview,
                can_play=self.capabilities.can_play,
            ),
            remaining_allowances=self.remaining_allowances,
            purchasable_id=self.purchasable_id,
            purchase_id=self.purchase_id,
            subscription_id=self.subscription_id,
            via_teacher_id=self.via_teacher_id,
            checked_channels=tuple(self.checked_channels),
        )


class CacheInvalidatedResponse(BaseModel):
    """Response for an admin cache invalidation."""

    invalidated: bool = Field(..., description="Whether a cached entry was removed")


class AccessAuditEntry(BaseModel):
    """One recorded decision from the audit table."""

    evaluated_at: datetime
    content_type: ContentType | None = None
    content_id: UUID | None = None
    has_access: bool
    access_type: AccessType
    reason: AccessReason
    expires_at: datetime | None = None
    request_id: str | None = None
