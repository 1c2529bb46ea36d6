"""FastAPI dependencies for authentication.

Provides:
- Current subject extraction from the bearer JWT
- Owner-only guard for administrative endpoints
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import BaseModel, ValidationError

from eduaccess.access.models import SubjectKind
from eduaccess.core.context import set_subject_id

from .security import decode_access_token


class AuthenticatedSubject(BaseModel):
    """The caller as described by its access token."""

    id: UUID
    kind: SubjectKind = SubjectKind.USER

    @property
    def is_owner(self) -> bool:
        return self.kind == SubjectKind.OWNER


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_subject(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> AuthenticatedSubject:
    """Get the authenticated subject from the JWT access token.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(token)
        subject = AuthenticatedSubject(
            id=payload["sub"],
            kind=payload.get("kind", SubjectKind.USER.value),
        )
    except (JWTError, ValidationError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    # Subject id in context for logging
    set_subject_id(subject.id)
    return subject


async def require_owner(
    subject: Annotated[AuthenticatedSubject, Depends(get_current_subject)],
) -> AuthenticatedSubject:
    """Require the platform owner.

    Raises:
        HTTPException(403): If the caller is not an owner
    """
    if not subject.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return subject


CurrentSubject = Annotated[AuthenticatedSubject, Depends(get_current_subject)]
OwnerSubject = Annotated[AuthenticatedSubject, Depends(require_owner)]
