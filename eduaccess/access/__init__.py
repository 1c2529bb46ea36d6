"""Content access control.

Resolves whether a subject may use a piece of purchasable content, and
through which channel (creator, purchase or subscription).
"""

from .errors import (
    AccessControlError,
    AccessDeniedError,
    CollaboratorFailure,
    NotClaimableError,
)
from .interfaces import FixedClock, SystemClock
from .models import (
    UNLIMITED,
    AccessDecision,
    AccessReason,
    AccessType,
    Capabilities,
    ContentType,
)
from .resolver import AccessResolver


__all__ = [
    "UNLIMITED",
    "AccessControlError",
    "AccessDecision",
    "AccessDeniedError",
    "AccessReason",
    "AccessResolver",
    "AccessType",
    "Capabilities",
    "CollaboratorFailure",
    "ContentType",
    "FixedClock",
    "NotClaimableError",
    "SystemClock",
]
