"""Access-control exceptions.

A plain denial is not an error: ``AccessResolver.resolve`` returns it as a
decision. These exceptions cover lookups that failed and the ``require``
guard, which turns a denial into an exception for callers that want one.
"""

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .models import AccessDecision, ContentRef


class AccessControlError(Exception):
    """Base class for access-control errors."""


class CollaboratorFailure(AccessControlError):
    """A lookup raised or the resolution timed out.

    The original exception, when there is one, is chained as ``__cause__``.
    """

    def __init__(self, collaborator: str, message: str) -> None:
        self.collaborator = collaborator
        super().__init__(f"{collaborator}: {message}")


class NotClaimableError(AccessControlError):
    """The content reference does not map to any purchasable record."""

    def __init__(self, ref: "ContentRef | str") -> None:
        self.ref = ref
        super().__init__(f"Content {ref} is not claimable")


class AccessDeniedError(AccessControlError):
    """The content exists but no channel grants access to it."""

    def __init__(self, decision: "AccessDecision") -> None:
        self.decision = decision
        super().__init__(f"Access denied to {decision.target} ({decision.reason.value})")
