"""Bearer-token authentication for the access API."""

from .dependencies import (
    AuthenticatedSubject,
    CurrentSubject,
    OwnerSubject,
    get_current_subject,
    require_owner,
)
from .security import create_access_token, decode_access_token


__all__ = [
    "AuthenticatedSubject",
    "CurrentSubject",
    "OwnerSubject",
    "create_access_token",
    "decode_access_token",
    "get_current_subject",
    "require_owner",
]
