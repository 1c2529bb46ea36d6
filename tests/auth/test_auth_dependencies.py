"""Tests for authentication dependencies."""

from unittest.mock import Mock
from uuid import uuid4

import pytest
from fastapi import HTTPException

from eduaccess.access.models import SubjectKind
from eduaccess.auth.dependencies import (
    AuthenticatedSubject,
    get_current_subject,
    get_token_from_header,
    require_owner,
)
from eduaccess.auth.security import create_access_token
from eduaccess.core.context import clear_context, get_subject_id


def _request(headers: dict[str, str]) -> Mock:
    request = Mock()
    request.headers = headers
    return request


class TestGetTokenFromHeader:
    """Tests for bearer token extraction."""

    def test_bearer_token(self) -> None:
        assert get_token_from_header(_request({"Authorization": "Bearer abc"})) == "abc"

    def test_scheme_is_case_insensitive(self) -> None:
        assert get_token_from_header(_request({"Authorization": "bearer abc"})) == "abc"

    @pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer a b", ""])
    def test_malformed_header(self, header: str) -> None:
        assert get_token_from_header(_request({"Authorization": header})) is None

    def test_missing_header(self) -> None:
        assert get_token_from_header(_request({})) is None


class TestGetCurrentSubject:
    """Tests for get_current_subject."""

    @pytest.fixture(autouse=True)
    def _context(self):
        yield
        clear_context()

    @pytest.mark.asyncio
    async def test_valid_token(self) -> None:
        subject_id = uuid4()
        token = create_access_token({"sub": str(subject_id), "kind": "creator"})

        subject = await get_current_subject(token)

        assert subject.id == subject_id
        assert subject.kind == SubjectKind.CREATOR
        assert get_subject_id() == str(subject_id)

    @pytest.mark.asyncio
    async def test_kind_defaults_to_user(self) -> None:
        token = create_access_token({"sub": str(uuid4())})

        subject = await get_current_subject(token)

        assert subject.kind == SubjectKind.USER

    @pytest.mark.asyncio
    async def test_missing_token(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_subject(None)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_uuid_subject(self) -> None:
        token = create_access_token({"sub": "not-a-uuid"})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_subject(token)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_kind(self) -> None:
        token = create_access_token({"sub": str(uuid4()), "kind": "superuser"})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_subject(token)

        assert exc_info.value.status_code == 401


class TestRequireOwner:
    @pytest.mark.asyncio
    async def test_owner_passes(self) -> None:
        owner = AuthenticatedSubject(id=uuid4(), kind=SubjectKind.OWNER)

        assert await require_owner(owner) is owner

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [SubjectKind.USER, SubjectKind.CREATOR])
    async def test_others_forbidden(self, kind: SubjectKind) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await require_owner(AuthenticatedSubject(id=uuid4(), kind=kind))

        assert exc_info.value.status_code == 403
