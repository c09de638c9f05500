"""Direct calls to the async route handlers, bypassing HTTP (F5)."""

from datetime import date

import pytest
from fastapi import HTTPException
from fastapi.responses import JSONResponse

from aitutor.core.models import create_default_user
from aitutor.core.user_repository import save_user
from aitutor.web.routes import chats, library, users
from aitutor.web.schemas import FolderCreate


@pytest.fixture
def state_dir(tmp_path):
    state = tmp_path / "state"
    state.mkdir()
    save_user(create_default_user("ana@example.com", "Ana", "Diaz", user_id="u1", today=date.today()), state)
    return state


class TestUserHandlers:
    @pytest.mark.asyncio
    async def test_get_usage(self, state_dir):
        usage = await users.get_usage("u1", state_dir=state_dir)

        assert usage.subscription_tier == "free"
        assert usage.remaining_messages == 10

    @pytest.mark.asyncio
    async def test_get_missing_user_raises(self, state_dir):
        with pytest.raises(HTTPException) as exc_info:
            await users.get_user("nope", state_dir=state_dir)

        assert exc_info.value.status_code == 404


class TestLibraryHandlers:
    @pytest.mark.asyncio
    async def test_folder_limit_returns_json_error(self, state_dir):
        for name in ("A", "B"):
            await library.create_folder("u1", FolderCreate(name=name), state_dir=state_dir)

        response = await library.create_folder("u1", FolderCreate(name="C"), state_dir=state_dir)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 403

        listed = await library.list_folders("u1", state_dir=state_dir)
        assert listed.count == 2


class TestChatHandlers:
    @pytest.mark.asyncio
    async def test_create_then_list(self, state_dir):
        created = await chats.create_chat("u1", state_dir=state_dir)
        listed = await chats.list_chats("u1", state_dir=state_dir)

        assert listed.count == 1
        assert listed.sessions[0].id == created.id
