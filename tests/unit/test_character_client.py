"""Unit tests for CharacterClient against an in-process character store."""

import asyncio

import pytest
from aiohttp import web, test_utils

from voicechat.errors import BadRequest, CharacterApiError, NotFound, Unauthorized
from voicechat.models.api import CharacterOverrides
from voicechat.services.character_client import CharacterClient, error_from_response

RECORD = {
    "id": "c-1",
    "name": "Captain",
    "description": "A weathered sea captain",
    "characterCard": "Speaks in nautical terms.",
    "userId": "u-1",
    "createdAt": "2025-01-01T12:00:00Z",
}


def character_store(received, respond=None):
    """Store that echoes records and records requests; `respond` may override the answer."""
    async def handle(request):
        body = await request.json() if request.can_read_body else None
        received.append({
            'method': request.method,
            'query': dict(request.query),
            'body': body,
            'authorization': request.headers.get('Authorization'),
        })
        if respond is not None:
            return respond(request)
        if request.method == "GET":
            return web.json_response([RECORD])
        if request.method == "DELETE":
            return web.json_response(dict(RECORD, id=request.query['id']))
        record = dict(RECORD)
        record.update({k: v for k, v in (body or {}).items() if k in RECORD})
        if (body or {}).get("action") == "clone":
            record.update(id="c-2", **(body.get("overrides") or {}))
        return web.json_response(record)

    app = web.Application()
    app.router.add_route('*', '/api/characters', handle)
    return app


async def with_client(app, scenario, auth_token="token-1"):
    async with test_utils.TestServer(app) as server:
        client = CharacterClient(str(server.make_url('/api/characters')), auth_token=auth_token)
        return await scenario(client)


@pytest.mark.unit
class TestCharacterClient:
    """Test cases for CharacterClient."""

    def test_list_characters(self):
        """Test listing characters."""
        received = []

        characters = asyncio.run(with_client(character_store(received), lambda c: c.list_characters()))

        assert [c.name for c in characters] == ["Captain"]
        assert characters[0].character_card == "Speaks in nautical terms."
        assert characters[0].created_at.year == 2025
        assert received[0]['authorization'] == "Bearer token-1"

    def test_create_character(self):
        """Test creating a character."""
        received = []

        character = asyncio.run(with_client(
            character_store(received),
            lambda c: c.create_character("Pirate", "Loud", "Says arr."),
        ))

        assert character.name == "Pirate"
        assert received[0]['body'] == {
            "action": "create", "name": "Pirate", "description": "Loud", "characterCard": "Says arr.",
        }

    def test_create_requires_fields(self):
        """Test creating a character with missing fields."""
        received = []

        with pytest.raises(BadRequest, match="Missing fields"):
            asyncio.run(with_client(character_store(received), lambda c: c.create_character("Pirate", "", "card")))
        assert received == []

    def test_clone_with_overrides(self):
        """Test cloning a character with overrides."""
        received = []

        character = asyncio.run(with_client(
            character_store(received),
            lambda c: c.clone_character("c-1", CharacterOverrides(name="Captain II")),
        ))

        assert character.id == "c-2"
        assert character.name == "Captain II"
        assert received[0]['body'] == {
            "action": "clone", "sourceCharacterId": "c-1", "overrides": {"name": "Captain II"},
        }

    def test_update_sends_only_given_fields(self):
        """Test updating sends only the given fields."""
        received = []

        asyncio.run(with_client(
            character_store(received),
            lambda c: c.update_character("c-1", character_card="New card"),
        ))

        assert received[0]['method'] == "PATCH"
        assert received[0]['body'] == {"id": "c-1", "characterCard": "New card"}

    def test_delete_character(self):
        """Test deleting a character."""
        received = []

        character = asyncio.run(with_client(character_store(received), lambda c: c.delete_character("c-9")))

        assert character.id == "c-9"
        assert received[0]['method'] == "DELETE"
        assert received[0]['query'] == {"id": "c-9"}

    @pytest.mark.parametrize("call", [
        lambda c: c.update_character(""),
        lambda c: c.delete_character(""),
        lambda c: c.clone_character(""),
    ])
    def test_missing_id_rejected_locally(self, call):
        """Test a missing id is rejected before any request."""
        received = []

        with pytest.raises(BadRequest):
            asyncio.run(with_client(character_store(received), call))
        assert received == []

    @pytest.mark.parametrize("status,code,expected", [
        (401, "unauthorized:character", Unauthorized),
        (404, "not_found:character", NotFound),
        (400, "bad_request:api", BadRequest),
    ])
    def test_error_responses(self, status, code, expected):
        """Test error bodies map to error classes."""
        def respond(request):
            return web.json_response({"code": code, "message": "nope", "cause": "because"}, status=status)

        with pytest.raises(expected) as excinfo:
            asyncio.run(with_client(character_store([], respond), lambda c: c.list_characters()))

        assert excinfo.value.code == code
        assert excinfo.value.status == status
        assert excinfo.value.cause == "because"
        assert str(excinfo.value) == "nope"

    def test_unmapped_error(self):
        """Test an unknown error kind."""
        def respond(request):
            return web.Response(status=503, text="maintenance")

        with pytest.raises(CharacterApiError) as excinfo:
            asyncio.run(with_client(character_store([], respond), lambda c: c.list_characters()))

        assert type(excinfo.value) is CharacterApiError
        assert excinfo.value.status == 503

    def test_error_from_status_only(self):
        """Test errors mapped from the status code alone."""
        error = error_from_response(404, None)

        assert isinstance(error, NotFound)
        assert error.code == "not_found:api"
