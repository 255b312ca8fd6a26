"""Client for the character store (create, read, update, delete, clone)."""

import logging
from typing import Optional, List, Dict, Any, Union

import aiohttp

from ..errors import CharacterApiError, BadRequest, NotFound, Unauthorized, CHARACTER_ERRORS
from ..models.api import Character, CharacterOverrides

logger = logging.getLogger(__name__)

STATUS_ERRORS = {401: Unauthorized, 400: BadRequest, 404: NotFound}


def error_from_response(status: int, body: Any) -> CharacterApiError:
    """Map an error response (`{code: "<kind>:<surface>", message, cause}`) to an exception."""
    body = body if isinstance(body, dict) else {}
    kind, _, surface = str(body.get('code', '')).partition(':')
    error_class = CHARACTER_ERRORS.get(kind) or STATUS_ERRORS.get(status)
    message = body.get('message') or body.get('error') or f"Character store error ({status})"
    if error_class is None:
        return CharacterApiError(message, surface=surface or "api", status=status, cause=body.get('cause'))
    return error_class(message, surface=surface or "api", cause=body.get('cause'))


class CharacterClient:
    """Talks to the character store's /api/characters endpoint."""

    def __init__(self, base_url: str, auth_token: Optional[str] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize character client.

        Args:
            base_url: Absolute URL of the characters endpoint
            auth_token: Bearer token of the authenticated caller
            session: Shared aiohttp session; a short-lived one is used per call when None
        """
        self.base_url = base_url
        self.auth_token = auth_token
        self._session = session

    async def list_characters(self) -> List[Character]:
        """All characters; the store seeds a default one when it is empty."""
        rows = await self._request("GET")
        return [Character.model_validate(row) for row in rows]

    async def create_character(self, name: str, description: str, character_card: str) -> Character:
        if not name or not description or not character_card:
            raise BadRequest("Missing fields")
        body = {
            "action": "create",
            "name": name,
            "description": description,
            "characterCard": character_card,
        }
        return Character.model_validate(await self._request("POST", json=body))

    async def clone_character(self, source_character_id: str,
                              overrides: Optional[Union[CharacterOverrides, Dict[str, Any]]] = None) -> Character:
        if not source_character_id:
            raise BadRequest("Missing sourceCharacterId")
        body: Dict[str, Any] = {"action": "clone", "sourceCharacterId": source_character_id}
        if overrides is not None:
            if isinstance(overrides, dict):
                overrides = CharacterOverrides.model_validate(overrides)
            body["overrides"] = overrides.model_dump(by_alias=True, exclude_none=True)
        return Character.model_validate(await self._request("POST", json=body))

    async def update_character(self, character_id: str, name: Optional[str] = None,
                               description: Optional[str] = None,
                               character_card: Optional[str] = None) -> Character:
        if not character_id:
            raise BadRequest("Missing id")
        body: Dict[str, Any] = {"id": character_id}
        if name is not None:
            body["name"] = name
        if description is not None:
            body["description"] = description
        if character_card is not None:
            body["characterCard"] = character_card
        return Character.model_validate(await self._request("PATCH", json=body))

    async def delete_character(self, character_id: str) -> Character:
        if not character_id:
            raise BadRequest("Missing id")
        return Character.model_validate(await self._request("DELETE", params={"id": character_id}))

    async def _request(self, method: str, params: Optional[Dict[str, str]] = None,
                       json: Optional[Dict[str, Any]] = None) -> Any:
        headers = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        if self._session is not None:
            return await self._send(self._session, method, headers, params, json)
        async with aiohttp.ClientSession() as session:
            return await self._send(session, method, headers, params, json)

    async def _send(self, session: aiohttp.ClientSession, method: str, headers: Dict[str, str],
                    params: Optional[Dict[str, str]], json: Optional[Dict[str, Any]]) -> Any:
        async with session.request(method, self.base_url, headers=headers, params=params, json=json) as response:
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = None
            if not 200 <= response.status < 300:
                error = error_from_response(response.status, body)
                logger.warning(f"Character store {method} failed: {error.code} {error}")
                raise error
        return body
