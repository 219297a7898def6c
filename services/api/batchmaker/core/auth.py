"""Caller identity for parse requests.

The auth provider itself is external. This module only carries the bearer
token of the current request and asks the provider who it belongs to.
"""
import logging
from typing import Optional

import httpx

from ..parsing.errors import RecipeParserError, UnauthorizedError
from ..parsing.schemas import ParserErrorCode

logger = logging.getLogger("batchmaker.auth")

NOT_AUTHENTICATED = "Not authenticated. Please sign in first."


class AuthVerifier:
    """Resolves an access token to a user id.

    mode="mock": the token is the user id (local development and tests)
    mode="remote": GET ``user_url`` with the token, read ``id`` from the JSON
    """

    def __init__(
        self,
        mode: str = "mock",
        user_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.mode = mode
        self.user_url = user_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def verify(self, token: str) -> str:
        if self.mode == "mock":
            return token

        if not self.user_url:
            raise RecipeParserError(
                "Auth provider is not configured.", code=ParserErrorCode.UNKNOWN, retryable=False
            )

        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as cli:
                r = await cli.get(self.user_url, headers=headers)
        except httpx.HTTPError as e:
            raise RecipeParserError(
                f"Auth service network error: {e.__class__.__name__}",
                code=ParserErrorCode.API_FAILURE,
                retryable=True,
            )

        if r.status_code in (401, 403):
            raise UnauthorizedError("Invalid or expired token")
        if r.status_code >= 400:
            raise RecipeParserError(
                f"Auth service returned error: {r.status_code}",
                code=ParserErrorCode.API_FAILURE,
                retryable=True,
            )

        try:
            payload = r.json() or {}
        except ValueError:
            payload = {}
        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            raise UnauthorizedError("Invalid or expired token")
        return str(user_id)


class RequestSession:
    """Session of the caller of one parse request."""

    def __init__(self, access_token: Optional[str], verifier: AuthVerifier):
        self.access_token = access_token
        self.verifier = verifier
        self._user_id: Optional[str] = None

    @classmethod
    def from_authorization_header(cls, header: Optional[str], verifier: AuthVerifier) -> "RequestSession":
        token = None
        if header and header.lower().startswith("bearer "):
            token = header[7:].strip() or None
        return cls(token, verifier)

    def get_current_access_token(self) -> str:
        if not self.access_token:
            raise UnauthorizedError(NOT_AUTHENTICATED)
        return self.access_token

    async def get_user_id(self) -> str:
        if self._user_id is None:
            self._user_id = await self.verifier.verify(self.get_current_access_token())
        return self._user_id
