"""Shared-secret authentication for inbound requests.

Clients present the secret either as `Authorization: Bearer <token>` or, the
way Anthropic clients do, as `x-api-key: <token>`. An empty secret disables
authentication entirely.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass

from aiohttp import web

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

MISSING_CREDENTIAL = "Authorization or x-api-key header required"
INVALID_CREDENTIAL = "Invalid token"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@dataclass(frozen=True)
class AuthResult:
    """Outcome of an authentication check. `reason` is set when rejected."""

    allowed: bool
    reason: str | None = None


ALLOWED = AuthResult(allowed=True)


@dataclass(frozen=True)
class Authenticator:
    """Validates the shared secret against request headers."""

    secret: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    def extract_credential(self, headers: Mapping[str, str]) -> str | None:
        """Return the presented credential, or None if no header carries one."""
        authorization = headers.get("Authorization", "")
        if authorization:
            return authorization.removeprefix(BEARER_PREFIX)
        api_key = headers.get("x-api-key", "")
        if api_key:
            return api_key
        return None

    def authenticate(self, headers: Mapping[str, str]) -> AuthResult:
        if not self.enabled:
            return ALLOWED

        credential = self.extract_credential(headers)
        if credential is None:
            return AuthResult(allowed=False, reason=MISSING_CREDENTIAL)

        # Header values may carry undecodable bytes as lone surrogates
        presented = credential.encode("utf-8", "surrogateescape")
        if not hmac.compare_digest(presented, self.secret.encode("utf-8", "surrogateescape")):
            return AuthResult(allowed=False, reason=INVALID_CREDENTIAL)

        return ALLOWED

    def middleware(self, exempt_paths: frozenset[str] = frozenset()) -> Callable:
        """Build an aiohttp middleware enforcing this authenticator.

        Args:
            exempt_paths: Request paths served without authentication.
        """

        @web.middleware
        async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
            # Unrouted requests fall through to aiohttp's 404/405
            if request.path in exempt_paths or request.match_info.http_exception is not None:
                return await handler(request)

            result = self.authenticate(request.headers)
            if not result.allowed:
                logger.info(
                    "Rejected %s %s from %s: %s",
                    request.method,
                    request.path,
                    request.remote,
                    result.reason,
                )
                return web.Response(status=401, text=result.reason)

            return await handler(request)

        return auth_middleware
