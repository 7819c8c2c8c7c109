"""Upstream dispatch: issue the rewritten request to the resolved route."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import aiohttp

from llmp.gateway.errors import UpstreamUnavailableError
from llmp.gateway.routing import RouteEntry

logger = logging.getLogger(__name__)

USER_AGENT = "llmp-proxy/1.0"

# Streaming responses may legitimately stay open far longer than any bound.
STREAMING_TIMEOUT = aiohttp.ClientTimeout()


def create_upstream_session() -> aiohttp.ClientSession:
    """Create the client session used for every upstream call.

    Bodies are relayed byte-for-byte, so the session neither asks for a
    compressed encoding nor decompresses what it receives.
    """
    return aiohttp.ClientSession(
        auto_decompress=False,
        skip_auto_headers=("Accept-Encoding",),
    )


def build_upstream_headers(route: RouteEntry) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    # Upstreams are always authenticated the bearer way, whatever the family
    if route.api_key:
        headers["Authorization"] = f"Bearer {route.api_key}"
    return headers


@dataclass
class UpstreamDispatcher:
    """Sends requests to upstreams over a shared aiohttp session.

    Example:
        >>> dispatcher = UpstreamDispatcher(session=session)
        >>> async with dispatcher.dispatch(route, body, "/v1/messages", False) as resp:
        ...     payload = await resp.read()
    """

    session: aiohttp.ClientSession
    request_timeout: float = 30.0

    def timeout_for(self, streaming: bool) -> aiohttp.ClientTimeout:
        if streaming:
            return STREAMING_TIMEOUT
        return aiohttp.ClientTimeout(total=self.request_timeout)

    @asynccontextmanager
    async def dispatch(
        self,
        route: RouteEntry,
        body: bytes,
        path: str,
        streaming: bool,
    ) -> AsyncIterator[aiohttp.ClientResponse]:
        """POST body to the route and yield the upstream response.

        The response is yielded once its headers have arrived, whatever its
        status. It is released when the context exits.

        Raises:
            UpstreamUnavailableError: The upstream could not be reached.
        """
        url = route.url_for(path)
        try:
            response = await self.session.post(
                url,
                data=body,
                headers=build_upstream_headers(route),
                timeout=self.timeout_for(streaming),
            )
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error("Upstream %s unreachable: %s", url, e)
            raise UpstreamUnavailableError("Error forwarding request") from e

        try:
            yield response
        finally:
            response.release()
