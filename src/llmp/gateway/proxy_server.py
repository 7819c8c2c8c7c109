"""Model-routing proxy server.

Exposes the OpenAI- and Anthropic-compatible endpoints and runs every
request through the same pipeline:

1. Authenticate against the shared secret (middleware)
2. Resolve the logical model and rewrite the body for its upstream
3. Dispatch to the upstream (bounded timeout unless streaming)
4. Relay the response, line by line when streaming
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web
from aiohttp.http_exceptions import HttpProcessingError

from llmp.config import ProxyConfig
from llmp.gateway.auth import Authenticator
from llmp.gateway.dispatch import UpstreamDispatcher, create_upstream_session
from llmp.gateway.errors import BadRequestError, ProxyError
from llmp.gateway.relay import ensure_streaming_supported, relay_response, relay_stream
from llmp.gateway.rewrite import rewrite_request

logger = logging.getLogger(__name__)

PROXY_PATHS = ("/v1/chat/completions", "/chat/completions", "/v1/messages")
HEALTH_PATH = "/health"


@dataclass
class ProxyServer:
    """Routes requests for logical models to their configured upstreams.

    Example:
        >>> config = load_config("config.yaml")
        >>> server = ProxyServer(config=config)
        >>> await server.serve()
    """

    config: ProxyConfig
    _app: Any = None  # aiohttp.web.Application
    _runner: Any = None  # aiohttp.web.AppRunner
    _session: Any = None  # aiohttp.ClientSession
    _dispatcher: UpstreamDispatcher | None = None
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event)
    _authenticator: Authenticator = field(init=False)

    def __post_init__(self) -> None:
        self._authenticator = Authenticator(secret=self.config.auth_token)

    @property
    def port(self) -> int | None:
        """Port actually bound (useful when configured with port 0)."""
        if self._runner is None or not self._runner.addresses:
            return None
        return self._runner.addresses[0][1]

    def create_app(self) -> web.Application:
        app = web.Application(
            client_max_size=self.config.max_body_size,
            middlewares=[self._authenticator.middleware(frozenset({HEALTH_PATH}))],
        )
        for path in PROXY_PATHS:
            app.router.add_post(path, self._handle_proxy)
        app.router.add_get(HEALTH_PATH, self._handle_health)
        return app

    async def start(self) -> None:
        """Open the upstream session and start listening."""
        self._session = create_upstream_session()
        self._dispatcher = UpstreamDispatcher(
            session=self._session,
            request_timeout=self.config.request_timeout,
        )

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await site.start()

        logger.info("Loaded %d models from config", len(self.config.routes))
        logger.info(
            "Starting proxy server on %s:%d (auth %s)",
            self.config.host,
            self.port,
            "enabled" if self._authenticator.enabled else "disabled",
        )

    async def serve(self) -> None:
        """Start the server and block until a shutdown is requested."""
        await self.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    def request_shutdown(self) -> None:
        """Wake serve() so it shuts down. Safe to call from a signal handler."""
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Stop listening. In-flight requests are not drained."""
        self._shutdown_event.set()
        if self._session is None and self._runner is None:
            return
        logger.info("Shutting down proxy...")
        if self._session:
            await self._session.close()
            self._session = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health - liveness check, no authentication."""
        return web.json_response({"status": "ok", "models": len(self.config.routes)})

    def _error_response(self, trace_id: str, error: ProxyError) -> web.Response:
        log = logger.warning if error.status < 500 else logger.error
        log("[%s] %d %s", trace_id, error.status, error.message)
        return web.Response(status=error.status, text=error.message)

    async def _handle_proxy(self, request: web.Request) -> web.StreamResponse:
        """Handle POST on any proxy endpoint."""
        trace_id = uuid.uuid4().hex[:8]

        try:
            try:
                raw_body = await request.read()
            except (ConnectionResetError, HttpProcessingError) as e:
                raise BadRequestError("Error reading request body") from e

            rewritten = rewrite_request(
                raw_body,
                self.config.routes,
                anthropic_routes_only=self.config.anthropic_routes_only,
            )
            if rewritten.stream:
                ensure_streaming_supported(request)

            route = rewritten.route
            logger.info(
                "[%s] %s model=%s stream=%s -> %s",
                trace_id,
                request.path,
                rewritten.model,
                rewritten.stream,
                route.url_for(request.path),
            )
            logger.debug("[%s] Request body: %s", trace_id, rewritten.body[:2000])

            assert self._dispatcher is not None
            async with self._dispatcher.dispatch(
                route, rewritten.body, request.path, rewritten.stream
            ) as upstream:
                logger.info("[%s] Upstream response status: %d", trace_id, upstream.status)
                logger.debug("[%s] Upstream response headers: %s", trace_id, dict(upstream.headers))

                if rewritten.stream:
                    return await relay_stream(
                        request,
                        upstream,
                        trace_id,
                        max_line_size=self.config.max_line_size,
                        chunk_size=self.config.read_chunk_size,
                    )
                return await relay_response(request, upstream, trace_id)

        except ProxyError as e:
            return self._error_response(trace_id, e)
