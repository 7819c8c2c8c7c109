"""Tests for the upstream dispatcher."""

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from llmp.gateway.dispatch import (
    USER_AGENT,
    UpstreamDispatcher,
    build_upstream_headers,
    create_upstream_session,
)
from llmp.gateway.errors import UpstreamUnavailableError
from llmp.gateway.routing import RouteEntry

UPSTREAM = "https://api.test.anthropic.com/v1/messages"


@pytest.fixture
def route():
    return RouteEntry(
        logical_name="claude-x",
        upstream_model="anthropic/claude-3-opus",
        api_base="https://api.test.anthropic.com/",
        api_key="up-key",
    )


@pytest.fixture
async def dispatcher():
    session = create_upstream_session()
    yield UpstreamDispatcher(session=session, request_timeout=30.0)
    await session.close()


def _only_call(m):
    calls = m.requests[("POST", URL(UPSTREAM))]
    assert len(calls) == 1
    return calls[0]


class TestUpstreamHeaders:
    def test_api_key_sent_as_bearer(self, route):
        headers = build_upstream_headers(route)
        assert headers == {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            "Authorization": "Bearer up-key",
        }

    def test_no_authorization_without_api_key(self):
        route = RouteEntry(
            logical_name="local",
            upstream_model="anthropic/local",
            api_base="http://localhost:9000",
        )
        assert "Authorization" not in build_upstream_headers(route)


class TestUpstreamDispatcher:
    async def test_posts_body_to_base_plus_path(self, dispatcher, route):
        with aioresponses() as m:
            m.post(UPSTREAM, status=200, body=b'{"id":"abc"}')

            async with dispatcher.dispatch(route, b'{"model":"claude-3-opus"}', "/v1/messages", False) as resp:
                assert resp.status == 200
                assert await resp.read() == b'{"id":"abc"}'

            call = _only_call(m)
            assert call.kwargs["data"] == b'{"model":"claude-3-opus"}'
            assert call.kwargs["headers"]["Authorization"] == "Bearer up-key"
            assert call.kwargs["headers"]["User-Agent"] == USER_AGENT

    async def test_non_streaming_timeout_bounded(self, dispatcher, route):
        with aioresponses() as m:
            m.post(UPSTREAM, status=200, body=b"{}")
            async with dispatcher.dispatch(route, b"{}", "/v1/messages", False):
                pass
            assert _only_call(m).kwargs["timeout"].total == 30.0

    async def test_streaming_has_no_timeout(self, dispatcher, route):
        with aioresponses() as m:
            m.post(UPSTREAM, status=200, body=b"data: x\n")
            async with dispatcher.dispatch(route, b"{}", "/v1/messages", True):
                pass
            timeout = _only_call(m).kwargs["timeout"]
            assert timeout.total is None
            assert timeout.sock_read is None

    async def test_upstream_error_status_is_not_raised(self, dispatcher, route):
        with aioresponses() as m:
            m.post(UPSTREAM, status=503, body=b'{"type":"error"}')
            async with dispatcher.dispatch(route, b"{}", "/v1/messages", False) as resp:
                assert resp.status == 503

    async def test_connection_failure_is_bad_gateway(self, dispatcher, route):
        with aioresponses() as m:
            m.post(UPSTREAM, exception=aiohttp.ClientConnectionError("connection refused"))
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                async with dispatcher.dispatch(route, b"{}", "/v1/messages", False):
                    pass
        assert exc_info.value.status == 502
        assert exc_info.value.message == "Error forwarding request"

    async def test_timeout_is_bad_gateway(self, dispatcher, route):
        with aioresponses() as m:
            m.post(UPSTREAM, exception=TimeoutError())
            with pytest.raises(UpstreamUnavailableError):
                async with dispatcher.dispatch(route, b"{}", "/v1/messages", False):
                    pass
