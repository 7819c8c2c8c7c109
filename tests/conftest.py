"""Pytest configuration and fixtures."""

import pytest

from llmp.gateway.routing import RouteEntry, RoutingTable

ANTHROPIC_BASE = "https://api.test.anthropic.com"
OPENAI_BASE = "https://api.test.openai.com"


@pytest.fixture
def routing_table():
    """One Anthropic-style route (with upstream key) and one OpenAI-style route."""
    return RoutingTable.from_entries(
        [
            RouteEntry(
                logical_name="claude-x",
                upstream_model="anthropic/claude-3-opus",
                api_base=ANTHROPIC_BASE + "/",
                api_key="up-key",
            ),
            RouteEntry(
                logical_name="gpt-4o",
                upstream_model="openai/gpt-4o",
                api_base=OPENAI_BASE,
            ),
        ]
    )
