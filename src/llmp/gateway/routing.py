"""Routing table: logical model name -> upstream connection parameters.

The table is built once from the configured model list and never mutated
afterwards, so request handlers read it concurrently without locking.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

ANTHROPIC_PREFIX = "anthropic/"
OPENAI_PREFIX = "openai/"


class ProviderFamily(Enum):
    """Request conventions of an upstream provider."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @classmethod
    def classify(cls, upstream_model: str) -> ProviderFamily:
        """Anthropic when the model carries the anthropic/ prefix, else OpenAI-style."""
        if upstream_model.startswith(ANTHROPIC_PREFIX):
            return cls.ANTHROPIC
        return cls.OPENAI


@dataclass(frozen=True)
class RouteEntry:
    """One configured logical model.

    Attributes:
        logical_name: Model name clients send (exact, case-sensitive match).
        upstream_model: Provider-qualified model, e.g. "anthropic/claude-3-opus".
        api_base: Upstream base URL.
        api_key: Upstream bearer credential. Empty means none is sent.
        family: Provider family, derived from upstream_model.
    """

    logical_name: str
    upstream_model: str
    api_base: str
    api_key: str = ""
    family: ProviderFamily = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "family", ProviderFamily.classify(self.upstream_model))

    @property
    def upstream_model_id(self) -> str:
        """Bare model name the upstream API expects."""
        if self.family is ProviderFamily.ANTHROPIC:
            return self.upstream_model.removeprefix(ANTHROPIC_PREFIX)
        return self.upstream_model.removeprefix(OPENAI_PREFIX)

    def url_for(self, path: str) -> str:
        """Upstream URL for an inbound request path."""
        return self.api_base.removesuffix("/") + path


class RoutingTable(Mapping[str, RouteEntry]):
    """Read-only mapping of logical model names to routes."""

    def __init__(self, routes: Mapping[str, RouteEntry] | None = None) -> None:
        self._routes: Mapping[str, RouteEntry] = MappingProxyType(dict(routes or {}))

    @classmethod
    def from_entries(cls, entries: Iterable[RouteEntry]) -> RoutingTable:
        """Build a table from routes in configuration order.

        Duplicate logical names are not an error: the last one wins.
        """
        routes: dict[str, RouteEntry] = {}
        for entry in entries:
            routes[entry.logical_name] = entry
        return cls(routes)

    def resolve(self, logical_name: str) -> RouteEntry | None:
        """Return the route for a logical name, or None if it is unknown."""
        return self._routes.get(logical_name)

    def __getitem__(self, logical_name: str) -> RouteEntry:
        return self._routes[logical_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        return f"RoutingTable({sorted(self._routes)!r})"
