"""Proxy configuration.

Loads the YAML configuration file into an immutable ProxyConfig that is
passed explicitly to the server. Format:

    model_list:
      - model_name: claude-x
        litellm_params:
          model: anthropic/claude-3-opus
          api_base: https://api.anthropic.com
          api_key: sk-...            # optional
    auth_token: secret               # optional, falls back to LITELLM_MASTER_KEY
    anthropic_routes_only: true      # optional
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from llmp.gateway.errors import ConfigError
from llmp.gateway.routing import RouteEntry, RoutingTable

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8400
MASTER_KEY_ENV = "LITELLM_MASTER_KEY"


@dataclass(frozen=True)
class ProxyConfig:
    """Configuration for the proxy server. Immutable after startup."""

    routes: RoutingTable
    auth_token: str = ""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Non-streaming upstream calls are bounded; streaming calls are not.
    request_timeout: float = 30.0

    # Streaming relay line buffer: read size and ceiling for a single line
    read_chunk_size: int = 64 * 1024
    max_line_size: int = 10 * 1024 * 1024

    # Request limits
    max_body_size: int = 500 * 1024 * 1024  # 500MB

    # Reject routes that are not Anthropic-style on every proxy endpoint.
    anthropic_routes_only: bool = True

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_token)


def _require_str(value: Any, where: str) -> str:
    """Accept any YAML scalar as a string; reject mappings and lists."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        raise ConfigError(f"{where} must be a scalar, got {type(value).__name__}")
    return value


def _parse_route(index: int, item: Any) -> RouteEntry:
    where = f"model_list[{index}]"
    if not isinstance(item, Mapping):
        raise ConfigError(f"{where} must be a mapping")

    params = item.get("litellm_params") or {}
    if not isinstance(params, Mapping):
        raise ConfigError(f"{where}.litellm_params must be a mapping")

    return RouteEntry(
        logical_name=_require_str(item.get("model_name"), f"{where}.model_name"),
        upstream_model=_require_str(params.get("model"), f"{where}.litellm_params.model"),
        api_base=_require_str(params.get("api_base"), f"{where}.litellm_params.api_base"),
        api_key=_require_str(params.get("api_key"), f"{where}.litellm_params.api_key"),
    )


def parse_config(data: Any, environ: Mapping[str, str] | None = None) -> ProxyConfig:
    """Build a ProxyConfig from an already-deserialized document.

    Args:
        data: Result of yaml.safe_load (None for an empty file).
        environ: Environment used for the LITELLM_MASTER_KEY fallback.
            Defaults to os.environ.

    Raises:
        ConfigError: If the document does not have the expected shape.
    """
    if environ is None:
        environ = os.environ
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError("configuration root must be a mapping")

    model_list = data.get("model_list") or []
    if not isinstance(model_list, list):
        raise ConfigError("model_list must be a list")

    routes = RoutingTable.from_entries(
        _parse_route(index, item) for index, item in enumerate(model_list)
    )

    auth_token = _require_str(data.get("auth_token"), "auth_token")
    if not auth_token:
        auth_token = environ.get(MASTER_KEY_ENV, "")

    anthropic_routes_only = data.get("anthropic_routes_only", True)
    if not isinstance(anthropic_routes_only, bool):
        raise ConfigError("anthropic_routes_only must be a boolean")

    return ProxyConfig(
        routes=routes,
        auth_token=auth_token,
        anthropic_routes_only=anthropic_routes_only,
    )


def load_config(
    path: str | Path = DEFAULT_CONFIG_PATH,
    environ: Mapping[str, str] | None = None,
) -> ProxyConfig:
    """Read and parse the configuration file.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        content = Path(path).read_text()
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e

    return parse_config(data, environ)
