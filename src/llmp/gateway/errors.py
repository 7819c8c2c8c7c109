"""Error types raised while handling a proxied request.

Every per-request failure is a ProxyError carrying the HTTP status the
client receives. The message doubles as the plain-text response body.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for errors that map to a client-facing response."""

    status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(ProxyError):
    """The client request cannot be routed (missing/unknown model, bad body)."""

    status = 400


class AuthenticationError(ProxyError):
    """Missing or invalid credential."""

    status = 401


class RewriteError(ProxyError):
    """The request body could not be patched for the upstream."""

    status = 500


class StreamingNotSupportedError(ProxyError):
    """The client connection cannot receive incremental chunks."""

    status = 500


class UpstreamUnavailableError(ProxyError):
    """The upstream could not be reached at all."""

    status = 502


class LineTooLongError(Exception):
    """A streamed upstream line exceeded the configured ceiling."""


class ConfigError(Exception):
    """Configuration file is unreadable or malformed. Fatal at startup."""
