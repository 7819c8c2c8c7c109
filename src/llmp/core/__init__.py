"""Core - process-wide plumbing shared by the gateway and the CLI."""

from llmp.core.logging_config import configure_logging

__all__ = ["configure_logging"]
