"""CLI entry point."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import rich_click as click

from llmp.config import DEFAULT_CONFIG_PATH, ProxyConfig, load_config
from llmp.core.logging_config import configure_logging
from llmp.gateway.errors import ConfigError

logger = logging.getLogger(__name__)

click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.MAX_WIDTH = 100


async def serve_forever(config: ProxyConfig) -> None:
    """Run the proxy until SIGINT or SIGTERM."""
    from llmp.gateway.proxy_server import ProxyServer

    server = ProxyServer(config=config)
    loop = asyncio.get_running_loop()

    def handle_signal(sig_name: str) -> None:
        logger.info("Received %s, shutting down", sig_name)
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig.name)

    await server.serve()


@click.command()
@click.argument("config", required=False, default=DEFAULT_CONFIG_PATH)
def cli(config: str) -> None:
    """Run the llmp model-routing proxy on port 8400.

    CONFIG is the YAML file listing the routed models (default: config.yaml).

    **Examples:**

        llmp

        llmp /etc/llmp/config.yaml
    """
    configure_logging()

    try:
        proxy_config = load_config(config)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        click.echo(f"Error: Failed to load config: {e}", err=True)
        sys.exit(1)

    try:
        asyncio.run(serve_forever(proxy_config))
    except OSError as e:
        logger.error("Server failed to start: %s", e)
        click.echo(f"Error: Server failed to start: {e}", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
