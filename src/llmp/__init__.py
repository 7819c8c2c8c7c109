"""llmp - one endpoint in front of many LLM providers.

llmp is a configuration-driven reverse proxy. Clients call it with a
logical model name; the proxy authenticates them against a shared secret,
looks the name up in its routing table, rewrites the request body for the
concrete upstream model and relays the response, streamed or not.

Layout:
    config          YAML configuration -> immutable ProxyConfig
    gateway/        Routing table, auth, rewrite, dispatch, relay, server
    core/           Logging configuration
    frontends/cli/  `llmp [CONFIG]` entry point

Quick Start:
    >>> from llmp.config import load_config
    >>> from llmp.gateway.proxy_server import ProxyServer
    >>>
    >>> server = ProxyServer(config=load_config("config.yaml"))
    >>> await server.serve()
"""

__version__ = "1.0.0"
