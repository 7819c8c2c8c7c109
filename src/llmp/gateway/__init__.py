"""llmp gateway - the request pipeline.

Components (leaf to root):
- routing: logical model name -> RouteEntry
- auth: shared-secret check, as aiohttp middleware
- rewrite: swap the logical model for the upstream one in the raw body
- dispatch: POST to the upstream with the right headers and timeout
- relay: copy the upstream response back, line by line when streaming
- proxy_server: aiohttp application wiring the above together
"""

from llmp.gateway.errors import ProxyError
from llmp.gateway.routing import ProviderFamily, RouteEntry, RoutingTable

__all__ = [
    "ProviderFamily",
    "ProxyError",
    "RouteEntry",
    "RoutingTable",
]
