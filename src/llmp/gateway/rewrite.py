"""Request rewriting: logical model name -> upstream model identifier."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from llmp.gateway.errors import BadRequestError, RewriteError
from llmp.gateway.routing import ProviderFamily, RouteEntry, RoutingTable
from llmp.gateway.transforms.json_fields import (
    MalformedJSONError,
    locate_fields,
    replace_value,
)

logger = logging.getLogger(__name__)

_FIELDS = ("model", "stream")


@dataclass(frozen=True)
class RewrittenRequest:
    """A request body ready for its upstream.

    Attributes:
        body: Original body with only the `model` value replaced.
        route: Route the logical model resolved to.
        stream: Whether the client asked for a streamed response.
        model: Logical model name the client sent.
    """

    body: bytes
    route: RouteEntry
    stream: bool
    model: str


def rewrite_request(
    raw_body: bytes,
    routes: RoutingTable,
    *,
    anthropic_routes_only: bool = True,
) -> RewrittenRequest:
    """Resolve the body's model and patch it for the upstream.

    When `anthropic_routes_only` is set, routes to OpenAI-style upstreams
    are refused on every proxy endpoint. This mirrors the deployed
    behaviour; turn it off in the configuration to forward OpenAI-style
    routes as well.

    Raises:
        BadRequestError: Body is not a JSON object, model is missing or
            unknown, or the route is refused by the policy above.
        RewriteError: The model value could not be replaced.
    """
    try:
        spans = locate_fields(raw_body, _FIELDS)
        model = spans["model"].decode(raw_body) if "model" in spans else None
    except MalformedJSONError as e:
        logger.debug("Unparseable request body: %s", e)
        raise BadRequestError("Request body must be a JSON object") from e

    if not isinstance(model, str) or not model:
        raise BadRequestError("Model field is required")

    route = routes.resolve(model)
    if route is None:
        raise BadRequestError("Model not found")

    if anthropic_routes_only and route.family is not ProviderFamily.ANTHROPIC:
        raise BadRequestError("OpenAI models should use /chat/completions endpoint")

    try:
        body = replace_value(raw_body, spans["model"], route.upstream_model_id)
    except (TypeError, ValueError) as e:
        raise RewriteError("Error modifying request") from e

    stream_span = spans.get("stream")
    stream = stream_span is not None and stream_span.raw(raw_body) == b"true"

    return RewrittenRequest(body=body, route=route, stream=stream, model=model)
