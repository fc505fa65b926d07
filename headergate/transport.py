"""Starlette transport adapter for gated handlers.

Turns a ``GatedHandler`` into an ASGI endpoint:

  1. assign a ULID request id (bound to log context, returned as X-Request-ID)
  2. build a ``HeaderView`` from the request (no body access)
  3. ``decide`` — a ``Result`` is answered immediately; the body stream is
     left unread
  4. otherwise ``consume(request.stream())`` exactly once
  5. serialise the ``Result`` with ``Result.to_response()``

A client that disconnects while its body is being read gets no business
effect: the consumer sees ``ClientDisconnect`` before its action runs, and the
adapter records 499.

Usage::

    routes = [
        Route("/ea/token", as_endpoint(with_token), methods=["GET"]),
        Route("/ea/users/{user_id:int}", as_route_endpoint(fetch_user), methods=["GET"]),
    ]
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog
from starlette.requests import ClientDisconnect, Request
from starlette.responses import Response

from headergate.constants import CLIENT_CLOSED_REQUEST, REQUEST_ID_HEADER
from headergate.handler import GatedHandler
from headergate.models.result import HeaderView, Result
from headergate.utils.logger import get_logger
from headergate.utils.ulid import generate_ulid

logger = get_logger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]
HandlerFactory = Callable[..., GatedHandler]


async def dispatch(handler: GatedHandler, request: Request) -> Result:
    """Run ``handler`` against a Starlette request and return its ``Result``."""
    header = HeaderView.from_request(request)
    decision = await handler.decide(header)
    if isinstance(decision, Result):
        return decision
    try:
        return await decision.consume(request.stream())
    except ClientDisconnect:
        logger.info("Client disconnected during body consumption", path=header.path)
        return Result(CLIENT_CLOSED_REQUEST, "Client Closed Request\n")


async def _respond(handler: GatedHandler, request: Request) -> Response:
    request_id = generate_ulid()
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    try:
        result = await dispatch(handler, request)
        logger.debug(
            "Request completed",
            handler=getattr(handler, "name", None),
            status=result.status,
        )
        return result.with_headers({REQUEST_ID_HEADER: request_id}).to_response()
    finally:
        structlog.contextvars.clear_contextvars()


def as_endpoint(handler: GatedHandler) -> Endpoint:
    """Endpoint serving every request with the same handler."""

    async def endpoint(request: Request) -> Response:
        return await _respond(handler, request)

    endpoint.__name__ = getattr(handler, "name", "endpoint")
    return endpoint


def as_route_endpoint(factory: HandlerFactory) -> Endpoint:
    """Endpoint building its handler per request from the route's path params.

    ``factory(**request.path_params)`` must return a ``GatedHandler``; use
    Starlette convertors (``{user_id:int}``) for typed parameters.
    """

    async def endpoint(request: Request) -> Response:
        params: dict[str, Any] = dict(request.path_params)
        return await _respond(factory(**params), request)

    endpoint.__name__ = getattr(factory, "__name__", "endpoint")
    return endpoint
