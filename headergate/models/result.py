"""HeaderView and Result: the two values that cross the pipeline boundary.

``HeaderView`` is what the pipeline sees of an inbound request before any
decision is made: method, path and case-insensitive headers. It carries no
reference to the body, so a guard cannot read it even by accident.

``Result`` is the only thing the pipeline ever returns: a status, a body and
optional headers. It is immutable once built; ``Result.to_response()`` is the
single point where it becomes a Starlette response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from starlette.datastructures import Headers
from starlette.requests import HTTPConnection
from starlette.responses import JSONResponse, PlainTextResponse, Response

from headergate.errors import Denial

HeaderSource = Union[Mapping[str, str], Iterable[tuple[str, str]]]
ResultBody = Union[str, bytes, dict, list, None]


# ─── HeaderView ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class HeaderView:
    """Read-only view of a request's method, path and headers.

    Header lookups are case-insensitive (``starlette.datastructures.Headers``).
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)

    @classmethod
    def of(
        cls,
        method: str = "GET",
        path: str = "/",
        headers: Optional[HeaderSource] = None,
    ) -> "HeaderView":
        """Build a view from plain values (tests, non-Starlette transports).

        Args:
            method:  HTTP method; normalised to upper case.
            path:    Request path.
            headers: A mapping or an iterable of ``(name, value)`` pairs.
                     Repeated names are kept; ``get()`` returns the first.
        """
        if headers is None:
            view = Headers()
        elif isinstance(headers, Mapping):
            view = Headers(headers=dict(headers))
        else:
            raw = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers]
            view = Headers(raw=raw)
        return cls(method=method.upper(), path=path, headers=view)

    @classmethod
    def from_request(cls, request: HTTPConnection) -> "HeaderView":
        """Build a view from a Starlette request without touching its body."""
        method = request.scope.get("method", "GET")
        return cls(method=method, path=request.url.path, headers=request.headers)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value of header ``name`` (case-insensitive)."""
        return self.headers.get(name, default)

    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None when absent or not an integer."""
        raw = self.headers.get("content-length")
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None


# ─── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Result:
    """Terminal outcome of a request: status, body and extra headers.

    ``body`` may be text, bytes, or a JSON-serialisable dict/list. Headers are
    frozen into a read-only mapping at construction.
    """

    status: int
    body: ResultBody = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    # ── Constructors ──────────────────────────────────────────────────────────

    @classmethod
    def ok(cls, body: ResultBody = "OK") -> "Result":
        return cls(200, body)

    @classmethod
    def unauthorized(cls, body: ResultBody = "Unauthorized") -> "Result":
        return cls(401, body)

    @classmethod
    def forbidden(cls, body: ResultBody = "Forbidden") -> "Result":
        return cls(403, body)

    @classmethod
    def from_denial(
        cls,
        denial: Denial,
        message: Optional[str] = None,
        status: Optional[int] = None,
        detail: Any = None,
    ) -> "Result":
        """Build the terminal result for a denial.

        Without ``detail`` the body is plain text ``"<message>\\n"``. With
        ``detail`` (e.g. pydantic validation errors) the body is JSON:
        ``{"error": {"code": ..., "message": ..., "detail": ...}}``.

        Args:
            denial:  The denial reason.
            message: Overrides ``denial.message``.
            status:  Overrides ``denial.status`` (caller-chosen lookup status).
            detail:  Optional structured detail; switches the body to JSON.
        """
        text = message or denial.message
        code = status if status is not None else denial.status
        if detail is None:
            return cls(code, f"{text}\n")
        return cls(
            code,
            {"error": {"code": denial.value, "message": text, "detail": detail}},
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def with_headers(self, headers: Mapping[str, str]) -> "Result":
        """Return a copy with ``headers`` merged over the existing ones."""
        merged = dict(self.headers)
        merged.update(headers)
        return Result(self.status, self.body, merged)

    def to_response(self) -> Response:
        """Serialise onto a Starlette response."""
        headers = dict(self.headers)
        if isinstance(self.body, (dict, list)):
            return JSONResponse(self.body, status_code=self.status, headers=headers)
        if isinstance(self.body, bytes):
            return Response(self.body, status_code=self.status, headers=headers)
        return PlainTextResponse(self.body or "", status_code=self.status, headers=headers)
