"""Denial taxonomy and library exceptions.

Authorization failures are *values*: every way a guard or body consumer can
refuse a request is a ``Denial`` member, turned into a terminal ``Result`` by
``Result.from_denial()``. They never cross the guard chain as exceptions.

The exceptions below are reserved for two other situations:
  - ``StoreUnavailableError`` is raised by collaborators (credential store,
    repository) when their backing storage faults. The guard lookup boundary
    catches it, together with any other lookup error, and denies.
  - ``HeaderGateError`` subclasses signal misuse of the library itself
    (a guard returning a non-outcome, a consumer invoked twice). They are
    programming errors and propagate.
"""

from __future__ import annotations

from enum import Enum


class Denial(str, Enum):
    """Every reason a request can be refused, with its default status and text."""

    MISSING_CREDENTIAL = "missing_credential"
    PRINCIPAL_NOT_FOUND = "principal_not_found"
    INSUFFICIENT_PERMISSION = "insufficient_permission"
    RESOURCE_NOT_FOUND = "resource_not_found"
    OWNERSHIP_MISMATCH = "ownership_mismatch"
    LOOKUP_UNAVAILABLE = "lookup_unavailable"
    BODY_DECODE_FAILURE = "body_decode_failure"
    UNEXPECTED_BODY = "unexpected_body"
    BODY_TOO_LARGE = "body_too_large"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"

    @property
    def status(self) -> int:
        return _STATUS[self]

    @property
    def message(self) -> str:
        return _MESSAGE[self]


_STATUS: dict[Denial, int] = {
    Denial.MISSING_CREDENTIAL: 401,
    Denial.PRINCIPAL_NOT_FOUND: 404,
    Denial.INSUFFICIENT_PERMISSION: 403,
    Denial.RESOURCE_NOT_FOUND: 404,
    Denial.OWNERSHIP_MISMATCH: 403,
    Denial.LOOKUP_UNAVAILABLE: 503,
    Denial.BODY_DECODE_FAILURE: 400,
    Denial.UNEXPECTED_BODY: 400,
    Denial.BODY_TOO_LARGE: 413,
    Denial.UNSUPPORTED_MEDIA_TYPE: 415,
}

_MESSAGE: dict[Denial, str] = {
    Denial.MISSING_CREDENTIAL: "No Security Token",
    Denial.PRINCIPAL_NOT_FOUND: "Not Found",
    Denial.INSUFFICIENT_PERMISSION: "Forbidden",
    Denial.RESOURCE_NOT_FOUND: "Not Found",
    Denial.OWNERSHIP_MISMATCH: "Forbidden",
    Denial.LOOKUP_UNAVAILABLE: "Authorization lookup unavailable",
    Denial.BODY_DECODE_FAILURE: "Bad Request",
    Denial.UNEXPECTED_BODY: "Request body not allowed",
    Denial.BODY_TOO_LARGE: "Request body too large",
    Denial.UNSUPPORTED_MEDIA_TYPE: "Expected a JSON request body",
}


# ─── Exceptions ───────────────────────────────────────────────────────────────


class StoreUnavailableError(Exception):
    """Raised by a credential store or repository whose storage is unreachable.

    Never reaches the caller of a guard: the lookup boundary denies with
    ``Denial.LOOKUP_UNAVAILABLE`` instead.
    """

    def __init__(self, message: str = "Store unavailable") -> None:
        super().__init__(message)
        self.message = message


class HeaderGateError(Exception):
    """Base class for misuse of the gating pipeline."""


class InvalidOutcomeError(HeaderGateError, TypeError):
    """Raised when a guard returns something other than ``Allow`` or ``Deny``."""


class InvalidResultError(HeaderGateError, TypeError):
    """Raised when a handler action returns something other than a ``Result``."""


class ConsumerReusedError(HeaderGateError, RuntimeError):
    """Raised when a body consumer is invoked a second time.

    A consumer is bound to one request and reads its body stream exactly once;
    it is never retried.
    """

    def __init__(self, message: str = "Body consumer already invoked") -> None:
        super().__init__(message)
        self.message = message
