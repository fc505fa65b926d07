"""Deferred body consumers: how a request body is read once every guard allowed.

A ``BodyConsumer`` is a tagged strategy chosen by the handler's build function
after the guard chain passed, bound to the context the chain produced:

  no_body(action)            NO_BODY     action()          stream ignored (or rejected)
  structured(schema, action) STRUCTURED  action(value)     JSON decoded with pydantic
  raw(action)                RAW         action(chunks)    async iterator of raw chunks

``consume(body)`` runs at most once. It is the only place the body stream is
read, and a second call raises ``ConsumerReusedError``. The structured
consumer buffers the whole body before invoking its action, so a request
cancelled while its body is still arriving never reaches business logic.

Before any byte is read, ``precheck(header)`` lets the consumer refuse from
headers alone:
  - every strategy: Content-Length above ``max_bytes`` → 413
  - STRUCTURED: non-JSON Content-Type → 415 (when ``require_json_content_type``)
  - NO_BODY with ``unexpected_body="reject"``: Content-Length > 0 → 400
"""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterable, Optional, Union

from pydantic import TypeAdapter, ValidationError

from headergate.config import UNEXPECTED_BODY_REJECT, BodyConfig
from headergate.errors import ConsumerReusedError, Denial, InvalidResultError
from headergate.models.result import HeaderView, Result
from headergate.utils.logger import get_logger

logger = get_logger(__name__)

BodyStream = Union[bytes, bytearray, Iterable[bytes], AsyncIterable[bytes], None]

_DEFAULT_BODY = BodyConfig()


class BodyStrategy(str, Enum):
    NO_BODY = "no_body"
    STRUCTURED = "structured"
    RAW = "raw"


async def iter_body(body: BodyStream) -> AsyncIterator[bytes]:
    """Normalise any supported body source into an async iterator of chunks."""
    if body is None:
        return
    if isinstance(body, (bytes, bytearray, memoryview)):
        if body:
            yield bytes(body)
        return
    if hasattr(body, "__aiter__"):
        async for chunk in body:  # type: ignore[union-attr]
            yield chunk
        return
    for chunk in body:  # type: ignore[union-attr]
        yield chunk


async def read_capped(body: BodyStream, max_bytes: int) -> Optional[bytes]:
    """Buffer ``body``; return None as soon as it exceeds ``max_bytes``."""
    chunks: list[bytes] = []
    total = 0
    async for chunk in iter_body(body):
        total += len(chunk)
        if total > max_bytes:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def _is_json_media_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


async def _invoke(action: Callable[..., Any], *args: Any) -> Result:
    result = action(*args)
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, Result):
        raise InvalidResultError(
            f"Body action {getattr(action, '__qualname__', action)!r} returned "
            f"{type(result).__name__}, expected Result"
        )
    return result


@dataclass(eq=False)
class BodyConsumer:
    """A body strategy bound to its business action.

    Build instances with ``no_body()``, ``structured()`` or ``raw()``.
    """

    strategy: BodyStrategy
    action: Callable[..., Any]
    schema: Any = None
    config: BodyConfig = _DEFAULT_BODY
    invocations: int = field(default=0, init=False)
    _adapter: Optional[TypeAdapter] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.strategy is BodyStrategy.STRUCTURED:
            if self.schema is None:
                raise ValueError("A structured body consumer requires a schema")
            self._adapter = TypeAdapter(self.schema)

    @property
    def consumed(self) -> bool:
        return self.invocations > 0

    def precheck(self, header: HeaderView) -> Optional[Result]:
        """Refuse from headers alone, or return None to proceed to ``consume``."""
        declared = header.content_length()

        if declared is not None and declared > self.config.max_bytes:
            logger.warning(
                "Request body too large (Content-Length)",
                strategy=self.strategy.value,
                declared_size=declared,
                limit=self.config.max_bytes,
                path=header.path,
            )
            return Result.from_denial(Denial.BODY_TOO_LARGE)

        if (
            self.strategy is BodyStrategy.STRUCTURED
            and self.config.require_json_content_type
            and not _is_json_media_type(header.header("content-type"))
        ):
            return Result.from_denial(Denial.UNSUPPORTED_MEDIA_TYPE)

        if (
            self.strategy is BodyStrategy.NO_BODY
            and self.config.unexpected_body == UNEXPECTED_BODY_REJECT
            and declared
        ):
            logger.info("Unexpected request body rejected", declared_size=declared, path=header.path)
            return Result.from_denial(Denial.UNEXPECTED_BODY)

        return None

    async def consume(self, body: BodyStream) -> Result:
        """Read ``body`` according to the strategy and run the action.

        Raises:
            ConsumerReusedError: On a second invocation.
            InvalidResultError:  If the action does not return a ``Result``.
        """
        if self.invocations:
            raise ConsumerReusedError()
        self.invocations += 1

        if self.strategy is BodyStrategy.NO_BODY:
            return await self._consume_no_body(body)
        if self.strategy is BodyStrategy.STRUCTURED:
            return await self._consume_structured(body)
        return await _invoke(self.action, iter_body(body))

    async def _consume_no_body(self, body: BodyStream) -> Result:
        if self.config.unexpected_body == UNEXPECTED_BODY_REJECT:
            async for chunk in iter_body(body):
                if chunk:
                    logger.info("Unexpected request body rejected")
                    return Result.from_denial(Denial.UNEXPECTED_BODY)
        return await _invoke(self.action)

    async def _consume_structured(self, body: BodyStream) -> Result:
        data = await read_capped(body, self.config.max_bytes)
        if data is None:
            logger.warning("Request body too large (streamed)", limit=self.config.max_bytes)
            return Result.from_denial(Denial.BODY_TOO_LARGE)
        if not data.strip():
            return Result.from_denial(Denial.BODY_DECODE_FAILURE, detail="Empty request body")

        assert self._adapter is not None
        try:
            value = self._adapter.validate_json(data)
        except ValidationError as exc:
            logger.info("Request body rejected", errors=exc.error_count())
            return Result.from_denial(
                Denial.BODY_DECODE_FAILURE,
                detail=json.loads(exc.json(include_url=False)),
            )
        return await _invoke(self.action, value)


# ─── Constructors ─────────────────────────────────────────────────────────────


def no_body(action: Callable[[], Any], config: BodyConfig = _DEFAULT_BODY) -> BodyConsumer:
    """Consumer for read/delete-style actions: ``action()`` gets no body."""
    return BodyConsumer(BodyStrategy.NO_BODY, action, config=config)


def structured(
    schema: Any,
    action: Callable[[Any], Any],
    config: BodyConfig = _DEFAULT_BODY,
) -> BodyConsumer:
    """Consumer for create/update actions: ``action(value)`` gets the decoded body."""
    return BodyConsumer(BodyStrategy.STRUCTURED, action, schema=schema, config=config)


def raw(action: Callable[[AsyncIterator[bytes]], Any], config: BodyConfig = _DEFAULT_BODY) -> BodyConsumer:
    """Consumer that hands the unparsed chunk stream to ``action``."""
    return BodyConsumer(BodyStrategy.RAW, action, config=config)


def respond(result: Result, config: BodyConfig = _DEFAULT_BODY) -> BodyConsumer:
    """No-body consumer that answers with a fixed ``result``."""
    return no_body(lambda: result, config=config)
