"""structlog configuration for headergate.

Every entry goes through one processor chain:

    merge_contextvars → add_log_level → TimeStamper(iso, utc)
      → StackInfoRenderer → format_exc_info → JSONRenderer | ConsoleRenderer

Per-request fields are not threaded through function calls. The transport
adapter binds ``request_id``, ``method`` and ``path`` with
``structlog.contextvars.bind_contextvars()`` when a request arrives and clears
them when the response is built, so a guard denial, a lookup fault and the
timing report of one request all carry the same ``request_id``.

Loggers are not cached on first use: ``main.py`` reconfigures the level and
renderer from the environment after modules have already created theirs.
"""

import logging
import sys

import structlog
from structlog._config import BoundLoggerLazyProxy
from structlog.typing import FilteringBoundLogger, Processor

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _level(name: str) -> int:
    try:
        return _LEVELS[name.strip().upper()]
    except KeyError:
        raise ValueError(
            f"Unknown log level {name!r}; expected one of {sorted(_LEVELS)}"
        ) from None


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """(Re)configure structlog for the whole process.

    Args:
        log_level:   DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive).
        json_output: One JSON object per line when True; coloured console
                     output for local development otherwise.

    Raises:
        ValueError: On an unknown level name.
    """
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level(log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "headergate") -> FilteringBoundLogger:
    """Return a logger whose entries carry ``logger=<name>``."""
    # ``structlog.get_logger(logger=...)`` collides with wrap_logger's
    # positional ``logger`` parameter; build the same lazy proxy directly.
    return BoundLoggerLazyProxy(None, initial_values={"logger": name})


configure_logging()
