"""
Structured logging for the taste engine.

All modules log through structlog. Events are key/value pairs, so a vote
that gets held reads as::

    event='Pending hold created' identity_id=... category=sofa unlock_at=...

Every event carries ``service`` plus whatever request context the
middleware and coordinator have bound (request_id, device_install_id,
identity_id).

Usage:
    from core.logging import configure_logging, get_logger

    configure_logging(json_logs=settings.is_production)
    logger = get_logger(__name__)
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


SERVICE_NAME = "taste-engine"

# Supabase and its HTTP stack are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "uvicorn.access")


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger. Call once at startup.

    Args:
        json_logs: One JSON object per line when True, colored console otherwise.
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        include_timestamp: Prefix each event with an ISO timestamp.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every later log call in the current request/task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def identity_context(identity_id: str, **extra: Any) -> Iterator[None]:
    """
    Tag log lines inside the block with the identity being written.

    Previously bound values are restored on exit, so nested use is safe.
    """
    with structlog.contextvars.bound_contextvars(identity_id=identity_id, **extra):
        yield


class LoggerMixin:
    """
    Gives a class a ``logger`` named after itself.

        class InMemoryPendingStore(LoggerMixin):
            def add(self, record):
                self.logger.info("Hold stored", evaluation_id=record.evaluation_id)
    """

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)
