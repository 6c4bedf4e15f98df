"""
Structured logging setup using structlog.

The queue itself logs through plain logging.getLogger(__name__) loggers with
extra= fields. setup_logging() routes those records, and any structlog
loggers in the host process, through one structlog renderer.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, TextIO

import structlog
from opentelemetry import trace
from structlog.types import Processor

from dbqueue.config import Settings, get_settings
from dbqueue.constants import QUIET_LOGGERS


class _LoggedJob(Protocol):
    id: int
    queue: str
    attempts: int


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add trace_id and span_id of the recording span, if any."""
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def service_name_adder(service: str) -> Processor:
    """
    Build a processor stamping every record with the service name.

    Uses the same name the tracer exports under, so log lines and spans
    group together downstream.
    """

    def add_service_name(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service_name


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def setup_logging(settings: Settings | None = None, stream: TextIO | None = None) -> None:
    """
    Configure structured logging for the queue and its host process.

    Replaces the root logger's handlers with a single structlog-formatted
    handler. Records keep their extra= fields, bound context variables and
    the active trace ids.

    Args:
        settings: Optional settings override. Defaults to get_settings().
        stream: Where to write. Defaults to stdout.
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        service_name_adder(settings.otel_service_name),
        add_trace_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_format),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent log messages.

    Args:
        **kwargs: Key-value pairs to add to log context, e.g. worker_id.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def job_context(job: _LoggedJob) -> Iterator[None]:
    """
    Tag every log line emitted while handling a job.

    Binds queue, job_id and attempts for the duration of the block and
    restores the previous values afterwards, so nested or sequential jobs
    on one task do not leak into each other.
    """
    with structlog.contextvars.bound_contextvars(
        queue=job.queue,
        job_id=job.id,
        attempts=job.attempts,
    ):
        yield
