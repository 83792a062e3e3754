# src/cytogate/core/logging.py
"""Structured logging for cytogate.

structlog renders every event; stdlib records from third-party libraries
(dask.distributed, asyncio) are routed through the same processor chain via
ProcessorFormatter so a gating run produces one uniform stream.

Logs go to stderr. stdout is reserved for command output such as
``cytogate plan --format json``.

Events emitted while a template is being dispatched carry the template name
(see template_context()), so interleaved runs stay distinguishable.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

# Scheduler and worker chatter from the cluster strategy
_NOISY_LOGGERS: tuple[str, ...] = (
    "distributed",
    "distributed.scheduler",
    "distributed.worker",
    "distributed.core",
    "asyncio",
)


def _drop_formatter_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove ProcessorFormatter bookkeeping (_record, _from_structlog)."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        json_output: Render JSON lines instead of the console format
        level: DEBUG, INFO, WARNING or ERROR
        stream: Destination; defaults to sys.stderr at call time
    """
    log_level = logging.getLevelNamesMapping()[level.upper()]
    out = stream if stream is not None else sys.stderr

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=out.isatty())
    final: list[Any] = [_drop_formatter_fields, structlog.processors.format_exc_info, renderer]
    if not json_output:
        # ConsoleRenderer formats exceptions itself
        final.remove(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigurable between CLI invocations and tests
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(ProcessorFormatter(processors=final, foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


@contextmanager
def template_context(name: str) -> Iterator[None]:
    """Tag every event logged inside the block with ``template=name``."""
    with structlog.contextvars.bound_contextvars(template=name):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound logger for a module (pass __name__)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
