"""structlog configuration for infragraph.

Library modules log through stdlib ``logging.getLogger(__name__)``;
structlog's ProcessorFormatter gives those records the same shape as
native structlog events.  Output goes to stderr, either as colored
console lines or (``--log-json``) one JSON object per line.

Every line logged after :func:`bind_graph` carries the graph file it
refers to.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

APP_LOGGER = "infragraph"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _final_processors(log_json: bool) -> list[structlog.types.Processor]:
    if log_json:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route structlog and stdlib logging to one stderr handler.

    Args:
        verbose: DEBUG for infragraph's own loggers; WARNING otherwise.
            Third-party loggers stay at WARNING either way.
        log_json: JSON lines instead of console output.
    """
    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.clear_contextvars()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_final_processors(log_json),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)
    logging.getLogger(APP_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)


def bind_graph(path: Path) -> None:
    """Tag subsequent log lines in this context with the graph file."""
    structlog.contextvars.bind_contextvars(graph=str(path))
