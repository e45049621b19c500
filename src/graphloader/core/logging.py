"""Logging setup for graphloader.

graphloader's own structlog events and the stdlib records of the graph
driver, SQLAlchemy and pyrate-limiter share one handler, so a load run
produces a single stream in one format (console or JSON lines).

Partition workers bind ``stream`` and ``partition`` with
``structlog.contextvars.bound_contextvars``; every event a worker thread
logs carries both, including events from the coordinator it drives.
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Lowest level each third-party logger may emit at, whatever the root level.
_LOGGER_FLOORS: dict[str, int] = {
    "nebula3": logging.WARNING,
    "sqlalchemy": logging.WARNING,
    # Reports every denied permit at ERROR; throttled batches are logged
    # by the orchestrator instead
    "pyrate_limiter": logging.CRITICAL,
}


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder({structlog.processors.CallsiteParameter.THREAD_NAME}),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_chain(json_output: bool, colors: bool) -> list[Any]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=colors),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Safe to call repeatedly; each call replaces the root handler.

    Args:
        json_output: One JSON object per line instead of console output
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        stream: Destination, stdout when omitted. Colours are used only
            when it is a terminal.
    """
    log_level = getattr(logging, level.upper())
    target = stream if stream is not None else sys.stdout
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(target)
    handler.setFormatter(
        ProcessorFormatter(
            processors=_render_chain(json_output, colors=target.isatty()),
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for logger_name, floor in _LOGGER_FLOORS.items():
        logging.getLogger(logger_name).setLevel(max(log_level, floor))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound logger for a module; pass ``__name__``."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
