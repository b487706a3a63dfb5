"""structlog configuration and stage-level logging.

Provides run ID generation, a stage logging context manager, and
structured log configuration for console and JSON output with optional
file logging.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from profile_activity.exceptions import EmptyResultError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


def generate_run_id() -> str:
    """Generate a unique identifier for one invocation.

    Returns:
        A UUID4 string for the current run.
    """
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Libraries that log every request
_CHATTY_LOGGERS = ("httpx", "httpcore")


def _build_handlers(log_file: str | Path | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))
    return handlers


def _build_renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
    **context: str | None,
) -> None:
    """Route structlog through stdlib logging for one CLI invocation.

    Every handler (stderr, plus ``log_file`` when given) shares one
    ``ProcessorFormatter``, so the JSON file and the console carry the
    same fields. Context left over from an earlier invocation in the
    same process is cleared before ``context`` is bound.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: ``"console"`` for human-readable or ``"json"`` for
            machine-parseable output.
        log_file: Optional file receiving the same records as stderr.
        **context: Values bound to every entry, such as ``run_id`` and
            ``account``. ``None`` values are skipped.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)
    numeric_level = getattr(logging, level_upper)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _build_renderer(fmt),
        ],
    )

    root_logger = logging.getLogger()
    for stale in root_logger.handlers[:]:
        root_logger.removeHandler(stale)
        stale.close()
    for handler in _build_handlers(log_file):
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.contextvars.clear_contextvars()
    bound = {key: value for key, value in context.items() if value is not None}
    if bound:
        structlog.contextvars.bind_contextvars(**bound)


# ---------------------------------------------------------------------------
# Stage logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def stage_logging_context(
    stage: str,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Context manager that binds stage metadata to structlog.

    Logs stage start and completion, and binds the stage name to all log
    entries emitted within the context. Errors are logged and re-raised;
    an ``EmptyResultError`` is logged as a skip rather than an error.

    Args:
        stage: Name of the pipeline stage.
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with stage context.

    Example::

        with stage_logging_context("score", repositories=12) as log:
            log.info("scoring_started")
    """
    structlog.contextvars.bind_contextvars(stage=stage, **extra)

    log: structlog.stdlib.BoundLogger = structlog.get_logger(f"stage.{stage}")
    log.debug("stage_start")

    try:
        yield log
    except EmptyResultError as exc:
        log.info("stage_skipped", reason=str(exc))
        raise
    except Exception as exc:
        log.error("stage_error", error=str(exc), error_type=type(exc).__name__)
        raise
    finally:
        log.debug("stage_end")
        structlog.contextvars.unbind_contextvars("stage", *extra.keys())
