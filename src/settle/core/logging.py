"""Structured logging configuration for settle.

Configures BOTH structlog and stdlib logging to emit consistent output (JSON
or console). ProcessorFormatter routes stdlib log records through structlog's
processor chain, so driver libraries logging through logging.getLogger()
produce the same format as settle's own structlog events.

Logs go to stderr: stdout belongs to command output (settle presets --json)
and to the test runner's own reporting.

Two entry points:
    configure_logging(json_output=..., level=...)   explicit values
    configure_logging_from(settings.logging, ...)   the settings file's
                                                    logging block, with CLI
                                                    flags layered on top
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

if TYPE_CHECKING:
    from settle.core.config import LoggingSettings

# Third-party loggers that emit per-request noise at DEBUG level.
# Silenced to WARNING even when settle runs in DEBUG mode.
_NOISY_LOGGERS: tuple[str, ...] = (
    # selenium - logs every WebDriver command and response
    "selenium",
    "selenium.webdriver.remote.remote_connection",
    "selenium.webdriver.common.selenium_manager",
    # urllib3 - connection pool management under selenium
    "urllib3",
    "urllib3.connectionpool",
    # httpx/httpcore - HTTP client internals
    "httpx",
    "httpcore",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove ProcessorFormatter bookkeeping fields from output.

    ProcessorFormatter always adds _record and _from_structlog, so a
    KeyError here would indicate a broken structlog integration.
    """
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and stdlib logging for settle.

    Replaces any handlers already on the root logger, so calling it again
    (e.g. once a settings file has been read) switches format and level.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        stream: Destination (default: the current sys.stderr).
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging; cached loggers would keep the old config
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)

    # Never make noisy loggers less restrictive than the root level
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def configure_logging_from(
    settings: LoggingSettings,
    *,
    verbose: bool = False,
    json_logs: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Apply a settings file's logging block.

    CLI flags only ever add to it: verbose forces DEBUG and json_logs forces
    JSON output; neither can turn the settings' choices off.
    """
    configure_logging(
        json_output=settings.json_output or json_logs,
        level="DEBUG" if verbose else settings.level,
        stream=stream,
    )


def bind_scenario(scenario: str, **context: Any) -> None:
    """Attach scenario context to every log event on this thread or task.

    Uses structlog contextvars, so waits and retries logged while a test
    scenario runs carry its name.
    """
    structlog.contextvars.bind_contextvars(scenario=scenario, **context)


def clear_scenario() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
