"""Structlog configuration.

Console output is colored key-value in development and JSON elsewhere; a
rotating JSON file (plus an errors-only file) is always written so decisions
can be analysed after the fact.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from eduaccess.core.context import get_context


if TYPE_CHECKING:
    from eduaccess.config.settings import Settings


# Show first 2 and last 2 chars of masked values at or above this length
_MIN_MASK_LENGTH = 4

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "authorization",
        "credentials",
        "card_number",
        "payment_token",
    }
)


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Inject request_id, subject_id and trace_id from contextvars."""
    event_dict.update(get_context())
    return event_dict


def add_app_info_processor(
    app_name: str,
    app_version: str,
    environment: str,
) -> Processor:
    """Create a processor that stamps every event with application info."""

    def processor(
        logger: logging.Logger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict["app"] = app_name
        event_dict["version"] = app_version
        event_dict["environment"] = environment
        return event_dict

    return processor


def _mask(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _mask(k, v) for k, v in value.items()}
    if isinstance(value, str) and any(s in key.lower() for s in SENSITIVE_KEYS):
        if len(value) > _MIN_MASK_LENGTH:
            return value[:2] + "*" * (len(value) - _MIN_MASK_LENGTH) + value[-2:]
        return "***"
    return value


def filter_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask tokens, secrets and payment data in log events."""
    return {k: _mask(k, v) for k, v in event_dict.items()}


def build_shared_processors(settings: "Settings") -> list[Processor]:
    """Processors applied to both structlog and foreign (stdlib) records."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        add_app_info_processor(
            settings.app_name, settings.app_version, settings.environment
        ),
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )

    return processors


def _rotating_handler(
    log_path: Path,
    max_bytes: int,
    backup_count: int,
    level: str,
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, level.upper()))
    return handler


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Application settings.
        log_dir: Directory for log files. Defaults to ``settings.log_dir``.
    """
    log_dir = Path(log_dir or settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_level = settings.log_level

    shared_processors = build_shared_processors(settings)

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level.upper()))
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=console_renderer,
            foreign_pre_chain=shared_processors,
        )
    )
    root_logger.addHandler(console_handler)

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )
    for file_name, level in (
        (f"{settings.app_name}.log", log_level),
        (f"{settings.app_name}.error.log", "ERROR"),
    ):
        handler = _rotating_handler(
            log_dir / file_name,
            settings.log_file_max_bytes,
            settings.log_file_backup_count,
            level,
        )
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

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

    # Silence noisy loggers
    for noisy in ("uvicorn.access", "uvicorn.error", "cassandra", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
