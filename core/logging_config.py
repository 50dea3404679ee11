"""
Structured logging configuration using structlog.

This module configures structured logging for the entire application,
providing JSON-formatted logs with contextual information like request_id.
Optionally mirrors standard library logs to a daily rotating file.
"""

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

APP_NAME = 'consent-logger'
APP_VERSION = '1.0.0'

LOG_FILE_NAME = 'consent-logger.log'
LOG_BACKUP_DAYS = 15


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add application context to log entries.

    Args:
        logger: The logger instance
        method_name: The name of the method being called
        event_dict: The event dictionary

    Returns:
        Modified event dictionary with app context
    """
    event_dict['app'] = APP_NAME
    event_dict['version'] = APP_VERSION
    return event_dict


def add_log_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add log level to event dict, normalizing 'warn' to 'warning'."""
    if method_name == 'warn':
        event_dict['level'] = 'warning'
    else:
        event_dict['level'] = method_name
    return event_dict


def configure_structlog(
    log_level: str = 'INFO',
    json_logs: bool = True,
    development_mode: bool = False
) -> None:
    """
    Configure structlog for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output logs in JSON format
        development_mode: Whether to use development-friendly formatting
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if development_mode or not json_logs:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_file_logging(log_dir: str, log_level: str = 'INFO') -> logging.Handler:
    """
    Attach a daily rotating file handler to the root logger.

    Rotates at midnight and keeps LOG_BACKUP_DAYS backups.

    Args:
        log_dir: Directory for log files (created if missing)
        log_level: Minimum level written to the file

    Returns:
        The installed handler
    """
    os.makedirs(log_dir, exist_ok=True)

    handler = TimedRotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        when="midnight",
        interval=1,
        backupCount=LOG_BACKUP_DAYS,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logging.getLogger().addHandler(handler)
    return handler


def configure_logging(monitoring, environment: str = 'development') -> None:
    """
    Configure logging from a MonitoringConfig.

    Args:
        monitoring: MonitoringConfig instance
        environment: Deployment environment name
    """
    configure_structlog(
        log_level=monitoring.log_level,
        json_logs=(monitoring.log_format == 'json'),
        development_mode=(environment == 'development'),
    )
    if monitoring.log_to_file:
        setup_file_logging(monitoring.log_dir, monitoring.log_level)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to the logger.

    This adds context that will be included in all subsequent log entries
    within the current context (e.g., request_id).
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables from the logger."""
    structlog.contextvars.clear_contextvars()
