#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging with:
- Request ID correlation for tracing an HTTP request or WebSocket session
- Stage tags for following execution flow
- JSON formatting for log aggregation
- Automatic PII redaction (emails, bearer tokens, phone numbers)

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation
- Async-safe context through contextvars

Author: System Architect
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from cloudpc.core.config.settings import get_settings

# Context variable for request ID (task-local storage)
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_EMAIL_RE = re.compile(r"\b[\w.+-]+@[\w.-]+\.\w+\b")
_BEARER_RE = re.compile(r"\bBearer\s+[A-Za-z0-9._-]+")
_JWT_RE = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")
_PHONE_RE = re.compile(r"\b1[3-9]\d{9}\b|\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add request ID to log event from context variable.

    STAGE-L.1: Request ID injection
    """
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact PII from log messages.

    STAGE-L.3: PII redaction

    Patterns redacted:
    - Email addresses → [EMAIL]
    - Bearer tokens and raw JWTs → [REDACTED]
    - Phone numbers → [PHONE]

    Only the free-text ``event`` is rewritten; structured fields are left
    alone so that ids stay searchable.
    """
    message = event_dict.get("event", "")

    if isinstance(message, str):
        message = _EMAIL_RE.sub("[EMAIL]", message)
        message = _BEARER_RE.sub("Bearer [REDACTED]", message)
        message = _JWT_RE.sub("[REDACTED]", message)
        message = _PHONE_RE.sub("[PHONE]", message)
        event_dict["event"] = message

    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Upper-case the level name.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    # Keep driver chatter out of application logs
    for noisy in ("aiosqlite", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_request_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage=Stage.CACHE_LOOKUP)
    """
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    """
    Set request ID in context for the current request or socket.

    STAGE-1.1: Request ID context initialization
    """
    request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    """Get current request ID from context."""
    return request_id_ctx.get()


def clear_request_id() -> None:
    """
    Clear request ID from context.

    Called by the request logging middleware once the response is sent.
    """
    request_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (a Stage member or a free-form "2.1" tag)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.CACHE_LOOKUP, "Cache hit", cache_key="user:42")
    """
    stage_value = stage.value if hasattr(stage, "value") else stage
    log_func = getattr(logger, level.lower())
    log_func(message, stage=stage_value, **kwargs)
