"""Structured logging configuration for the BAP.

structlog is configured once per process with either a console renderer
(development) or a JSON renderer (production). Event names are dotted
(``bap.callback.received``) and all context travels as key/value fields.

Environment Variables:
    BAP_LOG_FORMAT: "json" for JSON output, "console" for colored output
    BAP_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR)
    BAP_SERVICE_NAME: Service name included in every log line

Example:
    >>> from beckn_bap.observability.logging import get_logger, configure_logging
    >>> configure_logging(log_format="json", log_level="INFO")
    >>> logger = get_logger("beckn_bap.transport.callbacks")
    >>> logger.info("bap.callback.received", action="on_search", transaction_id="t-1")
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "beckn-bap"

ENV_LOG_FORMAT = "BAP_LOG_FORMAT"
ENV_LOG_LEVEL = "BAP_LOG_LEVEL"
ENV_SERVICE_NAME = "BAP_SERVICE_NAME"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Key substrings (case-insensitive) whose values never reach the logs.
_SENSITIVE_KEY_PATTERNS = frozenset(
    {"password", "secret", "private", "authorization", "signature", "challenge", "answer"}
)

_logging_configured = False


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(pattern in lower for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values redacted.

    Nested dicts and lists of dicts are sanitized recursively.

    Example:
        >>> sanitize_for_logging({"subscriber_id": "bap.example.com", "private_key": "abc"})
        {'subscriber_id': 'bap.example.com', 'private_key': '***REDACTED***'}
    """
    if not data:
        return {}
    result: dict[str, Any] = {}
    for k, v in data.items():
        if _is_sensitive_key(k):
            result[k] = REDACTED_PLACEHOLDER
        elif isinstance(v, dict):
            result[k] = sanitize_for_logging(v)
        elif isinstance(v, list):
            result[k] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item for item in v
            ]
        else:
            result[k] = v
    return result


def _redact_sensitive(
    logger: Any, method_name: str, event_dict: structlog.typing.EventDict
) -> structlog.typing.EventDict:
    return sanitize_for_logging(event_dict)


def _get_shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        _redact_sensitive,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_format: "json" or "console". Defaults to BAP_LOG_FORMAT or "console"
        log_level: Minimum log level. Defaults to BAP_LOG_LEVEL or "INFO"
        service_name: Service name for log context. Defaults to BAP_SERVICE_NAME
        force: Reconfigure even if already configured
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    log_format = (log_format or os.environ.get(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)).lower()
    log_level = (log_level or os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    service_name = service_name or os.environ.get(ENV_SERVICE_NAME, DEFAULT_SERVICE_NAME)

    shared_processors = _get_shared_processors()

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    structlog.contextvars.bind_contextvars(service=service_name)

    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring logging with defaults on first use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger = logger.bind(transaction_id="t-1")
        >>> logger.info("bap.transaction.created")
    """
    if not _logging_configured:
        configure_logging()

    return structlog.stdlib.get_logger(name)

