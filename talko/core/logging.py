"""Structured logging configuration with stdlib bridge.

Configures structlog with:
- JSON output outside debug mode, ConsoleRenderer in debug
- Stdlib bridge so uvicorn, httpx, openai and multipart logs share the format
- Correlation ID from asgi-correlation-id and the service name on every entry
- Credential fields (passwords, tokens, secrets) masked before rendering
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "talko-api"

# Event keys whose values never reach the log stream
SENSITIVE_KEYS = frozenset({
    "password",
    "token",
    "authorization",
    "openai_api_key",
    "jwt_secret",
    "session_secret",
})
REDACTED = "[redacted]"

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "openai", "multipart", "aiosqlite")


def add_correlation_id(logger, method, event_dict):
    """Inject correlation_id from asgi-correlation-id context into every log entry."""
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def add_service(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def redact_secrets(logger, method, event_dict):
    """Mask credential values, including inside nested dicts (e.g. logged request bodies)."""
    return _redact(event_dict)


def _redact(data: dict) -> dict:
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS and value is not None:
            data[key] = REDACTED
        elif isinstance(value, dict):
            data[key] = _redact(dict(value))
    return data


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog with stdlib bridge for full JSON output.

    Call this BEFORE any other talko imports (structlog caches the processor
    chain on first use).
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        add_service,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["default"], "level": log_level},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(settings) -> None:
    """Debug mode logs human-readable lines at DEBUG; otherwise JSON at INFO."""
    configure_structlog(
        log_level="DEBUG" if settings.debug else "INFO",
        json_logs=not settings.debug,
    )
