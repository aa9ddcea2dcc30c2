"""
Structured logging configuration using structlog.
Outputs JSON in deployed environments, pretty-printed locally.

Request context (request_id, method, path) is merged from contextvars, so
webhook and checkout log lines can be correlated per request. Processor
credentials and bearer tokens are masked before any renderer sees them.
"""

import logging
import sys
import structlog
from ticketing.core.config import get_settings

JSON_ENVIRONMENTS = frozenset({"production", "staging"})

SENSITIVE_KEY_PARTS = ("secret", "signature", "authorization", "token", "api_key")
REDACTED = "***"


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor masking values whose key looks like a credential."""
    for key in list(event_dict):
        lowered = key.lower()
        if any(part in lowered for part in SENSITIVE_KEY_PARTS) and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.ENVIRONMENT in JSON_ENVIRONMENTS:
        # log shippers parse one JSON object per line, tracebacks included
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

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
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ]
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    # replace rather than append: the sweep script and uvicorn reload both call this
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    # the stripe SDK logs request lines at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
