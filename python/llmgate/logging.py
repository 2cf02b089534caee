"""Structured logging for the gateway (structlog over stdlib logging).

Every event carries the request-scoped context that is set when it is logged:
- request_id: Correlation ID from the X-Request-ID middleware
- path / method: Raw request path (no query string) and HTTP method
- client_id / feature: Metered client and routing feature of the current generation

Prompts, completions and credentials never reach a log line; gateway call
sites pass their fields through llmgate.services.redact.safe_kv.

Usage:
    from llmgate.logging import configure_logging, get_logger

    configure_logging(json_format=False, level="DEBUG")
    logger = get_logger(__name__)
    logger.info("llm.request.started", candidates=2)
"""

import logging
import sys
from contextvars import ContextVar

import structlog

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
path_var: ContextVar[str | None] = ContextVar("path", default=None)
method_var: ContextVar[str | None] = ContextVar("method", default=None)
client_id_var: ContextVar[str | None] = ContextVar("client_id", default=None)
feature_var: ContextVar[str | None] = ContextVar("feature", default=None)

# Order is the order fields appear in rendered events
_CONTEXT_VARS: tuple[ContextVar[str | None], ...] = (
    request_id_var,
    path_var,
    method_var,
    client_id_var,
    feature_var,
)

# Third-party loggers that would otherwise log every provider request
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: copy set context vars into the event.

    Explicit fields passed at the call site win over context values.
    """
    for var in _CONTEXT_VARS:
        value = var.get()
        if value and var.name not in event_dict:
            event_dict[var.name] = value
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Route structlog and stdlib records through one stdout handler.

    Args:
        json_format: JSON lines (deployed envs) or the console renderer (local).
        level: Root log level name.
    """
    shared = _shared_processors()
    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Bind the HTTP request identity for the current async context."""
    request_id_var.set(request_id)
    if path is not None:
        path_var.set(path)
    if method is not None:
        method_var.set(method)


def set_generation_context(client_id: int | str | None, feature: str | None) -> None:
    """Bind the metered client and routing feature for the current call."""
    client_id_var.set(str(client_id) if client_id is not None else None)
    feature_var.set(feature)


def clear_request_context() -> None:
    for var in _CONTEXT_VARS:
        var.set(None)


def get_request_id() -> str | None:
    return request_id_var.get()
