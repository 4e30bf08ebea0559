"""structlog configuration and per-request log context."""

from __future__ import annotations

import logging
from typing import Any, Optional

import structlog

from workhub.core.config import get_settings


REQUEST_FIELDS = ("request_id", "workspace_id", "user_id")

_CONFIGURED = False


def _ensure_request_fields(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Every line carries the request fields, null outside a request.
    for field in REQUEST_FIELDS:
        event_dict.setdefault(field, None)
    return event_dict


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """Route structlog output as one JSON object per line, once per process."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    level = _resolve_level(get_settings().log_level)
    logging.basicConfig(level=level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _ensure_request_fields,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def bind_request_context(
    *,
    request_id: str,
    workspace_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, workspace_id=workspace_id, user_id=user_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
