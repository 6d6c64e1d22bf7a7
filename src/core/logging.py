"""
Structured Logging Configuration with structlog

JSON logs in production, colored console logs in development. Every entry
carries request_id, stage, version and timestamp when known.

Requests carry multi-megabyte base64 images. Those must never reach a log
line, so a processor shortens any data URI or oversized string field before
rendering.
"""

import re
import sys
import time
import inspect
import logging
import structlog
from typing import Optional, Any, Dict
from datetime import datetime, timezone
from contextvars import ContextVar
from functools import wraps

# Context variables for request-scoped logging
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

_app_version = "unknown"

MAX_FIELD_CHARS = 512
_DATA_URI_RE = re.compile(r"data:[\w.+-]*/?[\w.+-]*;base64,[A-Za-z0-9+/=\s]{16,}")


def add_app_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add application context to every log entry."""
    event_dict["version"] = _app_version

    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)

    stage = stage_var.get()
    if stage:
        event_dict.setdefault("stage", stage)

    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO format timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def shorten(value: str, limit: int = MAX_FIELD_CHARS) -> str:
    """Collapse embedded base64 images and clip anything still too long."""
    value = _DATA_URI_RE.sub(lambda m: f"<data-uri {len(m.group(0))} chars>", value)
    if len(value) > limit:
        return f"{value[:limit]}... <{len(value) - limit} more chars>"
    return value


def truncate_payloads(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str) and key != "traceback":
            event_dict[key] = shorten(value)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    version: Optional[str] = None,
):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; if False, output colored console logs
        version: Application version stamped on every entry
    """
    global _app_version
    if version:
        _app_version = version

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Pillow logs every plugin it probes at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_timestamp,
            add_app_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.UnicodeDecoder(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            truncate_payloads,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for setting logging context.

    Usage:
        with LogContext(request_id="abc123", stage="decode"):
            logger.info("decode_started")
    """

    def __init__(self, request_id: Optional[str] = None, stage: Optional[str] = None):
        self.request_id = request_id
        self.stage = stage
        self._request_id_token = None
        self._stage_token = None

    def __enter__(self):
        if self.request_id:
            self._request_id_token = request_id_var.set(self.request_id)
        if self.stage:
            self._stage_token = stage_var.set(self.stage)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._stage_token:
            stage_var.reset(self._stage_token)
        if self._request_id_token:
            request_id_var.reset(self._request_id_token)
        return False


class _StageLog(LogContext):
    """LogContext that also emits stage_started / stage_completed / stage_failed."""

    def __init__(self, stage: str, logger_name: str):
        super().__init__(stage=stage)
        self.logger = get_logger(logger_name)
        self.start = 0.0

    def _elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.start) * 1000)

    def __enter__(self):
        super().__enter__()
        self.logger.info("stage_started")
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is None:
            self.logger.info("stage_completed", duration_ms=self._elapsed_ms())
        elif isinstance(exc_val, Exception):
            self.logger.error(
                "stage_failed",
                duration_ms=self._elapsed_ms(),
                error=str(exc_val),
                error_type=exc_type.__name__
            )
        return super().__exit__(exc_type, exc_val, exc_tb)


def with_logging(stage: str):
    """
    Decorator that logs start/completion/failure of a pipeline stage.

    Usage:
        @with_logging("overlay")
        async def run_overlay_pipeline(...):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            with _StageLog(stage, func.__module__):
                return await func(*args, **kwargs)

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with _StageLog(stage, func.__module__):
                return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


# Example log output structure:
# {
#   "timestamp": "2024-05-20T10:00:00Z",
#   "level": "info",
#   "event": "route_extraction_completed",
#   "stage": "route_extraction",
#   "request_id": "550e8400-e29b-41d4-a716-446655440000",
#   "version": "1.0.0",
#   "layer_size": [1080, 1920],
#   "coverage": 0.0132,
#   "duration_ms": 42
# }
