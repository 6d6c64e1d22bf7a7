"""
Global Exception Handling

Every pipeline failure surfaces as one uniform JSON body:

    {"error": "Error processing images", "details": "<message>"}

No partial results are ever returned and nothing is retried internally.
"""

import traceback
from typing import Optional, Dict, Any
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.logging import get_logger

logger = get_logger(__name__)

ERROR_SUMMARY = "Error processing images"


# =============================================================================
# Custom Exceptions
# =============================================================================

class OverlayBaseException(Exception):
    """Base exception for the overlay pipeline."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class DecodeError(OverlayBaseException):
    """Malformed base64, or a container that cannot be decoded."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("stage", "decode")
        super().__init__(message, code=500, **kwargs)


class ExtractionError(OverlayBaseException):
    """Bitmap is in a state a transform step cannot handle."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("stage", "extraction")
        super().__init__(message, code=500, **kwargs)


class CompositeError(OverlayBaseException):
    """Layer geometry cannot be reconciled with the canvas."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("stage", "composite")
        super().__init__(message, code=500, **kwargs)


class PayloadTooLargeError(OverlayBaseException):
    """Combined input payload exceeds the configured limit."""

    def __init__(self, size_bytes: int, limit_bytes: int, **kwargs):
        super().__init__(
            f"Payload of {size_bytes} bytes exceeds limit of {limit_bytes} bytes",
            code=413,
            stage="intake",
            **kwargs
        )
        self.details["size_bytes"] = size_bytes
        self.details["limit_bytes"] = limit_bytes


class ProcessingTimeoutError(OverlayBaseException):
    """Pipeline did not finish within the configured budget."""

    def __init__(self, timeout_seconds: float, **kwargs):
        super().__init__(
            f"Processing exceeded {timeout_seconds:g}s",
            code=504,
            **kwargs
        )
        self.details["timeout_seconds"] = timeout_seconds


class ConfigurationError(OverlayBaseException):
    """Unknown preset or an override that fails validation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, stage="config", **kwargs)


# =============================================================================
# Handlers
# =============================================================================

def error_body(message: str) -> Dict[str, str]:
    return {"error": ERROR_SUMMARY, "details": message}


def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(OverlayBaseException)
    async def overlay_exception_handler(request: Request, exc: OverlayBaseException):
        logger.error(
            "overlay_exception",
            error=exc.message,
            error_type=type(exc).__name__,
            code=exc.code,
            stage=exc.stage,
            details=exc.details,
            path=str(request.url.path)
        )

        return JSONResponse(
            status_code=exc.code,
            content=error_body(exc.message)
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )

        return JSONResponse(
            status_code=500,
            content=error_body(str(exc))
        )
