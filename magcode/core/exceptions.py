"""
Application Exception Handling

Single AppException class for all application errors with FastAPI integration.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Provides consistent error response format across the entire API.

    Usage:
        raise AppException("No frame data", "INVALID_FRAME", 400)
        raise AppException("Crop failed", "CROP_OUT_OF_BOUNDS", 422, {"frame": "head"})

    Error Codes:
        Frame:
            - INVALID_FRAME (400)
            - FRAME_ORIENTATION (422)

        Session:
            - SESSION_NOT_DETECTING (409)
            - RESULT_NOT_READY (404)

        Compositing:
            - POSITIONS_NOT_FOUND (422)
            - CROP_OUT_OF_BOUNDS (422)

        General:
            - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "CROP_OUT_OF_BOUNDS")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def invalid_frame(reason: str) -> AppException:
    """Create invalid frame exception."""
    return AppException(
        f"Invalid frame: {reason}",
        "INVALID_FRAME",
        400,
        {"reason": reason}
    )


def frame_orientation(width: int, expected: int) -> AppException:
    """Create wrong frame orientation exception."""
    return AppException(
        f"Frame width {width} does not match expected width {expected}",
        "FRAME_ORIENTATION",
        422,
        {"width": width, "expected_width": expected}
    )


def session_not_detecting(state: str) -> AppException:
    """Create session not detecting exception."""
    return AppException(
        "Detection is not running",
        "SESSION_NOT_DETECTING",
        409,
        {"state": state}
    )


def result_not_ready() -> AppException:
    """Create result not ready exception."""
    return AppException("No composite result available", "RESULT_NOT_READY", 404)


def positions_not_found(frame: str) -> AppException:
    """Create marker positions not found exception."""
    return AppException(
        f"Failed to find {frame} frame positions",
        "POSITIONS_NOT_FOUND",
        422,
        {"frame": frame}
    )


def crop_out_of_bounds(frame: str, start: int, end: int, width: int) -> AppException:
    """Create invalid crop bounds exception."""
    return AppException(
        f"Failed to crop {frame} frame",
        "CROP_OUT_OF_BOUNDS",
        422,
        {"frame": frame, "crop_start": start, "crop_end": end, "width": width}
    )


def internal_error(message: str = "Internal server error") -> AppException:
    """Create internal server error exception."""
    return AppException(message, "INTERNAL_ERROR", 500)
