"""
==============================================================================
Services Package
==============================================================================

Capture session orchestration.

Services:
---------
- CaptureSession: State machine holding HEAD/TAIL frames, triggers compositing
- DetectionWorker: Bounded single-consumer frame queue for a session

==============================================================================
"""

from .capture_session import (
    CaptureSession,
    DetectionState,
    FrameDisposition,
    FrameOutcome,
    FrameTicket,
    SessionResult,
    SessionSnapshot,
    get_capture_session,
    init_capture_session,
)
from .detection_worker import DetectionWorker

__all__ = [
    "CaptureSession",
    "DetectionState",
    "FrameDisposition",
    "FrameOutcome",
    "FrameTicket",
    "SessionResult",
    "SessionSnapshot",
    "get_capture_session",
    "init_capture_session",
    "DetectionWorker",
]
