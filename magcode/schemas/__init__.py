"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

This package provides:
- Detection: Frame submission, analysis and result schemas

==============================================================================
"""

from .detection import (
    FrameSubmission,
    StatusResponse,
    FrameOutcomeResponse,
    FrameAnalysisResponse,
    BarcodeResponse,
    DetectionResultResponse,
)

__all__ = [
    # Detection
    "FrameSubmission",
    "StatusResponse",
    "FrameOutcomeResponse",
    "FrameAnalysisResponse",
    "BarcodeResponse",
    "DetectionResultResponse",
]
