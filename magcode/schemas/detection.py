"""
==============================================================================
Detection Schemas Module
==============================================================================

Request and response schemas for frame submission, single-frame analysis
and composite results.

==============================================================================
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from magcode.decoder import FramePositions, FrameType
from magcode.services import FrameOutcome, SessionSnapshot


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class FrameSubmission(BaseModel):
    """One camera frame as a base64-encoded image (PNG, JPEG, ...)."""
    frame: str = Field(..., min_length=1, description="Base64 image data")

    @field_validator("frame")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Frame data cannot be empty")
        return v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class StatusResponse(BaseModel):
    """Session status."""
    success: bool = Field(default=True)
    session: SessionSnapshot


class FrameOutcomeResponse(BaseModel):
    """Outcome of one submitted frame plus the resulting session status."""
    success: bool = Field(default=True)
    outcome: FrameOutcome
    session: SessionSnapshot


class FrameAnalysisResponse(BaseModel):
    """Stateless decode of a single frame."""
    success: bool = Field(default=True)
    width: int
    height: int
    bit_count: int
    bits: str
    frame_type: FrameType
    positions: Optional[FramePositions] = None


class BarcodeResponse(BaseModel):
    """Barcode reader outcome."""
    success: bool
    text: Optional[str] = None
    symbology: Optional[str] = None
    display_text: str


class DetectionResultResponse(BaseModel):
    """Completed composite summary."""
    success: bool = Field(default=True)
    barcode: BarcodeResponse
    image_a_size: List[int] = Field(..., description="[width, height]")
    image_b_size: List[int] = Field(..., description="[width, height]")
    completed_at: str
