"""
==============================================================================
Frame Decoder
==============================================================================

Per-frame decode pipeline:

    frame -> orientation check -> column signal -> adaptive binarization
          -> run-length bit decode -> marker classification

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np
from pydantic import BaseModel, ConfigDict

from magcode.core import exceptions

from .bitstream import DecodeResult, decode_bits
from .markers import FramePositions, FrameType, classify_frame, find_frame_positions
from .signal import (
    DEFAULT_NOISE_MAX_RUN,
    DEFAULT_SEGMENT_SIZE,
    DEFAULT_THRESHOLD_RATIO,
    binarize_signal,
    extract_signal,
)


# Module logger
logger = logging.getLogger(__name__)


class ClassifiedFrame(BaseModel):
    """A prepared frame with its decode result and assigned role."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: np.ndarray
    frame_type: FrameType
    decode_result: DecodeResult

    @property
    def positions(self) -> Optional[FramePositions]:
        """Marker positions for HEAD/TAIL frames, None otherwise."""
        return find_frame_positions(self.decode_result, self.frame_type)


class FrameDecoder:
    """
    Decodes camera frames into classified bit sequences.

    Attributes:
        segment_size: Columns per binarization segment
        threshold_ratio: Threshold position between segment min and max
        noise_max_run: Short 255-run suppression length
        expected_width: Scan-axis width; 0 disables the orientation check

    Example:
        >>> decoder = FrameDecoder(expected_width=1080)
        >>> classified = decoder.classify(frame)
        >>> classified.frame_type
        <FrameType.TAIL: 'tail'>
    """

    def __init__(
        self,
        segment_size: int = DEFAULT_SEGMENT_SIZE,
        threshold_ratio: float = DEFAULT_THRESHOLD_RATIO,
        noise_max_run: int = DEFAULT_NOISE_MAX_RUN,
        expected_width: int = 0,
        channel_order: str = "BGR"
    ) -> None:
        self.segment_size = segment_size
        self.threshold_ratio = threshold_ratio
        self.noise_max_run = noise_max_run
        self.expected_width = expected_width
        self.channel_order = channel_order

    @classmethod
    def from_settings(cls, settings) -> "FrameDecoder":
        """Build a decoder from application settings."""
        return cls(
            segment_size=settings.segment_size,
            threshold_ratio=settings.threshold_ratio,
            noise_max_run=settings.noise_max_run,
            expected_width=settings.expected_frame_width,
        )

    # =========================================================================
    # FRAME PREPARATION
    # =========================================================================

    def prepare(self, frame: np.ndarray) -> np.ndarray:
        """
        Bring a frame to 3-channel BGR with the scan axis horizontal.

        A frame whose width differs from the expected width is rotated 90
        degrees clockwise once.

        Raises:
            AppException: INVALID_FRAME for empty or malformed frames,
                FRAME_ORIENTATION when the width still does not match
        """
        if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0:
            raise exceptions.invalid_frame("empty frame")

        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        elif frame.ndim == 3 and frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
        elif frame.ndim != 3 or frame.shape[2] != 3:
            raise exceptions.invalid_frame(f"unsupported shape {frame.shape}")

        if self.expected_width and frame.shape[1] != self.expected_width:
            logger.debug(f"Frame width {frame.shape[1]}, rotating 90 degrees")
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)

            if frame.shape[1] != self.expected_width:
                raise exceptions.frame_orientation(frame.shape[1], self.expected_width)

        return frame

    # =========================================================================
    # DECODING
    # =========================================================================

    def binarize(self, frame: np.ndarray) -> np.ndarray:
        """Column signal of a prepared frame, thresholded to {0, 255}."""
        signal = extract_signal(frame, self.channel_order)
        return binarize_signal(signal, self.segment_size, self.threshold_ratio)

    def decode(self, frame: np.ndarray) -> DecodeResult:
        """Decode a prepared frame into bits and intervals."""
        return decode_bits(self.binarize(frame), self.noise_max_run)

    def classify(self, frame: np.ndarray) -> ClassifiedFrame:
        """
        Prepare, decode and classify one frame.

        Raises:
            AppException: when the frame cannot be prepared
        """
        image = self.prepare(frame)
        decode_result = self.decode(image)
        frame_type = classify_frame(decode_result.bits) if not decode_result.is_empty else FrameType.SKIP

        logger.debug(f"Frame classified as {frame_type.value} ({decode_result.bit_count} bits)")
        return ClassifiedFrame(image=image, frame_type=frame_type, decode_result=decode_result)
