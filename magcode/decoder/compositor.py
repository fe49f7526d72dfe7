"""
==============================================================================
Dual-Frame Compositor
==============================================================================

Joins a classified TAIL frame and HEAD frame into the two output images.

Pipeline:
---------
1. Crop HEAD to [end marker][42 data bits][head start marker]
2. Crop TAIL to [tail start marker][42 data bits]
3. Concatenate TAIL (left) + HEAD (right), black letterbox
4. Render black/white stripe images from the bit intervals, crop and
   concatenate them the same way
5. Rotate both composites 180 degrees (camera mounting)
6. Normalize stripe widths to multiples of 20 px with white padding
7. Image A = top rows of raw composite over top rows of stripe composite
   Image B = bottom rows of the normalized stripe composite

All steps are pure transforms over numpy images (OpenCV layout).

==============================================================================
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np
from pydantic import BaseModel, ConfigDict

from magcode.core import exceptions

from .bitstream import DecodeResult
from .markers import MARKER_LENGTH, FramePositions, FrameType, find_frame_positions
from .runs import run_boundaries


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

WHITE = 255
BLACK = 0

DEFAULT_CROP_HEIGHT = 960

MODULE_WIDTH = 20
STRIPE_LEFT_PADDING = 9 * MODULE_WIDTH
STRIPE_RIGHT_PADDING = 5 * MODULE_WIDTH
MIN_STRIPE_WIDTH = 5

# (exclusive upper bound of measured width, normalized width)
STRIPE_WIDTH_BUCKETS: Tuple[Tuple[int, int], ...] = (
    (30, 20),
    (50, 40),
    (70, 60),
    (90, 80),
)
MAX_STRIPE_WIDTH = 100


class CompositeImages(BaseModel):
    """
    Output of one compositing run.

    Attributes:
        image_a: Raw composite top half stacked over stripe composite top half
        image_b: Bottom rows of the normalized stripe composite
        composite: Rotated raw composite
        stripe_composite: Rotated stripe composite before normalization
        normalized_stripe: Normalized stripe composite
        head_positions: Marker positions of the head frame
        tail_positions: Marker positions of the tail frame
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image_a: np.ndarray
    image_b: np.ndarray
    composite: np.ndarray
    stripe_composite: np.ndarray
    normalized_stripe: np.ndarray
    head_positions: FramePositions
    tail_positions: FramePositions


# =============================================================================
# IMAGE PRIMITIVES
# =============================================================================

def concatenate_horizontal(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Place two images side by side; the shorter one is letterboxed in black."""
    height = max(left.shape[0], right.shape[0])
    padded = [
        cv2.copyMakeBorder(
            image, 0, height - image.shape[0], 0, 0,
            cv2.BORDER_CONSTANT, value=BLACK
        ) if image.shape[0] < height else image
        for image in (left, right)
    ]
    logger.debug(
        f"Concatenated: left={left.shape[1]}x{left.shape[0]}, "
        f"right={right.shape[1]}x{right.shape[0]}"
    )
    return np.concatenate(padded, axis=1)


def stack_vertical(top: np.ndarray, bottom: np.ndarray) -> np.ndarray:
    """Stack two images; the narrower one is padded on the right in black."""
    width = max(top.shape[1], bottom.shape[1])
    padded = [
        cv2.copyMakeBorder(
            image, 0, 0, 0, width - image.shape[1],
            cv2.BORDER_CONSTANT, value=BLACK
        ) if image.shape[1] < width else image
        for image in (top, bottom)
    ]
    return np.concatenate(padded, axis=0)


def rotate_180(image: np.ndarray) -> np.ndarray:
    """Rotate an image by 180 degrees."""
    return cv2.rotate(image, cv2.ROTATE_180)


def top_rows(image: np.ndarray, rows: int) -> np.ndarray:
    """First ``rows`` rows, or the image itself when it is shorter."""
    if image.shape[0] >= rows:
        return image[:rows]
    return image


def bottom_rows(image: np.ndarray, rows: int) -> np.ndarray:
    """Last ``rows`` rows, or the image itself when it is shorter."""
    if image.shape[0] >= rows:
        return image[image.shape[0] - rows:]
    return image


def crop_columns(image: np.ndarray, start: int, end: int, frame: str) -> np.ndarray:
    """
    Keep columns ``[start, end)`` at full height.

    Raises:
        AppException: CROP_OUT_OF_BOUNDS when the span is empty or outside the image
    """
    width = image.shape[1]
    if end - start <= 0 or start < 0 or end > width:
        logger.error(
            f"Invalid {frame} crop: start={start}, end={end}, width={width}"
        )
        raise exceptions.crop_out_of_bounds(frame, start, end, width)

    logger.debug(f"{frame} crop: keeping columns {start} to {end}")
    return image[:, start:end].copy()


# =============================================================================
# STRIPE RENDERING
# =============================================================================

def render_stripes(shape: Tuple[int, ...], decode_result: DecodeResult) -> np.ndarray:
    """
    Render a full-height stripe image of the decoded bits.

    Bit 0 spans are white, bit 1 spans black, uncovered columns white.

    Args:
        shape: Shape of the source frame (stripe image matches it)
        decode_result: Bits and intervals of the frame
    """
    stripes = np.full(shape, WHITE, dtype=np.uint8)
    width = shape[1]

    for interval in decode_result.intervals:
        start = int(interval.pixel_start)
        end = min(int(interval.pixel_end), width)
        if end > start:
            stripes[:, start:end] = WHITE if interval.bit_value == 0 else BLACK

    return stripes


def discretize_stripe_width(width: int) -> int:
    """Snap a measured stripe width to 20, 40, 60, 80 or 100 px."""
    for upper, normalized in STRIPE_WIDTH_BUCKETS:
        if width < upper:
            return normalized
    return MAX_STRIPE_WIDTH


def normalize_stripes(stripe_image: np.ndarray) -> np.ndarray:
    """
    Rebuild a stripe image with discretized stripe widths.

    Stripes are measured on the first row. Stripes of 5 px or less are
    dropped. The result carries a 180 px white left pad and a 100 px white
    right pad at the input height.
    """
    height = stripe_image.shape[0]
    first_row = stripe_image[0]
    bounds = run_boundaries(first_row)

    normalized: List[Tuple[int, np.ndarray]] = []
    for start, end in zip(bounds[:-1], bounds[1:]):
        measured = int(end - start)
        if measured <= MIN_STRIPE_WIDTH:
            logger.debug(f"Dropping stripe of {measured} px")
            continue
        normalized.append((discretize_stripe_width(measured), first_row[start]))

    stripes_width = sum(width for width, _ in normalized)
    new_width = STRIPE_LEFT_PADDING + stripes_width + STRIPE_RIGHT_PADDING

    shape = (height, new_width) + stripe_image.shape[2:]
    result = np.full(shape, WHITE, dtype=stripe_image.dtype)

    x = STRIPE_LEFT_PADDING
    for width, color in normalized:
        result[:, x:x + width] = color
        x += width

    logger.debug(
        f"Normalized {len(normalized)} stripes: "
        f"{stripe_image.shape[1]}x{height} -> {new_width}x{height}"
    )
    return result


# =============================================================================
# COMPOSITOR
# =============================================================================

class DualFrameCompositor:
    """
    Builds Image A and Image B from one HEAD and one TAIL frame.

    Example:
        >>> compositor = DualFrameCompositor()
        >>> images = compositor.compose(head_img, head_result, tail_img, tail_result)
        >>> images.image_b.shape[0]
        960
    """

    def __init__(self, crop_height: int = DEFAULT_CROP_HEIGHT) -> None:
        self._crop_height = crop_height

    @staticmethod
    def _positions(decode_result: DecodeResult, frame_type: FrameType) -> FramePositions:
        positions = find_frame_positions(decode_result, frame_type)
        if positions is None:
            frame = frame_type.value
            logger.error(f"Failed to find {frame} frame positions")
            raise exceptions.positions_not_found(frame)
        return positions

    @staticmethod
    def head_span(decode_result: DecodeResult, positions: FramePositions) -> Tuple[int, int]:
        """Columns from the end marker to the end of the head start marker."""
        intervals = decode_result.intervals
        last = len(intervals) - 1
        start = int(positions.end_pixel_start)
        end = int(intervals[min(positions.start_bit_index + MARKER_LENGTH - 1, last)].pixel_end)
        return start, end

    @staticmethod
    def tail_span(decode_result: DecodeResult, positions: FramePositions) -> Tuple[int, int]:
        """Columns from the tail start marker up to (excluding) the end marker."""
        start = int(decode_result.intervals[positions.start_bit_index].pixel_start)
        end = int(positions.end_pixel_start)
        return start, end

    def crop_head(
        self,
        image: np.ndarray,
        decode_result: DecodeResult,
        positions: Optional[FramePositions] = None
    ) -> np.ndarray:
        """Crop a head frame to [end marker][data][head start marker]."""
        positions = positions or self._positions(decode_result, FrameType.HEAD)
        start, end = self.head_span(decode_result, positions)
        return crop_columns(image, start, end, FrameType.HEAD.value)

    def crop_tail(
        self,
        image: np.ndarray,
        decode_result: DecodeResult,
        positions: Optional[FramePositions] = None
    ) -> np.ndarray:
        """Crop a tail frame to [tail start marker][data]."""
        positions = positions or self._positions(decode_result, FrameType.TAIL)
        start, end = self.tail_span(decode_result, positions)
        return crop_columns(image, start, end, FrameType.TAIL.value)

    def image_a(self, composite: np.ndarray, stripe_composite: np.ndarray) -> np.ndarray:
        """Top rows of the raw composite over top rows of the stripe composite."""
        return stack_vertical(
            top_rows(composite, self._crop_height),
            top_rows(stripe_composite, self._crop_height),
        )

    def image_b(self, normalized_stripe: np.ndarray) -> np.ndarray:
        """Bottom rows of the normalized stripe composite."""
        return bottom_rows(normalized_stripe, self._crop_height)

    def compose(
        self,
        head_image: np.ndarray,
        head_result: DecodeResult,
        tail_image: np.ndarray,
        tail_result: DecodeResult
    ) -> CompositeImages:
        """
        Run the full compositing pipeline.

        Raises:
            AppException: POSITIONS_NOT_FOUND or CROP_OUT_OF_BOUNDS
        """
        logger.info("🧩 Compositing head and tail frames")

        head_positions = self._positions(head_result, FrameType.HEAD)
        tail_positions = self._positions(tail_result, FrameType.TAIL)

        head_cropped = self.crop_head(head_image, head_result, head_positions)
        tail_cropped = self.crop_tail(tail_image, tail_result, tail_positions)
        composite = concatenate_horizontal(tail_cropped, head_cropped)

        head_start, head_end = self.head_span(head_result, head_positions)
        tail_start, tail_end = self.tail_span(tail_result, tail_positions)
        head_stripe = crop_columns(
            render_stripes(head_image.shape, head_result),
            head_start, head_end, FrameType.HEAD.value,
        )
        tail_stripe = crop_columns(
            render_stripes(tail_image.shape, tail_result),
            tail_start, tail_end, FrameType.TAIL.value,
        )
        stripe_composite = concatenate_horizontal(tail_stripe, head_stripe)

        composite = rotate_180(composite)
        stripe_composite = rotate_180(stripe_composite)
        normalized = normalize_stripes(stripe_composite)

        images = CompositeImages(
            image_a=self.image_a(composite, stripe_composite),
            image_b=self.image_b(normalized),
            composite=composite,
            stripe_composite=stripe_composite,
            normalized_stripe=normalized,
            head_positions=head_positions,
            tail_positions=tail_positions,
        )

        logger.info(
            f"✅ Composite ready: image_a={images.image_a.shape[1]}x{images.image_a.shape[0]}, "
            f"image_b={images.image_b.shape[1]}x{images.image_b.shape[0]}"
        )
        return images
