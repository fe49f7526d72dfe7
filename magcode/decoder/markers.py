"""
==============================================================================
Marker Pattern Matcher & Frame Classifier
==============================================================================

Locates the 5-bit boundary markers in a decoded bit sequence and assigns
the frame role.

Frame Layouts:
--------------
    TAIL: [TAIL_START 00101] + [42 data bits] + [END 01010]
    HEAD: [END 01010] + [42 data bits] + [HEAD_START 10100]

Classification checks HEAD before TAIL: the leading noise of a head frame
can contain a tail-like fragment.

==============================================================================
"""

from __future__ import annotations

import enum
import logging
from typing import NamedTuple, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict

from .bitstream import DecodeResult


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# MARKER CONSTANTS
# =============================================================================

TAIL_START: Tuple[int, ...] = (0, 0, 1, 0, 1)
HEAD_START: Tuple[int, ...] = (1, 0, 1, 0, 0)
END_MARKER: Tuple[int, ...] = (0, 1, 0, 1, 0)

MARKER_LENGTH = 5
PAYLOAD_BITS = 42
# Payload plus end marker, excluding the start marker
VALIDATION_WINDOW = PAYLOAD_BITS + MARKER_LENGTH
FRAME_BITS = MARKER_LENGTH + PAYLOAD_BITS + MARKER_LENGTH


class FrameType(str, enum.Enum):
    """
    Role of a classified frame.

    - HEAD: right half, ends with the head start marker
    - TAIL: left half, begins with the tail start marker
    - SKIP: no usable marker layout
    """
    HEAD = "head"
    TAIL = "tail"
    SKIP = "skip"


class PatternAnalysis(NamedTuple):
    """Marker search results; -1 where a marker is absent."""
    tail_start: int
    head_start: int
    end_left: int
    end_right: int
    bits: Tuple[int, ...]


class FramePositions(BaseModel):
    """Located marker region of a classified frame."""

    model_config = ConfigDict(frozen=True)

    start_bit_index: int
    end_bit_index: int
    end_pixel_start: float
    end_pixel_end: float


# =============================================================================
# PATTERN MATCHING
# =============================================================================

def find_pattern(
    bits: Sequence[int],
    pattern: Sequence[int],
    from_left: bool = True
) -> int:
    """
    Naive directional subsequence search.

    Args:
        bits: Sequence to search
        pattern: Pattern to find
        from_left: First occurrence when True, last occurrence otherwise

    Returns:
        Start index of the match, or -1
    """
    size = len(pattern)
    if len(bits) < size:
        return -1

    target = tuple(pattern)
    last = len(bits) - size
    indices = range(0, last + 1) if from_left else range(last, -1, -1)

    for index in indices:
        if tuple(bits[index:index + size]) == target:
            return index

    return -1


def analyze_patterns(bits: Sequence[int]) -> PatternAnalysis:
    """Search the bit sequence for every marker in its scan direction."""
    return PatternAnalysis(
        tail_start=find_pattern(bits, TAIL_START, from_left=True),
        head_start=find_pattern(bits, HEAD_START, from_left=False),
        end_left=find_pattern(bits, END_MARKER, from_left=True),
        end_right=find_pattern(bits, END_MARKER, from_left=False),
        bits=tuple(bits),
    )


# =============================================================================
# CLASSIFICATION
# =============================================================================

def _is_head(analysis: PatternAnalysis) -> bool:
    start = analysis.head_start
    if start < VALIDATION_WINDOW:
        return False
    window = analysis.bits[start - VALIDATION_WINDOW:start]
    return window[:MARKER_LENGTH] == END_MARKER


def _is_tail(analysis: PatternAnalysis) -> bool:
    start = analysis.tail_start
    if start == -1:
        return False
    window_start = start + MARKER_LENGTH
    if window_start + VALIDATION_WINDOW > len(analysis.bits):
        return False
    window = analysis.bits[window_start:window_start + VALIDATION_WINDOW]
    return window[-MARKER_LENGTH:] == END_MARKER


def classify_frame(source: Union[PatternAnalysis, Sequence[int]]) -> FrameType:
    """
    Assign a frame role from a bit sequence or a prior pattern analysis.

    HEAD: a head start marker at index >= 47 with the end marker exactly
    47 bits before it. TAIL: a tail start marker followed by 47 bits whose
    last 5 are the end marker. Anything else is SKIP.
    """
    analysis = source if isinstance(source, PatternAnalysis) else analyze_patterns(source)

    if _is_head(analysis):
        return FrameType.HEAD
    if _is_tail(analysis):
        return FrameType.TAIL
    return FrameType.SKIP


# =============================================================================
# POSITIONS
# =============================================================================

def find_frame_positions(
    decode_result: DecodeResult,
    frame_type: FrameType
) -> Optional[FramePositions]:
    """
    Locate the start and end markers of a classified frame.

    Args:
        decode_result: Decoded bits and intervals of the frame
        frame_type: HEAD or TAIL

    Returns:
        FramePositions, or None when the layout cannot be found
    """
    bits = decode_result.bits
    intervals = decode_result.intervals

    if frame_type == FrameType.HEAD:
        start_bit = find_pattern(bits, HEAD_START, from_left=False)
        if start_bit == -1:
            logger.warning("Head start marker not found")
            return None
        end_bit = start_bit - VALIDATION_WINDOW
        if end_bit < 0:
            logger.warning(f"Fewer than {VALIDATION_WINDOW} bits before head start marker")
            return None

    elif frame_type == FrameType.TAIL:
        start_bit = find_pattern(bits, TAIL_START, from_left=True)
        if start_bit == -1:
            logger.warning("Tail start marker not found")
            return None
        end_bit = start_bit + VALIDATION_WINDOW
        if end_bit + MARKER_LENGTH > len(bits):
            logger.warning(f"Fewer than {FRAME_BITS} bits after tail start marker")
            return None

    else:
        return None

    if tuple(bits[end_bit:end_bit + MARKER_LENGTH]) != END_MARKER:
        logger.warning(f"No end marker at bit {end_bit}")
        return None

    last = len(intervals) - 1
    return FramePositions(
        start_bit_index=start_bit,
        end_bit_index=end_bit,
        end_pixel_start=intervals[end_bit].pixel_start,
        end_pixel_end=intervals[min(end_bit + MARKER_LENGTH - 1, last)].pixel_end,
    )
