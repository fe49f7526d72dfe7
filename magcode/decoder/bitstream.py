"""
==============================================================================
Run-Length Bit Decoder
==============================================================================

Pulse-width demodulation of a binarized column signal.

Each maximal run of identical binary values encodes 0-5 bits depending on
its pixel length:

    Run length (px)   Bits
    ---------------   ----
    < 5               0 (discarded)
    5 - 29            1
    30 - 49           2
    50 - 69           3
    70 - 89           4
    >= 90             5

Bit value is 1 for a run of binary 0 and 0 for a run of binary 255. A run
carrying n bits is split into n equal-width pixel intervals.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .runs import find_runs
from .signal import BINARY_LOW, DEFAULT_NOISE_MAX_RUN, suppress_noise


# Module logger
logger = logging.getLogger(__name__)


MIN_RUN_LENGTH = 5

# (exclusive upper bound of run length, bits encoded)
RUN_LENGTH_BUCKETS: Tuple[Tuple[int, int], ...] = (
    (30, 1),
    (50, 2),
    (70, 3),
    (90, 4),
)
MAX_BITS_PER_RUN = 5


class BitInterval(BaseModel):
    """
    Provenance of one decoded bit.

    Attributes:
        bit_index: Position in the decoded bit sequence
        bit_value: Decoded bit (0 or 1)
        pixel_start: Left bound of the bit's pixel span (inclusive)
        pixel_end: Right bound of the bit's pixel span (exclusive)
        pixel_center: Midpoint of the span
        pixel_width: Width of the span
        run_index: Index of the source run among all runs (discarded included)
        run_start: First pixel of the source run
        run_end: Pixel after the source run
        run_length: Source run length in pixels
        run_value: Binary value of the source run (0 or 255)
        bits_in_run: Number of bits the source run encoded
        position_in_run: This bit's position within the run
    """

    model_config = ConfigDict(frozen=True)

    bit_index: int = Field(..., ge=0)
    bit_value: int = Field(..., ge=0, le=1)
    pixel_start: float
    pixel_end: float
    pixel_center: float
    pixel_width: float
    run_index: int
    run_start: int
    run_end: int
    run_length: int
    run_value: int
    bits_in_run: int = Field(..., ge=1, le=MAX_BITS_PER_RUN)
    position_in_run: int = Field(..., ge=0)


class DecodeResult(BaseModel):
    """
    Decoded bit sequence of one frame.

    ``binary_sequence`` is the thresholded sequence the bits were derived
    from, before noise suppression.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    bits: Tuple[int, ...] = Field(default=())
    intervals: Tuple[BitInterval, ...] = Field(default=())
    binary_sequence: np.ndarray

    @property
    def bit_count(self) -> int:
        """Number of decoded bits."""
        return len(self.bits)

    @property
    def is_empty(self) -> bool:
        """True when no bit was decoded."""
        return not self.bits

    def bit_string(self) -> str:
        """Bits as a compact '0101...' string."""
        return "".join(str(bit) for bit in self.bits)


def bits_for_run_length(length: int) -> int:
    """Number of bits a run of ``length`` pixels encodes (0 when too short)."""
    if length < MIN_RUN_LENGTH:
        return 0
    for upper, num_bits in RUN_LENGTH_BUCKETS:
        if length < upper:
            return num_bits
    return MAX_BITS_PER_RUN


def decode_bits(
    binary_sequence: np.ndarray,
    noise_max_run: int = DEFAULT_NOISE_MAX_RUN
) -> DecodeResult:
    """
    Demodulate a binary sequence into bits with per-bit pixel intervals.

    Args:
        binary_sequence: Two-level sequence in {0, 255}
        noise_max_run: Short-255-run suppression length applied first

    Returns:
        DecodeResult; empty bits for an empty sequence
    """
    source = np.asarray(binary_sequence)

    if source.shape[0] == 0:
        return DecodeResult(binary_sequence=source)

    cleaned = suppress_noise(source, noise_max_run)

    bits: List[int] = []
    intervals: List[BitInterval] = []

    for run_index, run in enumerate(find_runs(cleaned)):
        num_bits = bits_for_run_length(run.length)
        if num_bits == 0:
            continue

        bit_value = 1 if run.value == BINARY_LOW else 0
        pixel_per_bit = run.length / num_bits

        for position in range(num_bits):
            pixel_start = run.start + position * pixel_per_bit
            pixel_end = run.start + (position + 1) * pixel_per_bit

            intervals.append(BitInterval(
                bit_index=len(bits),
                bit_value=bit_value,
                pixel_start=pixel_start,
                pixel_end=pixel_end,
                pixel_center=(pixel_start + pixel_end) / 2,
                pixel_width=pixel_per_bit,
                run_index=run_index,
                run_start=run.start,
                run_end=run.end,
                run_length=run.length,
                run_value=run.value,
                bits_in_run=num_bits,
                position_in_run=position,
            ))
            bits.append(bit_value)

    logger.debug(f"Decoded {len(bits)} bits from {source.shape[0]} columns")

    return DecodeResult(
        bits=tuple(bits),
        intervals=tuple(intervals),
        binary_sequence=source,
    )
