"""Synthetic stripe frames for testing and calibration."""

from typing import Sequence, Tuple

import numpy as np

from .markers import END_MARKER, HEAD_START, PAYLOAD_BITS, TAIL_START


class SyntheticFrameFactory:
    """Factory for rendering bit sequences as camera-like frames."""

    @staticmethod
    def tail_bits(data: Sequence[int], margin: Sequence[int] = (1,)) -> Tuple[int, ...]:
        """Tail layout: margin + TAIL_START + data + END + margin."""
        if len(data) != PAYLOAD_BITS:
            raise ValueError(f"Payload must be {PAYLOAD_BITS} bits, got {len(data)}")
        return tuple(margin) + TAIL_START + tuple(data) + END_MARKER + tuple(margin)

    @staticmethod
    def head_bits(data: Sequence[int], margin: Sequence[int] = (1,)) -> Tuple[int, ...]:
        """Head layout: margin + END + data + HEAD_START + margin."""
        if len(data) != PAYLOAD_BITS:
            raise ValueError(f"Payload must be {PAYLOAD_BITS} bits, got {len(data)}")
        return tuple(margin) + END_MARKER + tuple(data) + HEAD_START + tuple(margin)

    @staticmethod
    def binary_sequence(bits: Sequence[int], module_width: int = 20) -> np.ndarray:
        """
        Binary column sequence that decodes back to ``bits``.

        Bit 1 maps to binary 0 and bit 0 to binary 255.
        """
        values = np.array([0 if bit else 255 for bit in bits], dtype=np.int32)
        return np.repeat(values, module_width)

    @staticmethod
    def render_frame(
        bits: Sequence[int],
        module_width: int = 20,
        height: int = 1920,
        dark: int = 30,
        bright: int = 220,
    ) -> np.ndarray:
        """
        Render bits as a BGR frame of vertical bands.

        Bit 1 is a bright band and bit 0 a dark band, ``module_width``
        columns each.
        """
        columns = np.array([bright if bit else dark for bit in bits], dtype=np.uint8)
        row = np.repeat(columns, module_width)
        frame = np.empty((height, row.shape[0], 3), dtype=np.uint8)
        frame[:, :, :] = row[np.newaxis, :, np.newaxis]
        return frame
