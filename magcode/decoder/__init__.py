"""
==============================================================================
Decoder Package - Optical Stripe Decoding
==============================================================================

Pulse-width decoding of striped frames with OpenCV and numpy.

Modules:
--------
- signal: Column signal extraction and adaptive binarization
- bitstream: Run-length bit decoder
- markers: Marker matching and frame classification
- compositor: Dual-frame compositing into Image A / Image B
- reader: Barcode reader adapter (pyzbar)
- frame_decoder: Full per-frame pipeline
- synthetic: Synthetic stripe frames

==============================================================================
"""

from .bitstream import BitInterval, DecodeResult, bits_for_run_length, decode_bits
from .compositor import CompositeImages, DualFrameCompositor, normalize_stripes
from .frame_decoder import ClassifiedFrame, FrameDecoder
from .markers import (
    END_MARKER,
    HEAD_START,
    TAIL_START,
    FramePositions,
    FrameType,
    analyze_patterns,
    classify_frame,
    find_frame_positions,
    find_pattern,
)
from .reader import BarcodeReader, BarcodeReadResult, PyzbarBarcodeReader
from .signal import binarize_signal, extract_signal, segment_thresholds, suppress_noise
from .synthetic import SyntheticFrameFactory

__all__ = [
    # Signal
    "extract_signal",
    "segment_thresholds",
    "binarize_signal",
    "suppress_noise",
    # Bitstream
    "BitInterval",
    "DecodeResult",
    "bits_for_run_length",
    "decode_bits",
    # Markers
    "TAIL_START",
    "HEAD_START",
    "END_MARKER",
    "FrameType",
    "FramePositions",
    "find_pattern",
    "analyze_patterns",
    "classify_frame",
    "find_frame_positions",
    # Compositing
    "CompositeImages",
    "DualFrameCompositor",
    "normalize_stripes",
    # Pipeline
    "ClassifiedFrame",
    "FrameDecoder",
    # Reader
    "BarcodeReader",
    "BarcodeReadResult",
    "PyzbarBarcodeReader",
    # Testing
    "SyntheticFrameFactory",
]
