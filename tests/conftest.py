"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides capture session, client, synthetic frame and barcode reader
fixtures.

==============================================================================
"""

import os

# Frames in tests arrive faster than a real camera delivers them
os.environ.setdefault("MAGCODE_MIN_FRAME_INTERVAL_MS", "0")

import pytest
from typing import Generator, List, Tuple

import numpy as np
from fastapi.testclient import TestClient

from magcode.main import app
from magcode.decoder import BarcodeReadResult, FrameDecoder, SyntheticFrameFactory
from magcode.services import CaptureSession, init_capture_session
from magcode.utils import ImageCodec
from magcode.websockets.capture import get_barcode_reader


# ============================================================================
# BIT PATTERNS
# ============================================================================

# 42 payload bits without any marker substring and no run longer than 3
PAYLOAD = tuple(int(c) for c in "1100" * 10 + "11")

# Same constraints, different content
ALT_PAYLOAD = tuple(int(c) for c in "1001" * 10 + "10")

# 54 bits with no marker layout at all
SKIP_BITS = tuple(int(c) for c in "1100" * 13 + "11")


# ============================================================================
# EAN-13 HELPERS
# ============================================================================

EAN_L_CODES = [
    "0001101", "0011001", "0010011", "0111101", "0100011",
    "0110001", "0101111", "0111011", "0110111", "0001011",
]
EAN_PARITY = [
    "LLLLLL", "LLGLGG", "LLGGLG", "LLGGGL", "LGLLGG",
    "LGGLLG", "LGGGLL", "LGLGLG", "LGLGGL", "LGGLGL",
]


def _r_code(digit: int) -> str:
    return "".join("1" if c == "0" else "0" for c in EAN_L_CODES[digit])


def ean13_halves(code: str) -> Tuple[str, str]:
    """Left and right 42-module halves of an EAN-13 symbol."""
    digits = [int(c) for c in code]
    parity = EAN_PARITY[digits[0]]

    left = ""
    for digit, kind in zip(digits[1:7], parity):
        left += EAN_L_CODES[digit] if kind == "L" else _r_code(digit)[::-1]

    right = "".join(_r_code(digit) for digit in digits[7:])
    return left, right


def ean13_frame_bits(code: str) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """
    Head and tail bit layouts that composite into a readable EAN-13.

    The composite is rotated 180 degrees, so each half is carried reversed:
    the head frame holds the left half, the tail frame the right half.
    """
    left, right = ean13_halves(code)
    head_data = [int(c) for c in reversed(left)]
    tail_data = [int(c) for c in reversed(right)]
    return (
        SyntheticFrameFactory.head_bits(head_data),
        SyntheticFrameFactory.tail_bits(tail_data),
    )


# ============================================================================
# READER FIXTURES
# ============================================================================

class StubBarcodeReader:
    """Reader returning a fixed result and recording the images it saw."""

    def __init__(self, result: BarcodeReadResult):
        self.result = result
        self.images: List[np.ndarray] = []

    def read(self, image: np.ndarray) -> BarcodeReadResult:
        self.images.append(image)
        return self.result


@pytest.fixture
def stub_reader() -> StubBarcodeReader:
    """Reader that always decodes a fixed EAN-13."""
    return StubBarcodeReader(BarcodeReadResult.decoded("4006381333931", "EAN13"))


@pytest.fixture
def failing_reader() -> StubBarcodeReader:
    """Reader that never finds a barcode."""
    return StubBarcodeReader(BarcodeReadResult.failed("No barcode found"))


@pytest.fixture
def zbar():
    """Skip the test when the zbar shared library cannot be loaded."""
    try:
        from pyzbar import pyzbar
    except (ImportError, OSError) as e:
        pytest.skip(f"zbar unavailable: {e}")
    return pyzbar


# ============================================================================
# SESSION FIXTURES
# ============================================================================

@pytest.fixture
def decoder() -> FrameDecoder:
    """Decoder for 1080 px wide frames."""
    return FrameDecoder(expected_width=1080)


@pytest.fixture
def session(decoder: FrameDecoder, stub_reader: StubBarcodeReader) -> CaptureSession:
    """Idle capture session without frame rate limiting."""
    return CaptureSession(decoder=decoder, reader=stub_reader, min_frame_interval=0)


@pytest.fixture(scope="function")
def client(session: CaptureSession, stub_reader: StubBarcodeReader) -> Generator[TestClient, None, None]:
    """Create test client bound to a fresh capture session."""
    init_capture_session(session)
    app.dependency_overrides[get_barcode_reader] = lambda: stub_reader

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# FRAME FIXTURES
# ============================================================================

@pytest.fixture
def tail_frame() -> np.ndarray:
    """1920x1080 frame classified as TAIL."""
    return SyntheticFrameFactory.render_frame(SyntheticFrameFactory.tail_bits(PAYLOAD))


@pytest.fixture
def head_frame() -> np.ndarray:
    """1920x1080 frame classified as HEAD."""
    return SyntheticFrameFactory.render_frame(SyntheticFrameFactory.head_bits(PAYLOAD))


@pytest.fixture
def alt_head_frame() -> np.ndarray:
    """HEAD frame with a different payload."""
    return SyntheticFrameFactory.render_frame(SyntheticFrameFactory.head_bits(ALT_PAYLOAD))


@pytest.fixture
def skip_frame() -> np.ndarray:
    """Striped frame without a marker layout."""
    return SyntheticFrameFactory.render_frame(SKIP_BITS)


@pytest.fixture
def ean13_frames() -> Tuple[np.ndarray, np.ndarray]:
    """(head, tail) frames carrying EAN-13 4006381333931."""
    head_bits, tail_bits = ean13_frame_bits("4006381333931")
    return (
        SyntheticFrameFactory.render_frame(head_bits),
        SyntheticFrameFactory.render_frame(tail_bits),
    )


@pytest.fixture
def encode_frame():
    """Encode a frame as a base64 PNG string."""
    return ImageCodec.encode_base64_png
