"""
==============================================================================
Signal Extraction & Adaptive Binarization
==============================================================================

Turns a camera frame into a two-level column signal.

Steps:
------
1. Weighted grayscale: gray = 0.299 R + 0.587 G + 0.114 B (truncated)
2. Column average over all rows -> 1-D signal, one value per column
3. Per-segment threshold: min + ratio * (max - min), recomputed per segment
4. Binarize: 255 where value < threshold, else 0
5. Noise suppression: short 255-runs become 0 (applied before bit decoding)

A trailing partial segment (narrower than the segment size) is never
thresholded and stays 0.

==============================================================================
"""

from __future__ import annotations

import logging

import numpy as np

from .runs import run_boundaries


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

GRAY_WEIGHTS = (0.299, 0.587, 0.114)  # R, G, B

DEFAULT_SEGMENT_SIZE = 135
DEFAULT_THRESHOLD_RATIO = 0.2
DEFAULT_NOISE_MAX_RUN = 3

BINARY_HIGH = 255
BINARY_LOW = 0


# =============================================================================
# SIGNAL EXTRACTOR
# =============================================================================

def grayscale_weighted(image: np.ndarray, channel_order: str = "BGR") -> np.ndarray:
    """
    Convert a frame to integer luminance with the weighted-average formula.

    OpenCV's cvtColor rounds; this truncates, so the two can differ by one
    gray level.

    Args:
        image: (H, W) gray frame or (H, W, C) color frame, C >= 3
        channel_order: "BGR" (OpenCV default) or "RGB"

    Returns:
        (H, W) int32 array
    """
    frame = np.asarray(image)

    if frame.ndim == 2:
        return frame.astype(np.int32)

    if frame.ndim != 3 or frame.shape[2] < 3:
        raise ValueError(f"Unsupported frame shape: {frame.shape}")

    order = channel_order.upper()
    if order == "BGR":
        b, g, r = frame[:, :, 0], frame[:, :, 1], frame[:, :, 2]
    elif order == "RGB":
        r, g, b = frame[:, :, 0], frame[:, :, 1], frame[:, :, 2]
    else:
        raise ValueError(f"Unsupported channel order: {channel_order}")

    wr, wg, wb = GRAY_WEIGHTS
    gray = (
        wr * r.astype(np.float64)
        + wg * g.astype(np.float64)
        + wb * b.astype(np.float64)
    )
    return gray.astype(np.int32)


def column_average(gray: np.ndarray) -> np.ndarray:
    """Mean of each column over all rows."""
    return np.asarray(gray, dtype=np.float64).mean(axis=0)


def extract_signal(image: np.ndarray, channel_order: str = "BGR") -> np.ndarray:
    """
    Convert a frame into its column-average luminance signal.

    The result always has one value per pixel column.
    """
    return column_average(grayscale_weighted(image, channel_order))


# =============================================================================
# ADAPTIVE BINARIZER
# =============================================================================

def segment_thresholds(
    signal: np.ndarray,
    segment_size: int = DEFAULT_SEGMENT_SIZE,
    ratio: float = DEFAULT_THRESHOLD_RATIO
) -> np.ndarray:
    """
    Compute one threshold per full segment of the signal.

    Args:
        signal: Column-average signal
        segment_size: Columns per segment
        ratio: Threshold position between the segment min and max

    Returns:
        Array of ``len(signal) // segment_size`` thresholds
    """
    values = np.asarray(signal, dtype=np.float64)
    num_segments = values.shape[0] // segment_size

    if num_segments == 0:
        return np.empty(0, dtype=np.float64)

    segments = values[: num_segments * segment_size].reshape(num_segments, segment_size)
    seg_min = segments.min(axis=1)
    seg_max = segments.max(axis=1)
    return seg_min + ratio * (seg_max - seg_min)


def binarize(
    signal: np.ndarray,
    thresholds: np.ndarray,
    segment_size: int = DEFAULT_SEGMENT_SIZE
) -> np.ndarray:
    """
    Binarize each segment against its own threshold.

    Columns darker than the threshold become 255. Columns past the last
    threshold's segment keep the default 0.
    """
    values = np.asarray(signal, dtype=np.float64)
    binary = np.zeros(values.shape[0], dtype=np.int32)

    for index, threshold in enumerate(thresholds):
        start = index * segment_size
        end = min(start + segment_size, values.shape[0])
        binary[start:end] = np.where(values[start:end] < threshold, BINARY_HIGH, BINARY_LOW)

    return binary


def binarize_signal(
    signal: np.ndarray,
    segment_size: int = DEFAULT_SEGMENT_SIZE,
    ratio: float = DEFAULT_THRESHOLD_RATIO
) -> np.ndarray:
    """Threshold and binarize a signal in one call."""
    thresholds = segment_thresholds(signal, segment_size, ratio)
    return binarize(signal, thresholds, segment_size)


def suppress_noise(
    binary: np.ndarray,
    max_run: int = DEFAULT_NOISE_MAX_RUN
) -> np.ndarray:
    """
    Rewrite short 255-runs to 0.

    Runs of 0 are never touched regardless of length.

    Args:
        binary: Two-level sequence in {0, 255}
        max_run: 255-runs of this length or shorter are cleared

    Returns:
        New sequence; the input is not modified
    """
    source = np.asarray(binary)
    cleaned = source.copy()

    if source.shape[0] == 0:
        return cleaned

    bounds = run_boundaries(source)
    suppressed = 0
    for start, end in zip(bounds[:-1], bounds[1:]):
        if source[start] == BINARY_HIGH and end - start <= max_run:
            cleaned[start:end] = BINARY_LOW
            suppressed += 1

    if suppressed:
        logger.debug(f"Suppressed {suppressed} short 255-runs")

    return cleaned
