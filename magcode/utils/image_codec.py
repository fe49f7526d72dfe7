"""
==============================================================================
Image Codec Module
==============================================================================

Conversions between transport encodings and OpenCV images.

==============================================================================
"""

from __future__ import annotations

import base64
import binascii
import logging

import cv2
import numpy as np

from magcode.core import exceptions


# Module logger
logger = logging.getLogger(__name__)


class ImageCodec:
    """Base64 / encoded-bytes conversions for frames and results."""

    @staticmethod
    def decode_bytes(data: bytes) -> np.ndarray:
        """
        Decode compressed image bytes (PNG, JPEG, ...) into a BGR image.

        Raises:
            AppException: INVALID_FRAME when the bytes are not an image
        """
        if not data:
            raise exceptions.invalid_frame("empty payload")

        nparr = np.frombuffer(data, np.uint8)
        frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

        if frame is None:
            raise exceptions.invalid_frame("could not decode image data")

        return frame

    @classmethod
    def decode_base64(cls, payload: str) -> np.ndarray:
        """
        Decode a base64 image, with or without a data-URL prefix.

        Raises:
            AppException: INVALID_FRAME for malformed payloads
        """
        if "," in payload and payload.strip().startswith("data:"):
            payload = payload.split(",", 1)[1]

        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise exceptions.invalid_frame(f"bad base64 data: {e}")

        return cls.decode_bytes(data)

    @staticmethod
    def encode_png(image: np.ndarray) -> bytes:
        """Encode an image as PNG bytes."""
        ok, buffer = cv2.imencode(".png", image)
        if not ok:
            raise exceptions.internal_error("PNG encoding failed")
        return buffer.tobytes()

    @classmethod
    def encode_base64_png(cls, image: np.ndarray) -> str:
        """Encode an image as a base64 PNG string."""
        return base64.b64encode(cls.encode_png(image)).decode("ascii")
