"""
==============================================================================
Barcode Reader Adapter
==============================================================================

Hands the normalized stripe image (Image B) to a general-purpose barcode
reader and reports an explicit success/failure result.

Classes:
--------
- BarcodeReadResult: Typed outcome of one read
- BarcodeReader: Protocol for reader collaborators
- PyzbarBarcodeReader: zbar-backed reader (OpenCV + pyzbar)

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import cv2
import numpy as np
from pydantic import BaseModel, Field


# Module logger
logger = logging.getLogger(__name__)


DECODE_FAILED_TEXT = "Decoding failed, please retest"


class BarcodeReadResult(BaseModel):
    """
    Outcome of reading one barcode image.

    Attributes:
        success: True when a symbol was decoded
        text: Decoded payload
        symbology: Symbology name reported by the reader (e.g. "EAN13")
        error: Failure description
    """
    success: bool
    text: Optional[str] = Field(default=None)
    symbology: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)

    @classmethod
    def decoded(cls, text: str, symbology: str) -> "BarcodeReadResult":
        """Create a successful result."""
        return cls(success=True, text=text, symbology=symbology)

    @classmethod
    def failed(cls, error: str) -> "BarcodeReadResult":
        """Create a failed result."""
        return cls(success=False, error=error)

    @property
    def display_text(self) -> str:
        """Human-readable outcome."""
        if self.success:
            return f"{self.text} (Format: {self.symbology})"
        return DECODE_FAILED_TEXT


class BarcodeReader(Protocol):
    """Reader collaborator: decodes one image into a typed result."""

    def read(self, image: np.ndarray) -> BarcodeReadResult:
        ...


class PyzbarBarcodeReader:
    """
    Barcode reader backed by zbar through pyzbar.

    Example:
        >>> reader = PyzbarBarcodeReader()
        >>> result = reader.read(image_b)
        >>> result.display_text
        '4006381333931 (Format: EAN13)'
    """

    @staticmethod
    def _to_gray(image: np.ndarray) -> np.ndarray:
        if image.ndim == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        return image

    def read(self, image: np.ndarray) -> BarcodeReadResult:
        """
        Decode the first barcode found in the image.

        Args:
            image: BGR or grayscale image

        Returns:
            BarcodeReadResult; failures never raise
        """
        if image is None or image.size == 0:
            return BarcodeReadResult.failed("Empty image")

        try:
            from pyzbar.pyzbar import decode

            barcodes = decode(self._to_gray(image))
        except Exception as e:
            logger.error(f"Decode error: {e}")
            return BarcodeReadResult.failed(str(e))

        if not barcodes:
            logger.warning("Barcode decoding failed: no symbol found")
            return BarcodeReadResult.failed("No barcode found")

        barcode = barcodes[0]
        text = barcode.data.decode("utf-8")
        logger.info(f"📦 Barcode decoded: Format={barcode.type}, Text={text}")
        return BarcodeReadResult.decoded(text, barcode.type)
