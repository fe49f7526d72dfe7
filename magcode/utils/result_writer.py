"""
==============================================================================
Result Writer Module
==============================================================================

Writes the artifacts of a completed capture session to disk.

Files:
------
- magcode_{YYYY-MM-DD}_{HH-MM-SS}_{microseconds}_image_a.png
- magcode_{YYYY-MM-DD}_{HH-MM-SS}_{microseconds}_image_b.png
- magcode_{YYYY-MM-DD}_{HH-MM-SS}_{microseconds}.log (summary)

==============================================================================
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List

import cv2

if TYPE_CHECKING:
    from magcode.services.capture_session import SessionResult


# Module logger
logger = logging.getLogger(__name__)


class ResultWriter:
    """
    Writer for composite result files.

    Attributes:
        _directory: Output directory

    Example:
        >>> writer = ResultWriter(Path("storage/results"))
        >>> paths = writer.write(session.result)
    """

    def __init__(self, directory: Path) -> None:
        """
        Initialize the writer.

        Args:
            directory: Output directory (created if missing)
        """
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    def write(self, result: "SessionResult") -> List[Path]:
        """
        Write Image A, Image B and a text summary.

        Returns:
            Paths of the written files
        """
        stem = f"magcode_{result.completed_at.strftime('%Y-%m-%d_%H-%M-%S_%f')}"

        image_a_path = self._directory / f"{stem}_image_a.png"
        image_b_path = self._directory / f"{stem}_image_b.png"
        summary_path = self._directory / f"{stem}.log"

        cv2.imwrite(str(image_a_path), result.image_a)
        cv2.imwrite(str(image_b_path), result.image_b)
        summary_path.write_text(self._format_summary(result), encoding="utf-8")

        logger.info(f"💾 Result saved: {summary_path}")
        return [image_a_path, image_b_path, summary_path]

    @staticmethod
    def _format_summary(result: "SessionResult") -> str:
        images = result.images
        lines = [
            "=" * 60,
            "MAGCODE DETECTION RESULT",
            "=" * 60,
            f"Completed:      {result.completed_at.isoformat()}",
            f"Barcode:        {result.barcode.display_text}",
            f"Image A:        {images.image_a.shape[1]}x{images.image_a.shape[0]}",
            f"Image B:        {images.image_b.shape[1]}x{images.image_b.shape[0]}",
            "-" * 60,
            f"Head markers:   start bit {images.head_positions.start_bit_index}, "
            f"end bit {images.head_positions.end_bit_index}",
            f"Tail markers:   start bit {images.tail_positions.start_bit_index}, "
            f"end bit {images.tail_positions.end_bit_index}",
            "=" * 60,
        ]
        return "\n".join(lines) + "\n"
