"""
==============================================================================
Utilities Package
==============================================================================

Utility classes for the application.

Modules:
--------
- image_codec: Base64/PNG conversions for frames and results
- result_writer: Composite result files

==============================================================================
"""

from .image_codec import ImageCodec
from .result_writer import ResultWriter

__all__ = [
    "ImageCodec",
    "ResultWriter",
]
