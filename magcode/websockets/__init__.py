"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for stripe capture.

Handlers:
---------
- capture: Head/tail frame detection with pushed results

==============================================================================
"""

from .capture import router as capture_router

__all__ = ["capture_router"]
