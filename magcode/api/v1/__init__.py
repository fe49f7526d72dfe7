"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- detection: Capture session control and results
- decode: Stateless single-frame analysis

==============================================================================
"""

from . import health, detection, decode

__all__ = ["health", "detection", "decode"]
