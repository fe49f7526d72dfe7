"""
==============================================================================
Core Package
==============================================================================

Core utilities and infrastructure for the application.

Modules:
--------
- exceptions: AppException class and error factory functions

Usage:
------
    from magcode.core import AppException

    # Or use exception factory functions via module
    from magcode.core import exceptions
    raise exceptions.result_not_ready()

==============================================================================
"""

from .exceptions import (
    AppException,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "register_exception_handlers",
]
