"""
EA Builder Middleware Package
"""

from .logging import (
    ErrorLoggingMiddleware,
    RequestLoggingMiddleware,
    StructuredLoggingMiddleware,
)

__all__ = [
    "RequestLoggingMiddleware",
    "StructuredLoggingMiddleware",
    "ErrorLoggingMiddleware",
]
