"""
API middleware components.
"""

from api.middleware.logging import LoggingMiddleware

__all__ = [
    'LoggingMiddleware',
]
