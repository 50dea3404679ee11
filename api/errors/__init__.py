"""
API error handling.
"""

from api.errors.handlers import ErrorResponse, register_exception_handlers, status_code_for

__all__ = ['ErrorResponse', 'register_exception_handlers', 'status_code_for']
