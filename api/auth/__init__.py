"""
API key authentication for the admin endpoints.
"""

from api.auth.api_key import APIKeyRegistry, Principal, generate_api_key, hash_api_key
from api.auth.dependencies import get_current_principal, require_scope

__all__ = [
    'APIKeyRegistry',
    'Principal',
    'generate_api_key',
    'hash_api_key',
    'get_current_principal',
    'require_scope',
]
