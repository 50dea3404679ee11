"""
FastAPI authentication dependencies.
"""

from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader

from api.auth.api_key import APIKeyRegistry, Principal
from core.exceptions import Forbidden, Unauthorized

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_key_registry(request: Request) -> APIKeyRegistry:
    return request.app.state.api_keys


async def get_current_principal(
    api_key: Optional[str] = Security(api_key_header),
    registry: APIKeyRegistry = Depends(get_key_registry),
) -> Principal:
    """
    Get the caller identified by the X-API-Key header.

    Raises:
        Unauthorized: Key missing or unknown
    """
    if not api_key:
        raise Unauthorized("Missing API key")

    principal = registry.authenticate(api_key)
    if principal is None:
        raise Unauthorized("Invalid API key")
    return principal


def require_scope(required_scope: str):
    """
    Dependency factory for scope-based access control.

    Args:
        required_scope: Required scope

    Returns:
        Dependency function
    """
    async def scope_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_scope(required_scope):
            raise Forbidden(required_scope)
        return principal

    return scope_checker
