"""
Shared FastAPI dependencies.
"""

from fastapi import Request

from models.consent import ClientContext
from services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_client_context(request: Request) -> ClientContext:
    """
    Request facts for consent capture.

    The first X-Forwarded-For hop is used only when the deployment sits
    behind a trusted proxy (api.trust_proxy_headers).
    """
    config = request.app.state.services.config
    ip = request.client.host if request.client else None

    if config.api.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            ip = first_hop

    return ClientContext(
        ip=ip,
        user_agent=request.headers.get("user-agent"),
        host=request.headers.get("host") or request.url.hostname,
    )
