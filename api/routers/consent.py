"""
Public consent capture endpoint called by the cookie banner.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from api.dependencies import get_client_context, get_services
from models.consent import ClientContext, ConsentReceipt
from services.container import Services

router = APIRouter()


@router.post(
    "",
    response_model=ConsentReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Record a consent decision",
)
def record_consent(
    payload: Any = Body(None, examples=[{
        "status": "accepted",
        "categories": {"necessary": True, "analytics": True, "advertisement": False},
        "consentId": "c0ffee00-0000-4000-8000-000000000001",
    }]),
    client: ClientContext = Depends(get_client_context),
    services: Services = Depends(get_services),
) -> ConsentReceipt:
    """
    Store one consent event.

    Unauthenticated: the banner posts here from visitors' browsers. The
    caller address is anonymized before anything is stored.
    """
    return services.recorder.record_consent(payload, client)
