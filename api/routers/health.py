"""
Health check endpoint.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from api.dependencies import get_services
from core.logging_config import APP_VERSION
from services.container import Services

router = APIRouter()


@router.get("/health", summary="Service health")
def health(services: Services = Depends(get_services)):
    storage_ok = services.storage.ping()
    return JSONResponse(
        status_code=status.HTTP_200_OK if storage_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if storage_ok else "degraded",
            "version": APP_VERSION,
            "storage": {
                "backend": services.storage.backend,
                "ok": storage_ok,
            },
        },
    )
