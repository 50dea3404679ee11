"""
FastAPI application main entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from api.auth.api_key import APIKeyRegistry
from api.errors.handlers import register_exception_handlers
from api.middleware.logging import LoggingMiddleware
from api.routers import admin, consent, cookies, health
from core.config import Config, get_config, init_config
from core.logging_config import APP_VERSION, configure_logging
from services.container import Services, build_services
from services.scheduler import ConsentLoggerScheduler

logger = logging.getLogger(__name__)

DESCRIPTION = """
## Consent Logger API

Records cookie consent decisions for GDPR accountability, produces
proof-of-consent documents and discovers the cookies a site sets.

### Authentication

`POST /api/v1/consent` is public; the cookie banner calls it from the
visitor's browser. Every `/api/v1/admin` endpoint requires an
`X-API-Key` header.

### Error Responses

All errors follow a standardized format:

```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable error message",
    "details": {},
    "timestamp": 1234567890.123,
    "request_id": "uuid"
  }
}
```
"""


def _resolve_config() -> Config:
    try:
        return get_config()
    except RuntimeError:
        # Fresh worker process (reload or multiple workers)
        return init_config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.
    """
    config = app.state.services.config
    logger.info("Starting Consent Logger API")
    logger.info(f"Environment: {config.environment}")

    scheduler = app.state.scheduler
    if scheduler is not None:
        scheduler.start()

    yield

    logger.info("Shutting down Consent Logger API")
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    app.state.services.close()


def create_app(
    config: Optional[Config] = None,
    services: Optional[Services] = None,
    run_scheduler: bool = False,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        config: Root Config (the global config when omitted)
        services: Prebuilt services (built from config when omitted)
        run_scheduler: Run the daily scan and retention jobs in this process

    Returns:
        Configured FastAPI application instance
    """
    if config is None:
        config = services.config if services is not None else _resolve_config()
    configure_logging(config.monitoring, config.environment)

    if services is None:
        services = build_services(config)

    app = FastAPI(
        title="Consent Logger API",
        description=DESCRIPTION,
        version=APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Consent",
                "description": "Consent capture from the cookie banner"
            },
            {
                "name": "Consent Logs",
                "description": "Search, export and proof of stored consent records"
            },
            {
                "name": "Cookie Scanner",
                "description": "Cookie discovery, tracked cookies and scanner settings"
            },
            {
                "name": "Health",
                "description": "System health"
            }
        ]
    )

    app.state.services = services
    app.state.api_keys = APIKeyRegistry(config.auth)
    app.state.scheduler = None
    if run_scheduler:
        app.state.scheduler = ConsentLoggerScheduler(
            services.scanner,
            services.scanner_settings,
            retention_service=services.retention,
            retention_config=config.retention,
        )

    if config.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST", "PUT"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"]
        )
        logger.info(f"CORS enabled for {', '.join(config.api.cors_origins)}")

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(LoggingMiddleware)

    app.include_router(consent.router, prefix="/api/v1/consent", tags=["Consent"])
    app.include_router(admin.router, prefix="/api/v1/admin", tags=["Consent Logs"])
    app.include_router(cookies.router, prefix="/api/v1/admin", tags=["Cookie Scanner"])
    app.include_router(health.router, prefix="/api/v1", tags=["Health"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Consent Logger",
            "version": APP_VERSION,
            "docs": "/api/docs",
            "health": "/api/v1/health"
        }

    register_exception_handlers(app)

    logger.info("FastAPI application created successfully")
    return app
