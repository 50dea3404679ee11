"""
Cookie scanner endpoints: tracked cookie registry, activity log,
manual scans and scanner settings.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from api.auth.api_key import SCOPE_SCANNER_READ, SCOPE_SCANNER_RUN, SCOPE_SCANNER_WRITE
from api.auth.dependencies import require_scope
from api.dependencies import get_services
from models.activity import ActivityLogEntry
from models.cookie import ScanOutcome, TrackedCookie
from models.settings import ScannerSettings
from services.activity_log import DEFAULT_RECENT_LIMIT
from services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter()


class ScanSummaryResponse(BaseModel):
    """Result of a manual scan."""
    trigger: str
    observed: int
    new_count: int
    new_cookies: List[TrackedCookie]
    fetch_failed: bool
    started_at: datetime
    finished_at: Optional[datetime] = None

    @classmethod
    def from_outcome(cls, outcome: ScanOutcome) -> "ScanSummaryResponse":
        return cls(
            trigger=outcome.trigger,
            observed=outcome.observed,
            new_count=outcome.new_count,
            new_cookies=sorted(outcome.new_cookies.values(), key=lambda c: c.name),
            fetch_failed=outcome.fetch_failed,
            started_at=outcome.started_at,
            finished_at=outcome.finished_at,
        )


class ScannerSettingsUpdate(BaseModel):
    """Partial scanner settings update; omitted fields keep their value."""
    scan_enabled: Optional[bool] = None
    scan_time: Optional[str] = Field(None, description="HH:MM, server time")
    email_notifications: Optional[bool] = None
    auto_categorize: Optional[bool] = None
    banner_integration: Optional[bool] = None


@router.get(
    "/cookies",
    response_model=List[TrackedCookie],
    dependencies=[Depends(require_scope(SCOPE_SCANNER_READ))],
)
def list_tracked_cookies(services: Services = Depends(get_services)):
    tracked = services.tracked_cookies.load()
    return sorted(tracked.values(), key=lambda c: c.name)


@router.get(
    "/activity",
    response_model=List[ActivityLogEntry],
    dependencies=[Depends(require_scope(SCOPE_SCANNER_READ))],
)
def recent_activity(
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=1000),
    services: Services = Depends(get_services),
):
    return services.activity_log.recent(limit)


@router.post(
    "/scanner/run",
    response_model=ScanSummaryResponse,
    dependencies=[Depends(require_scope(SCOPE_SCANNER_RUN))],
)
def run_scan(services: Services = Depends(get_services)):
    """Run a cookie scan now. Responds 409 while another scan is running."""
    outcome = services.scanner.run_scan(trigger="manual")
    return ScanSummaryResponse.from_outcome(outcome)


@router.get(
    "/scanner/settings",
    response_model=ScannerSettings,
    dependencies=[Depends(require_scope(SCOPE_SCANNER_READ))],
)
def get_scanner_settings(services: Services = Depends(get_services)):
    return services.scanner_settings.get()


@router.put(
    "/scanner/settings",
    response_model=ScannerSettings,
    dependencies=[Depends(require_scope(SCOPE_SCANNER_WRITE))],
)
def update_scanner_settings(
    update: ScannerSettingsUpdate,
    request: Request,
    services: Services = Depends(get_services),
):
    """Change scanner settings; a running scheduler picks up the new scan time."""
    settings = services.scanner_settings.update(update.model_dump(exclude_none=True))

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.reschedule(settings)
        logger.info("Daily cookie scan rescheduled after settings change")

    services.activity_log.log("Scanner settings updated")
    return settings
