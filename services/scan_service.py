"""
Cookie scan orchestration.

One scan: take the scan lock, gather cookies from every discovery
source, diff them against the tracked registry by name, classify and
stamp the new ones, write the registry once, then run the optional
banner integration and notification.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from core.exceptions import TransientFetchFailure
from models.cookie import DiscoveredCookie, ScanOutcome, TrackedCookie
from models.settings import ScannerSettings
from services.banner_integration import BannerIntegration, NoopBannerIntegration
from services.cookie_categorization import DEFAULT_CATEGORY, classify_cookie
from services.cookie_discovery import merge_discoveries

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanService:
    """Runs cookie scans; at most one at a time per storage backend."""

    def __init__(
        self,
        discovery,
        tracked_store,
        settings_store,
        activity_log,
        scan_lock: Callable,
        banner: Optional[BannerIntegration] = None,
        notifier=None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            discovery: CookieDiscovery
            tracked_store: TrackedCookieStore
            settings_store: ScannerSettingsStore, read once per scan
            activity_log: ActivityLog
            scan_lock: Callable returning the scan lock context manager
            banner: Optional banner integration (no-op by default)
            notifier: Optional NotificationService
            clock: Source of the current UTC time
        """
        self.discovery = discovery
        self.tracked = tracked_store
        self.settings_store = settings_store
        self.activity = activity_log
        self.scan_lock = scan_lock
        self.banner = banner or NoopBannerIntegration()
        self.notifier = notifier
        self.clock = clock

    def run_scan(self, trigger: str = "manual") -> ScanOutcome:
        """
        Run one scan to completion.

        Raises:
            ScanInProgress: Another scan holds the lock
            StorageFailure: The registry could not be read or written
        """
        with self.scan_lock():
            return self._run(trigger)

    def _run(self, trigger: str) -> ScanOutcome:
        settings = self.settings_store.get()
        outcome = ScanOutcome(trigger=trigger, started_at=self.clock())
        self.activity.log(f"Starting cookie scan ({trigger})")

        batches = []
        try:
            batches.append(self.discovery.fetch_response_cookies())
        except TransientFetchFailure as e:
            outcome.fetch_failed = True
            logger.warning(f"Site fetch failed, continuing with local sources: {e}")
            self.activity.log(f"Site fetch failed, continuing with local sources: {e.message}")
        batches.append(self.discovery.scan_scripts())
        batches.append(self.discovery.known_cookies())

        observed = merge_discoveries(batches)
        outcome.observed = len(observed)

        previous = self.tracked.names()
        new_names = [name for name in observed if name not in previous]

        if not new_names:
            self.activity.log("No new cookies found")
            outcome.finished_at = self.clock()
            return outcome

        self.activity.log(f"Found {len(new_names)} new cookies")
        discovered_at = self.clock()
        new_cookies: Dict[str, TrackedCookie] = {
            name: self._track(observed[name], settings, discovered_at)
            for name in new_names
        }
        self.tracked.add(new_cookies)
        outcome.new_cookies = new_cookies

        banner_integrated = False
        if settings.banner_integration:
            banner_integrated = self._integrate(new_cookies)

        if settings.email_notifications and self.notifier is not None:
            self.notifier.notify_new_cookies(new_cookies, banner_integrated)

        outcome.finished_at = self.clock()
        logger.info(
            f"Cookie scan ({trigger}) finished: {outcome.observed} observed, "
            f"{outcome.new_count} new"
        )
        return outcome

    def _track(
        self,
        cookie: DiscoveredCookie,
        settings: ScannerSettings,
        discovered_at: datetime
    ) -> TrackedCookie:
        if settings.auto_categorize:
            source = " ".join(filter(None, [cookie.source.value, cookie.component]))
            category = classify_cookie(cookie.name, {"description": cookie.description, "source": source})
        else:
            category = cookie.category_hint or DEFAULT_CATEGORY
        return TrackedCookie(**cookie.model_dump(), category=category, discovered_at=discovered_at)

    def _integrate(self, new_cookies: Dict[str, TrackedCookie]) -> bool:
        try:
            added = self.banner.push_cookies(new_cookies)
        except Exception as e:
            logger.exception(f"Banner integration '{self.banner.name}' failed")
            self.activity.log(f"Banner integration failed: {e}")
            return False
        if added:
            self.activity.log(f"Added {added} cookie(s) to banner configuration")
        return added > 0
