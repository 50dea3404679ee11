"""
Wires services to a Config and a Storage backend.

The API, the CLI and the scheduler all build their services here so
every entry point shares the same collaborators.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from database.storage import Storage, create_storage
from services.activity_log import ActivityLog
from services.banner_integration import BannerIntegration, SettingsStoreBannerIntegration
from services.consent_query import ConsentQueryService
from services.consent_recorder import ConsentRecorder
from services.cookie_discovery import CookieDiscovery
from services.notification_service import NotificationService
from services.proof_generator import ProofGenerator
from services.retention import RetentionService
from services.scan_service import ScanService
from services.settings_store import ScannerSettingsStore, TrackedCookieStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: object
    storage: Storage
    activity_log: ActivityLog
    recorder: ConsentRecorder
    queries: ConsentQueryService
    proofs: ProofGenerator
    scanner_settings: ScannerSettingsStore
    tracked_cookies: TrackedCookieStore
    scanner: ScanService
    retention: RetentionService
    notifications: NotificationService

    def close(self) -> None:
        self.storage.close()


def build_services(
    config,
    storage: Optional[Storage] = None,
    banner: Optional[BannerIntegration] = None,
) -> Services:
    """
    Build every service for one process.

    Args:
        config: Root Config
        storage: Storage backend (created from config.database when omitted)
        banner: Banner integration (settings-store integration when omitted)
    """
    storage = storage or create_storage(config.database)
    activity_log = ActivityLog(storage.activity)

    if banner is None:
        banner = SettingsStoreBannerIntegration(storage.settings, activity_log)

    scanner_settings = ScannerSettingsStore(storage.settings, config.scan)
    tracked_cookies = TrackedCookieStore(storage.settings)
    notifications = NotificationService(
        config.notification,
        site_name=config.site_name,
        site_url=config.scan.site_url,
        activity_log=activity_log,
    )

    scanner = ScanService(
        discovery=CookieDiscovery(config.scan),
        tracked_store=tracked_cookies,
        settings_store=scanner_settings,
        activity_log=activity_log,
        scan_lock=storage.scan_lock,
        banner=banner,
        notifier=notifications,
    )

    logger.info(f"Services initialized with {storage.backend} storage")
    return Services(
        config=config,
        storage=storage,
        activity_log=activity_log,
        recorder=ConsentRecorder(storage.consents),
        queries=ConsentQueryService(storage.consents),
        proofs=ProofGenerator(storage.consents, config),
        scanner_settings=scanner_settings,
        tracked_cookies=tracked_cookies,
        scanner=scanner,
        retention=RetentionService(storage.consents, config.retention, activity_log),
        notifications=notifications,
    )
