"""
Data models for the consent logger.
"""

from .consent import (
    ConsentRecord,
    ConsentReceipt,
    ConsentStatus,
    ClientContext,
    ConsentPage,
    ConsentStats,
    derive_status,
)
from .cookie import CookieCategory, CookieSource, DiscoveredCookie, TrackedCookie, ScanOutcome
from .activity import ActivityLogEntry
from .settings import ScannerSettings

__all__ = [
    'ConsentRecord',
    'ConsentReceipt',
    'ConsentStatus',
    'ClientContext',
    'ConsentPage',
    'ConsentStats',
    'derive_status',
    'CookieCategory',
    'CookieSource',
    'DiscoveredCookie',
    'TrackedCookie',
    'ScanOutcome',
    'ActivityLogEntry',
    'ScannerSettings',
]
