"""
Best-effort integration that pushes newly discovered cookies into an
external consent-banner configuration.

The scanner treats every integration as optional: failures are logged
by the caller and never propagated.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping

from models.cookie import CookieCategory, TrackedCookie

logger = logging.getLogger(__name__)

BANNER_COOKIE_LIST_KEY = "banner_cookie_list"
DEFAULT_DESCRIPTION = "Auto-discovered cookie"
SESSION_DURATION = "Session"


class BannerIntegration:
    """Interface: receive the cookies a scan just discovered."""

    name = "banner"

    def push_cookies(self, cookies: Mapping[str, TrackedCookie]) -> int:
        """
        Add cookies to the banner configuration.

        Returns:
            Number of cookies added
        """
        raise NotImplementedError


class NoopBannerIntegration(BannerIntegration):
    """Default when no banner configuration store is connected."""

    name = "noop"

    def push_cookies(self, cookies: Mapping[str, TrackedCookie]) -> int:
        logger.debug(f"No banner integration configured, skipping {len(cookies)} cookie(s)")
        return 0


class SettingsStoreBannerIntegration(BannerIntegration):
    """
    Maintains a banner cookie list in the key-value settings store.

    Layout: ``{category: {cookie_name: {name, description, duration, type,
    auto_added, added_date}}}``. Entries already present are left alone.
    """

    name = "settings-store"

    def __init__(self, settings_repository, activity_log):
        self.settings = settings_repository
        self.activity = activity_log

    def push_cookies(self, cookies: Mapping[str, TrackedCookie]) -> int:
        cookie_list = self.settings.get(BANNER_COOKIE_LIST_KEY) or {}
        added_date = datetime.now(timezone.utc).isoformat()
        added = 0

        for name, cookie in cookies.items():
            category = cookie.category.value if cookie.category else CookieCategory.FUNCTIONAL.value
            bucket = cookie_list.setdefault(category, {})
            if name in bucket:
                continue
            bucket[name] = {
                "name": name,
                "description": cookie.description or DEFAULT_DESCRIPTION,
                "duration": cookie.expires or SESSION_DURATION,
                "type": cookie.source.value,
                "auto_added": True,
                "added_date": added_date,
            }
            added += 1
            self.activity.log(f"Added cookie '{name}' to banner configuration in category '{category}'")

        if added:
            self.settings.set(BANNER_COOKIE_LIST_KEY, cookie_list)
        return added
