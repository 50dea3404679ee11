"""
Typed views over the key-value settings store: scanner settings and
the tracked cookie registry.
"""

import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from models.cookie import TrackedCookie
from models.settings import SCANNER_SETTINGS_KEY, ScannerSettings

logger = logging.getLogger(__name__)

TRACKED_COOKIES_KEY = "tracked_cookies"


class ScannerSettingsStore:
    """Scanner settings: stored overrides layered over configured defaults."""

    def __init__(self, settings_repository, scan_config):
        self.settings = settings_repository
        self.scan_config = scan_config

    def get(self) -> ScannerSettings:
        defaults = ScannerSettings.from_config(self.scan_config)
        stored = self.settings.get(SCANNER_SETTINGS_KEY)
        if not isinstance(stored, dict):
            return defaults
        try:
            return ScannerSettings.model_validate({**defaults.model_dump(), **stored})
        except ValidationError as e:
            logger.error(f"Stored scanner settings are invalid, using defaults: {e}")
            return defaults

    def update(self, changes: Mapping[str, Any]) -> ScannerSettings:
        """
        Validate and persist a partial update.

        Raises:
            pydantic.ValidationError: A changed value is invalid
        """
        current = self.get()
        updated = ScannerSettings.model_validate({**current.model_dump(), **dict(changes)})
        self.settings.set(SCANNER_SETTINGS_KEY, updated.model_dump())
        logger.info(f"Scanner settings updated: {updated.model_dump()}")
        return updated


class TrackedCookieStore:
    """The registry of cookies the scanner has already seen, keyed by name."""

    def __init__(self, settings_repository):
        self.settings = settings_repository

    def _raw(self) -> Dict[str, Any]:
        raw = self.settings.get(TRACKED_COOKIES_KEY) or {}
        return raw if isinstance(raw, dict) else {}

    def names(self) -> set:
        return set(self._raw().keys())

    def load(self) -> Dict[str, TrackedCookie]:
        cookies = {}
        for name, data in self._raw().items():
            try:
                cookies[name] = TrackedCookie.model_validate(data)
            except ValidationError as e:
                logger.warning(f"Skipping unreadable tracked cookie '{name}': {e}")
        return cookies

    def add(self, new_cookies: Mapping[str, TrackedCookie]) -> None:
        """
        Write the registry once: every previous entry untouched plus the new ones.
        """
        registry = self._raw()
        for name, cookie in new_cookies.items():
            registry[name] = cookie.model_dump(mode="json")
        self.settings.set(TRACKED_COOKIES_KEY, registry)
