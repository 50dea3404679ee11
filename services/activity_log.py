"""
Activity log service.

Operational trail of scans, integrations, notifications and cleanups.
Write failures are logged and never raised: the trail is operational
data, not consent data.
"""

import logging
from datetime import datetime, timezone
from typing import List

from core.exceptions import StorageFailure
from models.activity import ActivityLogEntry

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 100


class ActivityLog:
    """Append-only activity trail over an activity repository."""

    def __init__(self, repository):
        self.repository = repository

    def log(self, message: str) -> None:
        logger.info(f"Activity: {message}")
        try:
            self.repository.append(message, datetime.now(timezone.utc))
        except StorageFailure as e:
            logger.error(f"Could not record activity '{message}': {e}")

    def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[ActivityLogEntry]:
        """Newest entries first."""
        return self.repository.recent(limit)
