"""
Consent record retention.

Records are kept for at least the configured retention period (never
less than 365 days) and only deleted after it has elapsed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class RetentionService:

    def __init__(self, consent_repository, retention_config, activity_log):
        self.consents = consent_repository
        self.config = retention_config
        self.activity = activity_log

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=self.config.consent_days)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete consent records older than the retention period.

        Returns:
            Number of records deleted
        """
        cutoff = self.cutoff(now)
        deleted = self.consents.delete_older_than(cutoff)
        logger.info(f"Retention cleanup removed {deleted} record(s) created before {cutoff.isoformat()}")
        if deleted:
            self.activity.log(
                f"Retention cleanup deleted {deleted} consent record(s) older than "
                f"{self.config.consent_days} days"
            )
        return deleted
