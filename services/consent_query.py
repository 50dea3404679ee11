"""
Admin read side over stored consent records: search, pagination,
detail lookup, CSV export and dashboard statistics.
"""

import csv
import io
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

from core.exceptions import InvalidPayload, NotFound
from models.consent import ConsentPage, ConsentRecord, ConsentStats

logger = logging.getLogger(__name__)

PER_PAGE_OPTIONS = (10, 25, 50, 100)
DEFAULT_PER_PAGE = 10
STATS_RECENT_DAYS = 30
EXPORT_BATCH_SIZE = 500

CSV_HEADER = [
    "Date (UTC)", "Consent ID", "Domain", "Status", "IP Address",
    "Country", "Accepted Categories", "User Agent",
]


class ConsentQueryService:
    """Queries for the admin interface."""

    def __init__(self, consent_repository):
        self.consents = consent_repository

    def search(self, search: str = "", page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> ConsentPage:
        """
        One page of records matching a substring, newest first.

        Raises:
            InvalidPayload: per_page is not one of 10, 25, 50, 100
        """
        if per_page not in PER_PAGE_OPTIONS:
            raise InvalidPayload(
                f"per_page must be one of {PER_PAGE_OPTIONS}",
                details={"field": "per_page"}
            )
        page = max(page, 1)
        search = (search or "").strip()

        total = self.consents.count(search)
        items = self.consents.search(search, limit=per_page, offset=(page - 1) * per_page)
        return ConsentPage(
            items=items,
            total=total,
            page=page,
            per_page=per_page,
            total_pages=max(1, math.ceil(total / per_page)),
        )

    def get(self, consent_id: str) -> List[ConsentRecord]:
        """
        All records stored under a consent id, earliest first.

        Raises:
            NotFound: No record has this consent id
        """
        records = self.consents.find_by_consent_id(consent_id)
        if not records:
            raise NotFound("Consent log", consent_id)
        return records

    def stats(self, now: Optional[datetime] = None) -> ConsentStats:
        now = now or datetime.now(timezone.utc)
        return ConsentStats(
            total=self.consents.count(),
            last_30_days=self.consents.count(since=now - timedelta(days=STATS_RECENT_DAYS)),
            by_status=self.consents.count_by_status(),
            accepted_by_category=self.consents.count_accepted_by_category(),
        )

    def _iter_records(self, search: str, first_batch: List[ConsentRecord]) -> Iterator[ConsentRecord]:
        batch, offset = first_batch, 0
        while True:
            yield from batch
            if len(batch) < EXPORT_BATCH_SIZE:
                return
            offset += EXPORT_BATCH_SIZE
            batch = self.consents.search(search, limit=EXPORT_BATCH_SIZE, offset=offset)

    def export_csv(self, search: str = "") -> Iterator[str]:
        """
        CSV export of matching records, newest first, as text chunks.

        The header row comes first; each following chunk holds one record.
        The first batch is read before returning, so storage errors
        surface before any output is produced.
        """
        search = (search or "").strip()
        first_batch = self.consents.search(search, limit=EXPORT_BATCH_SIZE, offset=0)
        return self._csv_chunks(self._iter_records(search, first_batch))

    def _csv_chunks(self, records: Iterator[ConsentRecord]) -> Iterator[str]:
        buffer = io.StringIO()
        writer = csv.writer(buffer)

        def flush() -> str:
            value = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate(0)
            return value

        writer.writerow(CSV_HEADER)
        yield flush()

        exported = 0
        for record in records:
            created = record.created_at
            if created.tzinfo is not None:
                created = created.astimezone(timezone.utc)
            writer.writerow([
                created.strftime("%Y-%m-%d %H:%M:%S"),
                record.consent_id,
                record.domain,
                record.status,
                record.ip,
                record.country,
                ", ".join(sorted(record.accepted_categories())),
                record.user_agent,
            ])
            exported += 1
            yield flush()

        logger.info(f"Exported {exported} consent record(s) to CSV")
