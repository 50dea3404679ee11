"""
Tests for admin consent queries and retention cleanup.
"""

import csv
import io
from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import InvalidPayload, NotFound
from services.activity_log import ActivityLog
from services.consent_query import CSV_HEADER, ConsentQueryService
from services.retention import RetentionService

BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def queries(storage):
    return ConsentQueryService(storage.consents)


@pytest.fixture
def populated(storage, make_record):
    statuses = ["accepted", "rejected", "custom"]
    for i in range(30):
        storage.consents.insert(make_record(
            f"consent-{i:02d}",
            status=statuses[i % 3],
            ip="203.0.113.0" if i % 2 else "198.51.100.0",
            categories={"necessary": True, "analytics": i % 3 == 0},
            created_at=BASE + timedelta(hours=i),
        ))
    return storage


class TestSearch:

    def test_newest_first_pagination(self, queries, populated):
        page = queries.search(page=1, per_page=10)

        assert page.total == 30
        assert page.total_pages == 3
        assert [r.consent_id for r in page.items][:2] == ["consent-29", "consent-28"]

        last = queries.search(page=3, per_page=10)
        assert last.items[-1].consent_id == "consent-00"

    def test_substring_match_across_fields(self, queries, populated):
        assert queries.search("consent-1", per_page=25).total == 10
        assert queries.search("REJECTED", per_page=25).total == 10
        assert queries.search("198.51.100", per_page=25).total == 15

    def test_like_wildcards_are_literal(self, queries, populated):
        assert queries.search("%", per_page=10).total == 0

    def test_per_page_must_be_allowed_value(self, queries):
        with pytest.raises(InvalidPayload):
            queries.search(per_page=7)

    def test_empty_store(self, queries):
        page = queries.search()
        assert page.items == []
        assert page.total_pages == 1


class TestDetailAndStats:

    def test_get_all_records_for_id(self, queries, storage, make_record):
        storage.consents.insert(make_record("dup"))
        storage.consents.insert(make_record("dup", status="rejected", created_at=BASE + timedelta(days=60)))

        records = queries.get("dup")

        assert [r.status for r in records] == ["accepted", "rejected"]

    def test_get_missing(self, queries):
        with pytest.raises(NotFound):
            queries.get("missing")

    def test_stats(self, queries, populated):
        stats = queries.stats(now=BASE + timedelta(days=20))

        assert stats.total == 30
        assert stats.last_30_days == 30
        assert stats.by_status == {"accepted": 10, "rejected": 10, "custom": 10}
        assert stats.accepted_by_category == {"necessary": 30, "analytics": 10}

    def test_stats_recent_window(self, queries, populated):
        assert queries.stats(now=BASE + timedelta(days=60)).last_30_days == 0


class TestExport:

    def test_csv_rows_newest_first(self, queries, populated):
        content = "".join(queries.export_csv())
        rows = list(csv.reader(io.StringIO(content)))

        assert rows[0] == CSV_HEADER
        assert len(rows) == 31
        assert rows[1][1] == "consent-29"
        assert rows[1][0] == "2024-03-02 05:00:00"
        assert rows[1][6] == "necessary"
        assert rows[-1][1] == "consent-00"
        assert rows[-1][6] == "analytics, necessary"

    def test_csv_filtered(self, queries, populated):
        rows = list(csv.reader(io.StringIO("".join(queries.export_csv("custom")))))
        assert len(rows) == 11


class TestRetention:

    @pytest.fixture
    def retention(self, storage, config):
        return RetentionService(storage.consents, config.retention, ActivityLog(storage.activity))

    def test_deletes_only_expired_records(self, retention, storage, make_record):
        now = datetime(2025, 6, 1, tzinfo=timezone.utc)
        storage.consents.insert(make_record("old", created_at=now - timedelta(days=400)))
        storage.consents.insert(make_record("edge", created_at=now - timedelta(days=365)))
        storage.consents.insert(make_record("new", created_at=now - timedelta(days=10)))

        deleted = retention.purge_expired(now=now)

        assert deleted == 1
        assert storage.consents.find_by_consent_id("old") == []
        assert len(storage.consents.find_by_consent_id("edge")) == 1
        assert len(storage.consents.find_by_consent_id("new")) == 1
        assert "Retention cleanup deleted 1" in storage.activity.recent(1)[0].message

    def test_nothing_to_delete_leaves_no_activity(self, retention, storage, make_record):
        storage.consents.insert(make_record("new"))

        assert retention.purge_expired(now=BASE + timedelta(days=1)) == 0
        assert storage.activity.recent(10) == []

    def test_retention_period_cannot_be_shortened(self):
        from pydantic import ValidationError
        from core.config import RetentionConfig

        with pytest.raises(ValidationError):
            RetentionConfig(consent_days=30)
