"""
Activity log and in-memory storage behaviour.
"""

import threading

from core.exceptions import ScanInProgress, StorageFailure
from database.storage import MemoryStorage, create_storage
from core.config import DatabaseConfig
from services.activity_log import ActivityLog


class TestActivityLog:

    def test_newest_first_with_limit(self, storage):
        log = ActivityLog(storage.activity)
        for i in range(5):
            log.log(f"entry {i}")

        entries = log.recent(3)

        assert [e.message for e in entries] == ["entry 4", "entry 3", "entry 2"]

    def test_write_failure_not_raised(self):
        class FailingRepository:
            def append(self, message, created_at):
                raise StorageFailure("Failed to write activity log")

        ActivityLog(FailingRepository()).log("Starting cookie scan (manual)")


class TestMemoryStorage:

    def test_create_storage_memory_url(self):
        assert isinstance(create_storage(DatabaseConfig(url="memory://")), MemoryStorage)

    def test_scan_lock_is_exclusive_across_threads(self, storage):
        results = []

        def contender():
            try:
                with storage.scan_lock():
                    results.append("acquired")
            except ScanInProgress:
                results.append("rejected")

        with storage.scan_lock():
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert results == ["rejected"]

        with storage.scan_lock():
            pass

    def test_settings_values_are_copies(self, storage):
        value = {"a": {"b": 1}}
        storage.settings.set("k", value)
        value["a"]["b"] = 2

        fetched = storage.settings.get("k")
        fetched["a"]["b"] = 3

        assert storage.settings.get("k") == {"a": {"b": 1}}

    def test_insert_assigns_increasing_ids(self, storage, make_record):
        first = storage.consents.insert(make_record("a"))
        second = storage.consents.insert(make_record("b"))

        assert (first.id, second.id) == (1, 2)
