"""
Storage bundle: the repositories plus the scan lock for one backend.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from core.exceptions import ScanInProgress
from database.connection import DatabaseConnection
from database.memory import (
    InMemoryActivityLogRepository,
    InMemoryConsentRepository,
    InMemorySettingsRepository,
)
from database.repositories import ActivityLogRepository, ConsentRepository, SettingsRepository

logger = logging.getLogger(__name__)

MEMORY_URL_SCHEME = "memory://"

# pg_try_advisory_lock key reserved for cookie scans
SCAN_LOCK_KEY = 712_001


class Storage:
    """Repositories for one backend plus its scan serialization."""

    backend = "abstract"

    def __init__(self, consents, activity, settings):
        self.consents = consents
        self.activity = activity
        self.settings = settings

    def scan_lock(self):
        """Context manager held for the duration of a scan."""
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MemoryStorage(Storage):
    backend = "memory"

    def __init__(self):
        super().__init__(
            InMemoryConsentRepository(),
            InMemoryActivityLogRepository(),
            InMemorySettingsRepository(),
        )
        self._scan_mutex = threading.Lock()

    @contextmanager
    def scan_lock(self) -> Iterator[None]:
        if not self._scan_mutex.acquire(blocking=False):
            raise ScanInProgress()
        try:
            yield
        finally:
            self._scan_mutex.release()

    def ping(self) -> bool:
        return True


class PostgresStorage(Storage):
    backend = "postgresql"

    def __init__(self, db_connection: DatabaseConnection):
        super().__init__(
            ConsentRepository(db_connection),
            ActivityLogRepository(db_connection),
            SettingsRepository(db_connection),
        )
        self.db = db_connection

    def scan_lock(self):
        return self.db.advisory_lock(SCAN_LOCK_KEY)

    def ping(self) -> bool:
        return self.db.ping()

    def close(self) -> None:
        self.db.close_all_connections()


def create_storage(database_config) -> Storage:
    """
    Build the storage backend selected by DatabaseConfig.url.

    Args:
        database_config: DatabaseConfig instance

    Returns:
        MemoryStorage for memory:// URLs, PostgresStorage otherwise
    """
    url = database_config.url
    if url.startswith(MEMORY_URL_SCHEME):
        logger.warning("Using in-memory storage; consent records will not survive a restart")
        return MemoryStorage()

    db_connection = DatabaseConnection(
        url,
        min_connections=database_config.min_connections,
        max_connections=database_config.max_connections,
    )
    return PostgresStorage(db_connection)
