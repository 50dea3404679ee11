"""
PostgreSQL repositories for consent records, the activity log and settings.

Raw parameterized SQL over DatabaseConnection. Every driver error is
raised as StorageFailure so callers can tell a failed write from success.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json

from core.exceptions import StorageFailure
from core.sanitize import escape_like_pattern
from models.activity import ActivityLogEntry
from models.consent import ConsentRecord

logger = logging.getLogger(__name__)

CONSENT_COLUMNS = "id, consent_id, domain, status, ip, user_agent, country, categories, created_at"
SEARCH_COLUMNS = ("consent_id", "ip", "status", "domain")


def parse_categories(raw: Any) -> Dict[str, bool]:
    """Decode the stored categories JSON; unreadable values decode as empty."""
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw or "{}")
        except (TypeError, ValueError):
            logger.warning("Unreadable categories value on consent record")
            return {}
    if not isinstance(data, dict):
        return {}
    return {str(name): bool(value) for name, value in data.items()}


def serialize_categories(categories: Dict[str, bool]) -> str:
    return json.dumps(categories, sort_keys=True)


def row_to_consent(row: Dict[str, Any]) -> ConsentRecord:
    return ConsentRecord(
        id=row["id"],
        consent_id=row["consent_id"],
        domain=row["domain"] or "",
        status=row["status"],
        ip=row["ip"] or "",
        user_agent=row["user_agent"] or "",
        country=row["country"] or "",
        categories=parse_categories(row["categories"]),
        created_at=row["created_at"],
    )


class _PostgresRepository:
    """Shared plumbing: run a statement, translate driver errors."""

    def __init__(self, db_connection):
        """
        Args:
            db_connection: DatabaseConnection instance
        """
        self.db = db_connection

    def _execute(self, action: str, query: str, params: tuple = None, fetch: bool = True):
        try:
            return self.db.execute_query(query, params, fetch=fetch)
        except psycopg2.Error as e:
            logger.error(f"Failed to {action}: {e}")
            raise StorageFailure(f"Failed to {action}") from e


class ConsentRepository(_PostgresRepository):
    """Append-only store of consent records."""

    def insert(self, record: ConsentRecord) -> ConsentRecord:
        """
        Append one consent record.

        Returns:
            The record with its storage id
        """
        query = """
            INSERT INTO consent_records (
                consent_id, domain, status, ip, user_agent, country, categories, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """
        rows = self._execute(
            "store consent record",
            query,
            (
                record.consent_id,
                record.domain,
                record.status,
                record.ip,
                record.user_agent,
                record.country,
                serialize_categories(record.categories),
                record.created_at,
            ),
        )
        if not rows:
            raise StorageFailure("Consent insert returned no row id")
        return record.model_copy(update={"id": rows[0]["id"]})

    def find_by_consent_id(self, consent_id: str) -> List[ConsentRecord]:
        """All rows for a consent id, earliest first."""
        query = f"""
            SELECT {CONSENT_COLUMNS}
            FROM consent_records
            WHERE consent_id = %s
            ORDER BY created_at ASC, id ASC
        """
        rows = self._execute("load consent record", query, (consent_id,))
        return [row_to_consent(row) for row in rows]

    def _search_clause(self, search: str):
        if not search:
            return "", ()
        pattern = f"%{escape_like_pattern(search)}%"
        clause = " OR ".join(f"{column} ILIKE %s" for column in SEARCH_COLUMNS)
        return f"WHERE ({clause})", (pattern,) * len(SEARCH_COLUMNS)

    def search(
        self,
        search: str = "",
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[ConsentRecord]:
        """
        Substring search over consent id, ip, status and domain.

        Returns:
            Matching records, newest first
        """
        where, params = self._search_clause(search)
        query = f"""
            SELECT {CONSENT_COLUMNS}
            FROM consent_records
            {where}
            ORDER BY created_at DESC, id DESC
        """
        if limit is not None:
            query += " LIMIT %s OFFSET %s"
            params = params + (limit, offset)
        rows = self._execute("search consent records", query, params)
        return [row_to_consent(row) for row in rows]

    def count(self, search: str = "", since: Optional[datetime] = None) -> int:
        where, params = self._search_clause(search)
        if since is not None:
            where = f"{where} AND created_at >= %s" if where else "WHERE created_at >= %s"
            params = params + (since,)
        query = f"SELECT COUNT(*) AS total FROM consent_records {where}"
        rows = self._execute("count consent records", query, params)
        return int(rows[0]["total"]) if rows else 0

    def count_by_status(self) -> Dict[str, int]:
        query = """
            SELECT status, COUNT(*) AS total
            FROM consent_records
            GROUP BY status
        """
        rows = self._execute("count consent records by status", query)
        return {row["status"]: int(row["total"]) for row in rows}

    def count_accepted_by_category(self) -> Dict[str, int]:
        query = """
            SELECT c.key AS category, COUNT(*) AS total
            FROM consent_records r,
                 jsonb_each_text(r.categories::jsonb) AS c(key, value)
            WHERE c.value = 'true'
            GROUP BY c.key
        """
        rows = self._execute("count accepted categories", query)
        return {row["category"]: int(row["total"]) for row in rows}

    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete records created strictly before cutoff.

        Returns:
            Number of deleted rows
        """
        query = """
            WITH deleted AS (
                DELETE FROM consent_records
                WHERE created_at < %s
                RETURNING 1
            )
            SELECT COUNT(*) AS total FROM deleted
        """
        rows = self._execute("purge expired consent records", query, (cutoff,))
        return int(rows[0]["total"]) if rows else 0


class ActivityLogRepository(_PostgresRepository):
    """Append-only operational log."""

    def append(self, message: str, created_at: datetime) -> ActivityLogEntry:
        query = """
            INSERT INTO activity_log (activity, created_at)
            VALUES (%s, %s)
            RETURNING id
        """
        rows = self._execute("write activity log", query, (message, created_at))
        return ActivityLogEntry(id=rows[0]["id"] if rows else None, message=message, created_at=created_at)

    def recent(self, limit: int = 100) -> List[ActivityLogEntry]:
        """Newest entries first."""
        query = """
            SELECT id, activity, created_at
            FROM activity_log
            ORDER BY created_at DESC, id DESC
            LIMIT %s
        """
        rows = self._execute("read activity log", query, (limit,))
        return [
            ActivityLogEntry(id=row["id"], message=row["activity"], created_at=row["created_at"])
            for row in rows
        ]


class SettingsRepository(_PostgresRepository):
    """JSON key-value store."""

    def get(self, key: str, default: Any = None) -> Any:
        rows = self._execute(
            f"read setting {key}",
            "SELECT value FROM app_settings WHERE key = %s",
            (key,),
        )
        if not rows:
            return default
        return rows[0]["value"]

    def set(self, key: str, value: Any) -> None:
        """Replace the whole value stored under key."""
        query = """
            INSERT INTO app_settings (key, value, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (key) DO UPDATE
            SET value = EXCLUDED.value, updated_at = NOW()
        """
        self._execute(f"write setting {key}", query, (key, Json(value)), fetch=False)
