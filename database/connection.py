"""
Database connection management with connection pooling.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from core.exceptions import ScanInProgress, StorageFailure

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Database connection manager with connection pooling.

    Provides connection pooling for PostgreSQL database operations
    with automatic connection health checks.
    """

    def __init__(
        self,
        database_url: str,
        min_connections: int = 1,
        max_connections: int = 10
    ):
        """
        Initialize database connection pool.

        Args:
            database_url: PostgreSQL connection URL
            min_connections: Minimum connections in pool
            max_connections: Maximum connections in pool
        """
        self.database_url = database_url
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.pool = None
        self._initialize_pool()

    def _initialize_pool(self):
        """Initialize the connection pool."""
        try:
            self.pool = psycopg2.pool.ThreadedConnectionPool(
                self.min_connections,
                self.max_connections,
                self.database_url
            )
            logger.info(
                f"Database connection pool initialized "
                f"(min={self.min_connections}, max={self.max_connections})"
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise StorageFailure("Database unavailable") from e

    def get_connection(self):
        """
        Get a connection from the pool.

        Returns:
            Database connection
        """
        if self.pool is None:
            raise RuntimeError("Connection pool not initialized")
        return self.pool.getconn()

    def return_connection(self, conn):
        """
        Return a connection to the pool.

        Args:
            conn: Database connection to return
        """
        if self.pool is None:
            return

        try:
            self.pool.putconn(conn)
        except psycopg2.Error as e:
            logger.error(f"Failed to return connection to pool: {e}")

    def close_all_connections(self):
        """Close all connections in the pool."""
        if self.pool is not None:
            self.pool.closeall()
            logger.info("All database connections closed")

    @contextmanager
    def connection(self) -> Iterator:
        """Borrow a pooled connection for the duration of the block."""
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.return_connection(conn)

    def execute_query(self, query: str, params: tuple = None, fetch: bool = True):
        """
        Execute a query in its own transaction.

        Args:
            query: SQL query
            params: Query parameters
            fetch: Whether to fetch results

        Returns:
            Query results if fetch=True, None otherwise

        Raises:
            psycopg2.Error: The statement failed; the transaction is rolled back
        """
        conn = None
        try:
            conn = self.get_connection()
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                rows = cur.fetchall() if fetch else None
            # INSERT ... RETURNING fetches and still has to commit
            conn.commit()
            return rows
        except psycopg2.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Query execution failed: {e}")
            raise
        finally:
            if conn:
                self.return_connection(conn)

    @contextmanager
    def advisory_lock(self, key: int) -> Iterator[None]:
        """
        Hold a session-level PostgreSQL advisory lock for the block.

        Non-blocking: raises ScanInProgress when another session holds it.
        The borrowed connection stays out of the pool until release.
        """
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("SELECT pg_try_advisory_lock(%s)", (key,))
                    acquired = cur.fetchone()[0]
                conn.commit()
            except psycopg2.Error as e:
                conn.rollback()
                raise StorageFailure("Failed to acquire scan lock") from e

            if not acquired:
                raise ScanInProgress()

            try:
                yield
            finally:
                try:
                    with conn.cursor() as cur:
                        cur.execute("SELECT pg_advisory_unlock(%s)", (key,))
                    conn.commit()
                except psycopg2.Error as e:
                    logger.error(f"Failed to release advisory lock {key}: {e}")

    def ping(self) -> bool:
        """
        Check if database is available.

        Returns:
            True if database is available, False otherwise
        """
        conn = None
        try:
            conn = self.get_connection()
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
            return True
        except psycopg2.Error as e:
            logger.error(f"Database ping failed: {e}")
            return False
        finally:
            if conn:
                self.return_connection(conn)
