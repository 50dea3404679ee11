"""
Database migration runner for the consent logger.
Executes SQL migration files in order.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

import psycopg2

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def create_migrations_table(conn):
    """Create migrations tracking table if it doesn't exist."""
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                migration_id SERIAL PRIMARY KEY,
                filename VARCHAR(255) UNIQUE NOT NULL,
                applied_at TIMESTAMP DEFAULT NOW()
            )
        """)
    conn.commit()
    logger.info("Migrations tracking table ready")


def get_applied_migrations(conn) -> Set[str]:
    """Get list of already applied migrations."""
    with conn.cursor() as cur:
        cur.execute("SELECT filename FROM schema_migrations ORDER BY migration_id")
        return {row[0] for row in cur.fetchall()}


def get_pending_migrations(migrations_dir: Path, applied: Set[str]) -> List[Path]:
    """Get list of pending migration files, in filename order."""
    migrations_path = Path(migrations_dir)
    if not migrations_path.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return []

    all_migrations = sorted(
        f for f in migrations_path.glob("*.sql")
        if f.is_file()
    )
    return [m for m in all_migrations if m.name not in applied]


def apply_migration(conn, migration_file: Path):
    """Apply a single migration file inside one transaction."""
    logger.info(f"Applying migration: {migration_file.name}")

    sql = migration_file.read_text(encoding="utf-8")
    try:
        with conn.cursor() as cur:
            cur.execute(sql)
            cur.execute(
                "INSERT INTO schema_migrations (filename) VALUES (%s)",
                (migration_file.name,)
            )
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"Failed to apply {migration_file.name}: {e}")
        raise

    logger.info(f"Successfully applied: {migration_file.name}")


def run_migrations(database_url: str, migrations_dir: Optional[Path] = None) -> List[str]:
    """
    Run all pending migrations.

    Args:
        database_url: PostgreSQL connection URL
        migrations_dir: Directory of *.sql files (defaults to the bundled set)

    Returns:
        Names of the migrations applied by this call
    """
    migrations_dir = Path(migrations_dir) if migrations_dir else MIGRATIONS_DIR

    logger.info("Connecting to database...")
    conn = psycopg2.connect(database_url)

    try:
        create_migrations_table(conn)

        applied = get_applied_migrations(conn)
        pending = get_pending_migrations(migrations_dir, applied)

        if not pending:
            logger.info("No pending migrations")
            return []

        logger.info(f"Found {len(pending)} pending migration(s)")
        for migration_file in pending:
            apply_migration(conn, migration_file)

        logger.info("All migrations applied successfully")
        return [m.name for m in pending]
    finally:
        conn.close()
