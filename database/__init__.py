"""
Database module: PostgreSQL and in-memory storage backends.
"""

from .migrate import run_migrations
from .connection import DatabaseConnection
from .storage import Storage, MemoryStorage, PostgresStorage, create_storage

__all__ = [
    'run_migrations',
    'DatabaseConnection',
    'Storage',
    'MemoryStorage',
    'PostgresStorage',
    'create_storage',
]
