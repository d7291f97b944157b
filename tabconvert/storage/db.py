"""
Database connection management.

Provides the SQLite connection backing client-local persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = ".tabconvert.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite connection in autocommit mode.

    Transactions are opened explicitly by callers that need them
    (``BEGIN IMMEDIATE`` for read-modify-write updates).

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with implicit transactions disabled
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), isolation_level=None, timeout=5.0)
    return conn
