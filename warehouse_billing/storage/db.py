"""
Database connection management.

Provides the SQLite connection used by the billing repository.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "warehouse_billing.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.
    
    Foreign keys carry the ownership cascades (rate sheet -> warehouse ->
    charge, invoice -> line), so they must be on for every connection.
    
    Args:
        db_path: Path to SQLite database file
        
    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
