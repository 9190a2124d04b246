import json
import logging
import sqlite3
from pathlib import Path
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


def get_db_connection(db_file: str) -> sqlite3.Connection:
    """Open a connection to the SQLite database with dict-like rows."""
    conn = sqlite3.connect(db_file)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables(db_file: str) -> None:
    """Create the tables if they do not exist yet and add any missing columns."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                password_hash TEXT NOT NULL,
                mobile_number TEXT NOT NULL DEFAULT '',
                role TEXT NOT NULL CHECK(role IN ('owner', 'seeker')),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                genre TEXT NOT NULL DEFAULT '',
                location TEXT NOT NULL,
                contact_info TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'available' CHECK(status IN ('available', 'rented')),
                image_url TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        # Columns added after the first schema
        cursor.execute("PRAGMA table_info(users)")
        user_columns = [column[1] for column in cursor.fetchall()]
        if "address" not in user_columns:
            cursor.execute("ALTER TABLE users ADD COLUMN address TEXT NOT NULL DEFAULT ''")

        cursor.execute("PRAGMA table_info(books)")
        book_columns = [column[1] for column in cursor.fetchall()]
        if "cover_color" not in book_columns:
            cursor.execute("ALTER TABLE books ADD COLUMN cover_color TEXT")
        if "renter_id" not in book_columns:
            cursor.execute("ALTER TABLE books ADD COLUMN renter_id TEXT REFERENCES users(id) ON DELETE SET NULL")

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_owner_id ON books(owner_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_renter_id ON books(renter_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_status ON books(status)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: str) -> None:
    """Create the database file and schema if needed."""
    parent = Path(db_file).parent
    parent.mkdir(parents=True, exist_ok=True)
    create_tables(db_file)


def load_legacy_json(data_dir: str) -> Tuple[Dict[str, dict], Dict[str, dict]]:
    """Read ``users.json`` and ``books.json`` from an old JSON data directory.

    Both files map record id to record. Missing or empty files yield empty
    maps; a corrupt file raises ValueError.
    """
    result = []
    for name in ("users.json", "books.json"):
        path = Path(data_dir) / name
        if not path.exists() or path.stat().st_size == 0:
            result.append({})
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Could not parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain an object keyed by id")
        result.append(data)
    logger.info(f"Loaded {len(result[0])} users and {len(result[1])} books from {data_dir}")
    return result[0], result[1]
