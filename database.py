import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from config import settings

logger = logging.getLogger(__name__)

# Default store file; LIBRARY_DB_FILE / LIBRARY_DATA_FILE override it via config
DATABASE_FILE = settings.data_file

BOOKS_KEY = "lms_books"
MEMBERS_KEY = "lms_members"
TRANSACTIONS_KEY = "lms_transactions"


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Opens a connection to the SQLite file backing the key-value store."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Creates the key-value table if it does not exist yet."""
    conn = get_db_connection(db_file)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()
    finally:
        conn.close()


class KeyValueStore:
    """JSON documents stored under string keys.

    Neither method raises: a failed read comes back as ``None`` and a failed
    write as ``False``, both logged, so callers keep working in memory.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or DATABASE_FILE
        try:
            create_tables(self.db_file)
        except sqlite3.Error as e:
            logger.error(f"Could not initialise store at {self.db_file}: {e}")

    def load(self, key: str) -> Optional[Any]:
        try:
            conn = get_db_connection(self.db_file)
            try:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Store read failed for '{key}': {e}")
            return None

        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Stored value for '{key}' is not valid JSON: {e}")
            return None

    def save(self, key: str, value: Any) -> bool:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialise '{key}': {e}")
            return False

        try:
            conn = get_db_connection(self.db_file)
            try:
                conn.execute(
                    "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                    (key, payload),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Store write failed for '{key}': {e}")
            return False
        return True


# ------------------------- Seed data ------------------------- #
def sample_books() -> List[Dict[str, Any]]:
    return [
        {"id": "B_ABC1234", "title": "Introduction to Algorithms", "author": "Cormen, Leiserson et al.",
         "isbn": "0262033844", "copies": 3, "category": "Algorithms"},
        {"id": "B_DEF5678", "title": "Clean Code", "author": "Robert C. Martin",
         "isbn": "0132350882", "copies": 2, "category": "Software Engineering"},
        {"id": "B_GHI9012", "title": "Discrete Mathematics", "author": "Rosen",
         "isbn": "0073383090", "copies": 2, "category": "Mathematics"},
    ]


def sample_members() -> List[Dict[str, Any]]:
    return [
        {"id": "M_111AAAA", "name": "Rajat Singh", "email": "rajat@example.com", "phone": "9999999999"},
        {"id": "M_222BBBB", "name": "Anita Sharma", "email": "anita@example.com", "phone": "8888888888"},
    ]


def sample_transactions() -> List[Dict[str, Any]]:
    return []


SEEDS = {
    BOOKS_KEY: sample_books,
    MEMBERS_KEY: sample_members,
    TRANSACTIONS_KEY: sample_transactions,
}
