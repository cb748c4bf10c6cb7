"""SQLite storage for the participant list and expense ledger."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .models import Expense, Participant

logger = logging.getLogger(__name__)

PEOPLE_KEY = "travel-people"
EXPENSES_KEY = "travel-expenses"

_participants_adapter = TypeAdapter(list[Participant])
_expenses_adapter = TypeAdapter(list[Expense])


class Database:
    """SQLite database manager.

    Each collection is stored as one JSON document under a fixed key.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )
        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Raw document operations
    # ========================================================================

    def get_document(self, key: str) -> str | None:
        """Get a stored JSON document by key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM documents WHERE key = ?", (key,))
        row = cursor.fetchone()
        return str(row["value"]) if row else None

    def set_document(self, key: str, value: str):
        """Store a JSON document, replacing any previous one."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO documents (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, datetime.now().isoformat()),
        )
        self.conn.commit()

    def _load_list(self, key: str, adapter: TypeAdapter) -> list:
        raw = self.get_document(key)
        if raw is None:
            return []

        try:
            return adapter.validate_json(raw)
        except PydanticValidationError as e:
            logger.error(f"Failed to read '{key}' from {self.db_path}: {e}")
            return []

    # ========================================================================
    # Participants
    # ========================================================================

    def load_participants(self) -> list[Participant]:
        """Load the participant list (empty if missing or unreadable)."""
        return self._load_list(PEOPLE_KEY, _participants_adapter)

    def save_participants(self, participants: list[Participant]):
        """Replace the stored participant list."""
        self.set_document(
            PEOPLE_KEY, json.dumps([p.model_dump() for p in participants])
        )

    # ========================================================================
    # Expenses
    # ========================================================================

    def load_expenses(self) -> list[Expense]:
        """Load the expense ledger (empty if missing or unreadable)."""
        return self._load_list(EXPENSES_KEY, _expenses_adapter)

    def save_expenses(self, expenses: list[Expense]):
        """Replace the stored expense ledger."""
        self.set_document(EXPENSES_KEY, json.dumps([e.model_dump() for e in expenses]))
