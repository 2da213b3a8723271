"""SQLite database operations for TabSplit."""

import sqlite3
from pathlib import Path

from .models import Group


class Database:
    """SQLite database manager.

    Groups are stored whole, as JSON documents: a group is always read and
    written as one unit, and balances are recomputed from it on every read.
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
            CREATE TABLE IF NOT EXISTS groups (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Group operations
    # ========================================================================

    def save_group(self, group: Group):
        """Insert a group, or replace the stored copy if it already exists."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO groups (id, name, data, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                data = excluded.data
            """,
            (
                group.id,
                group.name,
                group.model_dump_json(by_alias=True),
                group.created_at.isoformat(),
            ),
        )
        self.conn.commit()

    def get_group(self, group_id: str) -> Group | None:
        """Get a group by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM groups WHERE id = ?", (group_id,))
        row = cursor.fetchone()
        return Group.model_validate_json(row["data"]) if row else None

    def list_groups(self) -> list[Group]:
        """Get all groups, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM groups ORDER BY created_at, id")
        return [Group.model_validate_json(row["data"]) for row in cursor.fetchall()]

    def delete_group(self, group_id: str) -> bool:
        """Delete a group. Returns True if a row was removed."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM groups WHERE id = ?", (group_id,))
        self.conn.commit()
        return cursor.rowcount > 0
