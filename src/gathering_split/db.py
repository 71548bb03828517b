"""SQLite database operations for GatheringSplit."""

import sqlite3
from datetime import date
from decimal import Decimal
from pathlib import Path

from .models import Expense, Gathering, Participant


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Participants table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS participants (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                alias TEXT NOT NULL DEFAULT '',
                is_vegan INTEGER NOT NULL DEFAULT 0,
                participates_in_herb INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        # Gatherings table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS gatherings (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                date DATE NOT NULL,
                host_id TEXT REFERENCES participants(id),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS gathering_participants (
                gathering_id TEXT NOT NULL
                    REFERENCES gatherings(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL REFERENCES participants(id),
                position INTEGER NOT NULL,
                PRIMARY KEY (gathering_id, user_id)
            )
        """
        )

        # Expenses table (amounts stored as text to keep Decimal precision)
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                gathering_id TEXT NOT NULL
                    REFERENCES gatherings(id) ON DELETE CASCADE,
                description TEXT NOT NULL,
                amount TEXT NOT NULL,
                category TEXT NOT NULL,
                paid_by_id TEXT NOT NULL REFERENCES participants(id),
                is_meat INTEGER,
                date DATE NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_participants (
                expense_id TEXT NOT NULL
                    REFERENCES expenses(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL REFERENCES participants(id),
                position INTEGER NOT NULL,
                PRIMARY KEY (expense_id, user_id)
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Participant operations
    # ========================================================================

    def save_participant(self, participant: Participant) -> Participant:
        """Insert or update a participant."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO participants (
                id, name, alias, is_vegan, participates_in_herb
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                alias = excluded.alias,
                is_vegan = excluded.is_vegan,
                participates_in_herb = excluded.participates_in_herb
            """,
            (
                participant.id,
                participant.name,
                participant.alias,
                int(participant.is_vegan),
                int(participant.participates_in_herb),
            ),
        )
        self.conn.commit()
        return participant

    def get_participant(self, participant_id: str) -> Participant | None:
        """Get a participant by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, alias, is_vegan, participates_in_herb
            FROM participants
            WHERE id = ?
            """,
            (participant_id,),
        )
        row = cursor.fetchone()
        return _row_to_participant(row) if row else None

    def get_participants(self, participant_ids: list[str]) -> dict[str, Participant]:
        """Get the participants with the given IDs, keyed by ID."""
        if not participant_ids:
            return {}
        placeholders = ", ".join("?" for _ in participant_ids)
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT id, name, alias, is_vegan, participates_in_herb
            FROM participants
            WHERE id IN ({placeholders})
            """,
            list(participant_ids),
        )
        return {row["id"]: _row_to_participant(row) for row in cursor.fetchall()}

    def list_participants(self) -> list[Participant]:
        """Get all participants, ordered by name."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, name, alias, is_vegan, participates_in_herb
            FROM participants
            ORDER BY name COLLATE NOCASE
            """
        )
        return [_row_to_participant(row) for row in cursor.fetchall()]

    def is_participant_referenced(self, participant_id: str) -> bool:
        """Check if any gathering or expense still references a participant."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT 1 FROM gathering_participants WHERE user_id = ?
            UNION ALL
            SELECT 1 FROM expenses WHERE paid_by_id = ?
            UNION ALL
            SELECT 1 FROM expense_participants WHERE user_id = ?
            LIMIT 1
            """,
            (participant_id, participant_id, participant_id),
        )
        return cursor.fetchone() is not None

    def delete_participant(self, participant_id: str) -> bool:
        """Delete a participant. Returns False if it did not exist."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM participants WHERE id = ?", (participant_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Gathering operations
    # ========================================================================

    def save_gathering(self, gathering: Gathering) -> Gathering:
        """Insert or update a gathering and its participant list."""
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO gatherings (id, title, date, host_id)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    date = excluded.date,
                    host_id = excluded.host_id
                """,
                (
                    gathering.id,
                    gathering.title,
                    gathering.date.isoformat(),
                    gathering.host_id,
                ),
            )
            self.conn.execute(
                "DELETE FROM gathering_participants WHERE gathering_id = ?",
                (gathering.id,),
            )
            self.conn.executemany(
                """
                INSERT INTO gathering_participants (gathering_id, user_id, position)
                VALUES (?, ?, ?)
                """,
                [
                    (gathering.id, user_id, position)
                    for position, user_id in enumerate(gathering.participants)
                ],
            )
        return gathering

    def get_gathering(self, gathering_id: str) -> Gathering | None:
        """Get a gathering by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, title, date, host_id FROM gatherings WHERE id = ?",
            (gathering_id,),
        )
        row = cursor.fetchone()
        return self._row_to_gathering(row) if row else None

    def list_gatherings(self) -> list[Gathering]:
        """Get all gatherings, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, title, date, host_id
            FROM gatherings
            ORDER BY date DESC, created_at DESC
            """
        )
        return [self._row_to_gathering(row) for row in cursor.fetchall()]

    def delete_gathering(self, gathering_id: str) -> bool:
        """Delete a gathering along with its expenses."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM gatherings WHERE id = ?", (gathering_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def _row_to_gathering(self, row: sqlite3.Row) -> Gathering:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT user_id FROM gathering_participants
            WHERE gathering_id = ?
            ORDER BY position
            """,
            (row["id"],),
        )
        return Gathering(
            id=row["id"],
            title=row["title"],
            date=date.fromisoformat(row["date"]),
            participants=[r["user_id"] for r in cursor.fetchall()],
            host_id=row["host_id"],
        )

    # ========================================================================
    # Expense operations
    # ========================================================================

    def save_expense(self, expense: Expense) -> Expense:
        """Insert or update an expense and its participant list."""
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO expenses (
                    id, gathering_id, description, amount, category,
                    paid_by_id, is_meat, date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    gathering_id = excluded.gathering_id,
                    description = excluded.description,
                    amount = excluded.amount,
                    category = excluded.category,
                    paid_by_id = excluded.paid_by_id,
                    is_meat = excluded.is_meat,
                    date = excluded.date
                """,
                (
                    expense.id,
                    expense.gathering_id,
                    expense.description,
                    str(expense.amount),
                    expense.category,
                    expense.paid_by_id,
                    None if expense.is_meat is None else int(expense.is_meat),
                    expense.date.isoformat(),
                ),
            )
            self.conn.execute(
                "DELETE FROM expense_participants WHERE expense_id = ?",
                (expense.id,),
            )
            self.conn.executemany(
                """
                INSERT INTO expense_participants (expense_id, user_id, position)
                VALUES (?, ?, ?)
                """,
                [
                    (expense.id, user_id, position)
                    for position, user_id in enumerate(expense.participants)
                ],
            )
        return expense

    def get_expense(self, expense_id: str) -> Expense | None:
        """Get an expense by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, gathering_id, description, amount, category,
                   paid_by_id, is_meat, date
            FROM expenses
            WHERE id = ?
            """,
            (expense_id,),
        )
        row = cursor.fetchone()
        return self._row_to_expense(row) if row else None

    def list_expenses(self, gathering_id: str) -> list[Expense]:
        """Get all expenses of a gathering, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, gathering_id, description, amount, category,
                   paid_by_id, is_meat, date
            FROM expenses
            WHERE gathering_id = ?
            ORDER BY date, rowid
            """,
            (gathering_id,),
        )
        return [self._row_to_expense(row) for row in cursor.fetchall()]

    def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense. Returns False if it did not exist."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT user_id FROM expense_participants
            WHERE expense_id = ?
            ORDER BY position
            """,
            (row["id"],),
        )
        return Expense(
            id=row["id"],
            gathering_id=row["gathering_id"],
            description=row["description"],
            amount=Decimal(row["amount"]),
            category=row["category"],
            paid_by_id=row["paid_by_id"],
            is_meat=None if row["is_meat"] is None else bool(row["is_meat"]),
            participants=[r["user_id"] for r in cursor.fetchall()],
            date=date.fromisoformat(row["date"]),
        )


def _row_to_participant(row: sqlite3.Row) -> Participant:
    return Participant(
        id=row["id"],
        name=row["name"],
        alias=row["alias"],
        is_vegan=bool(row["is_vegan"]),
        participates_in_herb=bool(row["participates_in_herb"]),
    )
