"""
Taskana — Day Log Database.

The Memory pillar: habit check-ins and tasks persist in SQLite, keyed by
date, surviving bot restarts. Every public method runs in its own
transaction, so callers never observe a half-written day.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from taskana.data.models import DayLog, HabitEntry, Status, TaskEntry, TimeSlot

logger = logging.getLogger(__name__)

# Columns callers may change through update_task()
_UPDATABLE_TASK_FIELDS = {
    "title", "description", "time_slot", "status",
    "completed_at", "shifted_to", "shift_reason", "origin", "images",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DayLogDB:
    """SQLite-backed storage for per-day habit entries and tasks."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from taskana.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the day log tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS days (
                    date          TEXT    PRIMARY KEY,
                    next_task_id  INTEGER NOT NULL DEFAULT 1
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS habit_entries (
                    date           TEXT NOT NULL,
                    habit_id       TEXT NOT NULL,
                    status         TEXT NOT NULL DEFAULT 'pending',
                    justification  TEXT,
                    completed_at   TEXT,
                    images         TEXT NOT NULL DEFAULT '[]',
                    PRIMARY KEY (date, habit_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    seq            INTEGER PRIMARY KEY AUTOINCREMENT,
                    date           TEXT NOT NULL,
                    id             TEXT NOT NULL,
                    title          TEXT NOT NULL,
                    description    TEXT,
                    time_slot      TEXT NOT NULL,
                    status         TEXT NOT NULL DEFAULT 'pending',
                    completed_at   TEXT,
                    created_at     TEXT NOT NULL,
                    shifted_to     TEXT,
                    shift_reason   TEXT,
                    origin         TEXT,
                    images         TEXT NOT NULL DEFAULT '[]',
                    UNIQUE (date, id)
                )
            """)
        logger.debug("Day log tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> TaskEntry:
        return TaskEntry(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            time_slot=TimeSlot(row["time_slot"]),
            status=Status(row["status"]),
            completed_at=row["completed_at"],
            created_at=row["created_at"],
            shifted_to=row["shifted_to"],
            shift_reason=row["shift_reason"],
            origin=row["origin"],
            images=json.loads(row["images"]),
        )

    @staticmethod
    def _row_to_habit_entry(row: sqlite3.Row) -> HabitEntry:
        return HabitEntry(
            habit_id=row["habit_id"],
            status=Status(row["status"]),
            justification=row["justification"],
            completed_at=row["completed_at"],
            images=json.loads(row["images"]),
        )

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def get_day(self, date: str) -> DayLog:
        """Return the log for a date. Unknown dates yield an empty log."""
        with self._connect() as conn:
            day_row = conn.execute(
                "SELECT next_task_id FROM days WHERE date = ?", (date,)
            ).fetchone()
            habit_rows = conn.execute(
                "SELECT * FROM habit_entries WHERE date = ? ORDER BY rowid", (date,)
            ).fetchall()
            task_rows = conn.execute(
                "SELECT * FROM tasks WHERE date = ? ORDER BY seq", (date,)
            ).fetchall()

        return DayLog(
            date=date,
            habits=[self._row_to_habit_entry(r) for r in habit_rows],
            tasks=[self._row_to_task(r) for r in task_rows],
            next_task_id=day_row["next_task_id"] if day_row else 1,
        )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(
        self,
        date: str,
        title: str,
        time_slot: TimeSlot,
        description: str | None = None,
        origin: str | None = None,
    ) -> TaskEntry:
        """Append a task to a day, assigning the next "t-NNN" ID for that day."""
        created_at = _now_iso()

        with self._connect() as conn:
            conn.execute("INSERT OR IGNORE INTO days (date, next_task_id) VALUES (?, 1)", (date,))
            counter = conn.execute(
                "SELECT next_task_id FROM days WHERE date = ?", (date,)
            ).fetchone()["next_task_id"]
            task_id = f"t-{counter:03d}"
            conn.execute(
                "UPDATE days SET next_task_id = ? WHERE date = ?", (counter + 1, date)
            )
            conn.execute(
                """
                INSERT INTO tasks
                    (date, id, title, description, time_slot, status,
                     created_at, origin, images)
                VALUES (?, ?, ?, ?, ?, 'pending', ?, ?, '[]')
                """,
                (date, task_id, title, description, TimeSlot(time_slot).value, created_at, origin),
            )

        task = TaskEntry(
            id=task_id,
            title=title,
            description=description,
            time_slot=TimeSlot(time_slot),
            created_at=created_at,
            origin=origin,
        )
        logger.info("Task added: %s on %s '%s'", task_id, date, title)
        return task

    def get_task(self, date: str, task_id: str) -> TaskEntry | None:
        """Fetch a single task by its per-day ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE date = ? AND id = ?", (date, task_id)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(self, date: str, task_id: str, **updates: object) -> TaskEntry | None:
        """Apply partial updates to a task. Returns None if it doesn't exist.

        Marking a task done stamps completed_at unless already set.
        """
        unknown = set(updates) - _UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")

        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE date = ? AND id = ?", (date, task_id)
            ).fetchone()
            if row is None:
                logger.warning("Task %s not found on %s", task_id, date)
                return None

            values = dict(updates)
            if values.get("status") == Status.DONE and not row["completed_at"]:
                values.setdefault("completed_at", _now_iso())

            columns: list[str] = []
            params: list = []
            for name, value in values.items():
                if isinstance(value, (TimeSlot, Status)):
                    value = value.value
                elif name == "images":
                    value = json.dumps(value)
                columns.append(f"{name} = ?")
                params.append(value)

            if columns:
                params.extend([date, task_id])
                conn.execute(
                    f"UPDATE tasks SET {', '.join(columns)} WHERE date = ? AND id = ?",
                    params,
                )
            row = conn.execute(
                "SELECT * FROM tasks WHERE date = ? AND id = ?", (date, task_id)
            ).fetchone()

        return self._row_to_task(row)

    def delete_task(self, date: str, task_id: str) -> bool:
        """Hard-delete a task. The per-day counter is not rewound."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tasks WHERE date = ? AND id = ?", (date, task_id)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task %s deleted from %s", task_id, date)
        return deleted

    def get_tasks_by_slot(self, date: str) -> dict[TimeSlot, list[TaskEntry]]:
        """Group a day's tasks by time slot, preserving insertion order."""
        grouped: dict[TimeSlot, list[TaskEntry]] = {}
        for task in self.get_day(date).tasks:
            grouped.setdefault(task.time_slot, []).append(task)
        return grouped

    # ------------------------------------------------------------------
    # Habits
    # ------------------------------------------------------------------

    def update_habit_status(
        self,
        date: str,
        habit_id: str,
        status: Status,
        justification: str | None = None,
    ) -> HabitEntry:
        """Record a habit check-in, creating the day's entry if needed."""
        status = Status(status)

        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO habit_entries (date, habit_id) VALUES (?, ?)",
                (date, habit_id),
            )
            conn.execute(
                "UPDATE habit_entries SET status = ? WHERE date = ? AND habit_id = ?",
                (status.value, date, habit_id),
            )
            if status == Status.DONE:
                conn.execute(
                    "UPDATE habit_entries SET completed_at = ? WHERE date = ? AND habit_id = ?",
                    (_now_iso(), date, habit_id),
                )
            if status == Status.SKIPPED and justification:
                conn.execute(
                    "UPDATE habit_entries SET justification = ? WHERE date = ? AND habit_id = ?",
                    (justification, date, habit_id),
                )
            row = conn.execute(
                "SELECT * FROM habit_entries WHERE date = ? AND habit_id = ?",
                (date, habit_id),
            ).fetchone()

        logger.info("Habit '%s' on %s marked %s", habit_id, date, status.value)
        return self._row_to_habit_entry(row)

    def get_habit_entry(self, date: str, habit_id: str) -> HabitEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM habit_entries WHERE date = ? AND habit_id = ?",
                (date, habit_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_habit_entry(row)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def add_image(self, date: str, kind: str, item_id: str, image_path: str) -> bool:
        """Attach an image path to a habit or task of the given day.

        Habit entries are created on demand; tasks must already exist.
        Returns False if the task doesn't exist or kind is unknown.
        """
        if kind == "habit":
            table, key = "habit_entries", "habit_id"
        elif kind == "task":
            table, key = "tasks", "id"
        else:
            logger.warning("Unknown image target kind: %s", kind)
            return False

        with self._connect() as conn:
            if kind == "habit":
                conn.execute(
                    "INSERT OR IGNORE INTO habit_entries (date, habit_id) VALUES (?, ?)",
                    (date, item_id),
                )
            row = conn.execute(
                f"SELECT images FROM {table} WHERE date = ? AND {key} = ?",
                (date, item_id),
            ).fetchone()
            if row is None:
                return False
            images = json.loads(row["images"])
            images.append(image_path)
            conn.execute(
                f"UPDATE {table} SET images = ? WHERE date = ? AND {key} = ?",
                (json.dumps(images), date, item_id),
            )

        logger.info("Image attached to %s %s on %s", kind, item_id, date)
        return True
