from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generator, Iterator, List, Optional, Sequence

from .errors import NotFoundError, PersistenceError
from .models import CategoryEntity, TaskEntity
from .repositories import Clock, Repository, copy_name, new_id, plan_edits
from .schemas import TaskDraft
from .utils import clean_text, normalize_color, require_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CategoryCols:
    table: str = "categories"
    id: str = "id"
    name: str = "name"
    color: str = "color"
    is_hidden: str = "is_hidden"


@dataclass(frozen=True)
class _TaskCols:
    table: str = "tasks"
    id: str = "id"
    category_id: str = "category_id"
    title: str = "title"
    is_completed: str = "is_completed"
    creation_date: str = "creation_date"


_CAT = _CategoryCols()
_TASK = _TaskCols()


def _dt_to_db(value: datetime) -> str:
    # Fixed width so that text comparison in SQL matches datetime ordering.
    return value.isoformat(timespec="microseconds")


# Stays below SQLITE_MAX_VARIABLE_NUMBER on builds older than 3.32 (999).
_MAX_PARAMS = 500


def _chunks(items: List[str], size: int = _MAX_PARAMS) -> Iterator[List[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class SQLiteRepository(Repository):
    """
    SQLite repository implementing the Repository interface.

    Each public method opens its own connection and runs as one transaction:
    commit on success, rollback on any exception. sqlite3 failures surface as
    PersistenceError.
    """

    def __init__(self, db_path: str, clock: Optional[Clock] = None) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock: Clock = clock or datetime.now
        self._init_db()
        logger.info("SQLite store ready db=%s", self._db_path)

    def _now(self) -> datetime:
        return self._clock()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open database {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"database operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_CAT.table} (
                    {_CAT.id} TEXT PRIMARY KEY,
                    {_CAT.name} TEXT NOT NULL,
                    {_CAT.color} TEXT NOT NULL,
                    {_CAT.is_hidden} INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TASK.table} (
                    {_TASK.id} TEXT PRIMARY KEY,
                    {_TASK.category_id} TEXT NOT NULL
                        REFERENCES {_CAT.table}({_CAT.id}) ON DELETE CASCADE,
                    {_TASK.title} TEXT NOT NULL,
                    {_TASK.is_completed} INTEGER NOT NULL DEFAULT 0,
                    {_TASK.creation_date} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_TASK.table}_category ON {_TASK.table}({_TASK.category_id})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_TASK.table}_completed ON {_TASK.table}({_TASK.is_completed})"
            )

    def _row_to_task(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": str(row[_TASK.id]),
            "title": str(row[_TASK.title]),
            "is_completed": bool(row[_TASK.is_completed]),
            "creation_date": datetime.fromisoformat(row[_TASK.creation_date]),
            "category_id": str(row[_TASK.category_id]),
        }

    def _row_to_category(self, row: sqlite3.Row, tasks: List[TaskEntity]) -> CategoryEntity:
        return {
            "id": str(row[_CAT.id]),
            "name": str(row[_CAT.name]),
            "color": str(row[_CAT.color]),
            "is_hidden": bool(row[_CAT.is_hidden]),
            "tasks": tasks,
        }

    def _category_row(self, conn: sqlite3.Connection, category_id: str) -> sqlite3.Row:
        row = conn.execute(f"SELECT * FROM {_CAT.table} WHERE {_CAT.id} = ?", (category_id,)).fetchone()
        if row is None:
            raise NotFoundError("Category", category_id)
        return row

    def _task_row(self, conn: sqlite3.Connection, task_id: str) -> sqlite3.Row:
        row = conn.execute(f"SELECT * FROM {_TASK.table} WHERE {_TASK.id} = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFoundError("Task", task_id)
        return row

    def _tasks_of(self, conn: sqlite3.Connection, category_id: str) -> List[TaskEntity]:
        rows = conn.execute(
            f"""
            SELECT * FROM {_TASK.table}
            WHERE {_TASK.category_id} = ?
            ORDER BY {_TASK.creation_date} ASC, rowid ASC
            """,
            (category_id,),
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def _load_category(self, conn: sqlite3.Connection, category_id: str) -> CategoryEntity:
        row = self._category_row(conn, category_id)
        return self._row_to_category(row, self._tasks_of(conn, category_id))

    def _insert_task(self, conn: sqlite3.Connection, task: TaskEntity) -> None:
        conn.execute(
            f"""
            INSERT INTO {_TASK.table} ({_TASK.id}, {_TASK.category_id}, {_TASK.title},
                {_TASK.is_completed}, {_TASK.creation_date})
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                task["id"],
                task["category_id"],
                task["title"],
                1 if task["is_completed"] else 0,
                _dt_to_db(task["creation_date"]),
            ),
        )

    def _insert_category(self, conn: sqlite3.Connection, category_id: str, name: str, color: str, hidden: bool) -> None:
        conn.execute(
            f"""
            INSERT INTO {_CAT.table} ({_CAT.id}, {_CAT.name}, {_CAT.color}, {_CAT.is_hidden})
            VALUES (?, ?, ?, ?)
            """,
            (category_id, name, color, 1 if hidden else 0),
        )

    def list_visible_categories(self) -> List[CategoryEntity]:
        with self._conn() as conn:
            cat_rows = conn.execute(
                f"SELECT * FROM {_CAT.table} WHERE {_CAT.is_hidden} = 0 ORDER BY rowid ASC"
            ).fetchall()
            task_rows = conn.execute(
                f"""
                SELECT t.* FROM {_TASK.table} t
                JOIN {_CAT.table} c ON c.{_CAT.id} = t.{_TASK.category_id}
                WHERE c.{_CAT.is_hidden} = 0
                ORDER BY t.{_TASK.creation_date} ASC, t.rowid ASC
                """
            ).fetchall()
        grouped: Dict[str, List[TaskEntity]] = {}
        for r in task_rows:
            task = self._row_to_task(r)
            grouped.setdefault(task["category_id"], []).append(task)
        return [self._row_to_category(r, grouped.get(str(r[_CAT.id]), [])) for r in cat_rows]

    def get_category(self, category_id: str) -> CategoryEntity:
        with self._conn() as conn:
            return self._load_category(conn, category_id)

    def get_task(self, task_id: str) -> TaskEntity:
        with self._conn() as conn:
            return self._row_to_task(self._task_row(conn, task_id))

    def create_category(self, name: str, color: str, task_titles: Sequence[str] = ()) -> CategoryEntity:
        clean_name = require_text(name, "name")
        clean_color = normalize_color(color)
        titles = [t for t in (clean_text(x) for x in task_titles) if t]
        now = self._now()
        category_id = new_id()
        with self._conn() as conn:
            self._insert_category(conn, category_id, clean_name, clean_color, False)
            for title in titles:
                self._insert_task(
                    conn,
                    {
                        "id": new_id(),
                        "title": title,
                        "is_completed": False,
                        "creation_date": now,
                        "category_id": category_id,
                    },
                )
            return self._load_category(conn, category_id)

    def set_category_hidden(self, category_id: str, hidden: bool) -> None:
        with self._conn() as conn:
            self._category_row(conn, category_id)
            conn.execute(
                f"UPDATE {_CAT.table} SET {_CAT.is_hidden} = ? WHERE {_CAT.id} = ?",
                (1 if hidden else 0, category_id),
            )

    def duplicate_category(self, category_id: str, copy_suffix: str = "copy") -> CategoryEntity:
        with self._conn() as conn:
            source = self._load_category(conn, category_id)
            copy_id = new_id()
            self._insert_category(
                conn,
                copy_id,
                copy_name(source["name"], copy_suffix),
                source["color"],
                source["is_hidden"],
            )
            for task in source["tasks"]:
                self._insert_task(conn, {**task, "id": new_id(), "category_id": copy_id})
            return self._load_category(conn, copy_id)

    def create_task(self, category_id: str, title: str) -> TaskEntity:
        clean_title = require_text(title, "title")
        task: TaskEntity = {
            "id": new_id(),
            "title": clean_title,
            "is_completed": False,
            "creation_date": self._now(),
            "category_id": category_id,
        }
        with self._conn() as conn:
            self._category_row(conn, category_id)
            self._insert_task(conn, task)
            return self._row_to_task(self._task_row(conn, task["id"]))

    def update_task_title(self, task_id: str, new_title: str) -> TaskEntity:
        clean_title = require_text(new_title, "title")
        with self._conn() as conn:
            self._task_row(conn, task_id)
            conn.execute(
                f"UPDATE {_TASK.table} SET {_TASK.title} = ? WHERE {_TASK.id} = ?",
                (clean_title, task_id),
            )
            return self._row_to_task(self._task_row(conn, task_id))

    def toggle_task_completion(self, task_id: str) -> TaskEntity:
        with self._conn() as conn:
            self._task_row(conn, task_id)
            conn.execute(
                f"UPDATE {_TASK.table} SET {_TASK.is_completed} = 1 - {_TASK.is_completed} WHERE {_TASK.id} = ?",
                (task_id,),
            )
            return self._row_to_task(self._task_row(conn, task_id))

    def move_task(self, task_id: str, category_id: str) -> TaskEntity:
        with self._conn() as conn:
            self._task_row(conn, task_id)
            self._category_row(conn, category_id)
            conn.execute(
                f"UPDATE {_TASK.table} SET {_TASK.category_id} = ? WHERE {_TASK.id} = ?",
                (category_id, task_id),
            )
            return self._row_to_task(self._task_row(conn, task_id))

    def remove_task(self, task_id: str, category_id: str) -> None:
        with self._conn() as conn:
            self._category_row(conn, category_id)
            cur = conn.execute(
                f"DELETE FROM {_TASK.table} WHERE {_TASK.id} = ? AND {_TASK.category_id} = ?",
                (task_id, category_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("Task", task_id)

    def save_category_edits(
        self,
        category_id: str,
        new_name: str,
        new_color: str,
        new_tasks: Sequence[TaskDraft],
    ) -> CategoryEntity:
        clean_name = require_text(new_name, "name")
        clean_color = normalize_color(new_color)
        with self._conn() as conn:
            self._category_row(conn, category_id)
            ids = list(dict.fromkeys(d.id for d in new_tasks if d.id))
            existing: Dict[str, TaskEntity] = {}
            for chunk in _chunks(ids):
                placeholders = ", ".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT * FROM {_TASK.table} WHERE {_TASK.id} IN ({placeholders})", chunk
                ).fetchall()
                existing.update({str(r[_TASK.id]): self._row_to_task(r) for r in rows})
            final = plan_edits(category_id, new_tasks, existing, self._now())

            conn.execute(
                f"UPDATE {_CAT.table} SET {_CAT.name} = ?, {_CAT.color} = ? WHERE {_CAT.id} = ?",
                (clean_name, clean_color, category_id),
            )
            keep = {t["id"] for t in final}
            current = conn.execute(
                f"SELECT {_TASK.id} FROM {_TASK.table} WHERE {_TASK.category_id} = ?", (category_id,)
            ).fetchall()
            dropped = [(str(r[_TASK.id]),) for r in current if str(r[_TASK.id]) not in keep]
            conn.executemany(f"DELETE FROM {_TASK.table} WHERE {_TASK.id} = ?", dropped)
            for task in final:
                if task["id"] in existing:
                    conn.execute(
                        f"""
                        UPDATE {_TASK.table}
                        SET {_TASK.title} = ?, {_TASK.is_completed} = ?, {_TASK.category_id} = ?
                        WHERE {_TASK.id} = ?
                        """,
                        (task["title"], 1 if task["is_completed"] else 0, category_id, task["id"]),
                    )
                else:
                    self._insert_task(conn, task)
            return self._load_category(conn, category_id)

    def list_tasks(self) -> List[TaskEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT t.* FROM {_TASK.table} t
                JOIN {_CAT.table} c ON c.{_CAT.id} = t.{_TASK.category_id}
                WHERE c.{_CAT.is_hidden} = 0
                ORDER BY t.{_TASK.creation_date} ASC, t.rowid ASC
                """
            ).fetchall()
            return [self._row_to_task(r) for r in rows]

    def purge_completed_tasks(self, cutoff: datetime) -> List[str]:
        where = f"{_TASK.is_completed} = 1 AND {_TASK.creation_date} < ?"
        params = (_dt_to_db(cutoff),)
        with self._conn() as conn:
            rows = conn.execute(f"SELECT {_TASK.id} FROM {_TASK.table} WHERE {where}", params).fetchall()
            conn.execute(f"DELETE FROM {_TASK.table} WHERE {where}", params)
            return [str(r[_TASK.id]) for r in rows]
