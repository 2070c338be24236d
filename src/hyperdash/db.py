"""VaultDB: board views over scanned notes.

Loads :class:`~hyperdash.note.NoteRecord` lists into an in-memory DuckDB
table and returns :mod:`polars` DataFrames, the shape a list or kanban UI
renders directly.

Usage::

    db = VaultDB(notes)

    # Priority, then due date, then most recently modified
    df = db.table_view(search="invoice", limit=50)

    # Status sections for the todo list
    board = db.kanban_view(TODO_SECTIONS, where="is_todo")
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import duckdb
import polars as pl

from hyperdash.note import NoteRecord


@dataclass(frozen=True)
class Section:
    title: str
    #: Statuses grouped here; ``None`` stands for "no status"
    statuses: tuple[str | None, ...] = ()
    #: Collect every note no earlier section claimed
    catch_all: bool = False


TODO_SECTIONS: tuple[Section, ...] = (
    Section("In Progress", ("in-progress",)),
    Section("Up Next", ("next", "up next")),
    Section("Todo", ("todo", "not started", "open", None)),
    Section("Hold/Stuck", ("hold/stuck", "stuck", "hold")),
    Section("Waiting", ("waiting",)),
    Section("Someday", ("someday",)),
)

PROJECT_SECTIONS: tuple[Section, ...] = (
    Section("Planning", ("planning",)),
    Section("In Progress", ("in-progress",)),
    Section("Active", ("active",)),
    Section("On Hold", ("on-hold", "hold", "paused")),
    Section("Other", catch_all=True),
)

_ORDER_BY = """
    priority IS NULL, priority,
    date_due IS NULL, date_due,
    mtime_ms DESC
"""


class VaultDB:
    """In-memory DuckDB database over scanned note records."""

    def __init__(self, notes: list[NoteRecord]) -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(notes)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, notes: list[NoteRecord]) -> None:
        """(Re-)populate the database from *notes* (call after every scan)."""
        self._create_schema()
        self._load_notes(notes)

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                path           VARCHAR PRIMARY KEY,
                relative_path  VARCHAR,
                title          VARCHAR,
                tags           VARCHAR[],
                mtime_ms       DOUBLE,
                status         VARCHAR,
                project        VARCHAR,
                date_due       VARCHAR,
                date_started   VARCHAR,
                date_scheduled VARCHAR,
                recurrence     VARCHAR,
                priority       VARCHAR,
                time_tracked   DOUBLE,
                time_estimate  DOUBLE,
                is_todo        BOOLEAN,
                is_project     BOOLEAN,
                frontmatter    JSON
            )
        """)

    def _load_notes(self, notes: list[NoteRecord]) -> None:
        rows = [
            (
                str(note.path),
                note.relative_path,
                note.title,
                sorted(note.tags),
                note.mtime_ms,
                note.status,
                note.project,
                note.date_due,
                note.date_started,
                note.date_scheduled,
                note.recurrence,
                note.priority,
                note.time_tracked,
                note.time_estimate,
                bool(note.annotations.get("todo", False)),
                bool(note.annotations.get("project", False)),
                json.dumps(note.frontmatter),
            )
            for note in notes
        ]
        if rows:
            self.conn.executemany(
                "INSERT OR REPLACE INTO notes VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)", rows
            )

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str, params: list[Any] | None = None) -> pl.DataFrame:
        """Run a raw SQL query and return a Polars DataFrame."""
        return self.conn.execute(sql, params or []).pl()

    # ------------------------------------------------------------------
    # Pre-built views
    # ------------------------------------------------------------------

    def table_view(
        self,
        *,
        search: str | None = None,
        where: str | None = None,
        limit: int | None = None,
    ) -> pl.DataFrame:
        """Return notes in list order, optionally filtered.

        Parameters
        ----------
        search:
            Case-insensitive substring filter on the title.
        where:
            Boolean column that must be true (``"is_todo"`` / ``"is_project"``).
        limit:
            Maximum rows returned, applied after sorting.
        """
        clauses: list[str] = []
        params: list[Any] = []
        if where in ("is_todo", "is_project"):
            clauses.append(where)
        if search and search.strip():
            clauses.append("title ILIKE ?")
            params.append(f"%{search.strip()}%")
        sql = "SELECT * FROM notes"
        if clauses:
            sql += f" WHERE {' AND '.join(clauses)}"
        sql += f" ORDER BY {_ORDER_BY}"
        if limit is not None:
            sql += f" LIMIT {max(int(limit), 0)}"
        return self.conn.execute(sql, params).pl()

    def kanban_view(
        self,
        sections: tuple[Section, ...] = TODO_SECTIONS,
        *,
        search: str | None = None,
        where: str | None = None,
        limit: int | None = None,
    ) -> dict[str, pl.DataFrame]:
        """Group notes into ordered status sections.

        Each section's rows are sorted by modification time, newest first.
        Notes whose status no section names are left out unless a section
        is ``catch_all``.  Empty sections are omitted.
        """
        df = self.table_view(search=search, where=where, limit=limit)
        claimed: set[str | None] = set()
        board: dict[str, pl.DataFrame] = {}
        for section in sections:
            if section.catch_all:
                named = [s for s in claimed if s is not None]
                mask = pl.col("status").is_null() if None in claimed else pl.lit(False)
                mask = ~(pl.col("status").is_in(named).fill_null(False) | mask)
            else:
                named = [s for s in section.statuses if s is not None]
                mask = pl.col("status").is_in(named).fill_null(False)
                if None in section.statuses:
                    mask = mask | pl.col("status").is_null()
                claimed.update(section.statuses)
            rows = df.filter(mask).sort("mtime_ms", descending=True)
            if rows.height:
                board[section.title] = rows
        return board

    def project_titles(self) -> list[str]:
        """Titles of every project note, alphabetically."""
        rows = self.conn.execute(
            "SELECT title FROM notes WHERE is_project GROUP BY title ORDER BY lower(title)"
        ).fetchall()
        return [r[0] for r in rows]

    def tag_counts(self, where: str | None = None) -> pl.DataFrame:
        """Tags with their note counts, most used first.

        *where* narrows the notes counted (``"is_todo"`` / ``"is_project"``);
        this feeds the tag filter of a list UI.
        """
        scope = f" WHERE {where}" if where in ("is_todo", "is_project") else ""
        return self.conn.execute(
            f"""
            SELECT tag, COUNT(*) AS note_count
            FROM (SELECT unnest(tags) AS tag FROM notes{scope})
            GROUP BY tag
            ORDER BY note_count DESC, tag
            """
        ).pl()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "VaultDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
