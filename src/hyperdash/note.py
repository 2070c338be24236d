"""Core NoteRecord dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any


@dataclass
class NoteRecord:
    """A single note in the vault, as extracted by a scan.

    Records are never edited in place: mutations rewrite the underlying file
    and the next scan produces a fresh record.
    """

    path: Path
    relative_path: str
    title: str
    tags: frozenset[str] = field(default_factory=frozenset)
    mtime_ms: float = 0.0
    #: Raw front-matter, JSON-safe (dates already converted to ISO strings)
    frontmatter: dict[str, Any] = field(default_factory=dict)
    status: str | None = None
    project: str | None = None
    date_due: str | None = None
    date_started: str | None = None
    date_scheduled: str | None = None
    recurrence: str | None = None
    recurrence_anchor: str | None = None
    priority: str | None = None
    time_tracked: float | None = None
    time_estimate: float | None = None
    #: Per-scan labels added by a filter callback (e.g. ``{"todo": True}``)
    annotations: dict[str, Any] = field(default_factory=dict)

    @property
    def slug(self) -> str:
        """Filename without extension."""
        return self.path.stem

    @property
    def folder(self) -> str:
        parent = Path(self.relative_path).parent.as_posix()
        return "" if parent == "." else parent

    def is_overdue(self, today: date | None = None) -> bool:
        due = _parse_day(self.date_due)
        return due is not None and due < (today or date.today())

    def is_due_today(self, today: date | None = None) -> bool:
        due = _parse_day(self.date_due)
        return due is not None and due == (today or date.today())

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "relative_path": self.relative_path,
            "title": self.title,
            "tags": sorted(self.tags),
            "mtime_ms": self.mtime_ms,
            "frontmatter": self.frontmatter,
            "status": self.status,
            "project": self.project,
            "date_due": self.date_due,
            "date_started": self.date_started,
            "date_scheduled": self.date_scheduled,
            "recurrence": self.recurrence,
            "recurrence_anchor": self.recurrence_anchor,
            "priority": self.priority,
            "time_tracked": self.time_tracked,
            "time_estimate": self.time_estimate,
            "annotations": self.annotations,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteRecord":
        return cls(
            path=Path(data["path"]),
            relative_path=data["relative_path"],
            title=data["title"],
            tags=frozenset(data.get("tags") or []),
            mtime_ms=data.get("mtime_ms", 0.0),
            frontmatter=dict(data.get("frontmatter") or {}),
            status=data.get("status"),
            project=data.get("project"),
            date_due=data.get("date_due"),
            date_started=data.get("date_started"),
            date_scheduled=data.get("date_scheduled"),
            recurrence=data.get("recurrence"),
            recurrence_anchor=data.get("recurrence_anchor"),
            priority=data.get("priority"),
            time_tracked=data.get("time_tracked"),
            time_estimate=data.get("time_estimate"),
            annotations=dict(data.get("annotations") or {}),
        )


def _parse_day(value: str | None) -> date | None:
    """Parse the ``YYYY-MM-DD`` prefix of *value*; ``None`` when malformed."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
