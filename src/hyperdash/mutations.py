"""Targeted front-matter rewrites and note creation.

Every mutation reads the note, changes only the requested keys, stamps
``dateModified`` and writes the file back atomically (temp file in the same
directory, then :func:`os.replace`).  The body is written back unchanged.
Any I/O or YAML failure surfaces as :class:`NoteWriteError`.
"""

from __future__ import annotations

import logging
import os
import re
import stat
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

import yaml

from hyperdash.parser import FIELD_KEYS, parse_frontmatter

logger = logging.getLogger(__name__)

MODIFIED_KEY = "dateModified"
CREATED_KEY = "dateCreated"

#: Logical date field -> key written when the note has none of its spellings yet
DATE_FIELDS: dict[str, str] = {
    "date_due": "dateDue",
    "date_started": "dateStarted",
    "date_scheduled": "dateScheduled",
}

_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|#^\[\]]+')


class NoteWriteError(OSError):
    """A note could not be read, parsed or rewritten."""


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def render_note(meta: dict[str, Any], body: str) -> str:
    """Serialise *meta* as a YAML front-matter block followed by *body*."""
    if not meta:
        return body
    dumped = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=None)
    return f"---\n{dumped}---\n{body}"


def _atomic_write(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        if path.exists():
            os.chmod(tmp_name, stat.S_IMODE(path.stat().st_mode))
        os.replace(tmp_name, path)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def update_frontmatter(path: Path | str, mutate: Callable[[dict[str, Any]], None]) -> None:
    """Apply *mutate* to the note's front-matter and rewrite the file."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
        meta, body = parse_frontmatter(content, strict=True)
        mutate(meta)
        meta[MODIFIED_KEY] = _timestamp()
        _atomic_write(path, render_note(meta, body))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise NoteWriteError(f"Failed to update {path}: {exc}") from exc
    logger.debug("Updated front-matter of %s", path)


def _set_or_delete(meta: dict[str, Any], keys: tuple[str, ...], preferred: str, value: Any) -> None:
    """Write *value* to every present spelling (or *preferred*); delete all when empty."""
    if value is None or value == "":
        for key in keys:
            meta.pop(key, None)
        return
    present = [k for k in keys if k in meta]
    for key in present or [preferred]:
        meta[key] = value


def set_status(path: Path | str, status: str | None) -> None:
    value = status.strip() if isinstance(status, str) else status
    update_frontmatter(path, lambda meta: _set_or_delete(meta, FIELD_KEYS["status"], "status", value))


def set_project_field(path: Path | str, project: str | None) -> None:
    """Link the note to *project* as ``[[project]]``; clear it when empty."""
    name = (project or "").strip()
    if name.startswith("[[") and name.endswith("]]"):
        name = name[2:-2].strip()
    value = f"[[{name}]]" if name else None
    update_frontmatter(path, lambda meta: _set_or_delete(meta, FIELD_KEYS["project"], "project", value))


def set_date_field(path: Path | str, field: str, value: date | str | None) -> None:
    """Set one of the date fields (``date_due``, ``dateDue``, ...) or clear it."""
    logical = _date_field_name(field)
    if isinstance(value, datetime):
        value = value.date()
    elif isinstance(value, str) and value.strip():
        try:
            value = date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise NoteWriteError(f"Invalid date {value!r} for {field}") from exc
    update_frontmatter(
        path,
        lambda meta: _set_or_delete(meta, FIELD_KEYS[logical], DATE_FIELDS[logical], value or None),
    )


def _date_field_name(field: str) -> str:
    for logical, keys in FIELD_KEYS.items():
        if logical in DATE_FIELDS and (field == logical or field in keys):
            return logical
    raise ValueError(f"Unknown date field: {field!r}")


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def note_filename(title: str) -> str:
    cleaned = _UNSAFE_FILENAME_RE.sub(" ", title).strip().strip(".")
    cleaned = re.sub(r"\s+", " ", cleaned)
    return f"{cleaned or 'Untitled'}.md"


def create_note(
    vault_root: Path | str,
    title: str,
    *,
    tag: str | None = None,
    status: str | None = None,
    folder: str = "",
) -> Path:
    """Write a new note and return its path; never overwrites an existing file."""
    directory = Path(vault_root) / folder
    path = directory / note_filename(title)
    now = _timestamp()
    meta: dict[str, Any] = {"title": title.strip()}
    if tag:
        meta["tags"] = [tag]
    if status:
        meta["status"] = status
    meta[CREATED_KEY] = now
    meta[MODIFIED_KEY] = now
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with path.open("x", encoding="utf-8") as fh:
            fh.write(render_note(meta, f"\n# {title.strip()}\n"))
    except OSError as exc:
        raise NoteWriteError(f"Failed to create {path}: {exc}") from exc
    logger.info("Created note %s", path)
    return path


def create_todo_note(vault_root: Path | str, title: str, tag: str | None) -> Path:
    return create_note(vault_root, title, tag=tag, status="todo")


def create_project_note(vault_root: Path | str, title: str, tag: str | None) -> Path:
    return create_note(vault_root, title, tag=tag, status="planning")
