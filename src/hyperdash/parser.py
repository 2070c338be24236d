"""Front-matter, tag, title and typed-field extraction for vault notes."""

from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from hyperdash.note import NoteRecord

# Inline #tags preceded by start-of-line or whitespace
_TAG_RE = re.compile(r"(?:^|(?<=\s))#([A-Za-z0-9_/-]+)", re.MULTILINE)
# First level-1 heading
_H1_RE = re.compile(r"^#[ \t]+(.+?)[ \t]*$", re.MULTILINE)
# YAML front-matter block
_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
_TAG_SPLIT_RE = re.compile(r"[,\s]+")
_WIKILINK_RE = re.compile(r"^\[\[(.*?)\]\]$")

#: Accepted metadata spellings per logical field, highest priority first.
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "status": ("status", "Status"),
    "project": ("project", "Project"),
    "date_due": ("date_due", "dateDue", "DateDue", "due"),
    "date_started": ("date_started", "dateStarted", "DateStarted", "started"),
    "date_scheduled": ("date_scheduled", "dateScheduled", "DateScheduled", "scheduled"),
    "recurrence": ("recurrence", "Recurrence"),
    "recurrence_anchor": ("recurrence_anchor", "recurrenceAnchor", "RecurrenceAnchor"),
    "priority": ("priority", "Priority"),
    "time_tracked": ("time_tracked", "timeTracked", "TimeTracked"),
    "time_estimate": ("time_estimate", "timeEstimate", "TimeEstimate"),
}

_NUMERIC_FIELDS = {"time_tracked", "time_estimate"}


def parse_frontmatter(content: str, *, strict: bool = False) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block.  Invalid YAML (including impossible dates such
    as ``2024-02-30``, which PyYAML reports as :class:`ValueError`) yields an
    empty dict unless *strict* is set, in which case the error propagates.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except (yaml.YAMLError, ValueError):
        if strict:
            raise
        meta = {}
    if not isinstance(meta, dict):
        if strict:
            raise yaml.YAMLError("front-matter is not a mapping")
        meta = {}
    return meta, content[match.end() :]


def parse_tags(text: str) -> list[str]:
    """Return all inline ``#tag`` values found in *text* (de-duped, ordered)."""
    return list(dict.fromkeys(m.group(1) for m in _TAG_RE.finditer(text)))


def normalize_tags(value: Any) -> list[str]:
    """Flatten a front-matter ``tags`` value (string or list) into tag names."""
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, list):
        items = [v for v in value if isinstance(v, str)]
    else:
        return []
    tags: list[str] = []
    for item in items:
        tags.extend(t.lstrip("#") for t in _TAG_SPLIT_RE.split(item) if t.strip("#"))
    return tags


def extract_title(body: str, fm_title: Any, fallback: str) -> str:
    if isinstance(fm_title, str) and fm_title.strip():
        return fm_title.strip()
    m = _H1_RE.search(body)
    if m and m.group(1).strip():
        return m.group(1).strip()
    return fallback


def first_value(meta: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first non-empty value among *keys*, in order."""
    for key in keys:
        value = meta.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


def strip_wikilink(value: str) -> str:
    m = _WIKILINK_RE.match(value.strip())
    return m.group(1).strip() if m else value.strip()


def to_jsonable(value: Any, _active: frozenset[int] = frozenset()) -> Any:
    """Convert YAML-loaded values into JSON-safe equivalents.

    A container that contains itself (YAML anchors allow ``x: &a [*a]``)
    becomes ``None`` at the point where it repeats.
    """
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple, set)):
        if id(value) in _active:
            return None
        active = _active | {id(value)}
        if isinstance(value, dict):
            return {str(k): to_jsonable(v, active) for k, v in value.items()}
        return [to_jsonable(v, active) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _typed_field(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _NUMERIC_FIELDS:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return value
        try:
            return float(str(value).strip())
        except ValueError:
            return None
    if isinstance(value, (list, dict)):
        return None
    text = str(value).strip()
    if name == "project":
        text = strip_wikilink(text)
    elif name == "status":
        text = text.lower()
    return text or None


def extract_note(
    content: str,
    path: Path,
    *,
    relative_path: str | None = None,
    mtime_ms: float = 0.0,
) -> NoteRecord:
    """Build a :class:`NoteRecord` from the raw text of one note.

    Missing or malformed metadata never raises; absent fields stay ``None``.
    """
    raw_meta, body = parse_frontmatter(content)
    meta = to_jsonable(raw_meta)

    inline_tags = parse_tags(body)
    fm_tags = normalize_tags(meta.get("tags"))
    tags = frozenset(t.lower() for t in fm_tags + inline_tags)

    fields = {name: _typed_field(name, first_value(meta, keys)) for name, keys in FIELD_KEYS.items()}

    return NoteRecord(
        path=path,
        relative_path=relative_path if relative_path is not None else path.name,
        title=extract_title(body, meta.get("title"), path.stem),
        tags=tags,
        mtime_ms=mtime_ms,
        frontmatter=meta,
        **fields,
    )


def parse_note(path: Path, vault_root: Path | None = None) -> NoteRecord:
    """Read a note file and return a fully-populated :class:`NoteRecord`."""
    content = path.read_text(encoding="utf-8")
    mtime_ms = path.stat().st_mtime * 1000
    rel = path.relative_to(vault_root).as_posix() if vault_root is not None else path.name
    return extract_note(content, path, relative_path=rel, mtime_ms=mtime_ms)
