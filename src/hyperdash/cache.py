"""Scan cache: a namespaced DuckDB key-value store plus an on-disk JSON snapshot.

The primary store keeps two keys per vault, ``<hash>-notes`` and
``<hash>-timestamp``, which are always written and removed together.  The
snapshot (``<vault>/.hyperdash/scan-cache.json``) is advisory: it survives
process restarts, its write failures are swallowed, and it is only trusted
when its version tag and recorded vault path both check out.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable

import duckdb

from hyperdash.note import NoteRecord

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "hyperdash-vault-scan"
DEFAULT_MAX_AGE_MS = 5 * 60 * 1000
SNAPSHOT_DIR = ".hyperdash"
SNAPSHOT_FILE = "scan-cache.json"
SNAPSHOT_VERSION = 1


def _now_ms() -> float:
    return time.time() * 1000


def cache_key(vault_path: Path | str, suffix: str = "") -> str:
    """Stable, fixed-length key for *vault_path* within this namespace."""
    digest = hashlib.sha256(f"{CACHE_NAMESPACE}:{Path(vault_path)}".encode("utf-8")).hexdigest()
    return f"{digest}-{suffix}" if suffix else digest


def _dump_notes(notes: list[NoteRecord]) -> str:
    return json.dumps([n.to_dict() for n in notes], ensure_ascii=False)


def _load_notes(payload: Any) -> list[NoteRecord]:
    if not isinstance(payload, list):
        raise ValueError("notes payload is not a list")
    return [NoteRecord.from_dict(item) for item in payload]


# ---------------------------------------------------------------------------
# Snapshot file
# ---------------------------------------------------------------------------


def snapshot_path(vault_path: Path | str) -> Path:
    return Path(vault_path) / SNAPSHOT_DIR / SNAPSHOT_FILE


def write_snapshot(vault_path: Path | str, notes: list[NoteRecord], timestamp_ms: float) -> bool:
    """Atomically write the JSON snapshot; returns ``False`` on any failure."""
    target = snapshot_path(vault_path)
    tmp_name: str | None = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": SNAPSHOT_VERSION,
            "vault_path": str(Path(vault_path)),
            "timestamp": timestamp_ms,
            "notes": [n.to_dict() for n in notes],
        }
        with tempfile.NamedTemporaryFile(
            "w", dir=target.parent, prefix=".tmp_", suffix=".json", delete=False, encoding="utf-8"
        ) as fh:
            tmp_name = fh.name
            json.dump(data, fh, ensure_ascii=False)
        os.replace(tmp_name, target)
        return True
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to write scan snapshot %s: %s", target, exc)
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        return False


def read_snapshot(vault_path: Path | str) -> tuple[list[NoteRecord], float] | None:
    """Return ``(notes, timestamp_ms)`` from a valid snapshot, else ``None``."""
    target = snapshot_path(vault_path)
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable scan snapshot %s: %s", target, exc)
        return None
    if not isinstance(data, dict):
        return None
    if data.get("version") != SNAPSHOT_VERSION:
        logger.info("Ignoring scan snapshot %s with version %r", target, data.get("version"))
        return None
    if data.get("vault_path") != str(Path(vault_path)):
        logger.info("Ignoring scan snapshot %s recorded for %r", target, data.get("vault_path"))
        return None
    timestamp = data.get("timestamp")
    if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
        return None
    try:
        return _load_notes(data.get("notes")), float(timestamp)
    except (KeyError, TypeError, ValueError):
        return None


def remove_snapshot(vault_path: Path | str) -> None:
    try:
        snapshot_path(vault_path).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to remove scan snapshot for %s: %s", vault_path, exc)


# ---------------------------------------------------------------------------
# Primary store
# ---------------------------------------------------------------------------


class VaultCache:
    """Unfiltered scan results keyed by vault path, with a freshness window."""

    def __init__(
        self,
        db_path: Path | str = ":memory:",
        *,
        namespace: str = CACHE_NAMESPACE,
        clock: Callable[[], float] = _now_ms,
        snapshots: bool = True,
    ) -> None:
        self.namespace = namespace
        self.snapshots = snapshots
        self._clock = clock
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(str(db_path))
        self._create_schema()

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS cache_entries (
                bucket    VARCHAR NOT NULL,
                entry_key VARCHAR NOT NULL,
                payload   VARCHAR NOT NULL,
                PRIMARY KEY (bucket, entry_key)
            )
        """)

    # ------------------------------------------------------------------
    # Key-value primitives
    # ------------------------------------------------------------------

    def _get_raw(self, key: str) -> str | None:
        row = self.conn.execute(
            "SELECT payload FROM cache_entries WHERE bucket = ? AND entry_key = ?",
            [self.namespace, key],
        ).fetchone()
        return row[0] if row else None

    def _put_pair(self, vault_path: Path | str, notes_json: str, timestamp_ms: float) -> None:
        stamp = json.dumps({"timestamp": float(timestamp_ms), "vault_path": str(Path(vault_path))})
        rows = [
            (self.namespace, cache_key(vault_path, "notes"), notes_json),
            (self.namespace, cache_key(vault_path, "timestamp"), stamp),
        ]
        self.conn.execute("BEGIN TRANSACTION")
        try:
            self.conn.executemany("INSERT OR REPLACE INTO cache_entries VALUES (?, ?, ?)", rows)
            self.conn.execute("COMMIT")
        except duckdb.Error:
            self.conn.execute("ROLLBACK")
            raise

    def _stamps(self) -> list[dict[str, Any]]:
        rows = self.conn.execute(
            "SELECT payload FROM cache_entries WHERE bucket = ? AND entry_key LIKE '%-timestamp'",
            [self.namespace],
        ).fetchall()
        stamps: list[dict[str, Any]] = []
        for (raw,) in rows:
            try:
                stamp = json.loads(raw)
            except ValueError:
                continue
            if isinstance(stamp, dict):
                stamps.append(stamp)
        return stamps

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, vault_path: Path | str) -> list[NoteRecord] | None:
        """Cached notes for *vault_path*, regardless of age; ``None`` on miss."""
        raw = self._get_raw(cache_key(vault_path, "notes"))
        if raw is None:
            return None
        try:
            return _load_notes(json.loads(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding corrupt cache entry for %s: %s", vault_path, exc)
            return None

    def timestamp(self, vault_path: Path | str) -> float | None:
        raw = self._get_raw(cache_key(vault_path, "timestamp"))
        if raw is None:
            return None
        try:
            value = json.loads(raw).get("timestamp")
        except (AttributeError, ValueError):
            return None
        return float(value) if isinstance(value, (int, float)) else None

    def is_fresh(self, vault_path: Path | str, max_age_ms: float = DEFAULT_MAX_AGE_MS) -> bool:
        stored = self.timestamp(vault_path)
        return stored is not None and self._clock() - stored < max_age_ms

    def put(self, vault_path: Path | str, notes: list[NoteRecord]) -> None:
        """Store *notes* and stamp them; also refresh the snapshot when enabled."""
        now = self._clock()
        self._put_pair(vault_path, _dump_notes(notes), now)
        if self.snapshots:
            write_snapshot(vault_path, notes, now)

    def restore_snapshot(self, vault_path: Path | str) -> bool:
        """Seed an empty entry from a valid snapshot, keeping the snapshot's timestamp."""
        if not self.snapshots or self._get_raw(cache_key(vault_path, "timestamp")) is not None:
            return False
        loaded = read_snapshot(vault_path)
        if loaded is None:
            return False
        notes, timestamp_ms = loaded
        self._put_pair(vault_path, _dump_notes(notes), timestamp_ms)
        return True

    def invalidate(self, vault_path: Path | str) -> None:
        """Drop the notes and timestamp for *vault_path* together."""
        self.conn.execute(
            "DELETE FROM cache_entries WHERE bucket = ? AND entry_key IN (?, ?)",
            [self.namespace, cache_key(vault_path, "notes"), cache_key(vault_path, "timestamp")],
        )
        if self.snapshots:
            remove_snapshot(vault_path)

    def invalidate_all(self) -> None:
        """Clear every entry in this namespace, with the snapshots they wrote."""
        if self.snapshots:
            for stamp in self._stamps():
                if isinstance(stamp.get("vault_path"), str):
                    remove_snapshot(stamp["vault_path"])
        self.conn.execute("DELETE FROM cache_entries WHERE bucket = ?", [self.namespace])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "VaultCache":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
