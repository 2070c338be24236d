"""Vault scanner: walk a vault, extract every note, optionally filter.

File reads are fanned out with :func:`asyncio.to_thread` and joined with
:func:`asyncio.gather`.  A file that can't be read or parsed is dropped on
its own; the scan carries on.

The unfiltered result is what gets cached, so one snapshot serves any
number of filter callbacks.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Union

from hyperdash.cache import DEFAULT_MAX_AGE_MS
from hyperdash.note import NoteRecord
from hyperdash.parser import parse_note

if TYPE_CHECKING:
    from hyperdash.cache import VaultCache

logger = logging.getLogger(__name__)

NOTE_EXTENSIONS = frozenset({".md", ".markdown"})
#: Directory names never descended into (compared case-insensitively)
EXCLUDED_DIRS = frozenset({
    ".git",
    ".obsidian",
    ".trash",
    ".hyperdash",
    "node_modules",
    "archive",
    "log",
    "logs",
    "clippings",
})
MAX_FILES = 5000


# ---------------------------------------------------------------------------
# Filter callback results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Keep:
    """Keep *note* (possibly an annotated copy) in the scan result."""

    note: NoteRecord


class _Drop:
    _instance: "_Drop | None" = None

    def __new__(cls) -> "_Drop":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DROP"


#: Exclude the note from the scan result.
DROP = _Drop()

FilterResult = Union[Keep, _Drop]
FilterFn = Callable[[NoteRecord], FilterResult]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_note_files(vault_root: Path, max_files: int = MAX_FILES) -> list[Path]:
    """Return eligible note paths under *vault_root*, sorted and capped.

    Symlinked files and directories are skipped; excluded directories are
    pruned before descent.
    """
    vault_root = Path(vault_root)
    found: set[Path] = set()
    for dirpath, dirnames, filenames in os.walk(vault_root, followlinks=False):
        dirnames[:] = [
            d
            for d in dirnames
            if d.lower() not in EXCLUDED_DIRS and not os.path.islink(os.path.join(dirpath, d))
        ]
        for name in filenames:
            if os.path.splitext(name)[1].lower() not in NOTE_EXTENSIONS:
                continue
            path = Path(dirpath) / name
            if path.is_symlink():
                continue
            found.add(path)
    files = sorted(found)
    if len(files) > max_files:
        logger.warning("Vault %s has %d notes; scanning the first %d", vault_root, len(files), max_files)
    return files[:max_files]


def _read_note(path: Path, vault_root: Path) -> NoteRecord | None:
    try:
        return parse_note(path, vault_root)
    except Exception as exc:
        logger.debug("Skipping unreadable note %s: %s", path, exc)
        return None


async def read_all_notes(vault_root: Path, max_files: int = MAX_FILES) -> list[NoteRecord]:
    """Read and extract every eligible note concurrently."""
    vault_root = Path(vault_root)
    files = await asyncio.to_thread(discover_note_files, vault_root, max_files)
    results = await asyncio.gather(*(asyncio.to_thread(_read_note, p, vault_root) for p in files))
    return [note for note in results if note is not None]


def apply_filter(notes: list[NoteRecord], filter_fn: FilterFn | None) -> list[NoteRecord]:
    if filter_fn is None:
        return list(notes)
    kept: list[NoteRecord] = []
    for note in notes:
        result = filter_fn(note)
        if isinstance(result, Keep):
            kept.append(result.note)
    return kept


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def scan_vault_async(
    vault_root: Path | str,
    *,
    filter_fn: FilterFn | None = None,
    cache: "VaultCache | None" = None,
    use_cache: bool = True,
    max_age_ms: float = DEFAULT_MAX_AGE_MS,
    max_files: int = MAX_FILES,
) -> list[NoteRecord]:
    """Return the vault's notes, from *cache* when fresh, else from disk.

    A fresh scan is always stored in *cache* (when given) before
    *filter_fn* runs.  Result order is unspecified.
    """
    vault_root = Path(vault_root).expanduser()
    notes: list[NoteRecord] | None = None

    if cache is not None and use_cache:
        cache.restore_snapshot(vault_root)
        if cache.is_fresh(vault_root, max_age_ms):
            notes = cache.get(vault_root)
            if notes is not None:
                logger.debug("Cache hit for %s (%d notes)", vault_root, len(notes))

    if notes is None:
        notes = await read_all_notes(vault_root, max_files)
        logger.info("Scanned %d notes in %s", len(notes), vault_root)
        if cache is not None:
            cache.put(vault_root, notes)

    return apply_filter(notes, filter_fn)


def scan_vault(vault_root: Path | str, **kwargs) -> list[NoteRecord]:
    """Synchronous wrapper around :func:`scan_vault_async`."""
    return asyncio.run(scan_vault_async(vault_root, **kwargs))
