"""VaultBrowser: the entry point a launcher UI drives.

One browser serves one UI surface.  It reads the todo and project base
files named in its :class:`~hyperdash.config.Settings`, scans their vault
once, and labels each note ``todo`` and/or ``project``.  Configuration
problems come back as a :class:`LoadResult` carrying a message instead of
an exception.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path

import polars as pl

from hyperdash.bases import BaseConfig, RootSource, evaluate_with_view, load_base_config
from hyperdash.cache import VaultCache
from hyperdash.config import Settings
from hyperdash.db import PROJECT_SECTIONS, TODO_SECTIONS, VaultDB
from hyperdash.mutations import (
    create_project_note,
    create_todo_note,
    set_date_field,
    set_project_field,
    set_status,
)
from hyperdash.note import NoteRecord
from hyperdash.scanner import DROP, FilterResult, Keep, scan_vault_async

logger = logging.getLogger(__name__)

#: Statuses that take a note off every list
CLOSED_STATUSES = frozenset({"done", "canceled", "cancelled"})


class ConfigError(Exception):
    """A base file is missing, unparseable, or lacks what an action needs."""


@dataclass
class LoadResult:
    notes: list[NoteRecord] = field(default_factory=list)
    vault_root: Path | None = None
    #: User-facing reason the load produced nothing
    message: str | None = None
    warnings: list[str] = field(default_factory=list)
    #: Row cap for the board helpers; ``None`` shows everything
    max_results: int | None = None

    @property
    def ok(self) -> bool:
        return self.message is None

    @property
    def todos(self) -> list[NoteRecord]:
        return [n for n in self.notes if n.annotations.get("todo")]

    @property
    def projects(self) -> list[NoteRecord]:
        return [n for n in self.notes if n.annotations.get("project")]

    def board(self) -> VaultDB:
        return VaultDB(self.notes)

    def todo_board(self) -> dict[str, pl.DataFrame]:
        """Todo notes grouped into status sections."""
        with self.board() as db:
            return db.kanban_view(TODO_SECTIONS, where="is_todo", limit=self.max_results)

    def project_board(self) -> dict[str, pl.DataFrame]:
        with self.board() as db:
            return db.kanban_view(PROJECT_SECTIONS, where="is_project", limit=self.max_results)

    def tag_counts(self, where: str | None = None) -> pl.DataFrame:
        with self.board() as db:
            return db.tag_counts(where=where)


class VaultBrowser:
    def __init__(self, settings: Settings, cache: VaultCache | None = None) -> None:
        self.settings = settings
        self.cache = cache if cache is not None else VaultCache(
            settings.cache_db_path, snapshots=settings.write_snapshot
        )
        self.vault_root: Path | None = None
        self._loading = False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _load_config(self, path: str, label: str) -> BaseConfig:
        if not path.strip():
            raise ConfigError(f"Set {label} Base File in settings")
        config = load_base_config(path.strip())
        if config is None:
            raise ConfigError(f"Failed to parse {label} Base file: check that it is valid YAML")
        if config.vault_root is None:
            raise ConfigError(f"Could not find vault for {label} Base file")
        return config

    def todo_config(self) -> BaseConfig:
        return self._load_config(self.settings.todo_base_file, "Todo")

    def project_config(self) -> BaseConfig:
        return self._load_config(self.settings.project_base_file, "Project")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, rebuild: bool = False) -> LoadResult | None:
        """Scan the vault and classify notes; ``None`` if a load is already running."""
        if self._loading:
            logger.debug("Load already in flight; ignoring")
            return None
        self._loading = True
        try:
            return await self._load(rebuild)
        finally:
            self._loading = False

    def load_sync(self, rebuild: bool = False) -> LoadResult | None:
        return asyncio.run(self.load(rebuild))

    async def _load(self, rebuild: bool) -> LoadResult:
        try:
            todo_cfg = self.todo_config()
            project_cfg = self.project_config()
        except ConfigError as exc:
            logger.warning("%s", exc)
            return LoadResult(message=str(exc))

        warnings = [
            f"No .obsidian folder found above {cfg.source_path}; guessing vault {cfg.vault_root}"
            for cfg in (todo_cfg, project_cfg)
            if cfg.vault_root_source is RootSource.FALLBACK
        ]
        vault_root = todo_cfg.vault_root
        self.vault_root = vault_root
        if rebuild:
            self.cache.invalidate(vault_root)

        todo_view = self.settings.todo_view_name.strip() or None
        project_view = self.settings.project_view_name.strip() or None

        def classify(note: NoteRecord) -> FilterResult:
            if note.status in CLOSED_STATUSES:
                return DROP
            is_todo = evaluate_with_view(todo_cfg, note, todo_view)
            is_project = evaluate_with_view(project_cfg, note, project_view)
            if not (is_todo or is_project):
                return DROP
            return Keep(replace(note, annotations={**note.annotations, "todo": is_todo, "project": is_project}))

        notes = await scan_vault_async(
            vault_root,
            filter_fn=classify,
            cache=self.cache,
            use_cache=self.settings.use_cache,
            max_age_ms=self.settings.cache_max_age_ms,
            max_files=self.settings.max_files,
        )
        return LoadResult(
            notes=notes,
            vault_root=vault_root,
            warnings=warnings,
            max_results=self.settings.max_results,
        )

    def invalidate_cache(self) -> None:
        if self.vault_root is not None:
            self.cache.invalidate(self.vault_root)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _create(self, config: BaseConfig, title: str, label: str, create) -> Path:
        if not title.strip():
            raise ValueError("Title must not be empty")
        tags = config.tag_values()
        if not tags:
            raise ConfigError(f"No tags found in {label} Base file: it must contain at least one tag filter")
        path = create(config.vault_root, title.strip(), tags[0])
        self.cache.invalidate(config.vault_root)
        return path

    def create_todo(self, title: str) -> Path:
        return self._create(self.todo_config(), title, "Todo", create_todo_note)

    def create_project(self, title: str) -> Path:
        return self._create(self.project_config(), title, "Project", create_project_note)

    def set_status(self, note: NoteRecord, status: str | None) -> None:
        set_status(note.path, status)
        self.invalidate_cache()

    def set_project(self, note: NoteRecord, project: str | None) -> None:
        set_project_field(note.path, project)
        self.invalidate_cache()

    def set_date(self, note: NoteRecord, field: str, value: date | None) -> None:
        set_date_field(note.path, field, value)
        self.invalidate_cache()
