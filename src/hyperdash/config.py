"""Explicit settings for the vault browser.

Settings are a plain dataclass handed to :class:`~hyperdash.browser.VaultBrowser`;
nothing in the core reads preferences from global state.  They can be built
directly, from a ``[hyperdash]`` table in a TOML file, or from environment
variables::

    [hyperdash]
    todo_base_file    = "~/Vault/Bases/Todos.base"
    todo_view_name    = "Open"
    project_base_file = "~/Vault/Bases/Projects.base"
    max_results       = 300

Environment variables (``HYPERDASH_`` + upper-cased field name, e.g.
``HYPERDASH_TODO_BASE_FILE``) take precedence over the file.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "HYPERDASH_"


@dataclass
class Settings:
    todo_base_file: str = ""
    todo_view_name: str = ""
    project_base_file: str = ""
    project_view_name: str = ""
    max_results: int = 500
    cache_max_age_ms: int = 5 * 60 * 1000
    use_cache: bool = True
    cache_db_path: str = ":memory:"
    max_files: int = 5000
    write_snapshot: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Build settings from *data*, ignoring unknown keys and bad values."""
        settings = cls()
        for f in fields(cls):
            if f.name in data:
                value = _coerce(data[f.name], getattr(settings, f.name))
                if value is not None:
                    setattr(settings, f.name, value)
        return settings

    def with_env(self, environ: dict[str, str] | None = None) -> "Settings":
        """Return a copy with ``HYPERDASH_*`` overrides applied."""
        env = os.environ if environ is None else environ
        overrides = {
            f.name: env[ENV_PREFIX + f.name.upper()]
            for f in fields(self)
            if ENV_PREFIX + f.name.upper() in env
        }
        merged = {f.name: getattr(self, f.name) for f in fields(self)}
        merged.update(overrides)
        return Settings.from_dict(merged)


def _coerce(value: Any, default: Any) -> Any:
    """Coerce *value* to the type of *default*; ``None`` when it can't be."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no"):
            return False
        return None
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return str(value).strip() if value is not None else None


def load_settings(path: Path | str | None = None, environ: dict[str, str] | None = None) -> Settings:
    """Load settings from an optional TOML file, then apply env overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        settings_path = Path(path).expanduser()
        try:
            with open(settings_path, "rb") as fh:
                raw = tomllib.load(fh)
        except FileNotFoundError:
            logger.info("Settings file %s not found; using defaults", settings_path)
        except tomllib.TOMLDecodeError as exc:
            logger.warning("Ignoring invalid settings file %s: %s", settings_path, exc)
        else:
            table = raw.get("hyperdash", raw)
            data = table if isinstance(table, dict) else {}
    return Settings.from_dict(data).with_env(environ)
