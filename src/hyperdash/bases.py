"""Base-config loader: filter sets and views from a YAML ``.base`` document.

A base file looks like::

    filters:
      or:
        - tags.containsAny("ja/todo", "ae/todo")
    views:
      - type: table
        name: Open
        filters:
          and:
            - '!status.contains("done")'

The owning vault is found by walking up from the file to the first directory
holding a ``.obsidian`` marker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from hyperdash.filters import Combine, FilterSet, FilterTerm, build_filter_set

if TYPE_CHECKING:
    from hyperdash.note import NoteRecord

logger = logging.getLogger(__name__)

VAULT_MARKER = ".obsidian"
DEFAULT_VIEW_KIND = "table"


class RootSource(str, Enum):
    """How :attr:`BaseConfig.vault_root` was determined."""

    MARKER = "marker"
    #: Grandparent of the base file; no marker directory was found.
    FALLBACK = "fallback"


@dataclass
class ViewDefinition:
    name: str
    kind: str = DEFAULT_VIEW_KIND
    filter_set: FilterSet = field(default_factory=lambda: FilterSet(combine=Combine.OR))


@dataclass
class BaseConfig:
    top_filter_set: FilterSet = field(default_factory=FilterSet)
    vault_root: Path | None = None
    vault_root_source: RootSource | None = None
    views: list[ViewDefinition] = field(default_factory=list)
    source_path: Path | None = None

    def get_view(self, name: str) -> ViewDefinition | None:
        for view in self.views:
            if view.name == name:
                return view
        return None

    def tag_values(self) -> list[str]:
        """Values of every top-level ``tags`` term, in order."""
        return [v for t in self.top_filter_set.terms if t.property == "tags" for v in t.values]

    @property
    def filters(self) -> list[FilterTerm]:
        return self.top_filter_set.terms


# ---------------------------------------------------------------------------
# Filter blocks
# ---------------------------------------------------------------------------


def _negated(filter_set: FilterSet) -> FilterSet:
    terms = [
        FilterTerm(t.property, t.operator[1:] if t.negated else f"!{t.operator}", t.values)
        for t in filter_set.terms
    ]
    return FilterSet(terms=terms, combine=Combine.AND)


def parse_filter_block(block: Any, default: Combine = Combine.AND) -> FilterSet:
    """Read an ``{or: [...]}`` / ``{and: [...]}`` / ``{not: [...]}`` block.

    ``or`` wins over ``and``; ``not`` is only consulted when neither is
    present.  Anything else is an empty, permissive set.
    """
    if isinstance(block, str):
        return build_filter_set([block], Combine.AND)
    if not isinstance(block, dict):
        return FilterSet(combine=default)
    if isinstance(block.get("or"), list):
        return build_filter_set(block["or"], Combine.OR)
    if isinstance(block.get("and"), list):
        return build_filter_set(block["and"], Combine.AND)
    if isinstance(block.get("not"), list):
        return _negated(build_filter_set(block["not"], Combine.AND))
    return FilterSet(combine=default)


def _parse_views(raw: Any) -> list[ViewDefinition]:
    views: list[ViewDefinition] = []
    if not isinstance(raw, list):
        return views
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            continue
        kind = entry.get("type")
        views.append(
            ViewDefinition(
                name=name,
                kind=kind if isinstance(kind, str) and kind else DEFAULT_VIEW_KIND,
                filter_set=parse_filter_block(entry.get("filters"), default=Combine.OR),
            )
        )
    return views


# ---------------------------------------------------------------------------
# Vault root discovery
# ---------------------------------------------------------------------------


def find_vault_root(config_path: Path, marker: str = VAULT_MARKER) -> tuple[Path, RootSource]:
    """Return the nearest ancestor of *config_path* holding *marker*.

    Falls back to the file's grandparent directory, flagged as
    :attr:`RootSource.FALLBACK`, when no ancestor has the marker.
    """
    config_path = Path(config_path).expanduser().resolve()
    for directory in config_path.parents:
        if (directory / marker).is_dir():
            return directory, RootSource.MARKER
    return config_path.parent.parent, RootSource.FALLBACK


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_base_config(path: Path | str) -> BaseConfig | None:
    """Read a base file into a :class:`BaseConfig`; ``None`` when it can't be parsed."""
    config_path = Path(path).expanduser()
    try:
        doc = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.warning("Failed to read base file %s: %s", config_path, exc)
        return None
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        logger.warning("Base file %s is not a mapping", config_path)
        return None

    try:
        vault_root, source = find_vault_root(config_path)
    except OSError as exc:
        logger.warning("Failed to locate vault for %s: %s", config_path, exc)
        return None
    if source is RootSource.FALLBACK:
        logger.info("No %s marker above %s; guessing vault root %s", VAULT_MARKER, config_path, vault_root)

    return BaseConfig(
        top_filter_set=parse_filter_block(doc.get("filters")),
        vault_root=vault_root,
        vault_root_source=source,
        views=_parse_views(doc.get("views")),
        source_path=config_path,
    )


def evaluate_with_view(config: BaseConfig, note: "NoteRecord", view_name: str | None = None) -> bool:
    """Evaluate the base filters and, if *view_name* exists, that view's filters too."""
    if not config.top_filter_set.matches(note):
        return False
    if view_name:
        view = config.get_view(view_name)
        if view is not None:
            return view.filter_set.matches(note)
    return True
