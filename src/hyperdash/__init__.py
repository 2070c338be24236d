"""Hyperdash: todo and project lists over a vault of markdown notes."""

from hyperdash.bases import BaseConfig, ViewDefinition, evaluate_with_view, load_base_config
from hyperdash.browser import LoadResult, VaultBrowser
from hyperdash.cache import VaultCache
from hyperdash.config import Settings, load_settings
from hyperdash.db import VaultDB
from hyperdash.filters import FilterSet, FilterTerm, parse_filter_expression
from hyperdash.mutations import NoteWriteError, set_date_field, set_project_field, set_status
from hyperdash.note import NoteRecord
from hyperdash.parser import extract_note, parse_note
from hyperdash.scanner import DROP, Keep, scan_vault, scan_vault_async

__all__ = [
    "BaseConfig",
    "ViewDefinition",
    "evaluate_with_view",
    "load_base_config",
    "LoadResult",
    "VaultBrowser",
    "VaultCache",
    "Settings",
    "load_settings",
    "VaultDB",
    "FilterSet",
    "FilterTerm",
    "parse_filter_expression",
    "NoteWriteError",
    "set_date_field",
    "set_project_field",
    "set_status",
    "NoteRecord",
    "extract_note",
    "parse_note",
    "DROP",
    "Keep",
    "scan_vault",
    "scan_vault_async",
]
