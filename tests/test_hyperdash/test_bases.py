"""Unit tests for hyperdash.bases."""

import textwrap
from pathlib import Path

import pytest

from hyperdash.bases import (
    BaseConfig,
    RootSource,
    evaluate_with_view,
    find_vault_root,
    load_base_config,
    parse_filter_block,
)
from hyperdash.filters import Combine, FilterTerm
from hyperdash.note import NoteRecord

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _write_base(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def _note(**kwargs) -> NoteRecord:
    defaults = {"path": Path("/vault/a.md"), "relative_path": "a.md", "title": "A"}
    defaults.update(kwargs)
    return NoteRecord(**defaults)


@pytest.fixture()
def vault(tmp_path: Path) -> Path:
    (tmp_path / ".obsidian").mkdir()
    return tmp_path


# ---------------------------------------------------------------------------
# parse_filter_block
# ---------------------------------------------------------------------------


class TestParseFilterBlock:
    def test_or_block(self):
        fs = parse_filter_block({"or": ['tags.contains("a")', 'tags.contains("b")']})
        assert fs.combine is Combine.OR
        assert len(fs.terms) == 2

    def test_and_block(self):
        fs = parse_filter_block({"and": ['tags.contains("a")']}, default=Combine.OR)
        assert fs.combine is Combine.AND

    def test_or_wins_over_and(self):
        fs = parse_filter_block({"and": ['tags.contains("a")'], "or": ['tags.contains("b")']})
        assert fs.combine is Combine.OR
        assert fs.terms == [FilterTerm("tags", "contains", ("b",))]

    def test_not_block_negates_each_term(self):
        fs = parse_filter_block({"not": ['status.contains("done")', '!tags.contains("x")']})
        assert fs.combine is Combine.AND
        assert [t.operator for t in fs.terms] == ["!contains", "contains"]

    def test_bare_string_is_one_term(self):
        fs = parse_filter_block('tags.contains("a")')
        assert fs.terms == [FilterTerm("tags", "contains", ("a",))]

    @pytest.mark.parametrize("block", [None, 42, {}, {"or": "nope"}, ["tags.contains('a')"]])
    def test_unusable_blocks_are_empty(self, block):
        fs = parse_filter_block(block, default=Combine.OR)
        assert fs.terms == []
        assert fs.combine is Combine.OR


# ---------------------------------------------------------------------------
# find_vault_root
# ---------------------------------------------------------------------------


class TestFindVaultRoot:
    def test_marker_three_levels_up(self, vault: Path):
        base = _write_base(vault / "a" / "b" / "c" / "x.base", "filters: {}\n")
        root, source = find_vault_root(base)
        assert root == vault.resolve()
        assert source is RootSource.MARKER

    def test_nearest_marker_wins(self, vault: Path):
        inner = vault / "inner"
        (inner / ".obsidian").mkdir(parents=True)
        base = _write_base(inner / "Bases" / "x.base", "filters: {}\n")
        root, _ = find_vault_root(base)
        assert root == inner.resolve()

    def test_marker_must_be_a_directory(self, tmp_path: Path):
        (tmp_path / "one" / "two").mkdir(parents=True)
        (tmp_path / "one" / ".marker").write_text("not a dir", encoding="utf-8")
        base = _write_base(tmp_path / "one" / "two" / "x.base", "filters: {}\n")
        _, source = find_vault_root(base, marker=".marker")
        assert source is RootSource.FALLBACK

    def test_fallback_is_grandparent(self, tmp_path: Path):
        base = _write_base(tmp_path / "one" / "two" / "x.base", "filters: {}\n")
        root, source = find_vault_root(base, marker=".no-such-marker-dir")
        assert root == (tmp_path / "one").resolve()
        assert source is RootSource.FALLBACK


# ---------------------------------------------------------------------------
# load_base_config
# ---------------------------------------------------------------------------


class TestLoadBaseConfig:
    def test_full_document(self, vault: Path):
        base = _write_base(vault / "Bases" / "Todos.base", """\
            filters:
              or:
                - tags.containsAny("ja/todo", "ae/todo")
                - tags.contains("todo")
            views:
              - type: cards
                name: Open
                filters:
                  and:
                    - '!status.contains("done")'
              - name: All
              - type: table
              - not-a-mapping
        """)
        config = load_base_config(base)
        assert isinstance(config, BaseConfig)
        assert config.vault_root == vault.resolve()
        assert config.vault_root_source is RootSource.MARKER
        assert config.top_filter_set.combine is Combine.OR
        assert config.tag_values() == ["ja/todo", "ae/todo", "todo"]
        assert [v.name for v in config.views] == ["Open", "All"]
        assert config.get_view("Open").kind == "cards"
        assert config.get_view("All").kind == "table"
        assert config.get_view("All").filter_set.combine is Combine.OR

    def test_no_filters_is_permissive(self, vault: Path):
        config = load_base_config(_write_base(vault / "Empty.base", "views: []\n"))
        assert config.filters == []
        assert evaluate_with_view(config, _note())

    def test_empty_file_is_permissive(self, vault: Path):
        config = load_base_config(_write_base(vault / "Empty.base", ""))
        assert config is not None
        assert config.filters == []

    def test_invalid_yaml_returns_none(self, vault: Path):
        assert load_base_config(_write_base(vault / "Bad.base", "filters: [unclosed\n")) is None

    def test_non_mapping_returns_none(self, vault: Path):
        assert load_base_config(_write_base(vault / "List.base", "- a\n- b\n")) is None

    def test_missing_file_returns_none(self, vault: Path):
        assert load_base_config(vault / "missing.base") is None


# ---------------------------------------------------------------------------
# evaluate_with_view
# ---------------------------------------------------------------------------


class TestEvaluateWithView:
    @pytest.fixture()
    def config(self, vault: Path) -> BaseConfig:
        return load_base_config(_write_base(vault / "Todos.base", """\
            filters:
              and:
                - tags.contains("todo")
            views:
              - name: Open
                filters:
                  and:
                    - '!status.contains("done")'
        """))

    def test_base_filters_apply(self, config: BaseConfig):
        assert not evaluate_with_view(config, _note(tags=frozenset({"other"})))

    def test_view_filters_narrow(self, config: BaseConfig):
        done = _note(tags=frozenset({"todo"}), status="done")
        assert evaluate_with_view(config, done)
        assert not evaluate_with_view(config, done, "Open")

    def test_unknown_view_uses_base_only(self, config: BaseConfig):
        done = _note(tags=frozenset({"todo"}), status="done")
        assert evaluate_with_view(config, done, "Nope")
