"""Unit tests for hyperdash.config."""

import textwrap
from pathlib import Path

from hyperdash.config import Settings, load_settings


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.max_results == 500
        assert s.cache_max_age_ms == 300_000
        assert s.use_cache is True
        assert s.todo_base_file == ""

    def test_from_dict_coerces_and_ignores_unknown(self):
        s = Settings.from_dict({"max_results": "25", "use_cache": "no", "bogus": 1})
        assert s.max_results == 25
        assert s.use_cache is False
        assert not hasattr(s, "bogus")

    def test_bad_values_keep_defaults(self):
        s = Settings.from_dict({"max_results": "lots", "use_cache": "maybe"})
        assert s.max_results == 500
        assert s.use_cache is True

    def test_env_overrides(self):
        s = Settings(todo_base_file="a.base").with_env(
            {"HYPERDASH_TODO_BASE_FILE": "b.base", "HYPERDASH_MAX_FILES": "10", "OTHER": "x"}
        )
        assert s.todo_base_file == "b.base"
        assert s.max_files == 10


class TestLoadSettings:
    def test_no_file(self):
        assert load_settings(environ={}) == Settings()

    def test_table(self, tmp_path: Path):
        path = _write(tmp_path / "settings.toml", """\
            [hyperdash]
            todo_base_file = "~/Vault/Todos.base"
            todo_view_name = "Open"
            max_results = 300
            write_snapshot = false
        """)
        s = load_settings(path, environ={})
        assert s.todo_base_file == "~/Vault/Todos.base"
        assert s.todo_view_name == "Open"
        assert s.max_results == 300
        assert s.write_snapshot is False

    def test_top_level_keys(self, tmp_path: Path):
        path = _write(tmp_path / "settings.toml", 'project_base_file = "p.base"\n')
        assert load_settings(path, environ={}).project_base_file == "p.base"

    def test_env_beats_file(self, tmp_path: Path):
        path = _write(tmp_path / "settings.toml", "[hyperdash]\nmax_results = 300\n")
        s = load_settings(path, environ={"HYPERDASH_MAX_RESULTS": "7"})
        assert s.max_results == 7

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        assert load_settings(tmp_path / "nope.toml", environ={}) == Settings()

    def test_invalid_file_uses_defaults(self, tmp_path: Path):
        path = _write(tmp_path / "settings.toml", "[hyperdash\nbroken = \n")
        assert load_settings(path, environ={}) == Settings()
