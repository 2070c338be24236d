"""Unit tests for hyperdash.filters."""

from pathlib import Path

import pytest

from hyperdash.filters import (
    Combine,
    FilterSet,
    FilterTerm,
    build_filter_set,
    evaluate_filter_set,
    evaluate_term,
    parse_filter_expression,
)
from hyperdash.note import NoteRecord


def _note(**kwargs) -> NoteRecord:
    defaults = {"path": Path("/vault/Tasks/write.md"), "relative_path": "Tasks/write.md", "title": "Write"}
    defaults.update(kwargs)
    return NoteRecord(**defaults)


# ---------------------------------------------------------------------------
# parse_filter_expression
# ---------------------------------------------------------------------------


class TestParseFilterExpression:
    def test_contains_any(self):
        term = parse_filter_expression('tags.containsAny("a/todo", "b/todo")')
        assert term == FilterTerm("tags", "containsAny", ("a/todo", "b/todo"))

    def test_negated_contains(self):
        term = parse_filter_expression('!tags.contains("x")')
        assert term == FilterTerm("tags", "!contains", ("x",))
        assert term.negated

    def test_single_quotes(self):
        term = parse_filter_expression("status.contains('done')")
        assert term.values == ("done",)

    def test_property_lowercased_and_operator_canonical(self):
        term = parse_filter_expression('Note.Status.CONTAINSANY("a")')
        assert term.property == "note.status"
        assert term.operator == "containsAny"

    def test_equality_form(self):
        term = parse_filter_expression('status == ["todo", "next"]')
        assert term == FilterTerm("status", "equals", ("todo", "next"))

    def test_negated_equality_form(self):
        assert parse_filter_expression('!status == ["done"]').operator == "!equals"
        assert parse_filter_expression('status != ["done"]').operator == "!equals"

    def test_malformed_arguments_degrade_to_no_values(self):
        term = parse_filter_expression("tags.contains(todo)")
        assert term == FilterTerm("tags", "contains", ())

    def test_unknown_operator_is_kept(self):
        term = parse_filter_expression('file.hasTag("x")')
        assert term.operator == "hasTag"

    @pytest.mark.parametrize("text", ["", "   ", "!", "just words", "tags.contains", "== ['a']"])
    def test_unrecognised_shapes_yield_none(self, text):
        assert parse_filter_expression(text) is None

    def test_non_string_yields_none(self):
        assert parse_filter_expression(42) is None  # type: ignore[arg-type]


class TestBuildFilterSet:
    def test_skips_bad_lines_and_non_strings(self):
        fs = build_filter_set(['tags.contains("a")', 3, "garbage", {"and": []}], Combine.OR)
        assert fs.combine is Combine.OR
        assert fs.terms == [FilterTerm("tags", "contains", ("a",))]

    def test_non_list_is_empty(self):
        assert build_filter_set("tags.contains('a')", Combine.AND).terms == []


# ---------------------------------------------------------------------------
# evaluate_term
# ---------------------------------------------------------------------------


class TestEvaluateTerm:
    def test_contains_any_matches_one_of_several(self):
        term = parse_filter_expression('tags.containsAny("proj/todo","other/todo")')
        assert evaluate_term(term, _note(tags=frozenset({"proj/todo"})))

    def test_negated_contains_rejects(self):
        term = parse_filter_expression('!tags.contains("proj/todo")')
        assert not evaluate_term(term, _note(tags=frozenset({"proj/todo"})))

    def test_contains_is_substring_and_case_insensitive(self):
        term = parse_filter_expression('title.contains("WRI")')
        assert evaluate_term(term, _note())

    def test_equals_is_exact(self):
        assert evaluate_term(parse_filter_expression('status == ["todo"]'), _note(status="todo"))
        assert not evaluate_term(parse_filter_expression('status == ["to"]'), _note(status="todo"))

    def test_scalar_note_value_is_wrapped(self):
        assert evaluate_term(parse_filter_expression('priority.equals("1")'), _note(frontmatter={"priority": 1}))

    def test_nested_list_values_flattened(self):
        note = _note(frontmatter={"aliases": [["One", "Two"], "Three"]})
        assert evaluate_term(parse_filter_expression('aliases.equals("two")'), note)

    def test_file_group(self):
        note = _note()
        assert evaluate_term(parse_filter_expression('file.folder.equals("Tasks")'), note)
        assert evaluate_term(parse_filter_expression('file.name.contains("writ")'), note)

    def test_file_name_has_extension_basename_does_not(self):
        note = _note()
        assert evaluate_term(parse_filter_expression('file.name.equals("write.md")'), note)
        assert evaluate_term(parse_filter_expression('file.basename.equals("write")'), note)
        assert not evaluate_term(parse_filter_expression('file.basename.equals("write.md")'), note)

    def test_frontmatter_under_note_prefix(self):
        note = _note(frontmatter={"Area": "Home"})
        assert evaluate_term(parse_filter_expression('note.area.equals("home")'), note)

    def test_unresolved_property_is_empty(self):
        note = _note()
        assert not evaluate_term(parse_filter_expression('missing.contains("x")'), note)
        assert evaluate_term(parse_filter_expression('!missing.contains("x")'), note)

    def test_unknown_operator_never_matches(self):
        note = _note(tags=frozenset({"x"}))
        assert not evaluate_term(FilterTerm("tags", "hasTag", ("x",)), note)
        assert not evaluate_term(FilterTerm("tags", "!hasTag", ("x",)), note)


# ---------------------------------------------------------------------------
# evaluate_filter_set
# ---------------------------------------------------------------------------


class TestEvaluateFilterSet:
    @pytest.fixture()
    def terms(self) -> list[FilterTerm]:
        return [
            parse_filter_expression('tags.contains("todo")'),
            parse_filter_expression('status.equals("next")'),
        ]

    @pytest.mark.parametrize(
        "tags, status",
        [({"todo"}, "next"), ({"todo"}, "waiting"), (set(), "next"), (set(), None)],
    )
    def test_and_is_conjunction_or_is_disjunction(self, terms, tags, status):
        note = _note(tags=frozenset(tags), status=status)
        individual = [evaluate_term(t, note) for t in terms]
        assert evaluate_filter_set(FilterSet(terms, Combine.AND), note) == all(individual)
        assert evaluate_filter_set(FilterSet(terms, Combine.OR), note) == any(individual)

    @pytest.mark.parametrize("combine", [Combine.AND, Combine.OR])
    def test_empty_set_is_permissive(self, combine):
        assert FilterSet(combine=combine).matches(_note())
