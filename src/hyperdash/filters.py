"""Filter expressions: parsing ``property.operator(args)`` lines and evaluating them.

Grammar (one expression per line, as found in ``.base`` files)::

    tags.containsAny("a/todo", "b/todo")
    !tags.contains('x')
    status == ["todo", "next"]
    status != ["done"]

Parsing never raises: an unrecognised line yields ``None`` and is dropped by
:func:`build_filter_set`.  Argument lists are scanned for quoted strings
rather than parsed strictly, so a malformed list degrades to no values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from hyperdash.note import NoteRecord

_CALL_RE = re.compile(r"^([A-Za-z_][\w.]*)\.([A-Za-z_]\w*)\s*\((.*)\)$", re.DOTALL)
_EQUALITY_RE = re.compile(r"^([A-Za-z_][\w.]*)\s*(==|!=)\s*(.+)$", re.DOTALL)
_QUOTED_RE = re.compile(r"\"([^\"]*)\"|'([^']*)'")

#: Lowercased operator spelling -> canonical name
OPERATORS: dict[str, str] = {
    "contains": "contains",
    "containsany": "containsAny",
    "equals": "equals",
}


class Combine(str, Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class FilterTerm:
    """One parsed predicate; negation is carried by a ``!`` operator prefix."""

    property: str
    operator: str
    values: tuple[str, ...] = ()

    @property
    def negated(self) -> bool:
        return self.operator.startswith("!")


@dataclass
class FilterSet:
    terms: list[FilterTerm] = field(default_factory=list)
    combine: Combine = Combine.AND

    def matches(self, note: "NoteRecord") -> bool:
        return evaluate_filter_set(self, note)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _quoted_values(text: str) -> tuple[str, ...]:
    return tuple(
        (m.group(1) if m.group(1) is not None else m.group(2)).strip()
        for m in _QUOTED_RE.finditer(text)
    )


def _canonical_operator(name: str) -> str:
    return OPERATORS.get(name.lower(), name)


def _negate(operator: str) -> str:
    return operator[1:] if operator.startswith("!") else f"!{operator}"


def parse_filter_expression(text: str) -> FilterTerm | None:
    """Parse a single predicate line into a :class:`FilterTerm`, or ``None``."""
    if not isinstance(text, str):
        return None
    expr = text.strip()
    negated = False
    if expr.startswith("!") and not expr.startswith("!="):
        negated = True
        expr = expr[1:].strip()
    if not expr:
        return None

    m = _EQUALITY_RE.match(expr)
    if m:
        prop, op_token, rhs = m.groups()
        operator = "equals" if op_token == "==" else "!equals"
    else:
        m = _CALL_RE.match(expr)
        if not m:
            return None
        prop, name, rhs = m.groups()
        operator = _canonical_operator(name)

    if negated:
        operator = _negate(operator)
    return FilterTerm(property=prop.lower(), operator=operator, values=_quoted_values(rhs))


def build_filter_set(items: Any, combine: Combine) -> FilterSet:
    """Parse every string in *items*; non-strings and bad lines are skipped."""
    terms: list[FilterTerm] = []
    if isinstance(items, list):
        for item in items:
            if not isinstance(item, str):
                continue
            term = parse_filter_expression(item)
            if term is not None:
                terms.append(term)
    return FilterSet(terms=terms, combine=combine)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def note_properties(note: "NoteRecord") -> dict[str, Any]:
    """Build the lowercase property bag that filter paths resolve against."""
    bag: dict[str, Any] = {str(k).lower(): v for k, v in note.frontmatter.items()}
    bag["note"] = {str(k).lower(): v for k, v in note.frontmatter.items()}
    derived = {
        "title": note.title,
        "tags": sorted(note.tags),
        "status": note.status,
        "project": note.project,
        "datedue": note.date_due,
        "datestarted": note.date_started,
        "datescheduled": note.date_scheduled,
        "recurrence": note.recurrence,
        "recurrenceanchor": note.recurrence_anchor,
        "priority": note.priority,
        "timetracked": note.time_tracked,
        "timeestimate": note.time_estimate,
    }
    bag.update({k: v for k, v in derived.items() if v is not None})
    bag["file"] = {
        "name": note.path.name,
        "basename": note.slug,
        "ext": note.path.suffix.lstrip("."),
        "folder": note.folder,
        "path": note.relative_path,
        "mtime": note.mtime_ms,
        "tags": sorted(note.tags),
    }
    return bag


def resolve_property(bag: dict[str, Any], prop: str) -> Any:
    """Walk a dot-separated path through nested mappings; ``None`` if missing."""
    current: Any = bag
    for part in prop.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def _flatten(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        out: list[str] = []
        for item in value:
            out.extend(_flatten(item))
        return out
    if isinstance(value, dict):
        return []
    return [str(value).lower()]


def _contains_any(note_values: Iterable[str], filter_values: Iterable[str]) -> bool:
    return any(fv in nv for fv in filter_values for nv in note_values)


def _equals_any(note_values: Iterable[str], filter_values: Iterable[str]) -> bool:
    nvs = set(note_values)
    return any(fv in nvs for fv in filter_values)


_MATCHERS = {
    "contains": _contains_any,
    "containsAny": _contains_any,
    "equals": _equals_any,
}


def evaluate_term(term: FilterTerm, note: "NoteRecord", bag: dict[str, Any] | None = None) -> bool:
    """Return whether *note* satisfies *term*; unknown operators never match."""
    base = term.operator[1:] if term.negated else term.operator
    matcher = _MATCHERS.get(base)
    if matcher is None:
        return False
    if bag is None:
        bag = note_properties(note)
    note_values = _flatten(resolve_property(bag, term.property))
    filter_values = [v.lower() for v in term.values]
    result = matcher(note_values, filter_values)
    return not result if term.negated else result


def evaluate_filter_set(filter_set: FilterSet, note: "NoteRecord") -> bool:
    if not filter_set.terms:
        return True
    bag = note_properties(note)
    results = (evaluate_term(t, note, bag) for t in filter_set.terms)
    if filter_set.combine is Combine.OR:
        return any(results)
    return all(results)
