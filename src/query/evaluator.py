"""Filter evaluation over in-memory rows.

Evaluation is total: a malformed operand (bad regex, non-numeric comparison) resolves to "no match"
for that node instead of raising, so one bad clause cannot void an otherwise valid compound filter.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Sequence
from typing import Any

from src.query.dsl import (
    AndNode,
    BetweenNode,
    CmpNode,
    MatchNode,
    NotNode,
    OrNode,
    PresenceNode,
    SetNode,
)
from src.query.schema import Row
from src.query.values import cell_to_tokens, norm_str, stringify, to_number

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


def _test_cmp(cell: Any, node: CmpNode) -> bool:
    compare = _COMPARATORS[node.cmp]
    left, right = to_number(cell), to_number(node.value)
    if left is not None and right is not None:
        return compare(left, right)
    return compare(norm_str(cell), norm_str(node.value))


def _token_matches(tokens: list[str], needle: str) -> bool:
    return any(t == needle or needle in t for t in tokens)


def _test_includes(cell: Any, needle: Any) -> bool:
    tokens = cell_to_tokens(cell)
    if isinstance(needle, (list, tuple)):
        needles = [norm_str(n) for n in needle]
        return bool(needles) and all(_token_matches(tokens, n) for n in needles)
    return _token_matches(tokens, norm_str(needle))


def _test_regex(cell: Any, pattern: Any) -> bool:
    try:
        return re.search(stringify(pattern), stringify(cell), flags=re.IGNORECASE) is not None
    except re.error:
        return False


def _test_match(cell: Any, node: MatchNode) -> bool:
    if node.op == "includes":
        return _test_includes(cell, node.value)
    if node.op == "regex":
        return _test_regex(cell, node.value)

    haystack, needle = norm_str(cell), norm_str(node.value)
    if node.op == "contains":
        return needle in haystack
    if node.op == "startsWith":
        return haystack.startswith(needle)
    return haystack.endswith(needle)


def _is_present(cell: Any) -> bool:
    return cell is not None and stringify(cell).strip() != ""


def _test_between(cell: Any, node: BetweenNode) -> bool:
    value, low, high = to_number(cell), to_number(node.from_), to_number(node.to)
    if value is not None and low is not None and high is not None:
        return min(low, high) <= value <= max(low, high)

    text, low_s, high_s = norm_str(cell), norm_str(node.from_), norm_str(node.to)
    return min(low_s, high_s) <= text <= max(low_s, high_s)


def matches(row: Row, node: Any) -> bool:
    """Whether a single row satisfies `node`."""

    if isinstance(node, AndNode):
        return all(matches(row, child) for child in node.children)
    if isinstance(node, OrNode):
        return any(matches(row, child) for child in node.children)
    if isinstance(node, NotNode):
        return not matches(row, node.children[0])

    cell = row.get(node.field)
    if isinstance(node, CmpNode):
        return _test_cmp(cell, node)
    if isinstance(node, MatchNode):
        return _test_match(cell, node)
    if isinstance(node, SetNode):
        members = {norm_str(v) for v in node.values}
        return (norm_str(cell) in members) == (node.op == "in")
    if isinstance(node, PresenceNode):
        return _is_present(cell) == (node.op == "exists")
    if isinstance(node, BetweenNode):
        return _test_between(cell, node)
    return False


def apply_filter(rows: Sequence[Row], node: Any) -> list[Row]:
    """Return the rows matching `node`, preserving input order."""

    return [row for row in rows if matches(row, node)]
