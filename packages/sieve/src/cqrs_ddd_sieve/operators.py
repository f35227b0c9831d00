from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FilterOperator(str, Enum):
    """Closed set of filter operators, valued by their canonical symbol."""

    # Standard comparison
    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="

    # String operations
    CONTAINS = "@="
    STARTS_WITH = "_="
    ENDS_WITH = "$="

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def is_ordering(self) -> bool:
        return self in _ORDERING

    @property
    def is_string(self) -> bool:
        return self in _STRING


_ORDERING = frozenset(
    {
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.GREATER_OR_EQUAL,
        FilterOperator.LESS_OR_EQUAL,
    }
)
_STRING = frozenset(
    {
        FilterOperator.CONTAINS,
        FilterOperator.STARTS_WITH,
        FilterOperator.ENDS_WITH,
    }
)

NEGATION_PREFIX = "!"
CASE_INSENSITIVE_SUFFIX = "*"

# Legacy spellings accepted on input, never produced on output.
_OP_ALIASES: dict[str, FilterOperator] = {
    "_-=": FilterOperator.ENDS_WITH,
}


@dataclass(frozen=True)
class OperatorToken:
    """An operator as written in a term: base operator plus modifiers."""

    operator: FilterOperator
    negated: bool = False
    case_insensitive: bool = False

    @property
    def symbol(self) -> str:
        return render_symbol(self.operator, self.negated, self.case_insensitive)


def render_symbol(
    operator: FilterOperator,
    negated: bool = False,
    case_insensitive: bool = False,
) -> str:
    """Canonical text for an operator with its modifiers (``!@=*``)."""
    text = operator.symbol
    if negated:
        text = NEGATION_PREFIX + text
    if case_insensitive:
        text += CASE_INSENSITIVE_SUFFIX
    return text


def _build_symbol_table() -> list[tuple[str, OperatorToken]]:
    bases: dict[str, FilterOperator] = {op.symbol: op for op in FilterOperator}
    bases.update(_OP_ALIASES)

    table: dict[str, OperatorToken] = {}
    for text, op in bases.items():
        for negated in (False, True):
            if negated and op is FilterOperator.NOT_EQUALS:
                continue
            for ci in (False, True):
                symbol = (NEGATION_PREFIX if negated else "") + text
                symbol += CASE_INSENSITIVE_SUFFIX if ci else ""
                table[symbol] = OperatorToken(op, negated, ci)

    # Greedy longest-first so ``>`` never wins inside ``>=``.
    return sorted(table.items(), key=lambda item: len(item[0]), reverse=True)


_SYMBOL_TABLE = _build_symbol_table()
_SYMBOL_STARTS = frozenset(symbol[0] for symbol, _ in _SYMBOL_TABLE)


def find_operator(text: str) -> tuple[int, str, OperatorToken] | None:
    """
    Locate the first operator in *text*.

    Returns ``(position, symbol, token)`` for the leftmost match, preferring
    the longest symbol at that position, or ``None`` when the text holds no
    operator at all.
    """
    for position, char in enumerate(text):
        if char not in _SYMBOL_STARTS:
            continue
        if position > 0 and text[position - 1] == "\\":
            continue
        for symbol, token in _SYMBOL_TABLE:
            if text.startswith(symbol, position):
                return position, symbol, token
    return None


def parse_operator(symbol: str) -> OperatorToken:
    """
    Resolve a full operator symbol such as ``!@=*``.

    Raises:
        ValueError: If the symbol is not a known operator spelling.
    """
    for known, token in _SYMBOL_TABLE:
        if known == symbol:
            return token
    raise ValueError(f"Unknown filter operator: {symbol!r}")
