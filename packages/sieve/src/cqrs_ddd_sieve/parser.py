"""
FilterParser: raw filter/sort text -> ParsedFilter / SortTerm list.

Grammar summary::

    filter-string := segment (',' segment)*
    segment       := '(' or-group ')' | bare-term
    or-group      := chain (' || ' chain)*
    chain         := bare-term (',' bare-term)*

Without any parenthesis the whole string is first split on top-level
``||`` into independent AND chains.  With parentheses, every segment
contributes an option set and the filter is the Cartesian product of
those sets::

    "(A || B),C"       -> [[A, C], [B, C]]
    "(A || B),(C || D)" -> [[A, C], [A, D], [B, C], [B, D]]

A group can itself be one alternative of a bare ``||``::

    "(A || B) || C"    -> [[A], [B], [C]]
"""

from __future__ import annotations

import itertools
import logging

from .exceptions import UnmatchedGroupError
from .terms import (
    ESCAPE,
    FilterGroup,
    FilterTerm,
    ParsedFilter,
    SortTerm,
    split_unescaped,
)

logger = logging.getLogger("cqrs_ddd.sieve.parser")

OR_SEPARATOR = "||"
AND_SEPARATOR = ","

# An option is one AND chain; a segment is the list of its options.
_Option = list[FilterTerm]
_Segment = list[_Option]


class FilterParser:
    """Stateless parser for the filter and sort grammars."""

    def parse(self, text: str | None) -> ParsedFilter | None:
        """
        Parse a filter string.

        Returns:
            The parsed filter, or ``None`` for blank input or input whose
            every segment is empty.

        Raises:
            UnmatchedGroupError: If a ``(`` is never closed.
            FilterParseError: If a term has an empty property name.
        """
        if text is None or not text.strip():
            return None

        if "(" in text or ")" in text:
            chains = self._parse_grouped(text)
        else:
            chains = self._parse_simple(text)

        groups = tuple(FilterGroup(tuple(chain)) for chain in chains if chain)
        if not groups:
            logger.debug("Filter %r parsed to no filter", text)
            return None

        logger.debug("Parsed filter %r into %d group(s)", text, len(groups))
        return ParsedFilter(groups)

    def parse_sorts(self, text: str | None) -> list[SortTerm]:
        """
        Parse a comma-separated sort string.

        Blank entries are skipped; repeated names keep their first
        occurrence.
        """
        if text is None or not text.strip():
            return []

        terms: list[SortTerm] = []
        seen: set[str] = set()
        for part in split_unescaped(text, AND_SEPARATOR):
            if not part.strip():
                continue
            term = SortTerm.parse(part)
            if term.name in seen:
                continue
            seen.add(term.name)
            terms.append(term)
        return terms

    # -- simple path ---------------------------------------------------------

    def _parse_simple(self, text: str) -> list[_Option]:
        return [_parse_chain(chain) for chain in _split_top_level(text, OR_SEPARATOR)]

    # -- parenthesized path --------------------------------------------------

    def _parse_grouped(self, text: str) -> list[_Option]:
        segments: list[_Segment] = []
        length = len(text)
        i = 0
        while i < length:
            char = text[i]
            if char.isspace() or char == AND_SEPARATOR:
                i += 1
                continue

            if char == "(":
                close = _find_closing(text, i)
                after = close + 1
                while after < length and text[after].isspace():
                    after += 1
                # ``(A|B)==1`` is a term with alternative names, not a group.
                if after >= length or text[after] == AND_SEPARATOR:
                    _append_segment(segments, text[i + 1 : close])
                    i = after
                    continue

            end = _find_segment_end(text, i)
            _append_segment(segments, text[i:end])
            i = end

        return [
            [term for option in combination for term in option]
            for combination in itertools.product(*segments)
        ]


def _append_segment(segments: list[_Segment], text: str) -> None:
    options: list[_Option] = []
    for option in _split_top_level(text, OR_SEPARATOR):
        stripped = option.strip()
        # A whole group as one alternative: ``(A || B) || C``.
        if stripped.startswith("(") and _find_closing(stripped, 0) == len(stripped) - 1:
            nested: list[_Segment] = []
            _append_segment(nested, stripped[1:-1])
            options.extend(nested[0] if nested else [])
        else:
            options.append(_parse_chain(option))
    options = [option for option in options if option]
    if options:
        segments.append(options)


def _parse_chain(text: str) -> _Option:
    return [
        FilterTerm.parse(part)
        for part in _split_top_level(text, AND_SEPARATOR)
        if part.strip()
    ]


# ---------------------------------------------------------------------------
# Scanning helpers
# ---------------------------------------------------------------------------


def _split_top_level(text: str, separator: str) -> list[str]:
    """
    Split on *separator* outside parentheses, honoring ``\\`` escapes.

    An escaped ``\\||`` is rewritten to ``\\|\\|`` so both pipes stay
    literal inside the resulting term.
    """
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    i = 0
    while i < len(text):
        char = text[i]
        if char == ESCAPE:
            if separator == OR_SEPARATOR and text.startswith(OR_SEPARATOR, i + 1):
                current.append(ESCAPE + "|" + ESCAPE + "|")
                i += 3
                continue
            current.append(text[i : i + 2])
            i += 2
            continue
        if char == "(":
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
        elif depth == 0 and text.startswith(separator, i):
            parts.append("".join(current))
            current = []
            i += len(separator)
            continue
        current.append(char)
        i += 1
    parts.append("".join(current))
    return parts


def _find_closing(text: str, start: int) -> int:
    """Index of the ``)`` matching the ``(`` at *start*."""
    depth = 0
    i = start
    while i < len(text):
        char = text[i]
        if char == ESCAPE:
            i += 2
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise UnmatchedGroupError(start, text)


def _find_segment_end(text: str, start: int) -> int:
    """Index of the next top-level comma after *start*, or ``len(text)``."""
    open_positions: list[int] = []
    i = start
    while i < len(text):
        char = text[i]
        if char == ESCAPE:
            i += 2
            continue
        if char == "(":
            open_positions.append(i)
        elif char == ")" and open_positions:
            open_positions.pop()
        elif char == AND_SEPARATOR and not open_positions:
            return i
        i += 1
    if open_positions:
        raise UnmatchedGroupError(open_positions[0], text)
    return len(text)


_default_parser = FilterParser()


def parse_filters(text: str | None) -> ParsedFilter | None:
    """Parse *text* with a shared stateless ``FilterParser``."""
    return _default_parser.parse(text)


def parse_sorts(text: str | None) -> list[SortTerm]:
    """Parse *text* with a shared stateless ``FilterParser``."""
    return _default_parser.parse_sorts(text)
