"""Tests for the filter and sort grammar."""

from __future__ import annotations

import pytest

from cqrs_ddd_sieve.exceptions import FilterParseError, UnmatchedGroupError
from cqrs_ddd_sieve.operators import FilterOperator
from cqrs_ddd_sieve.parser import FilterParser, parse_filters, parse_sorts
from cqrs_ddd_sieve.terms import SortTerm


def _groups(text: str) -> list[list[str]]:
    parsed = parse_filters(text)
    assert parsed is not None
    return [[t.to_query_string() for t in group] for group in parsed]


@pytest.fixture
def parser() -> FilterParser:
    return FilterParser()


# ══════════════════════════════════════════════════════════════════════
# Blank input
# ══════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("text", [None, "", "   ", ",", " , ,", "()", "( )"])
def test_blank_input_is_no_filter(parser, text):
    assert parser.parse(text) is None


# ══════════════════════════════════════════════════════════════════════
# Without parentheses
# ══════════════════════════════════════════════════════════════════════


class TestSimplePath:
    def test_single_term(self) -> None:
        assert _groups("Title==A") == [["Title==A"]]

    def test_and_chain(self) -> None:
        assert _groups("Title==A,LikeCount>10") == [["Title==A", "LikeCount>10"]]

    def test_or_chains(self) -> None:
        assert _groups("CategoryId==1 || CategoryId==2") == [["CategoryId==1"], ["CategoryId==2"]]

    def test_or_of_and_chains(self) -> None:
        assert _groups("CategoryId==1,LikeCount>100 || CategoryId==2,LikeCount>100") == [
            ["CategoryId==1", "LikeCount>100"],
            ["CategoryId==2", "LikeCount>100"],
        ]

    def test_or_without_spaces(self) -> None:
        assert _groups("A==1||B==2") == [["A==1"], ["B==2"]]

    def test_single_pipe_separates_values(self) -> None:
        parsed = parse_filters("Title==A|B")
        assert parsed is not None
        assert parsed.terms[0].values == ("A", "B")

    def test_escaped_double_pipe_is_literal(self) -> None:
        parsed = parse_filters(r"Title==a\||b")
        assert parsed is not None
        assert len(parsed) == 1
        assert parsed.terms[0].values == ("a||b",)

    def test_escaped_comma_is_literal(self) -> None:
        parsed = parse_filters(r"Title==a\,b,LikeCount>1")
        assert parsed is not None
        assert [t.values for t in parsed.terms] == [("a,b",), ("1",)]

    def test_empty_terms_are_skipped(self) -> None:
        assert _groups(" ,Title==A,, ") == [["Title==A"]]

    def test_empty_or_branch_is_dropped(self) -> None:
        assert _groups("Title==A || ") == [["Title==A"]]

    def test_name_only_term(self) -> None:
        parsed = parse_filters("IsNew,Title==A")
        assert parsed is not None
        assert parsed.terms[0].is_name_only
        assert parsed.terms[1].operator is FilterOperator.EQUALS


# ══════════════════════════════════════════════════════════════════════
# Parentheses: Cartesian expansion
# ══════════════════════════════════════════════════════════════════════


class TestGroupedPath:
    def test_group_with_shared_constraint(self) -> None:
        assert _groups("(CategoryId==1 || CategoryId==2),LikeCount>100") == [
            ["CategoryId==1", "LikeCount>100"],
            ["CategoryId==2", "LikeCount>100"],
        ]

    def test_constraint_before_group(self) -> None:
        assert _groups("LikeCount>100,(CategoryId==1 || CategoryId==2)") == [
            ["LikeCount>100", "CategoryId==1"],
            ["LikeCount>100", "CategoryId==2"],
        ]

    def test_two_groups_expand_to_product(self) -> None:
        assert _groups("(A==1 || B==2),(C==3 || D==4)") == [
            ["A==1", "C==3"],
            ["A==1", "D==4"],
            ["B==2", "C==3"],
            ["B==2", "D==4"],
        ]

    def test_three_way_product(self) -> None:
        parsed = parse_filters("(A==1 || A==2),(B==1 || B==2 || B==3),C==1")
        assert parsed is not None
        assert len(parsed) == 6
        assert all(len(group) == 3 for group in parsed)

    def test_alternatives_may_be_and_chains(self) -> None:
        assert _groups("(A==1,B==2 || C==3),D==4") == [
            ["A==1", "B==2", "D==4"],
            ["C==3", "D==4"],
        ]

    def test_single_alternative_group(self) -> None:
        assert _groups("(A==1),B==2") == [["A==1", "B==2"]]

    def test_parenthesized_names_are_not_a_group(self) -> None:
        parsed = parse_filters("(Title|Body)@=sieve,LikeCount>1")
        assert parsed is not None
        assert len(parsed) == 1
        assert parsed.terms[0].names == ("Title", "Body")

    def test_parenthesized_names_inside_group(self) -> None:
        parsed = parse_filters("((Title|Body)==a || LikeCount>1),IsDraft==true")
        assert parsed is not None
        assert [[t.names for t in g] for g in parsed] == [
            [("Title", "Body"), ("IsDraft",)],
            [("LikeCount",), ("IsDraft",)],
        ]

    def test_group_as_bare_or_alternative(self) -> None:
        assert _groups("(A==1 || B==2) || C==3") == [["A==1"], ["B==2"], ["C==3"]]
        assert _groups("C==3 || (A==1 || B==2)") == [["C==3"], ["A==1"], ["B==2"]]

    def test_group_alternative_with_shared_constraint(self) -> None:
        assert _groups("(A==1 || B==2) || C==3,D==4") == [
            ["A==1", "D==4"],
            ["B==2", "D==4"],
            ["C==3", "D==4"],
        ]

    def test_whitespace_between_segments(self) -> None:
        assert _groups("  (A==1 || B==2) ,  C==3 ") == [["A==1", "C==3"], ["B==2", "C==3"]]

    def test_empty_group_contributes_nothing(self) -> None:
        assert _groups("(),A==1") == [["A==1"]]

    def test_stray_closing_parenthesis_is_text(self) -> None:
        parsed = parse_filters("Title==a)")
        assert parsed is not None
        assert parsed.terms[0].values == ("a)",)

    def test_escaped_parenthesis_is_text(self) -> None:
        parsed = parse_filters(r"Title==\(a\),B==1")
        assert parsed is not None
        assert [t.values for t in parsed.terms] == [("(a)",), ("1",)]


# ══════════════════════════════════════════════════════════════════════
# Errors
# ══════════════════════════════════════════════════════════════════════


class TestParseErrors:
    def test_unclosed_group(self) -> None:
        with pytest.raises(UnmatchedGroupError) as exc_info:
            parse_filters("(A==1 || B==2")
        assert exc_info.value.position == 0

    def test_unclosed_group_position(self) -> None:
        with pytest.raises(UnmatchedGroupError) as exc_info:
            parse_filters("C==3,(A==1")
        assert exc_info.value.position == 5
        assert "position 5" in str(exc_info.value)

    def test_unmatched_group_is_a_parse_error(self) -> None:
        with pytest.raises(FilterParseError):
            parse_filters("((A==1 || B==2)")

    def test_empty_name(self) -> None:
        with pytest.raises(FilterParseError):
            parse_filters("Title==A,==B")


# ══════════════════════════════════════════════════════════════════════
# Sorts
# ══════════════════════════════════════════════════════════════════════


def test_parse_sorts():
    assert parse_sorts("-LikeCount, Title") == [
        SortTerm("LikeCount", descending=True),
        SortTerm("Title"),
    ]


def test_parse_sorts_first_occurrence_wins():
    assert parse_sorts("Title,-LikeCount,-Title") == [
        SortTerm("Title"),
        SortTerm("LikeCount", descending=True),
    ]


@pytest.mark.parametrize("text", [None, "", "  ", ",,"])
def test_parse_sorts_blank(text):
    assert parse_sorts(text) == []


def test_parse_sorts_escaped_comma():
    assert parse_sorts(r"Odd\,Name") == [SortTerm("Odd,Name")]
