"""Tests for compiling parsed filters and sorts."""

from __future__ import annotations

import pytest
from sieve_models import Comment, Post, ids

from cqrs_ddd_sieve.base import AndSpecification, OrSpecification
from cqrs_ddd_sieve.compiler import (
    ComparatorChain,
    CompiledFilter,
    CustomFilterStep,
    CustomSortStep,
    PropertySortStep,
    SieveCompiler,
)
from cqrs_ddd_sieve.exceptions import (
    FilterValueError,
    IncompatibleMethodError,
    MethodNotFoundError,
)
from cqrs_ddd_sieve.extensions import CustomMethodRegistry
from cqrs_ddd_sieve.options import SieveOptions
from cqrs_ddd_sieve.parser import parse_filters, parse_sorts
from cqrs_ddd_sieve.values import ValueType


@pytest.fixture
def compiler(filter_methods, sort_methods) -> SieveCompiler:
    return SieveCompiler(filter_methods=filter_methods, sort_methods=sort_methods)


def _compile(compiler, registry, text: str, record_type: type = Post) -> CompiledFilter:
    return compiler.compile_filter(parse_filters(text), registry, record_type)


def _run(compiler, registry, records, text: str) -> list[int]:
    return ids(_compile(compiler, registry, text).apply(records))


# ══════════════════════════════════════════════════════════════════════
# Filter structure
# ══════════════════════════════════════════════════════════════════════


class TestFilterStructure:
    def test_no_filter(self, compiler, registry) -> None:
        compiled = compiler.compile_filter(None, registry, Post)
        assert compiled.is_empty
        assert compiled.matches(Post(id=1))

    def test_single_term_is_unwrapped(self, compiler, registry) -> None:
        compiled = _compile(compiler, registry, "Title==A")
        assert compiled.predicate is not None
        assert compiled.predicate.to_dict()["attr"] == "Title"

    def test_or_of_ands(self, compiler, registry) -> None:
        compiled = _compile(compiler, registry, "Title==A,LikeCount>1 || Title==B")
        assert isinstance(compiled.predicate, OrSpecification)
        first, second = compiled.predicate.specifications
        assert isinstance(first, AndSpecification)
        assert second.to_dict()["attr"] == "Title"

    def test_alternative_names_and_values_are_ored(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "(Title|TopComment.Text)==B|C1") == [1, 2]

    def test_alias_names(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "(topc|featc)@=2") == [0, 1, 2, 3]
        assert _run(compiler, registry, posts, "featc==D2") == [3]

    def test_name_only_property_term_is_ignored(self, compiler, registry, posts) -> None:
        compiled = _compile(compiler, registry, "Title")
        assert compiled.is_empty
        assert ids(compiled.apply(posts)) == [0, 1, 2, 3]

    def test_custom_step_is_collected(self, compiler, registry, posts) -> None:
        compiled = _compile(compiler, registry, "IsNew,Title==B")
        assert len(compiled.custom_steps) == 1
        assert compiled.custom_steps[0] == CustomFilterStep(
            compiled.custom_steps[0].method, "", ()
        )
        assert ids(compiled.apply(posts)) == [1]

    def test_custom_step_receives_operator_and_values(self, compiler, registry, posts) -> None:
        compiled = _compile(compiler, registry, "HasInTitle@=C|D")
        step = compiled.custom_steps[0]
        assert step.operator_symbol == "@="
        assert step.values == ("C", "D")
        assert ids(compiled.apply(posts)) == [2]

    def test_custom_steps_are_deduplicated_across_groups(self, compiler, registry) -> None:
        compiled = _compile(compiler, registry, "(Title==A || Title==B),IsNew")
        assert len(compiled.custom_steps) == 1

    def test_group_with_only_custom_terms_adds_no_predicate(
        self, compiler, registry, posts
    ) -> None:
        compiled = _compile(compiler, registry, "IsNew || Title==A")
        assert compiled.predicate is not None
        assert compiled.predicate.to_dict()["attr"] == "Title"
        assert ids(compiled.apply(posts)) == []

    def test_generic_custom_method(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "Latest") == [2, 3]


# ══════════════════════════════════════════════════════════════════════
# Value conversion
# ══════════════════════════════════════════════════════════════════════


class TestConversion:
    def test_literals_are_typed_from_registry(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "LikeCount>=50") == [0, 1]
        assert _run(compiler, registry, posts, "IsDraft==true") == [0, 3]
        assert _run(compiler, registry, posts, "CreatedDate>=2024-01-03") == [2, 3]

    def test_integer_comparison_is_numeric(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "LikeCount>9") == [0, 1]

    def test_invalid_literal(self, compiler, registry) -> None:
        with pytest.raises(FilterValueError) as exc_info:
            _compile(compiler, registry, "LikeCount==abc")
        err = exc_info.value
        assert err.property_name == "LikeCount"
        assert err.value == "abc"
        assert isinstance(err.__cause__, ValueError)

    def test_ordering_rejected_for_booleans(self, compiler, registry) -> None:
        with pytest.raises(FilterValueError, match="not supported for boolean"):
            _compile(compiler, registry, "IsDraft>true")

    def test_string_operator_keeps_raw_text(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "LikeCount@=5") == [1]
        assert _run(compiler, registry, posts, "LikeCount_=10") == [0]

    def test_null_literal(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "CategoryId==null") == [0]
        assert _run(compiler, registry, posts, "CategoryId==NULL") == [0]

    def test_escaped_null_is_a_string(self, compiler, registry) -> None:
        records = [Post(id=1, title="null"), Post(id=2, title="x")]
        assert _run(compiler, registry, records, r"Title==\null") == [1]

    def test_null_with_string_operator_is_text(self, compiler, registry) -> None:
        records = [Post(id=1, title="nullable"), Post(id=2, title="x")]
        assert _run(compiler, registry, records, "Title_=null") == [1]

    def test_case_insensitive_applies_to_strings(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "Title==*a") == [0]
        assert _run(compiler, registry, posts, "Title==a") == []
        assert _run(compiler, registry, posts, "LikeCount==*50") == [1]

    def test_negated_string_operator(self, compiler, registry, posts) -> None:
        assert _run(compiler, registry, posts, "TopComment.Text!@=1") == []
        assert _run(compiler, registry, posts, "Title!_=*a") == [1, 2, 3]


# ══════════════════════════════════════════════════════════════════════
# Null policy
# ══════════════════════════════════════════════════════════════════════


@pytest.fixture
def sparse_posts() -> list[Post]:
    return [
        Post(id=1, title="A", top_comment=Comment(id=10, text="hello")),
        Post(id=2, title="B", top_comment=None),
        Post(id=3, title="C", top_comment=Comment(id=11, text="bye")),
    ]


class TestNullPolicy:
    def test_not_equal_matches_absent_path_by_default(
        self, compiler, registry, sparse_posts
    ) -> None:
        assert _run(compiler, registry, sparse_posts, "TopComment.Text!=hello") == [2, 3]

    def test_not_equal_skips_absent_path_when_policy_is_off(
        self, filter_methods, registry, sparse_posts
    ) -> None:
        strict = SieveCompiler(
            SieveOptions(ignore_nulls_on_not_equal=False), filter_methods=filter_methods
        )
        assert _run(strict, registry, sparse_posts, "TopComment.Text!=hello") == [3]

    def test_equal_never_matches_absent_path(self, compiler, registry, sparse_posts) -> None:
        assert _run(compiler, registry, sparse_posts, "TopComment.Text==hello") == [1]
        assert _run(compiler, registry, sparse_posts, "TopComment.Text!==hello") == [3]

    def test_ordering_never_matches_absent_path(self, compiler, registry, sparse_posts) -> None:
        assert _run(compiler, registry, sparse_posts, "TopComment.Text>a") == [1, 3]


# ══════════════════════════════════════════════════════════════════════
# Name resolution
# ══════════════════════════════════════════════════════════════════════


class TestResolution:
    def test_unknown_name(self, compiler, registry) -> None:
        with pytest.raises(MethodNotFoundError):
            _compile(compiler, registry, "Unknown==1")

    def test_method_for_other_type(self, compiler, registry) -> None:
        with pytest.raises(IncompatibleMethodError):
            _compile(compiler, registry, "CommentPassThrough")

    def test_sort_only_property_is_not_filterable(self, compiler, registry) -> None:
        with pytest.raises(MethodNotFoundError):
            _compile(compiler, registry, "TopComment.Id==1")

    def test_case_sensitive_names(self, filter_methods, registry) -> None:
        strict = SieveCompiler(SieveOptions(case_sensitive=True), filter_methods=filter_methods)
        assert not _compile(strict, registry, "Title==A").is_empty
        with pytest.raises(MethodNotFoundError):
            _compile(strict, registry, "title==A")


# ══════════════════════════════════════════════════════════════════════
# Sorts
# ══════════════════════════════════════════════════════════════════════


class TestCompileSort:
    def _sort(self, compiler, registry, text: str) -> ComparatorChain:
        return compiler.compile_sort(parse_sorts(text), registry, Post)

    def test_steps(self, compiler, registry) -> None:
        chain = self._sort(compiler, registry, "-LikeCount,Popularity")
        assert len(chain) == 2
        assert isinstance(chain.steps[0], PropertySortStep)
        assert chain.steps[0].descending
        assert isinstance(chain.steps[1], CustomSortStep)

    def test_empty(self, compiler, registry, posts) -> None:
        chain = self._sort(compiler, registry, "")
        assert chain.is_empty
        assert ids(chain.apply(posts)) == [0, 1, 2, 3]

    def test_property_keys(self, compiler, registry, posts) -> None:
        assert ids(self._sort(compiler, registry, "-LikeCount").apply(posts)) == [0, 1, 3, 2]
        assert ids(self._sort(compiler, registry, "IsDraft,-Id").apply(posts)) == [2, 1, 3, 0]

    def test_nested_sort(self, compiler, registry, posts) -> None:
        assert ids(self._sort(compiler, registry, "TopComment.Id").apply(posts)) == [0, 3, 2, 1]

    def test_custom_primary_key(self, compiler, registry, posts) -> None:
        assert ids(self._sort(compiler, registry, "Popularity").apply(posts)) == [2, 3, 1, 0]

    def test_custom_secondary_key(self, compiler, registry, posts) -> None:
        chain = self._sort(compiler, registry, "IsDraft,Popularity")
        assert ids(chain.apply(posts)) == [2, 1, 3, 0]

    def test_generic_custom_sort(self, compiler, registry, posts) -> None:
        assert ids(self._sort(compiler, registry, "Oldest").apply(posts)) == [3, 2, 1, 0]
        assert ids(self._sort(compiler, registry, "-Oldest").apply(posts)) == [0, 1, 2, 3]

    def test_plain_iterable_restarts_ordering(self, registry, posts) -> None:
        sort_methods = CustomMethodRegistry()
        sort_methods.register(
            "Reversed", lambda source, subsequent, desc: list(reversed(list(source)))
        )
        compiler = SieveCompiler(sort_methods=sort_methods)
        chain = compiler.compile_sort(parse_sorts("Reversed,Title"), registry, Post)
        assert ids(chain.apply(posts)) == [0, 1, 2, 3]

    def test_filter_only_property_is_not_sortable(self, compiler, registry) -> None:
        with pytest.raises(MethodNotFoundError):
            self._sort(compiler, registry, "TopComment.Text")

    def test_nulls_last_option(self, sort_methods, registry, posts) -> None:
        compiler = SieveCompiler(SieveOptions(nulls_first=False), sort_methods=sort_methods)
        chain = compiler.compile_sort(parse_sorts("CategoryId"), registry, Post)
        assert ids(chain.apply(posts)) == [1, 2, 3, 0]


def test_mapping_value_type_drives_conversion(compiler, registry):
    mapping = registry.resolve(Post, "CreatedDate", require_filter=True)
    assert mapping is not None
    assert mapping.value_type is ValueType.DATETIME
