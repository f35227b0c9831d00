"""Shared fixtures for sieve tests."""

from __future__ import annotations

import datetime

import pytest
from sieve_models import BaseEntity, Comment, Post, Ticket, TicketStatus

from cqrs_ddd_sieve import (
    CustomMethodRegistry,
    OrderedSequence,
    PropertyRegistry,
    SieveOptions,
    SieveProcessor,
    order_by,
)


def _utc(day: int) -> datetime.datetime:
    return datetime.datetime(2024, 1, day, tzinfo=datetime.timezone.utc)


@pytest.fixture
def registry() -> PropertyRegistry:
    """Nested comment paths on top of the inline ``SieveField`` declarations."""
    registry = PropertyRegistry()
    registry.map_property(Post, "top_comment.text").can_filter().has_name("TopComment.Text")
    registry.map_property(Post, "top_comment.id").can_sort().has_name("TopComment.Id")
    registry.map_property(Post, "featured_comment.text").can_filter().has_name(
        "FeaturedComment.Text"
    )
    registry.map_property(Post, "top_comment.text").can_filter().has_name("topc")
    registry.map_property(Post, "featured_comment.text").can_filter().has_name("featc")
    return registry


@pytest.fixture
def filter_methods() -> CustomMethodRegistry:
    methods = CustomMethodRegistry()

    @methods.method("IsNew", record_type=Post)
    def post_is_new(source, op, values):
        return [p for p in source if p.like_count < 100]

    @methods.method("HasInTitle", record_type=Post)
    def has_in_title(source, op, values):
        return [p for p in source if values[0] in p.title]

    @methods.method("IsNew", record_type=Comment)
    def comment_is_new(source, op, values):
        return [c for c in source if c.created_date > _utc(2)]

    @methods.method("CommentPassThrough", record_type=Comment)
    def comment_pass_through(source, op, values):
        return source

    @methods.method("Latest", bound=BaseEntity)
    def latest(source, op, values):
        return [e for e in source if e.created_date >= _utc(3)]

    return methods


@pytest.fixture
def sort_methods() -> CustomMethodRegistry:
    methods = CustomMethodRegistry()

    @methods.method("Popularity", record_type=Post)
    def popularity(source, is_subsequent, descending):
        if is_subsequent and isinstance(source, OrderedSequence):
            return source.then_by(lambda p: p.like_count, descending)
        return order_by(source, lambda p: p.like_count, descending).then_by(lambda p: p.id)

    @methods.method("Oldest", bound=BaseEntity)
    def oldest(source, is_subsequent, descending):
        if is_subsequent and isinstance(source, OrderedSequence):
            return source.then_by(lambda e: e.created_date, not descending)
        return order_by(source, lambda e: e.created_date, not descending)

    return methods


@pytest.fixture
def options() -> SieveOptions:
    return SieveOptions()


@pytest.fixture
def processor(registry, filter_methods, sort_methods, options) -> SieveProcessor:
    return SieveProcessor(
        registry,
        options,
        filter_methods=filter_methods,
        sort_methods=sort_methods,
    )


@pytest.fixture
def posts() -> list[Post]:
    return [
        Post(
            id=0,
            title="A",
            like_count=100,
            is_draft=True,
            category_id=None,
            created_date=_utc(1),
            top_comment=Comment(id=0, text="A1"),
            featured_comment=Comment(id=4, text="A2"),
        ),
        Post(
            id=1,
            title="B",
            like_count=50,
            is_draft=False,
            category_id=1,
            created_date=_utc(2),
            top_comment=Comment(id=3, text="B1"),
            featured_comment=Comment(id=5, text="B2"),
        ),
        Post(
            id=2,
            title="C",
            like_count=0,
            category_id=1,
            created_date=_utc(3),
            top_comment=Comment(id=2, text="C1"),
            featured_comment=Comment(id=6, text="C2"),
        ),
        Post(
            id=3,
            title="D",
            like_count=3,
            is_draft=True,
            category_id=2,
            created_date=_utc(4),
            top_comment=Comment(id=1, text="D1"),
            featured_comment=Comment(id=7, text="D2"),
        ),
    ]


@pytest.fixture
def category_posts() -> list[Post]:
    """Six posts over three categories for OR-group tests."""
    return [
        Post(id=1, title="Post1", category_id=1, like_count=50, is_draft=False),
        Post(id=2, title="Post2", category_id=1, like_count=150, is_draft=False),
        Post(id=3, title="Post3", category_id=2, like_count=75, is_draft=False),
        Post(id=4, title="Post4", category_id=2, like_count=200, is_draft=False),
        Post(id=5, title="Post5", category_id=3, like_count=25, is_draft=True),
        Post(id=6, title="Post6", category_id=3, like_count=300, is_draft=True),
    ]


@pytest.fixture
def tickets() -> list[Ticket]:
    """Ticket 1 is naive (taken as UTC); 2 and 3 are aware."""
    plus_two = datetime.timezone(datetime.timedelta(hours=2))
    return [
        Ticket(
            id=1,
            status=TicketStatus.PUBLISHED,
            opened=datetime.datetime(2024, 1, 2, 10, 0),
        ),
        Ticket(
            id=2,
            status=TicketStatus.DRAFT,
            opened=datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc),
        ),
        Ticket(
            id=3,
            status=TicketStatus.ARCHIVED,
            opened=datetime.datetime(2024, 1, 2, 9, 0, tzinfo=plus_two),
        ),
    ]
