"""
SieveProcessor: the single entry point for filter -> sort -> paginate.

Usage::

    processor = SieveProcessor(registry, SieveOptions(max_page_size=100))
    model = SieveModel(filters="LikeCount>10,Title@=*sieve", sorts="-CreatedAt")
    posts = list(processor.apply(model, posts, record_type=Post))

Everything is parsed and compiled before the source is touched.  Failures
while the result is consumed (an unorderable sort key, a failing custom
method) go through the same policy: with ``throw_exceptions=False`` they
are logged and the caller gets the source unchanged, or, once records have
been yielded, the result simply ends.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from .compiler import CompiledFilter, ComparatorChain, SieveCompiler
from .exceptions import SieveError
from .options import SieveOptions
from .pagination import PageWindow, apaginate, paginate, resolve_page_window
from .parser import FilterParser

if TYPE_CHECKING:
    from .evaluator import MemoryOperatorRegistry
    from .extensions import CustomMethodRegistry
    from .model import SieveModel
    from .registry import PropertyRegistry

logger = logging.getLogger("cqrs_ddd.sieve")

T = TypeVar("T")


@dataclass(frozen=True)
class QueryPlan:
    """A fully compiled query, ready to run against any source."""

    record_type: type
    filter: CompiledFilter[Any] | None = None
    sort: ComparatorChain | None = None
    window: PageWindow | None = None

    def run(self, source: Iterable[Any], extra_args: tuple[Any, ...] = ()) -> Iterable[Any]:
        result = source
        if self.filter is not None and not self.filter.is_empty:
            result = self.filter.apply(result, extra_args)
        if self.sort is not None and not self.sort.is_empty:
            result = self.sort.apply(result, extra_args)
        return paginate(result, self.window)

    async def run_async(
        self,
        source: AsyncIterable[Any],
        extra_args: tuple[Any, ...] = (),
    ) -> AsyncIterator[Any]:
        """
        Stream *source* through the plan.

        The property predicate is evaluated per element as it arrives.
        Custom filter methods and sorting need the whole filtered set, so
        they materialize it first.
        """
        stream: AsyncIterable[Any] = source
        compiled = self.filter
        if compiled is not None and compiled.predicate is not None:
            stream = _afilter(stream, compiled.predicate.is_satisfied_by)

        has_custom = compiled is not None and bool(compiled.custom_steps)
        has_sort = self.sort is not None and not self.sort.is_empty
        if has_custom or has_sort:
            items: Iterable[Any] = [item async for item in stream]
            if compiled is not None and has_custom:
                items = compiled.apply_custom(items, extra_args)
            if self.sort is not None and has_sort:
                items = self.sort.apply(items, extra_args)
            stream = _aiterate(items)

        async for item in apaginate(stream, self.window):
            yield item


class SieveProcessor:
    """
    Apply a ``SieveModel`` to a data source.

    The processor holds no per-query state; one instance can serve
    concurrent queries once its registry is configured.
    """

    def __init__(
        self,
        registry: PropertyRegistry,
        options: SieveOptions | None = None,
        *,
        filter_methods: CustomMethodRegistry | None = None,
        sort_methods: CustomMethodRegistry | None = None,
        operators: MemoryOperatorRegistry | None = None,
        parser: FilterParser | None = None,
    ) -> None:
        self._registry = registry
        self._options = options if options is not None else SieveOptions()
        self._parser = parser if parser is not None else FilterParser()
        self._compiler = SieveCompiler(
            self._options,
            filter_methods=filter_methods,
            sort_methods=sort_methods,
            operators=operators,
        )

    @property
    def options(self) -> SieveOptions:
        return self._options

    @property
    def registry(self) -> PropertyRegistry:
        return self._registry

    # -- planning ------------------------------------------------------------

    def plan(
        self,
        model: SieveModel,
        record_type: type,
        *,
        apply_filtering: bool = True,
        apply_sorting: bool = True,
        apply_pagination: bool = True,
    ) -> QueryPlan:
        """
        Parse and compile *model* for *record_type* without touching data.

        Raises:
            SieveError: Any parse, conversion or dispatch failure.
        """
        compiled_filter = None
        if apply_filtering:
            parsed = self._parser.parse(model.filters)
            compiled_filter = self._compiler.compile_filter(parsed, self._registry, record_type)

        chain = None
        if apply_sorting:
            sort_terms = self._parser.parse_sorts(model.sorts)
            chain = self._compiler.compile_sort(sort_terms, self._registry, record_type)

        window = None
        if apply_pagination:
            window = resolve_page_window(model.page, model.page_size, self._options)

        return QueryPlan(record_type, compiled_filter, chain, window)

    # -- execution -----------------------------------------------------------

    def apply(
        self,
        model: SieveModel | None,
        source: Iterable[T],
        extra_args: Sequence[Any] | None = None,
        *,
        record_type: type | None = None,
        apply_filtering: bool = True,
        apply_sorting: bool = True,
        apply_pagination: bool = True,
    ) -> Iterable[T]:
        """
        Filter, then sort, then paginate *source*.

        Args:
            model: The query; ``None`` returns *source* unchanged.
            source: Any iterable of records.  Filtering stays lazy.
            extra_args: Passed on to custom methods that accept them.
            record_type: Type the registry is consulted for.  Taken from
                the first record when omitted.

        Raises:
            SieveError: On any failure, unless ``throw_exceptions`` is off.
        """
        if model is None:
            return source

        try:
            if record_type is None:
                record_type, source = _peek_record_type(source)
                if record_type is None:
                    return source
            plan = self.plan(
                model,
                record_type,
                apply_filtering=apply_filtering,
                apply_sorting=apply_sorting,
                apply_pagination=apply_pagination,
            )
            result = plan.run(source, tuple(extra_args or ()))
        except Exception as exc:
            self._handle_failure(exc, model)
            return source
        return self._guard(result, source, model)

    async def apply_async(
        self,
        model: SieveModel | None,
        source: AsyncIterable[T],
        extra_args: Sequence[Any] | None = None,
        *,
        record_type: type | None = None,
        apply_filtering: bool = True,
        apply_sorting: bool = True,
        apply_pagination: bool = True,
    ) -> AsyncIterator[T]:
        """
        Async counterpart of ``apply`` for streamed sources.

        Compilation happens when awaited; the returned iterator does the
        filtering as records arrive::

            async for post in await processor.apply_async(model, stream):
                ...
        """
        if model is None:
            return _aiterate_async(source)

        try:
            if record_type is None:
                record_type, source = await _apeek_record_type(source)
                if record_type is None:
                    return _aiterate_async(source)
            plan = self.plan(
                model,
                record_type,
                apply_filtering=apply_filtering,
                apply_sorting=apply_sorting,
                apply_pagination=apply_pagination,
            )
        except Exception as exc:
            self._handle_failure(exc, model)
            return _aiterate_async(source)
        return self._aguard(plan.run_async(source, tuple(extra_args or ())), source, model)

    def _guard(self, result: Iterable[T], source: Iterable[T], model: SieveModel) -> Iterator[T]:
        """
        Consume *result* under the failure policy.

        A suppressed failure before the first record falls back to
        *source*; records a one-shot source already gave up are not
        replayed.
        """
        started = False
        try:
            for item in result:
                started = True
                yield item
        except Exception as exc:
            self._handle_failure(exc, model)
            if not started:
                yield from source

    async def _aguard(
        self,
        result: AsyncIterable[T],
        source: AsyncIterable[T],
        model: SieveModel,
    ) -> AsyncIterator[T]:
        started = False
        try:
            async for item in result:
                started = True
                yield item
        except Exception as exc:
            self._handle_failure(exc, model)
            if not started:
                async for item in source:
                    yield item

    def _handle_failure(self, exc: Exception, model: SieveModel) -> None:
        """Re-raise per configuration; otherwise log and let the caller pass through."""
        if self._options.throw_exceptions:
            if isinstance(exc, SieveError):
                raise exc
            raise SieveError(f"{type(exc).__name__}: {exc}") from exc
        logger.warning(
            "Sieve query failed (filters=%r, sorts=%r); returning source unmodified",
            model.filters,
            model.sorts,
            exc_info=exc,
        )


# ---------------------------------------------------------------------------
# Source helpers
# ---------------------------------------------------------------------------


def _peek_record_type(source: Iterable[T]) -> tuple[type | None, Iterable[T]]:
    if isinstance(source, Sequence):
        return (type(source[0]) if source else None), source
    iterator = iter(source)
    try:
        first = next(iterator)
    except StopIteration:
        return None, ()
    return type(first), itertools.chain([first], iterator)


async def _apeek_record_type(
    source: AsyncIterable[T],
) -> tuple[type | None, AsyncIterable[T]]:
    iterator = aiter(source)
    try:
        first = await anext(iterator)
    except StopAsyncIteration:
        return None, _aiterate(())
    return type(first), _aprepend(first, iterator)


async def _aprepend(first: T, rest: AsyncIterator[T]) -> AsyncIterator[T]:
    yield first
    async for item in rest:
        yield item


async def _afilter(source: AsyncIterable[T], predicate: Any) -> AsyncIterator[T]:
    async for item in source:
        if predicate(item):
            yield item


async def _aiterate(items: Iterable[T]) -> AsyncIterator[T]:
    for item in items:
        yield item


async def _aiterate_async(source: AsyncIterable[T]) -> AsyncIterator[T]:
    async for item in source:
        yield item
