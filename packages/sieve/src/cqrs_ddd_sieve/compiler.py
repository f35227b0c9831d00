"""
SieveCompiler: parsed terms + registry -> executable filter and ordering.

Compilation resolves every name, converts every literal and dispatches
every custom method up front.  Any failure aborts the whole compilation;
nothing is applied to data until ``CompiledFilter.apply`` or
``ComparatorChain.apply`` runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .ast import PropertySpecification
from .base import all_of, any_of
from .exceptions import FilterValueError
from .extensions import CustomMethodRegistry
from .operators import FilterOperator
from .operators_memory import build_default_registry
from .options import SieveOptions
from .ordering import OrderedSequence, order_by
from .terms import is_escaped_null, is_null_literal
from .values import FilterValue, ValueType, convert_value, ordering_value

if TYPE_CHECKING:
    from .base import ISpecification
    from .evaluator import MemoryOperatorRegistry
    from .extensions import CustomMethod
    from .registry import PropertyMapping, PropertyRegistry
    from .terms import FilterTerm, ParsedFilter, SortTerm

logger = logging.getLogger("cqrs_ddd.sieve.compiler")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Compiled filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomFilterStep:
    """A custom filter method bound to the operator and values of its term."""

    method: CustomMethod
    operator_symbol: str
    values: tuple[str, ...]

    def apply(self, source: Iterable[Any], extra_args: tuple[Any, ...] = ()) -> Iterable[Any]:
        return self.method.invoke(
            source, self.operator_symbol, list(self.values), extra_args=extra_args
        )


@dataclass(frozen=True)
class CompiledFilter(Generic[T]):
    """
    The executable form of a ``ParsedFilter``.

    ``predicate`` is the OR-of-ANDs over registered properties (``None``
    when no term resolved to a property).  ``custom_steps`` run against
    the whole source, in the order their terms appeared, before the
    predicate is evaluated.
    """

    predicate: ISpecification[T] | None = None
    custom_steps: tuple[CustomFilterStep, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.predicate is None and not self.custom_steps

    def matches(self, record: T) -> bool:
        """Evaluate the property predicate alone against one record."""
        return self.predicate is None or self.predicate.is_satisfied_by(record)

    def apply_custom(
        self, source: Iterable[T], extra_args: tuple[Any, ...] = ()
    ) -> Iterable[T]:
        """Run only the custom filter steps."""
        result: Iterable[T] = source
        for step in self.custom_steps:
            result = step.apply(result, extra_args)
        return result

    def apply(self, source: Iterable[T], extra_args: tuple[Any, ...] = ()) -> Iterable[T]:
        result = self.apply_custom(source, extra_args)
        predicate = self.predicate
        if predicate is None:
            return result
        return (record for record in result if predicate.is_satisfied_by(record))


# ---------------------------------------------------------------------------
# Compiled ordering
# ---------------------------------------------------------------------------


class SortStep(ABC):
    """One key of a ``ComparatorChain``."""

    descending: bool

    @abstractmethod
    def apply(
        self,
        source: Iterable[Any],
        is_subsequent: bool,
        extra_args: tuple[Any, ...] = (),
    ) -> Iterable[Any]: ...


@dataclass(frozen=True)
class PropertySortStep(SortStep):
    mapping: PropertyMapping
    descending: bool = False
    nulls_first: bool = True

    def extract(self, record: Any) -> Any:
        return ordering_value(self.mapping.read(record)[0])

    def apply(
        self,
        source: Iterable[Any],
        is_subsequent: bool,
        extra_args: tuple[Any, ...] = (),
    ) -> Iterable[Any]:
        # A plain iterable from a custom sort has no keys to extend.
        if is_subsequent and isinstance(source, OrderedSequence):
            return source.then_by(self.extract, self.descending, nulls_first=self.nulls_first)
        return order_by(source, self.extract, self.descending, nulls_first=self.nulls_first)


@dataclass(frozen=True)
class CustomSortStep(SortStep):
    method: CustomMethod
    descending: bool = False

    def apply(
        self,
        source: Iterable[Any],
        is_subsequent: bool,
        extra_args: tuple[Any, ...] = (),
    ) -> Iterable[Any]:
        return self.method.invoke(source, is_subsequent, self.descending, extra_args=extra_args)


@dataclass(frozen=True)
class ComparatorChain:
    """Ordered sort keys; the first establishes the primary order."""

    steps: tuple[SortStep, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def __len__(self) -> int:
        return len(self.steps)

    def apply(self, source: Iterable[Any], extra_args: tuple[Any, ...] = ()) -> Iterable[Any]:
        result = source
        for index, step in enumerate(self.steps):
            result = step.apply(result, index > 0, extra_args)
        return result


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


class SieveCompiler:
    """Compile parsed filters and sorts against a ``PropertyRegistry``."""

    def __init__(
        self,
        options: SieveOptions | None = None,
        *,
        filter_methods: CustomMethodRegistry | None = None,
        sort_methods: CustomMethodRegistry | None = None,
        operators: MemoryOperatorRegistry | None = None,
    ) -> None:
        self._options = options if options is not None else SieveOptions()
        self._filter_methods = (
            filter_methods if filter_methods is not None else CustomMethodRegistry()
        )
        self._sort_methods = sort_methods if sort_methods is not None else CustomMethodRegistry()
        self._operators = operators if operators is not None else build_default_registry()

    # -- filters -------------------------------------------------------------

    def compile_filter(
        self,
        parsed: ParsedFilter | None,
        registry: PropertyRegistry,
        record_type: type,
    ) -> CompiledFilter[Any]:
        """
        Fold *parsed* into an OR of ANDs.

        Raises:
            FilterValueError: A literal does not fit its property.
            MethodNotFoundError: A name is neither a filterable property nor
                a custom filter method.
            IncompatibleMethodError: The custom method exists, but not for
                *record_type*.
        """
        if parsed is None:
            return CompiledFilter()

        case_sensitive = self._options.case_sensitive
        custom_steps: list[CustomFilterStep] = []
        group_specs: list[ISpecification[Any]] = []

        for group in parsed:
            term_specs: list[ISpecification[Any]] = []
            for term in group:
                alternatives: list[ISpecification[Any]] = []
                for name in term.names:
                    mapping = registry.resolve(
                        record_type,
                        name,
                        require_filter=True,
                        case_sensitive=case_sensitive,
                    )
                    if mapping is None:
                        method = self._filter_methods.resolve(
                            name, record_type, case_sensitive=case_sensitive
                        )
                        step = CustomFilterStep(method, term.operator_symbol, term.values)
                        # Cartesian expansion repeats shared terms across groups.
                        if step not in custom_steps:
                            custom_steps.append(step)
                    elif term.operator is not None:
                        alternatives.extend(self._compile_term(term, term.operator, mapping))
                if alternatives:
                    term_specs.append(any_of(*alternatives))
            if term_specs:
                group_specs.append(all_of(*term_specs))

        compiled: CompiledFilter[Any] = CompiledFilter(
            predicate=any_of(*group_specs) if group_specs else None,
            custom_steps=tuple(custom_steps),
        )
        logger.debug(
            "Compiled filter for %s: %d group(s), %d custom step(s)",
            record_type.__name__,
            len(group_specs),
            len(custom_steps),
        )
        return compiled

    def _compile_term(
        self,
        term: FilterTerm,
        kind: FilterOperator,
        mapping: PropertyMapping,
    ) -> list[PropertySpecification[Any]]:
        operator = self._operators.require(kind)
        if not operator.supports(mapping.value_type):
            raise FilterValueError(
                f"Operator '{term.operator_symbol}' is not supported for "
                f"{mapping.value_type.value} property '{mapping.external_name}'",
                mapping.external_name,
            )

        null_guarded = not (
            kind is FilterOperator.NOT_EQUALS
            and not term.negated
            and self._options.ignore_nulls_on_not_equal
        )

        specs = []
        for raw in term.values:
            value = self._convert(raw, kind, mapping)
            specs.append(
                PropertySpecification(
                    mapping,
                    operator,
                    value,
                    negated=term.negated,
                    case_insensitive=term.case_insensitive and isinstance(value.value, str),
                    null_guarded=null_guarded,
                )
            )
        return specs

    @staticmethod
    def _convert(raw: str, operator: FilterOperator, mapping: PropertyMapping) -> FilterValue:
        value_type = mapping.value_type
        if is_escaped_null(raw):
            return FilterValue(ValueType.STRING, raw[1:], raw)
        if is_null_literal(raw) and (
            value_type is not ValueType.STRING
            or operator in (FilterOperator.EQUALS, FilterOperator.NOT_EQUALS)
        ):
            return FilterValue(value_type, None, raw)
        if operator.is_string:
            return FilterValue(ValueType.STRING, raw, raw)

        try:
            converted = convert_value(raw, value_type, mapping.python_type)
        except (ValueError, TypeError) as err:
            raise FilterValueError(
                f"Cannot convert {raw!r} to {value_type.value} for property "
                f"'{mapping.external_name}'",
                mapping.external_name,
                raw,
            ) from err
        return FilterValue(value_type, converted, raw)

    # -- sorts ---------------------------------------------------------------

    def compile_sort(
        self,
        sort_terms: Sequence[SortTerm],
        registry: PropertyRegistry,
        record_type: type,
    ) -> ComparatorChain:
        """
        Build the comparator chain in sort-term order.

        Raises:
            MethodNotFoundError: A name is neither a sortable property nor a
                custom sort method.
            IncompatibleMethodError: The custom method exists, but not for
                *record_type*.
        """
        case_sensitive = self._options.case_sensitive
        steps: list[SortStep] = []
        for term in sort_terms:
            mapping = registry.resolve(
                record_type,
                term.name,
                require_sort=True,
                case_sensitive=case_sensitive,
            )
            if mapping is not None:
                steps.append(
                    PropertySortStep(mapping, term.descending, self._options.nulls_first)
                )
            else:
                method = self._sort_methods.resolve(
                    term.name, record_type, case_sensitive=case_sensitive
                )
                steps.append(CustomSortStep(method, term.descending))
        logger.debug("Compiled %d sort key(s) for %s", len(steps), record_type.__name__)
        return ComparatorChain(tuple(steps))
