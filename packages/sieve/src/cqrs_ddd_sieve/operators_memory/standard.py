"""Standard comparison operators: ==, !=, >, <, >=, <=."""

from __future__ import annotations

from abc import abstractmethod
from typing import Any

from ..evaluator import MemoryOperator
from ..operators import FilterOperator
from ..values import ValueType, ordering_value

_UNORDERED = frozenset({ValueType.BOOLEAN, ValueType.UUID})


class EqualOperator(MemoryOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.EQUALS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value == condition_value)


class NotEqualOperator(MemoryOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NOT_EQUALS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value != condition_value)


class _OrderingOperator(MemoryOperator):
    """
    Ordering comparisons never match when either side is null.  Enum
    members compare by their values.
    """

    def supports(self, value_type: ValueType) -> bool:
        return value_type not in _UNORDERED

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None or condition_value is None:
            return False
        return self._compare(ordering_value(field_value), ordering_value(condition_value))

    @abstractmethod
    def _compare(self, field_value: Any, condition_value: Any) -> bool: ...


class GreaterThanOperator(_OrderingOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.GREATER_THAN

    def _compare(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value > condition_value)


class LessThanOperator(_OrderingOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.LESS_THAN

    def _compare(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value < condition_value)


class GreaterEqualOperator(_OrderingOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.GREATER_OR_EQUAL

    def _compare(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value >= condition_value)


class LessEqualOperator(_OrderingOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.LESS_OR_EQUAL

    def _compare(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value <= condition_value)
