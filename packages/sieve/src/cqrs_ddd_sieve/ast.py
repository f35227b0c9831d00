from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from .base import BaseSpecification
from .operators import render_symbol
from .values import ValueType, align_untyped, normalize_field_value

if TYPE_CHECKING:
    from .evaluator import MemoryOperator
    from .registry import PropertyMapping
    from .values import FilterValue

T = TypeVar("T", contravariant=True)


def _upper(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


class PropertySpecification(BaseSpecification[T]):
    """
    Specification that compares one property of a record with one literal.

    Delegates the comparison itself to a :class:`MemoryOperator`
    (strategy pattern).  Null handling happens here:

    - ``null_guarded`` short-circuits to "no match" when an intermediate
      path segment is absent, or when the record's value is null and the
      literal is not.
    - ``negated`` inverts the comparison but never the guards.
    """

    def __init__(
        self,
        mapping: PropertyMapping,
        operator: MemoryOperator,
        value: FilterValue,
        *,
        negated: bool = False,
        case_insensitive: bool = False,
        null_guarded: bool = True,
    ) -> None:
        self.mapping = mapping
        self.operator = operator
        self.value = value
        self.negated = negated
        self.case_insensitive = case_insensitive
        self.null_guarded = null_guarded

    def is_satisfied_by(self, candidate: T) -> bool:
        field_value, reachable = self.mapping.read(candidate)
        if self.null_guarded:
            if not reachable:
                return False
            if field_value is None and not self.value.is_null:
                return False

        condition_value = self.value.value
        if self.value.value_type is ValueType.ANY and isinstance(condition_value, str):
            field_value, condition_value = align_untyped(field_value, condition_value)
        else:
            field_value = normalize_field_value(field_value, self.mapping.value_type)
        if self.case_insensitive:
            field_value = _upper(field_value)
            condition_value = _upper(condition_value)

        result = self.operator.evaluate(field_value, condition_value)
        return not result if self.negated else result

    # -- serialisation -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "op": render_symbol(self.operator.name, self.negated, self.case_insensitive),
            "attr": self.mapping.external_name,
            "path": self.mapping.path,
            "val": self.value.raw,
            "value_type": self.value.value_type.value,
        }

    def __repr__(self) -> str:
        return f"PropertySpecification({self.to_dict()!r})"
