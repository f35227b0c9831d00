"""
Comparison strategies behind the filter operators.

``build_default_registry`` wires up the nine operators the query grammar
knows; negation and the ``*`` case-insensitive suffix are applied by the
compiler around these strategies, never inside them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..evaluator import MemoryOperatorRegistry
from .standard import (
    EqualOperator,
    GreaterEqualOperator,
    GreaterThanOperator,
    LessEqualOperator,
    LessThanOperator,
    NotEqualOperator,
)
from .string import (
    ContainsOperator,
    EndsWithOperator,
    StartsWithOperator,
)

if TYPE_CHECKING:
    from ..evaluator import MemoryOperator

COMPARISON_OPERATORS = (
    EqualOperator,
    NotEqualOperator,
    GreaterThanOperator,
    LessThanOperator,
    GreaterEqualOperator,
    LessEqualOperator,
)
TEXT_OPERATORS = (ContainsOperator, StartsWithOperator, EndsWithOperator)


def build_default_registry(*overrides: MemoryOperator) -> MemoryOperatorRegistry:
    """
    Registry holding every built-in strategy.

    *overrides* are registered last, so a custom strategy for an existing
    operator replaces the built-in one::

        registry = build_default_registry(MyLocaleAwareContains())
    """
    registry = MemoryOperatorRegistry()
    registry.register_all(*(cls() for cls in (*COMPARISON_OPERATORS, *TEXT_OPERATORS)))
    registry.register_all(*overrides)
    return registry


__all__ = [
    "COMPARISON_OPERATORS",
    "TEXT_OPERATORS",
    "build_default_registry",
    "MemoryOperatorRegistry",
]
