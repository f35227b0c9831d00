"""
Sieve-style filtering, sorting and pagination over typed records.

Clients send compact query text such as
``Price>100,(Brand==Dell || Brand==HP)`` and ``-CreatedAt``; the
processor parses it, compiles it against a whitelist of properties and
applies it to any iterable (or async iterable) of records.
"""

from .ast import PropertySpecification
from .attributes import SieveField
from .base import (
    AndSpecification,
    BaseSpecification,
    ISpecification,
    OrSpecification,
)
from .compiler import (
    ComparatorChain,
    CompiledFilter,
    CustomFilterStep,
    CustomSortStep,
    PropertySortStep,
    SieveCompiler,
)
from .evaluator import MemoryOperator, MemoryOperatorRegistry
from .exceptions import (
    FilterParseError,
    FilterValueError,
    IncompatibleMethodError,
    MethodNotFoundError,
    RegistryFrozenError,
    SieveError,
    UnmatchedGroupError,
    UnresolvedNameError,
)
from .extensions import CustomMethod, CustomMethodRegistry
from .model import SieveModel
from .operators import FilterOperator, OperatorToken
from .operators_memory import build_default_registry
from .options import SieveOptions
from .ordering import OrderedSequence, order_by
from .pagination import PageWindow, resolve_page_window
from .parser import FilterParser, parse_filters, parse_sorts
from .processor import QueryPlan, SieveProcessor
from .query_builder import FilterInfo, SieveQueryBuilder, SortInfo
from .query_string import decode_query, encode_query
from .registry import (
    PropertyBuilder,
    PropertyMapping,
    PropertyRegistry,
    SieveConfiguration,
)
from .terms import FilterGroup, FilterTerm, ParsedFilter, SortTerm
from .values import FilterValue, ValueType, convert_value, format_value

__all__ = [
    # Term model
    "FilterOperator",
    "OperatorToken",
    "FilterTerm",
    "FilterGroup",
    "ParsedFilter",
    "SortTerm",
    # Parser
    "FilterParser",
    "parse_filters",
    "parse_sorts",
    # Registry
    "PropertyRegistry",
    "PropertyMapping",
    "PropertyBuilder",
    "SieveConfiguration",
    "SieveField",
    # Values
    "ValueType",
    "FilterValue",
    "convert_value",
    "format_value",
    # Specifications / evaluator
    "ISpecification",
    "BaseSpecification",
    "AndSpecification",
    "OrSpecification",
    "PropertySpecification",
    "MemoryOperator",
    "MemoryOperatorRegistry",
    "build_default_registry",
    # Compiler
    "SieveCompiler",
    "CompiledFilter",
    "CustomFilterStep",
    "ComparatorChain",
    "PropertySortStep",
    "CustomSortStep",
    "OrderedSequence",
    "order_by",
    # Custom methods
    "CustomMethod",
    "CustomMethodRegistry",
    # Façade
    "SieveOptions",
    "SieveModel",
    "SieveProcessor",
    "QueryPlan",
    "PageWindow",
    "resolve_page_window",
    # Query builder
    "SieveQueryBuilder",
    "FilterInfo",
    "SortInfo",
    "encode_query",
    "decode_query",
    # Exceptions
    "SieveError",
    "FilterParseError",
    "UnmatchedGroupError",
    "FilterValueError",
    "UnresolvedNameError",
    "MethodNotFoundError",
    "IncompatibleMethodError",
    "RegistryFrozenError",
]
