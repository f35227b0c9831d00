"""
Typed filter values.

Filter literals arrive as text.  The compiler converts each literal once,
at compile time, into the semantic type of the property it is compared
with.  The same module renders Python values back into query text for the
query builder.
"""

from __future__ import annotations

import datetime
import types
import uuid as uuid_module
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Union, get_args, get_origin

from .terms import ESCAPE, escape, is_null_literal


class ValueType(str, Enum):
    """Semantic type of a property, decided from its declaration."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DATE = "date"
    TIME = "time"
    UUID = "uuid"
    ENUM = "enum"
    ANY = "any"


@dataclass(frozen=True)
class FilterValue:
    """A converted literal tagged with the type it was converted to."""

    value_type: ValueType
    value: Any
    raw: str

    @property
    def is_null(self) -> bool:
        return self.value is None


# ---------------------------------------------------------------------------
# Type inference
# ---------------------------------------------------------------------------

# Order matters: bool is an int, datetime is a date.
_SCALAR_TYPES: tuple[tuple[type, ValueType], ...] = (
    (bool, ValueType.BOOLEAN),
    (int, ValueType.INTEGER),
    (float, ValueType.FLOAT),
    (Decimal, ValueType.DECIMAL),
    (datetime.datetime, ValueType.DATETIME),
    (datetime.date, ValueType.DATE),
    (datetime.time, ValueType.TIME),
    (uuid_module.UUID, ValueType.UUID),
    (str, ValueType.STRING),
)


def unwrap_annotation(annotation: Any) -> Any:
    """Strip ``Annotated[...]`` and ``Optional[...]`` wrappers."""
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
            continue
        if origin is Union or origin is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) != 1:
                return annotation
            annotation = args[0]
            continue
        return annotation


def infer_value_type(annotation: Any) -> tuple[ValueType, type | None]:
    """
    Map a type annotation to its ``ValueType``.

    Returns the value type together with the concrete Python class when
    one is known (needed for enum conversion).
    """
    target = unwrap_annotation(annotation)
    if not isinstance(target, type):
        return ValueType.ANY, None
    if issubclass(target, Enum):
        return ValueType.ENUM, target
    for python_type, value_type in _SCALAR_TYPES:
        if issubclass(target, python_type):
            return value_type, target
    return ValueType.ANY, target


# ---------------------------------------------------------------------------
# Conversion (text -> Python)
# ---------------------------------------------------------------------------

_TRUE = frozenset({"true", "1", "yes"})
_FALSE = frozenset({"false", "0", "no"})


def normalize_datetime(value: datetime.datetime) -> datetime.datetime:
    """Aware UTC datetime; naive values are taken as UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def _cast_boolean(raw: str) -> bool:
    text = raw.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Not a boolean: {raw!r}")


def _cast_datetime(raw: str) -> datetime.datetime:
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return normalize_datetime(datetime.datetime.fromisoformat(text))


def _cast_date(raw: str) -> datetime.date:
    text = raw.strip()
    if "T" in text or " " in text:
        return _cast_datetime(text).date()
    return datetime.date.fromisoformat(text)


def _cast_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw.strip())
    except InvalidOperation as err:
        raise ValueError(f"Not a decimal: {raw!r}") from err


def _cast_enum(raw: str, enum_type: type[Enum]) -> Enum:
    for member in enum_type:
        if str(member.value) == raw or member.name.lower() == raw.lower():
            return member
    raise ValueError(f"{raw!r} is not a valid {enum_type.__name__}")


def convert_value(
    raw: str,
    value_type: ValueType,
    python_type: type | None = None,
) -> Any:
    """
    Convert a filter literal to *value_type*.

    Untyped (``ANY``) literals stay text; see ``align_untyped``.

    Raises:
        ValueError: If the text is not a valid literal of that type.
    """
    if value_type is ValueType.STRING:
        return raw
    if value_type is ValueType.INTEGER:
        return int(raw.strip())
    if value_type is ValueType.FLOAT:
        return float(raw.strip())
    if value_type is ValueType.DECIMAL:
        return _cast_decimal(raw)
    if value_type is ValueType.BOOLEAN:
        return _cast_boolean(raw)
    if value_type is ValueType.DATETIME:
        return _cast_datetime(raw)
    if value_type is ValueType.DATE:
        return _cast_date(raw)
    if value_type is ValueType.TIME:
        return datetime.time.fromisoformat(raw.strip())
    if value_type is ValueType.UUID:
        return uuid_module.UUID(raw.strip())
    if value_type is ValueType.ENUM:
        if python_type is None or not issubclass(python_type, Enum):
            raise ValueError("Enum conversion needs the enum class")
        return _cast_enum(raw.strip(), python_type)
    return raw


def normalize_field_value(value: Any, value_type: ValueType) -> Any:
    """Bring a record's own value into the shape literals are converted to."""
    if value_type is ValueType.DATETIME and isinstance(value, datetime.datetime):
        return normalize_datetime(value)
    return value


def align_untyped(field_value: Any, raw: str) -> tuple[Any, Any]:
    """
    Pair a record's value with the literal of an untyped property.

    The literal is converted to the type of the value it meets, so
    ``Code==007`` matches the text ``"007"`` and ``Count>5`` still compares
    numbers.  When the literal does not fit, both sides compare as text.
    """
    if field_value is None or isinstance(field_value, str):
        return field_value, raw
    value_type, python_type = infer_value_type(type(field_value))
    if value_type is not ValueType.ANY:
        try:
            return (
                normalize_field_value(field_value, value_type),
                convert_value(raw, value_type, python_type),
            )
        except (ValueError, TypeError):
            pass
    return str(field_value), raw


def ordering_value(value: Any) -> Any:
    """
    The form *value* is ordered by: enum members by their value, datetimes
    in UTC (naive ones taken as UTC).
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime.datetime):
        return normalize_datetime(value)
    return value


# ---------------------------------------------------------------------------
# Formatting (Python -> text)
# ---------------------------------------------------------------------------


def format_datetime(value: datetime.datetime) -> str:
    """UTC with millisecond precision and a ``Z`` marker."""
    utc = normalize_datetime(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_value(value: Any) -> str:
    """
    Render *value* as query text, escaped for the filter grammar.

    ``None`` becomes ``null``; the string ``"null"`` becomes ``\\null`` so
    it still means the literal text.
    """
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return format_value(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime.datetime):
        return format_datetime(value)
    if isinstance(value, datetime.date | datetime.time):
        return value.isoformat()
    text = str(value)
    if is_null_literal(text):
        return ESCAPE + text
    return escape(text)
