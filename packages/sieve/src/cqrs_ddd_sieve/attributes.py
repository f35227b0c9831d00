"""
Inline capability declarations on a record's own fields.

Usage::

    class Post(BaseModel):
        title: Annotated[str, SieveField(can_filter=True, can_sort=True)]
        like_count: Annotated[int, SieveField(can_sort=True, name="Likes")]

Inline declarations are a fallback consulted only when the
``PropertyRegistry`` holds no explicit entry for a name.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any, get_args, get_origin, get_type_hints


@dataclass(frozen=True)
class SieveField:
    """Marker placed in ``Annotated[...]`` metadata."""

    can_filter: bool = False
    can_sort: bool = False
    name: str | None = None


@dataclass(frozen=True)
class DeclaredField:
    attribute: str
    annotation: Any
    marker: SieveField

    @property
    def external_name(self) -> str:
        return self.marker.name or self.attribute


@lru_cache(maxsize=256)
def field_annotations(record_type: type) -> dict[str, tuple[Any, tuple[Any, ...]]]:
    """
    Map each attribute of *record_type* to ``(annotation, metadata)``.

    Pydantic models are read from ``model_fields``; other classes
    (dataclasses, plain annotated classes) from their type hints.
    Unresolvable forward references yield no fields.
    """
    model_fields = getattr(record_type, "model_fields", None)
    if isinstance(model_fields, dict):
        return {
            name: (info.annotation, tuple(info.metadata))
            for name, info in model_fields.items()
        }

    try:
        hints = get_type_hints(record_type, include_extras=True)
    except (NameError, TypeError):
        return {}

    result: dict[str, tuple[Any, tuple[Any, ...]]] = {}
    for name, annotation in hints.items():
        if get_origin(annotation) is Annotated:
            base, *metadata = get_args(annotation)
            result[name] = (base, tuple(metadata))
        else:
            result[name] = (annotation, ())
    return result


@lru_cache(maxsize=256)
def declared_fields(record_type: type) -> tuple[DeclaredField, ...]:
    """All ``SieveField``-annotated attributes of *record_type* (cached)."""
    fields: list[DeclaredField] = []
    for attribute, (annotation, metadata) in field_annotations(record_type).items():
        for meta in metadata:
            if isinstance(meta, SieveField):
                fields.append(DeclaredField(attribute, annotation, meta))
                break
    return tuple(fields)
