"""
PropertyRegistry: the whitelist of client-visible property names.

Each entry maps an external name on a record type to an internal
dot-separated path (or a computed accessor) together with its
filter/sort capability::

    registry = PropertyRegistry()
    registry.map_property(Post, "title").can_filter().can_sort()
    registry.map_property(Post, "top_comment.text").can_filter().has_name("TopComment")
    registry.computed(Book, "Year", lambda b: b.created_at.year)
    registry.custom_filter(Book, "IsLongBook", lambda b: b.pages > 500)

The registry is written during configuration and only read afterwards;
``freeze()`` makes that explicit.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from functools import lru_cache
from types import ModuleType
from typing import Any

from .attributes import declared_fields, field_annotations
from .exceptions import RegistryFrozenError
from .values import ValueType, infer_value_type, unwrap_annotation

logger = logging.getLogger("cqrs_ddd.sieve.registry")


@dataclass(frozen=True)
class PropertyMapping:
    """
    A resolvable property.

    Attributes:
        external_name: Name used in filter and sort strings.
        path: Dot-separated attribute path on the record.
        can_filter: Whether filter terms may reference the property.
        can_sort: Whether sort terms may reference the property.
        value_type: Semantic type literals are converted to.
        python_type: Concrete class behind ``value_type`` when known.
        accessor: Computes the value instead of walking ``path``.
    """

    external_name: str
    path: str
    can_filter: bool = False
    can_sort: bool = False
    value_type: ValueType = ValueType.ANY
    python_type: type | None = None
    accessor: Callable[[Any], Any] | None = None

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self.path.split("."))

    def read(self, record: Any) -> tuple[Any, bool]:
        """
        Read the property from *record*.

        Returns ``(value, reachable)``; ``reachable`` is ``False`` when an
        intermediate segment of the path is absent.
        """
        if self.accessor is not None:
            return self.accessor(record), True
        current = record
        for segment in self.segments:
            if current is None:
                return None, False
            if isinstance(current, dict):
                current = current.get(segment)
            else:
                current = getattr(current, segment, None)
        return current, True

    def allows(self, *, require_filter: bool, require_sort: bool) -> bool:
        if require_filter and not self.can_filter:
            return False
        return not (require_sort and not self.can_sort)


def names_match(left: str, right: str, case_sensitive: bool) -> bool:
    if case_sensitive:
        return left == right
    return left.casefold() == right.casefold()


@lru_cache(maxsize=1024)
def _infer_path_type(record_type: type, path: str) -> tuple[ValueType, type | None]:
    """Follow type annotations along *path* to the terminal value type."""
    current: Any = record_type
    segments = path.split(".")
    for index, segment in enumerate(segments):
        if not isinstance(current, type):
            return ValueType.ANY, None
        field = field_annotations(current).get(segment)
        if field is None:
            return ValueType.ANY, None
        annotation = field[0]
        if index == len(segments) - 1:
            return infer_value_type(annotation)
        current = unwrap_annotation(annotation)
    return ValueType.ANY, None


@lru_cache(maxsize=256)
def _inline_mappings(record_type: type) -> tuple[PropertyMapping, ...]:
    mappings = []
    for declared in declared_fields(record_type):
        value_type, python_type = infer_value_type(declared.annotation)
        mappings.append(
            PropertyMapping(
                external_name=declared.external_name,
                path=declared.attribute,
                can_filter=declared.marker.can_filter,
                can_sort=declared.marker.can_sort,
                value_type=value_type,
                python_type=python_type,
            )
        )
    return tuple(mappings)


class SieveConfiguration(ABC):
    """A unit of registry configuration, typically one per record type."""

    @abstractmethod
    def configure(self, registry: PropertyRegistry) -> None: ...


class PropertyRegistry:
    """Capability map from ``(record_type, external_name)`` to mappings."""

    def __init__(self) -> None:
        self._entries: dict[type, dict[str, PropertyMapping]] = {}
        self._frozen = False

    # -- registration --------------------------------------------------------

    def register(
        self,
        record_type: type,
        external_name: str,
        internal_path: str | None = None,
        *,
        can_filter: bool = False,
        can_sort: bool = False,
        value_type: ValueType | None = None,
        python_type: type | None = None,
        accessor: Callable[[Any], Any] | None = None,
    ) -> PropertyMapping:
        """
        Register (or replace) a property.  Last write wins per
        ``(record_type, external_name)``.

        When *value_type* is omitted it is inferred from the annotations
        along *internal_path*.
        """
        self._check_writable()
        path = internal_path or external_name
        if value_type is None:
            if accessor is None:
                value_type, python_type = _infer_path_type(record_type, path)
            else:
                value_type = ValueType.ANY
        mapping = PropertyMapping(
            external_name=external_name,
            path=path,
            can_filter=can_filter,
            can_sort=can_sort,
            value_type=value_type,
            python_type=python_type,
            accessor=accessor,
        )
        self._entries.setdefault(record_type, {})[external_name] = mapping
        logger.debug(
            "Registered %s.%s -> %s (filter=%s, sort=%s, type=%s)",
            record_type.__name__,
            external_name,
            path,
            can_filter,
            can_sort,
            value_type.value,
        )
        return mapping

    def unregister(self, record_type: type, external_name: str) -> None:
        self._check_writable()
        self._entries.get(record_type, {}).pop(external_name, None)

    def map_property(self, record_type: type, path: str) -> PropertyBuilder:
        """Start a fluent registration for *path*, named after the path."""
        return PropertyBuilder(self, record_type, path)

    def computed(
        self,
        record_type: type,
        name: str,
        accessor: Callable[[Any], Any],
        *,
        value_type: ValueType = ValueType.ANY,
        python_type: type | None = None,
        can_filter: bool = True,
        can_sort: bool = True,
    ) -> PropertyMapping:
        """Register a value computed from the record, e.g. ``created.year``."""
        return self.register(
            record_type,
            name,
            name,
            can_filter=can_filter,
            can_sort=can_sort,
            value_type=value_type,
            python_type=python_type,
            accessor=accessor,
        )

    def custom_filter(
        self,
        record_type: type,
        name: str,
        predicate: Callable[[Any], bool],
    ) -> PropertyMapping:
        """Register a named boolean condition, filtered with ``Name==true``."""
        return self.register(
            record_type,
            name,
            name,
            can_filter=True,
            value_type=ValueType.BOOLEAN,
            python_type=bool,
            accessor=predicate,
        )

    def apply_configuration(self, *configurations: SieveConfiguration) -> PropertyRegistry:
        for configuration in configurations:
            configuration.configure(self)
        return self

    def apply_configurations_from_module(self, module: ModuleType) -> PropertyRegistry:
        """Instantiate and apply every concrete ``SieveConfiguration`` in *module*."""
        for obj in list(vars(module).values()):
            if (
                isinstance(obj, type)
                and issubclass(obj, SieveConfiguration)
                and obj.__module__ == module.__name__
                and not inspect.isabstract(obj)
            ):
                obj().configure(self)
        return self

    def freeze(self) -> PropertyRegistry:
        """End configuration; later registrations raise ``RegistryFrozenError``."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_writable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                "PropertyRegistry is frozen; register properties during configuration"
            )

    # -- look-up -------------------------------------------------------------

    def resolve(
        self,
        record_type: type,
        name: str,
        *,
        require_filter: bool = False,
        require_sort: bool = False,
        case_sensitive: bool = False,
    ) -> PropertyMapping | None:
        """
        Find a sufficiently capable property for *name*.

        Explicit entries on the record type and its base classes come
        first; inline ``SieveField`` declarations are the fallback.
        """
        for owner in record_type.__mro__:
            for mapping in self._entries.get(owner, {}).values():
                if names_match(mapping.external_name, name, case_sensitive) and mapping.allows(
                    require_filter=require_filter, require_sort=require_sort
                ):
                    return mapping

        for mapping in _inline_mappings(record_type):
            if names_match(mapping.external_name, name, case_sensitive) and mapping.allows(
                require_filter=require_filter, require_sort=require_sort
            ):
                return mapping
        return None

    def mappings(self, record_type: type) -> list[PropertyMapping]:
        """Explicit entries registered directly on *record_type*."""
        return list(self._entries.get(record_type, {}).values())


class PropertyBuilder:
    """
    Fluent registration of one property.

    Every call re-registers the mapping, so a builder that is never
    finished still leaves a valid (capability-less) entry behind.
    """

    def __init__(self, registry: PropertyRegistry, record_type: type, path: str) -> None:
        self._registry = registry
        self._record_type = record_type
        self._mapping = registry.register(record_type, path, path)

    def can_filter(self) -> PropertyBuilder:
        return self._update(can_filter=True)

    def can_sort(self) -> PropertyBuilder:
        return self._update(can_sort=True)

    def has_name(self, name: str) -> PropertyBuilder:
        self._registry.unregister(self._record_type, self._mapping.external_name)
        return self._update(external_name=name)

    @property
    def mapping(self) -> PropertyMapping:
        return self._mapping

    def _update(self, **changes: Any) -> PropertyBuilder:
        mapping = replace(self._mapping, **changes)
        self._mapping = self._registry.register(
            self._record_type,
            mapping.external_name,
            mapping.path,
            can_filter=mapping.can_filter,
            can_sort=mapping.can_sort,
            value_type=mapping.value_type,
            python_type=mapping.python_type,
        )
        return self
