"""
Custom filter and sort methods.

Names that do not resolve to a registered property are dispatched to a
named function instead::

    filters = CustomMethodRegistry()

    @filters.method("IsNew", record_type=Post)
    def is_new(source, op, values):
        return (p for p in source if p.like_count < 100)

    @filters.method("Latest", bound=BaseEntity)
    def latest(source, op, values):
        ...

Filter methods are called as ``func(source, operator_symbol, values,
*extra_args)`` and sort methods as ``func(source, is_subsequent,
descending, *extra_args)``.  Extra arguments are only passed when the
function's signature accepts them.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from .exceptions import IncompatibleMethodError, MethodNotFoundError
from .registry import names_match

logger = logging.getLogger("cqrs_ddd.sieve.extensions")

F = TypeVar("F", bound=Callable[..., Any])


def _accepts_positional(func: Callable[..., Any], count: int) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*([None] * count))
    except TypeError:
        return False
    return True


@dataclass(frozen=True)
class CustomMethod:
    """
    A named custom method.

    ``record_type`` pins the method to one record type (and its
    subclasses).  Without it the method is generic, usable for any record
    type that subclasses every class in ``bound``.
    """

    name: str
    func: Callable[..., Any]
    record_type: type | None = None
    bound: tuple[type, ...] = ()

    @property
    def is_generic(self) -> bool:
        return self.record_type is None

    def accepts(self, record_type: type) -> bool:
        if self.record_type is not None:
            return issubclass(record_type, self.record_type)
        return all(issubclass(record_type, b) for b in self.bound)

    def invoke(self, *args: Any, extra_args: tuple[Any, ...] = ()) -> Any:
        if extra_args and _accepts_positional(self.func, len(args) + len(extra_args)):
            return self.func(*args, *extra_args)
        return self.func(*args)


class CustomMethodRegistry:
    """Named custom methods, dispatched by name and record type."""

    def __init__(self) -> None:
        self._methods: list[CustomMethod] = []

    # -- registration --------------------------------------------------------

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        *,
        record_type: type | None = None,
        bound: type | tuple[type, ...] | None = None,
    ) -> CustomMethod:
        """Register *func*, replacing a method with the same name and type."""
        bounds: tuple[type, ...]
        if bound is None:
            bounds = ()
        elif isinstance(bound, tuple):
            bounds = bound
        else:
            bounds = (bound,)

        method = CustomMethod(name=name, func=func, record_type=record_type, bound=bounds)
        self._methods = [
            m
            for m in self._methods
            if not (m.name == name and m.record_type is record_type and m.bound == bounds)
        ]
        self._methods.append(method)
        return method

    def method(
        self,
        name: str | None = None,
        *,
        record_type: type | None = None,
        bound: type | tuple[type, ...] | None = None,
    ) -> Callable[[F], F]:
        """Decorator form of ``register``; the name defaults to ``func.__name__``."""

        def decorator(func: F) -> F:
            self.register(name or func.__name__, func, record_type=record_type, bound=bound)
            return func

        return decorator

    # -- look-up -------------------------------------------------------------

    @property
    def names(self) -> list[str]:
        return sorted({m.name for m in self._methods})

    def __len__(self) -> int:
        return len(self._methods)

    def resolve(
        self,
        name: str,
        record_type: type,
        *,
        case_sensitive: bool = False,
    ) -> CustomMethod:
        """
        Pick the method to call for *name* on *record_type*.

        Preference: a method typed exactly for *record_type*, then one typed
        for a base class (nearest first), then a generic method whose bounds
        *record_type* satisfies.

        Raises:
            MethodNotFoundError: No method has that name.
            IncompatibleMethodError: Methods have that name, but none
                accepts *record_type*.
        """
        candidates = [m for m in self._methods if names_match(m.name, name, case_sensitive)]
        if not candidates:
            raise MethodNotFoundError(name, self.names)

        for owner in record_type.__mro__:
            for method in candidates:
                if method.record_type is owner:
                    return method

        for method in candidates:
            if method.is_generic and method.accepts(record_type):
                return method

        found: list[type] = []
        for method in candidates:
            for t in (method.record_type,) if method.record_type else method.bound:
                if t not in found:
                    found.append(t)
        logger.debug(
            "No %r method compatible with %s among %d candidate(s)",
            name,
            record_type.__name__,
            len(candidates),
        )
        raise IncompatibleMethodError(name, record_type, found)
