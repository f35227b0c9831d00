"""
Sieve exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``SieveError`` and provide ``to_dict()``
for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class SieveError(Exception):
    """Base exception for all sieve errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


class FilterParseError(SieveError):
    """The filter or sort string is malformed."""

    def __init__(self, message: str, text: str | None = None) -> None:
        self.message = message
        self.text = text
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FILTER_PARSE_ERROR",
            "message": self.message,
            "text": self.text,
        }


class UnmatchedGroupError(FilterParseError):
    """An opening parenthesis has no matching closing parenthesis."""

    def __init__(self, position: int, text: str | None = None) -> None:
        self.position = position
        super().__init__(f"Unmatched opening parenthesis at position {position}", text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNMATCHED_GROUP",
            "message": self.message,
            "position": self.position,
            "text": self.text,
        }


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


class FilterValueError(SieveError):
    """A filter value cannot be used against the resolved property."""

    def __init__(self, message: str, property_name: str, value: Any = None) -> None:
        self.message = message
        self.property_name = property_name
        self.value = value
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FILTER_VALUE_ERROR",
            "message": self.message,
            "property": self.property_name,
            "value": self.value,
        }


class UnresolvedNameError(SieveError):
    """A query name matched neither a property nor a usable custom method."""

    def __init__(self, method_name: str, message: str) -> None:
        self.method_name = method_name
        super().__init__(message)


class MethodNotFoundError(UnresolvedNameError):
    """
    No custom method is registered under the requested name.

    Provides fuzzy-matched suggestions for likely intended names.
    """

    def __init__(self, method_name: str, available: list[str] | None = None) -> None:
        self.available = sorted(available or [])
        self.suggestions = get_close_matches(
            method_name, self.available, n=3, cutoff=0.6
        )

        message = f"{method_name} not found."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(method_name, message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "METHOD_NOT_FOUND",
            "method": self.method_name,
            "suggestions": self.suggestions,
            "available": self.available,
        }


class IncompatibleMethodError(UnresolvedNameError):
    """
    Custom methods exist under the requested name, but none accepts the
    record type being queried.
    """

    def __init__(
        self,
        method_name: str,
        expected_type: type,
        actual_types: list[type],
    ) -> None:
        self.expected_type = expected_type
        self.actual_types = actual_types
        found = ", ".join(t.__name__ for t in actual_types) or "no type"
        message = (
            f"{method_name} failed. Expected a custom method for type "
            f"{expected_type.__name__} but only found for type {found}"
        )
        super().__init__(method_name, message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INCOMPATIBLE_METHOD",
            "method": self.method_name,
            "expected_type": self.expected_type.__name__,
            "actual_types": [t.__name__ for t in self.actual_types],
        }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RegistryFrozenError(SieveError):
    """A registration was attempted after the registry was frozen."""
