"""SieveOptions: explicit configuration threaded into the processor."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SieveOptions(BaseModel):
    """
    Behavior switches for parsing, compiling and applying queries.

    Options are immutable and passed explicitly to ``SieveProcessor``;
    nothing is read from process-wide state.  Load from a settings
    mapping with ``SieveOptions.model_validate(settings["sieve"])``.

    Attributes:
        case_sensitive: Compare property and method names case-sensitively.
        default_page_size: Page size when the query gives none; ``0``
            disables pagination by default.
        max_page_size: Upper bound on the page size; ``0`` means unbounded.
        throw_exceptions: Raise on failure.  When ``False`` the processor
            logs the failure and returns its input unchanged.
        ignore_nulls_on_not_equal: ``!=`` against a non-null literal
            matches records whose value or intermediate path is absent.
        nulls_first: ``None`` sorts below every other value.
    """

    model_config = ConfigDict(frozen=True)

    case_sensitive: bool = False
    default_page_size: int = Field(default=0, ge=0)
    max_page_size: int = Field(default=0, ge=0)
    throw_exceptions: bool = True
    ignore_nulls_on_not_equal: bool = True
    nulls_first: bool = True
