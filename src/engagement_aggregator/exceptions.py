"""
Exceptions that are used throughout
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Any


class NoDataError(LookupError):
    """
    Raised when none of the requested entities has any samples

    This is an expected outcome (e.g. a course with no recorded activity yet),
    so callers normally recover from it by returning an empty chart.
    """

    def __init__(self, entity_keys: Collection[str]) -> None:
        """
        Initialise the error

        Parameters
        ----------
        entity_keys
            Entities for which no samples were found
        """
        error_msg = f"No samples were found for any of {sorted(entity_keys)}"
        super().__init__(error_msg)


class InvalidPeriodError(ValueError):
    """
    Raised when the requested period length can't be satisfied by the samples
    """

    def __init__(
        self,
        period_length: int,
        available_period_lengths: Collection[int] = (),
    ) -> None:
        """
        Initialise the error

        Parameters
        ----------
        period_length
            Requested period length (seconds)

        available_period_lengths
            Period lengths that are actually stored for the selection
        """
        error_msg = (
            f"No samples have a period length of {period_length} seconds. "
            f"Available period lengths: {sorted(available_period_lengths)}"
        )
        super().__init__(error_msg)


class StoreUnavailableError(RuntimeError):
    """
    Raised by sample stores when the underlying persistence layer fails

    The aggregator never retries, this is passed straight to the caller.
    """

    def __init__(self, store: Any, reason: str) -> None:
        """
        Initialise the error

        Parameters
        ----------
        store
            Store that failed

        reason
            Why the store failed
        """
        error_msg = f"Sample store {type(store).__name__} is unavailable: {reason}"
        super().__init__(error_msg)


class UnrecognisedValueError(ValueError):
    """
    Raised when a value is not one of the known options
    """

    def __init__(
        self, unrecognised_value: Any, name: str, known_values: Collection[Any]
    ) -> None:
        """
        Initialise the error

        Parameters
        ----------
        unrecognised_value
            Value we didn't recognise

        name
            Name of the option the value was supplied for

        known_values
            Values we do recognise
        """
        error_msg = (
            f"{unrecognised_value!r} is not a recognised value for {name}. "
            f"Known values: {sorted(known_values)}"
        )
        super().__init__(error_msg)
