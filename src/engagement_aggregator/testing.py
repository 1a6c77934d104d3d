"""
Code to support our tests

This is here, rather than in our `tests` directory
because of the issues that come
when you turn your tests into a package using `__init__.py` files
(for details, see https://docs.pytest.org/en/7.1.x/explanation/goodpractices.html#choosing-an-import-mode).
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Any

import numpy as np

from engagement_aggregator.config import DAY_SECONDS
from engagement_aggregator.exceptions import StoreUnavailableError
from engagement_aggregator.typing import TIMESTAMP, SamplesDataFrame

RNG = np.random.default_rng()

PERIOD_LENGTH: int = 3 * DAY_SECONDS
"""Period length used throughout the tests (the default display period)"""

COURSE: str = "ENGL101-23S1"
OTHER_COURSE: str = "MATH102-23S1"
LAST_YEAR_COURSE: str = "ENGL101-22S1"


def get_indicator_records(
    context_key: str,
    user_key: str,
    period_ends: Sequence[TIMESTAMP],
    values: Sequence[Sequence[float]],
    period_length: int = PERIOD_LENGTH,
) -> list[dict[str, Any]]:
    """
    Get raw indicator records for one user in one context

    Parameters
    ----------
    context_key
        Context of the records

    user_key
        User of the records

    period_ends
        End of each period

    values
        Raw indicator values for each period (one sequence per period)

    period_length
        Length of each period

    Returns
    -------
    :
        Records, suitable for
        [InMemorySampleStore.from_records][(p).store.InMemorySampleStore.]
    """
    if len(period_ends) != len(values):
        msg = f"{len(period_ends)=} != {len(values)=}"
        raise AssertionError(msg)

    return [
        dict(
            context_key=context_key,
            user_key=user_key,
            period_start=end - period_length,
            period_end=end,
            value=value,
        )
        for end, period_values in zip(period_ends, values)
        for value in period_values
    ]


def get_period_ends(
    n_periods: int,
    first_end: TIMESTAMP = 10 * PERIOD_LENGTH,
    period_length: int = PERIOD_LENGTH,
) -> list[TIMESTAMP]:
    """
    Get the ends of consecutive, non-overlapping periods

    Parameters
    ----------
    n_periods
        Number of periods

    first_end
        End of the first period

    period_length
        Length of each period

    Returns
    -------
    :
        Period ends, ascending
    """
    return [first_end + i * period_length for i in range(n_periods)]


class UnavailableSampleStore:
    """
    Sample store whose persistence layer is always down
    """

    def __init__(self, reason: str = "connection refused") -> None:
        self.reason = reason
        self.calls = 0

    def _fail(self) -> SamplesDataFrame:
        self.calls += 1
        raise StoreUnavailableError(self, reason=self.reason)

    def fetch_series(
        self,
        entity_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        contexts: Collection[str] | None = None,
    ) -> SamplesDataFrame:
        return self._fail()

    def fetch_population(
        self,
        context_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        members: Collection[str] | None = None,
    ) -> SamplesDataFrame:
        return self._fail()

    def fetch_members(
        self,
        context_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
    ) -> SamplesDataFrame:
        return self._fail()
