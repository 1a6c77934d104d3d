"""
Access to stored engagement samples

The aggregator never reads raw indicator rows itself.
It asks a [SampleStore][(m).] for samples which have already been
bucketed into periods and summed.
Grouping is the store's job (in a relational store it is a `GROUP BY`),
so only period-level `(count, value_sum)` pairs cross this boundary.

[InMemorySampleStore][(m).] is a pandas-backed store.
It is useful for tests, for small deployments
and as a reference for what other stores must return.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping
from typing import Any, Protocol

import attr
import numpy as np
import pandas as pd
from attrs import define, field

from engagement_aggregator.assertions import (
    assert_columns_are_numeric,
    assert_has_columns,
    assert_periods_are_valid,
)
from engagement_aggregator.config import DAY_SECONDS
from engagement_aggregator.exceptions import InvalidPeriodError
from engagement_aggregator.samples import (
    empty_samples_df,
    sort_most_recent_first,
)
from engagement_aggregator.typing import TIMESTAMP, SamplesDataFrame

logger = logging.getLogger(__name__)

INDICATOR_COLUMNS: tuple[str, ...] = (
    "context_key",
    "user_key",
    "period_start",
    "period_end",
    "value",
)
"""Columns expected in the raw indicator data held by [InMemorySampleStore][(m).]"""


class SampleStore(Protocol):
    """
    Source of period-bucketed engagement samples

    Every method returns a [SamplesDataFrame][(p).typing]
    ordered by `period_start` descending (most recent first).
    Every returned sample satisfies `period_end - period_start == period_length`
    and, when bounds are given, `start < period_end <= end`.
    An empty result means there is no data, it is not an error.

    Implementations that can't reach their persistence layer
    should raise [StoreUnavailableError][(p).exceptions].
    """

    def fetch_series(
        self,
        entity_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        contexts: Collection[str] | None = None,
    ) -> SamplesDataFrame:
        """
        Fetch the samples of one user

        Parameters
        ----------
        entity_key
            User whose samples to fetch

        period_length
            Length of the periods (seconds)

        start
            Only return samples whose period ends after this time

        end
            Only return samples whose period ends at or before this time

        contexts
            If supplied, only include samples from these contexts

        Returns
        -------
        :
            One sample per period, with `entity_key` set to `entity_key`
        """

    def fetch_population(
        self,
        context_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        members: Collection[str] | None = None,
    ) -> SamplesDataFrame:
        """
        Fetch the aggregate samples of everyone in a context

        Parameters
        ----------
        context_key
            Context (course, activity) whose samples to fetch

        period_length
            Length of the periods (seconds)

        start
            Only return samples whose period ends after this time

        end
            Only return samples whose period ends at or before this time

        members
            If supplied, only aggregate over these users

        Returns
        -------
        :
            One sample per period, with `entity_key` set to `context_key`
        """

    def fetch_members(
        self,
        context_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
    ) -> SamplesDataFrame:
        """
        Fetch the samples of each user in a context

        Parameters
        ----------
        context_key
            Context (course, activity) whose members' samples to fetch

        period_length
            Length of the periods (seconds)

        start
            Only return samples whose period ends after this time

        end
            Only return samples whose period ends at or before this time

        Returns
        -------
        :
            One sample per user per period, with `entity_key` set to the user
        """


def truncate_to_day(timestamps: pd.Series[int]) -> pd.Series[int]:  # type: ignore # pandas-stubs not up to date
    """
    Truncate Unix timestamps to the start of their (UTC) day

    Parameters
    ----------
    timestamps
        Timestamps to truncate

    Returns
    -------
    :
        Truncated timestamps

    Examples
    --------
    >>> truncate_to_day(pd.Series([0, 86399, 86400, 90000])).tolist()
    [0, 0, 86400, 86400]
    """
    return (timestamps // DAY_SECONDS) * DAY_SECONDS


@define
class InMemorySampleStore:
    """
    [SampleStore][(m).] backed by a [pd.DataFrame][pandas.DataFrame] of indicator values

    Each row of [indicators][(c).] is one raw indicator value
    for one user in one context over one period.
    """

    indicators: pd.DataFrame = field()
    """
    Raw indicator values

    Must have the columns given by `INDICATOR_COLUMNS`.
    """

    truncate_periods_to_day: bool = True
    """
    Should period ends be truncated to the start of their day before grouping?

    Indicator calculations rarely run exactly on midnight,
    truncation makes periods calculated at slightly different times line up.
    """

    run_checks: bool = True
    """
    If `True`, check the indicator data on initialisation
    """

    @indicators.validator
    def validate_indicators(
        self, attribute: attr.Attribute[Any], value: pd.DataFrame
    ) -> None:
        """
        Validate the indicator data

        If `self.run_checks` is `False`, then this is a no-op
        """
        if not self.run_checks:
            return

        assert_has_columns(value, INDICATOR_COLUMNS)
        assert_columns_are_numeric(value, ["period_start", "period_end", "value"])
        assert_periods_are_valid(value)

    @classmethod
    def from_records(
        cls, records: Iterable[Mapping[str, Any]], **kwargs: Any
    ) -> InMemorySampleStore:
        """
        Initialise from records of raw indicator values

        Parameters
        ----------
        records
            Records, each with the keys given by `INDICATOR_COLUMNS`

        **kwargs
            Passed to the initialiser

        Returns
        -------
        :
            Initialised store
        """
        records = list(records)
        if records:
            indicators = pd.DataFrame.from_records(records)
        else:
            indicators = pd.DataFrame(
                {
                    "context_key": pd.Series(dtype="object"),
                    "user_key": pd.Series(dtype="object"),
                    "period_start": pd.Series(dtype="int64"),
                    "period_end": pd.Series(dtype="int64"),
                    "value": pd.Series(dtype="float64"),
                }
            )

        return cls(indicators=indicators, **kwargs)

    def fetch_series(
        self,
        entity_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        contexts: Collection[str] | None = None,
    ) -> SamplesDataFrame:
        """
        Fetch the samples of one user

        See [SampleStore.fetch_series][(m).] for details.
        """
        locator = self.indicators["user_key"] == entity_key
        if contexts is not None:
            locator &= self.indicators["context_key"].isin(list(contexts))

        logger.debug(
            "Fetching series for %s (period_length=%s, start=%s, end=%s)",
            entity_key,
            period_length,
            start,
            end,
        )
        selected = self._select(locator, period_length, start=start, end=end)

        return self._bucket(selected, by="user_key")

    def fetch_population(
        self,
        context_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        members: Collection[str] | None = None,
    ) -> SamplesDataFrame:
        """
        Fetch the aggregate samples of everyone in a context

        See [SampleStore.fetch_population][(m).] for details.
        """
        locator = self.indicators["context_key"] == context_key
        if members is not None:
            locator &= self.indicators["user_key"].isin(list(members))

        logger.debug(
            "Fetching population for %s (period_length=%s, start=%s, end=%s)",
            context_key,
            period_length,
            start,
            end,
        )
        selected = self._select(locator, period_length, start=start, end=end)

        return self._bucket(selected, by="context_key")

    def fetch_members(
        self,
        context_key: str,
        period_length: int,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
    ) -> SamplesDataFrame:
        """
        Fetch the samples of each user in a context

        See [SampleStore.fetch_members][(m).] for details.
        """
        locator = self.indicators["context_key"] == context_key
        selected = self._select(locator, period_length, start=start, end=end)

        return self._bucket(selected, by="user_key")

    def _select(
        self,
        locator: pd.Series[bool],  # type: ignore # pandas-stubs not up to date
        period_length: int,
        start: TIMESTAMP | None,
        end: TIMESTAMP | None,
    ) -> pd.DataFrame:
        if period_length < 1:
            raise InvalidPeriodError(period_length)

        selected = self.indicators.loc[locator]
        if selected.empty:
            return selected

        lengths = selected["period_end"] - selected["period_start"]
        matching = lengths == period_length
        if not matching.any():
            raise InvalidPeriodError(
                period_length, available_period_lengths=lengths.unique().tolist()
            )

        selected = selected.loc[matching].copy()
        if self.truncate_periods_to_day:
            # Truncating both ends separately can change the length
            # of periods which straddle midnight, so re-derive the start.
            selected["period_end"] = truncate_to_day(selected["period_end"])
            selected["period_start"] = selected["period_end"] - period_length

        in_window = pd.Series(True, index=selected.index)
        if start is not None:
            in_window &= selected["period_end"] > start

        if end is not None:
            in_window &= selected["period_end"] <= end

        return selected.loc[in_window]

    @staticmethod
    def _bucket(selected: pd.DataFrame, by: str) -> SamplesDataFrame:
        if selected.empty:
            return empty_samples_df()

        res = (
            selected.groupby([by, "period_start", "period_end"])["value"]
            .agg(count="count", value_sum="sum")
            .reset_index()
            .rename(columns={by: "entity_key"})
        )
        res["entity_key"] = res["entity_key"].astype(object)
        res["period_start"] = res["period_start"].astype(np.int64)
        res["period_end"] = res["period_end"].astype(np.int64)
        res["count"] = res["count"].astype(np.int64)
        res["value_sum"] = res["value_sum"].astype(np.float64)

        return sort_most_recent_first(res)
