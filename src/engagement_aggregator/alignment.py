"""
Alignment of independently sampled series onto one label axis

Different entities report on different periods
(late data, differing course calendars etc.).
To plot them as parallel lines they have to share one axis.
We take the axis from the entity with the most (non-overlapping) periods
and fill in zero wherever another entity has no sample for a period.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd
from attrs import define

from engagement_aggregator.assertions import (
    assert_counts_are_non_negative,
    assert_single_period_length,
)
from engagement_aggregator.exceptions import NoDataError
from engagement_aggregator.samples import calculate_averages, sort_most_recent_first
from engagement_aggregator.typing import NUMERIC_DATA, AlignedDataFrame, SamplesDataFrame

logger = logging.getLogger(__name__)

MIN_AXIS_MAX: float = 2.0
"""
Smallest value the running maximum of aligned values can take

Avoids a degenerate, zero-height axis for entities with (almost) no engagement.
"""


def _keep_most_recent(
    starts: np.ndarray, ends: np.ndarray, tolerance: int
) -> list[int]:
    # Rows are ordered most recent first
    keep = []
    last_start = None
    last_end = None
    for i, (start, end) in enumerate(zip(starts, ends)):
        if last_start is not None and (
            end > last_start + tolerance or end == last_end
        ):
            continue

        keep.append(i)
        last_start = start
        last_end = end

    return keep


def _keep_earliest(starts: np.ndarray, ends: np.ndarray, tolerance: int) -> list[int]:
    # Rows are ordered earliest first
    keep = []
    last_end = None
    for i, (start, end) in enumerate(zip(starts, ends)):
        if last_end is not None and (start < last_end - tolerance or end == last_end):
            continue

        keep.append(i)
        last_end = end

    return keep


def drop_overlapping_periods(
    samples: SamplesDataFrame,
    tolerance: int = 0,
    prefer_latest: bool = True,
) -> SamplesDataFrame:
    """
    Drop samples whose period overlaps a period we have already kept

    Stores can return overlapping historical windows
    (e.g. when the period length setting has been changed).
    Plotting all of them would count the same engagement twice.

    Each entity is handled separately.
    With `prefer_latest`, samples are walked from the most recent backwards
    and a sample is kept only if its period ends no later than
    the start of the previously kept period (plus `tolerance`).
    Otherwise, samples are walked from the earliest forwards
    and a sample is kept only if its period starts no earlier than
    the end of the previously kept period (minus `tolerance`).

    Samples with identical periods are never both kept.
    The one with the highest `count` (then highest `value_sum`) wins.

    Parameters
    ----------
    samples
        Samples to filter

    tolerance
        Overlap (seconds) that is allowed before a sample is dropped

    prefer_latest
        When periods overlap, should the most recent one be kept?

    Returns
    -------
    :
        Non-overlapping samples, most recent first

    Examples
    --------
    >>> from engagement_aggregator.samples import create_samples_df
    >>> samples = create_samples_df(
    ...     [
    ...         dict(entity_key="u1", period_start=100, period_end=110, count=1, value_sum=1.0),
    ...         dict(entity_key="u1", period_start=105, period_end=115, count=1, value_sum=1.0),
    ...         dict(entity_key="u1", period_start=115, period_end=125, count=1, value_sum=1.0),
    ...     ]
    ... )
    >>> drop_overlapping_periods(samples)["period_start"].tolist()
    [115, 105]
    >>> drop_overlapping_periods(samples, prefer_latest=False)["period_start"].tolist()
    [115, 100]
    """
    if samples.empty:
        return samples

    kept_l = []
    for _, entity_samples in samples.groupby("entity_key", sort=False):
        if prefer_latest:
            ordered = sort_most_recent_first(entity_samples)
            keep = _keep_most_recent(
                ordered["period_start"].to_numpy(),
                ordered["period_end"].to_numpy(),
                tolerance=tolerance,
            )
        else:
            ordered = entity_samples.sort_values(
                ["period_start", "period_end", "count", "value_sum"],
                ascending=[True, True, False, False],
                kind="stable",
            ).reset_index(drop=True)
            keep = _keep_earliest(
                ordered["period_start"].to_numpy(),
                ordered["period_end"].to_numpy(),
                tolerance=tolerance,
            )

        dropped = len(ordered) - len(keep)
        if dropped:
            logger.debug(
                "Dropped %s overlapping samples for %s",
                dropped,
                ordered["entity_key"].iloc[0],
            )

        kept_l.append(ordered.iloc[keep])

    return sort_most_recent_first(pd.concat(kept_l))


def to_period_values(
    samples: SamplesDataFrame,
    tolerance: int = 0,
    prefer_latest: bool = True,
) -> pd.Series[float]:  # type: ignore # pandas-stubs not up to date
    """
    Convert one entity's samples into average percentages keyed by period end

    Parameters
    ----------
    samples
        Samples of a single entity

    tolerance
        Passed to [drop_overlapping_periods][(m).]

    prefer_latest
        Passed to [drop_overlapping_periods][(m).]

    Returns
    -------
    :
        Average of each (non-overlapping) period multiplied by 100,
        indexed by period end in ascending order
    """
    kept = drop_overlapping_periods(
        samples, tolerance=tolerance, prefer_latest=prefer_latest
    )
    res = pd.Series(
        (calculate_averages(kept) * 100).to_numpy(),
        index=pd.Index(kept["period_end"].to_numpy(dtype=np.int64), name="period_end"),
        name="value",
        dtype=float,
    )

    return res.sort_index()


@define
class AlignmentResult:
    """
    Result of aligning series with [align_period_values][(m).]
    """

    aligned: AlignedDataFrame
    """
    Aligned values, one row per entity (in input order), one column per label
    """

    max: float
    """
    Largest aligned value, floored at `MIN_AXIS_MAX`

    This is in the units of the aligned values, before any normalisation.
    It is informational: the aggregator's percentage charts use a fixed 0-100 axis
    and the student comparison chart fits its axis to the normalised values.
    Use it to fit an axis when plotting aligned values directly.
    """

    @property
    def labels(self) -> list[int]:
        """
        Period ends of the shared axis, ascending
        """
        return self.aligned.columns.tolist()

    @property
    def empty(self) -> bool:
        """
        Whether there was no data at all to align

        This is distinct from data which is all zero.
        """
        return self.aligned.shape[1] == 0

    def values(self, entity_key: str) -> list[float]:
        """
        Get the aligned values of one entity

        Parameters
        ----------
        entity_key
            Entity to get

        Returns
        -------
        :
            One value per label
        """
        return self.aligned.loc[entity_key].tolist()


def align_period_values(
    values: Mapping[str, pd.Series[NUMERIC_DATA]],  # type: ignore # pandas-stubs not up to date
    raise_on_empty: bool = False,
) -> AlignmentResult:
    """
    Align values keyed by period end onto one shared axis

    The axis is the periods of the entity with the most periods
    (the first such entity wins ties).
    Values of other entities at periods outside this axis are dropped,
    periods on the axis for which an entity has no value are filled with zero.

    Parameters
    ----------
    values
        Values of each entity, indexed by period end

    raise_on_empty
        If `True`, raise a [NoDataError][(p).exceptions] when no entity has values

    Returns
    -------
    :
        Aligned values

    Raises
    ------
    NoDataError
        `raise_on_empty` is `True` and no entity has any values
    """
    axis: list[int] = []
    for entity_values in values.values():
        if len(entity_values.index) > len(axis):
            axis = sorted(entity_values.index.tolist())

    if not axis and raise_on_empty:
        raise NoDataError(list(values.keys()))

    columns = pd.Index(axis, name="period_end", dtype=np.int64)
    rows = [
        entity_values.reindex(columns, fill_value=0.0).astype(float).to_numpy()
        for entity_values in values.values()
    ]
    aligned = pd.DataFrame(
        np.array(rows, dtype=float).reshape((len(rows), len(columns))),
        index=pd.Index(list(values.keys()), name="entity_key"),
        columns=columns,
    )

    observed_max = float(aligned.to_numpy().max()) if aligned.size else 0.0

    return AlignmentResult(aligned=aligned, max=max(MIN_AXIS_MAX, observed_max))


def align_series(
    series: Mapping[str, SamplesDataFrame],
    tolerance: int = 0,
    prefer_latest: bool = True,
    raise_on_empty: bool = False,
    run_checks: bool = True,
) -> AlignmentResult:
    """
    Align the samples of several entities onto one shared axis

    This is [to_period_values][(m).] followed by [align_period_values][(m).].

    Parameters
    ----------
    series
        Samples of each entity, keyed by the name to use for the entity

    tolerance
        Passed to [drop_overlapping_periods][(m).]

    prefer_latest
        Passed to [drop_overlapping_periods][(m).]

    raise_on_empty
        Passed to [align_period_values][(m).]

    run_checks
        If `True`, check that samples have non-negative counts
        and that every entity shares a single period length before aligning

    Returns
    -------
    :
        Aligned average percentages
    """
    if run_checks:
        for samples in series.values():
            assert_counts_are_non_negative(samples)
            assert_single_period_length(samples)

        non_empty = [samples for samples in series.values() if not samples.empty]
        if len(non_empty) > 1:
            assert_single_period_length(pd.concat(non_empty))

    return align_period_values(
        {
            key: to_period_values(
                samples, tolerance=tolerance, prefer_latest=prefer_latest
            )
            for key, samples in series.items()
        },
        raise_on_empty=raise_on_empty,
    )


def pad_or_truncate(
    values: Sequence[NUMERIC_DATA], length: int, fill_value: NUMERIC_DATA = 0
) -> list[NUMERIC_DATA]:
    """
    Make a series exactly `length` long

    Used for comparison lines (e.g. last year's engagement)
    which are aligned by position rather than by date.

    Parameters
    ----------
    values
        Values to pad or truncate

    length
        Required length

    fill_value
        Value to pad with

    Returns
    -------
    :
        `values`, padded at the end with `fill_value` or truncated at the end

    Examples
    --------
    >>> pad_or_truncate([1, 2], 4)
    [1, 2, 0, 0]
    >>> pad_or_truncate([1, 2, 3], 2)
    [1, 2]
    """
    res = list(values)[:length]
    res.extend([fill_value] * (length - len(res)))

    return res
