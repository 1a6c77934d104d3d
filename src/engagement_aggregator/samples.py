"""
Helpers for working with [SamplesDataFrame][(p).typing]'s
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np
import pandas as pd

from engagement_aggregator.typing import SAMPLE_COLUMNS, SamplesDataFrame

SAMPLE_DTYPES: dict[str, str] = {
    "entity_key": "object",
    "period_start": "int64",
    "period_end": "int64",
    "count": "int64",
    "value_sum": "float64",
}
"""Data types of the columns of a [SamplesDataFrame][(p).typing]"""


def empty_samples_df() -> SamplesDataFrame:
    """
    Create a [SamplesDataFrame][(p).typing] with no rows

    Returns
    -------
    :
        Empty samples, with the expected columns and data types
    """
    return pd.DataFrame(
        {c: pd.Series(dtype=SAMPLE_DTYPES[c]) for c in SAMPLE_COLUMNS}
    )


def create_samples_df(records: Iterable[Mapping[str, Any]]) -> SamplesDataFrame:
    """
    Create a [SamplesDataFrame][(p).typing] from records

    Parameters
    ----------
    records
        Records, each with (at least) the keys of a sample

    Returns
    -------
    :
        Samples, ordered by `period_start` descending (most recent first)
    """
    records = list(records)
    if not records:
        return empty_samples_df()

    res = pd.DataFrame.from_records(records)
    missing = [c for c in SAMPLE_COLUMNS if c not in res.columns]
    if missing:
        msg = f"Records are missing {missing=}"
        raise KeyError(msg)

    res = res[list(SAMPLE_COLUMNS)].astype(SAMPLE_DTYPES)

    return sort_most_recent_first(res)


def sort_most_recent_first(samples: SamplesDataFrame) -> SamplesDataFrame:
    """
    Sort samples so the most recent period comes first

    Samples for the same period are ordered by `count` then `value_sum`
    (both descending), so ties are broken the same way on every call.

    Parameters
    ----------
    samples
        Samples to sort

    Returns
    -------
    :
        Sorted samples, with a fresh index
    """
    return samples.sort_values(
        ["period_start", "period_end", "count", "value_sum"],
        ascending=False,
        kind="stable",
    ).reset_index(drop=True)


def calculate_averages(samples: SamplesDataFrame) -> pd.Series[float]:  # type: ignore # pandas-stubs not up to date
    """
    Calculate the average value of each sample

    Parameters
    ----------
    samples
        Samples

    Returns
    -------
    :
        `value_sum / count` for each sample.
        Samples with a count of zero have an average of zero (rather than NaN).

    Examples
    --------
    >>> samples = create_samples_df(
    ...     [
    ...         dict(entity_key="u1", period_start=0, period_end=10, count=4, value_sum=2.0),
    ...         dict(entity_key="u1", period_start=10, period_end=20, count=0, value_sum=0.0),
    ...     ]
    ... )
    >>> calculate_averages(samples).tolist()
    [0.0, 0.5]
    """
    counts = samples["count"].to_numpy(dtype=float)
    sums = samples["value_sum"].to_numpy(dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        averages = np.where(counts > 0, sums / np.where(counts > 0, counts, 1), 0.0)

    return pd.Series(averages, index=samples.index, name="average")


def combine_samples(frames: Iterable[SamplesDataFrame]) -> SamplesDataFrame:
    """
    Combine samples from several sources into one set of samples

    Samples for the same entity and period are summed
    (e.g. a user's engagement in several courses over the same week).

    Parameters
    ----------
    frames
        Samples to combine

    Returns
    -------
    :
        Combined samples, most recent first
    """
    non_empty = [f for f in frames if not f.empty]
    if not non_empty:
        return empty_samples_df()

    res = (
        pd.concat(non_empty)
        .groupby(["entity_key", "period_start", "period_end"], as_index=False)[
            ["count", "value_sum"]
        ]
        .sum()
    )

    return sort_most_recent_first(res[list(SAMPLE_COLUMNS)].astype(SAMPLE_DTYPES))
