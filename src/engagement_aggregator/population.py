"""
Statistics across a population of entities

These are used to draw a comparison band (e.g. the course average)
behind an individual's engagement.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from engagement_aggregator.alignment import drop_overlapping_periods
from engagement_aggregator.samples import calculate_averages
from engagement_aggregator.typing import SamplesDataFrame


def calculate_population_stats(
    members: SamplesDataFrame,
    tolerance: int = 0,
    prefer_latest: bool = True,
) -> pd.DataFrame:
    """
    Calculate the mean and standard deviation of engagement in each period

    Only members with a genuine sample in a period contribute to it,
    zero-filled placeholders never bias the statistics.

    Parameters
    ----------
    members
        Samples of each member of the population (`entity_key` is the member)

    tolerance
        Passed to [drop_overlapping_periods][(p).alignment]

    prefer_latest
        Passed to [drop_overlapping_periods][(p).alignment]

    Returns
    -------
    :
        Statistics of the members' average percentages,
        indexed by period end (ascending).
        Columns are `mean`, `stddev` (sample standard deviation) and `n`
        (number of contributing members).
        A period with a single member has a standard deviation of zero.
    """
    columns = ["mean", "stddev", "n"]
    if members.empty:
        return pd.DataFrame(
            {c: pd.Series(dtype=float) for c in columns},
            index=pd.Index([], name="period_end", dtype=np.int64),
        )

    kept = drop_overlapping_periods(
        members, tolerance=tolerance, prefer_latest=prefer_latest
    )
    percentages = pd.Series(
        (calculate_averages(kept) * 100).to_numpy(),
        index=pd.Index(kept["period_end"].to_numpy(dtype=np.int64), name="period_end"),
    )

    grouped = percentages.groupby(level="period_end")
    res = pd.DataFrame(
        {
            "mean": grouped.mean(),
            "stddev": grouped.std(ddof=1).fillna(0.0),
            "n": grouped.count().astype(float),
        }
    )

    return res.sort_index()[columns]


def comparison_band(stats: pd.DataFrame) -> tuple[pd.Series[float], pd.Series[float]]:  # type: ignore # pandas-stubs not up to date
    """
    Calculate the comparison band from population statistics

    Parameters
    ----------
    stats
        Output of [calculate_population_stats][(m).]

    Returns
    -------
    :
        Lower (`mean - stddev / 2`) and upper (`mean + stddev / 2`)
        bounds of the band, indexed by period end

    Examples
    --------
    >>> stats = pd.DataFrame(
    ...     {"mean": [50.0, 20.0], "stddev": [10.0, 0.0], "n": [3.0, 1.0]},
    ...     index=pd.Index([86400, 172800], name="period_end"),
    ... )
    >>> lower, upper = comparison_band(stats)
    >>> lower.tolist(), upper.tolist()
    ([45.0, 20.0], [55.0, 20.0])
    """
    half_width = stats["stddev"] / 2
    lower = (stats["mean"] - half_width).rename("lower")
    upper = (stats["mean"] + half_width).rename("upper")

    return lower, upper
