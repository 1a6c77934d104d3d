"""
Tests of `engagement_aggregator.population`
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from engagement_aggregator.population import (
    calculate_population_stats,
    comparison_band,
)
from engagement_aggregator.samples import create_samples_df, empty_samples_df


def get_members(*rows):
    return create_samples_df(
        [
            dict(
                entity_key=entity_key,
                period_start=end - 10,
                period_end=end,
                count=count,
                value_sum=value_sum,
            )
            for entity_key, end, count, value_sum in rows
        ]
    )


def test_calculate_population_stats():
    members = get_members(
        ("u1", 10, 2, 1.0),
        ("u2", 10, 1, 0.5),
        ("u1", 20, 1, 1.0),
        ("u2", 20, 1, 0.0),
        ("u1", 30, 4, 1.0),
    )

    res = calculate_population_stats(members)

    exp = pd.DataFrame(
        {
            "mean": [50.0, 50.0, 25.0],
            "stddev": [0.0, math.sqrt(5000.0), 0.0],
            "n": [2.0, 2.0, 1.0],
        },
        index=pd.Index([10, 20, 30], name="period_end", dtype=np.int64),
    )
    pd.testing.assert_frame_equal(res, exp)


def test_calculate_population_stats_single_member():
    members = get_members(("u1", 10, 3, 0.6), ("u1", 20, 5, 4.0))

    res = calculate_population_stats(members)

    assert res["stddev"].tolist() == [0.0, 0.0]
    assert res["mean"].tolist() == [pytest.approx(20.0), pytest.approx(80.0)]
    assert res["n"].tolist() == [1.0, 1.0]


def test_calculate_population_stats_zero_counts_are_not_nan():
    members = get_members(("u1", 10, 0, 0.0), ("u2", 10, 0, 0.0))

    res = calculate_population_stats(members)

    assert res["mean"].tolist() == [0.0]
    assert res["stddev"].tolist() == [0.0]
    assert not res.isnull().any().any()


def test_calculate_population_stats_ignores_missing_members():
    # u2 has no sample in the second period,
    # it must not be treated as a zero
    members = get_members(
        ("u1", 10, 1, 0.2),
        ("u2", 10, 1, 0.4),
        ("u1", 20, 1, 0.8),
    )

    res = calculate_population_stats(members)

    assert res.loc[20, "mean"] == pytest.approx(80.0)
    assert res.loc[20, "n"] == 1.0


def test_calculate_population_stats_no_members():
    res = calculate_population_stats(empty_samples_df())

    assert res.empty
    assert res.columns.tolist() == ["mean", "stddev", "n"]


def test_comparison_band():
    stats = pd.DataFrame(
        {"mean": [50.0, 10.0], "stddev": [20.0, 0.0], "n": [4.0, 1.0]},
        index=pd.Index([10, 20], name="period_end"),
    )

    lower, upper = comparison_band(stats)

    assert lower.tolist() == [40.0, 10.0]
    assert upper.tolist() == [60.0, 10.0]
    assert lower.index.tolist() == [10, 20]
