"""
Tests of `engagement_aggregator.assertions`
"""

from __future__ import annotations

import re
from contextlib import nullcontext as does_not_raise

import pandas as pd
import pytest

from engagement_aggregator.assertions import (
    assert_counts_are_non_negative,
    assert_single_period_length,
)


@pytest.mark.parametrize(
    "counts, exp",
    (
        pytest.param([0, 1, 5], does_not_raise(), id="valid"),
        pytest.param(
            [1, -1],
            pytest.raises(AssertionError, match="Counts must not be negative"),
            id="negative",
        ),
    ),
)
def test_assert_counts_are_non_negative(counts, exp):
    with exp:
        assert_counts_are_non_negative(pd.DataFrame({"count": counts}))


@pytest.mark.parametrize(
    "starts, ends, exp",
    (
        pytest.param([0, 10], [10, 20], does_not_raise(), id="single-length"),
        pytest.param([], [], does_not_raise(), id="empty"),
        pytest.param(
            [0, 10],
            [10, 30],
            pytest.raises(
                AssertionError,
                match=re.escape("Expected a single period length, found [10, 20]"),
            ),
            id="two-lengths",
        ),
    ),
)
def test_assert_single_period_length(starts, ends, exp):
    with exp:
        assert_single_period_length(
            pd.DataFrame({"period_start": starts, "period_end": ends})
        )
