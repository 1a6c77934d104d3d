"""
Useful assertions
"""

from __future__ import annotations

from collections.abc import Collection

import pandas as pd


def assert_has_columns(indf: pd.DataFrame, columns: Collection[str]) -> None:
    """
    Assert that a [pd.DataFrame][pandas.DataFrame] has the given columns

    Parameters
    ----------
    indf
        Data to verify

    columns
        Columns which must be in `indf`

    Raises
    ------
    AssertionError
        `indf` is missing some of `columns`
    """
    missing = [c for c in columns if c not in indf.columns]
    if missing:
        msg = f"{missing=}. {indf.columns=}"
        raise AssertionError(msg)


def assert_columns_are_numeric(indf: pd.DataFrame, columns: Collection[str]) -> None:
    """
    Assert that the given columns of a [pd.DataFrame][pandas.DataFrame] are numeric

    Parameters
    ----------
    indf
        Data to verify

    columns
        Columns to check

    Raises
    ------
    AssertionError
        Some of `columns` hold non-numeric data
    """
    non_numeric = [
        c for c in columns if not pd.api.types.is_numeric_dtype(indf[c].dtype)
    ]
    if non_numeric:
        msg = f"{non_numeric=}. {indf.dtypes=}"
        raise AssertionError(msg)


def assert_periods_are_valid(
    indf: pd.DataFrame,
    start_col: str = "period_start",
    end_col: str = "period_end",
) -> None:
    """
    Assert that every period ends after it starts

    Parameters
    ----------
    indf
        Data to verify

    start_col
        Column holding the start of each period

    end_col
        Column holding the end of each period

    Raises
    ------
    AssertionError
        At least one period has `end <= start`
    """
    invalid = indf[indf[end_col] <= indf[start_col]]
    if not invalid.empty:
        msg = f"Periods must end after they start. Invalid rows:\n{invalid}"
        raise AssertionError(msg)


def assert_counts_are_non_negative(indf: pd.DataFrame, count_col: str = "count") -> None:
    """
    Assert that sample counts are never negative

    Parameters
    ----------
    indf
        Data to verify

    count_col
        Column holding the counts

    Raises
    ------
    AssertionError
        At least one count is negative
    """
    negative = indf[indf[count_col] < 0]
    if not negative.empty:
        msg = f"Counts must not be negative. Invalid rows:\n{negative}"
        raise AssertionError(msg)


def assert_single_period_length(
    indf: pd.DataFrame,
    start_col: str = "period_start",
    end_col: str = "period_end",
) -> None:
    """
    Assert that all periods in the data have the same length

    Series can only be compared on one label axis if they share a period length.

    Parameters
    ----------
    indf
        Data to verify

    start_col
        Column holding the start of each period

    end_col
        Column holding the end of each period

    Raises
    ------
    AssertionError
        There is more than one period length in the data
    """
    lengths = (indf[end_col] - indf[start_col]).unique()
    if len(lengths) > 1:
        msg = f"Expected a single period length, found {sorted(lengths.tolist())}"
        raise AssertionError(msg)
