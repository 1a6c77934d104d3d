"""
Normalisation of aligned values for display

Two modes are supported:

1. percentage of period: averages are shown as whole percentages
   on a fixed 0-100 axis ([round_percentages][(m).])
1. normalised comparison: values are stretched over the observed range
   so that low-engagement cohorts are still legible ([normalise_together][(m).])
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence

import numpy as np

from engagement_aggregator.typing import NUMERIC_DATA

PERCENT_MAX: int = 100
"""Top of a percentage axis"""


def round_percentages(values: Iterable[NUMERIC_DATA]) -> list[int]:
    """
    Round percentages to whole numbers

    Halves are rounded away from zero.

    Parameters
    ----------
    values
        Percentages (i.e. averages multiplied by 100)

    Returns
    -------
    :
        Rounded percentages

    Examples
    --------
    >>> round_percentages([50.0, 12.5, 0.4, -2.5])
    [50, 13, 0, -3]
    """
    arr = np.asarray(list(values), dtype=float)
    rounded = np.sign(arr) * np.floor(np.abs(arr) + 0.5)

    return [int(v) for v in rounded]


def normalise(
    values: Sequence[NUMERIC_DATA],
    vmin: float,
    vmax: float,
    legacy_clamp: bool = False,
) -> list[float]:
    """
    Rescale values so that `vmin` maps to 0 and `vmax` maps to 100

    Parameters
    ----------
    values
        Values to rescale

    vmin
        Value which should map to 0

    vmax
        Value which should map to 100

    legacy_clamp
        If `True`, clamp the result to `vmax` rather than to 100.
        This matches the PHP report (local_ace),
        where the clamp was applied in the pre-scaling units.

    Returns
    -------
    :
        Rescaled values.
        If `vmax == vmin`, there is no range to stretch over
        and every value maps to 0.

    Examples
    --------
    >>> normalise([10.0, 20.0, 30.0], vmin=10.0, vmax=30.0)
    [0.0, 50.0, 100.0]
    >>> normalise([10.0, 20.0, 30.0], vmin=10.0, vmax=30.0, legacy_clamp=True)
    [0.0, 30.0, 30.0]
    >>> normalise([5.0, 5.0], vmin=5.0, vmax=5.0)
    [0.0, 0.0]
    """
    arr = np.asarray(values, dtype=float)
    if vmax == vmin:
        return [0.0] * len(arr)

    scaled = (arr - vmin) / (vmax - vmin) * PERCENT_MAX
    clamp = vmax if legacy_clamp else PERCENT_MAX

    return np.minimum(scaled, clamp).tolist()


def normalise_together(
    values: Mapping[str, Sequence[NUMERIC_DATA]],
    legacy_clamp: bool = False,
) -> dict[str, list[float]]:
    """
    Normalise several series using their combined range

    Parameters
    ----------
    values
        Series to normalise, keyed by name

    legacy_clamp
        Passed to [normalise][(m).]

    Returns
    -------
    :
        Normalised series, keyed by name

    Examples
    --------
    >>> normalise_together({"a": [20.0, 40.0], "b": [60.0]})
    {'a': [0.0, 50.0], 'b': [100.0]}
    """
    all_values = [v for series in values.values() for v in series]
    if not all_values:
        return {k: [] for k in values}

    vmin = float(min(all_values))
    vmax = float(max(all_values))

    return {
        k: normalise(series, vmin=vmin, vmax=vmax, legacy_clamp=legacy_clamp)
        for k, series in values.items()
    }


def calculate_axis(observed_max: float, step_divisor: int) -> tuple[int, int]:
    """
    Calculate the upper bound and step size of a y-axis

    Parameters
    ----------
    observed_max
        Largest value which will be plotted

    step_divisor
        Number of steps the axis should be split into

    Returns
    -------
    :
        Upper bound of the axis and step size

    Examples
    --------
    >>> calculate_axis(73.2, step_divisor=4)
    (74, 19)
    >>> calculate_axis(0.0, step_divisor=4)
    (1, 1)
    """
    if step_divisor < 1:
        msg = f"step_divisor must be at least 1, received {step_divisor=}"
        raise ValueError(msg)

    max_axis_value = max(1, math.ceil(observed_max))
    step_size = max(1, math.ceil(max_axis_value / step_divisor))

    return max_axis_value, step_size
