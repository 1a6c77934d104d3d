"""
Chart-ready output

This is the structure handed to the rendering layer.
It is deliberately plain (lists, strings and numbers)
so it can be serialised straight to JSON.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import pandas as pd
from attrs import define, field

from engagement_aggregator.typing import NUMERIC_DATA, TIMESTAMP


@define
class ChartSeries:
    """
    One line on a chart
    """

    label: str
    """Display name of the line"""

    values: list[NUMERIC_DATA] = field(converter=list)
    """One value per x-axis label"""

    colour: str
    """Colour of the line (passed through to the renderer untouched)"""

    fill: bool = False
    """Should the area between this line and the previous one be filled?"""

    legend: str | None = None
    """Legend text, if it differs from the label"""

    warning: str | None = None
    """Warning to display alongside the chart"""

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a plain dictionary

        Optional keys are only included when they are set.
        """
        res: dict[str, Any] = {
            "label": self.label,
            "values": list(self.values),
            "colour": self.colour,
        }
        if self.fill:
            res["fill"] = True

        if self.legend is not None:
            res["legend"] = self.legend

        if self.warning is not None:
            res["warning"] = self.warning

        return res


@define
class YLabel:
    """
    Label for a value on the y-axis
    """

    value: float
    label: str

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a plain dictionary
        """
        return {"value": self.value, "label": self.label}


@define
class ChartData:
    """
    Everything needed to draw one chart
    """

    series: list[ChartSeries] = field(converter=list)
    """Lines to draw. Empty if there is no data."""

    labels: list[str] = field(converter=list)
    """x-axis labels, in ascending chronological order"""

    max: int
    """Upper bound of the y-axis"""

    stepsize: int
    """Spacing between y-axis ticks"""

    ylabels: list[YLabel] = field(factory=list, converter=list)
    """Semantic labels for y-axis values"""

    @classmethod
    def empty(cls, max: int, stepsize: int) -> ChartData:  # noqa: A002
        """
        Create a chart which signals that there is no data

        Parameters
        ----------
        max
            Upper bound of the y-axis

        stepsize
            Spacing between y-axis ticks

        Returns
        -------
        :
            Chart with no series and no labels
        """
        return cls(series=[], labels=[], max=max, stepsize=stepsize)

    @property
    def has_data(self) -> bool:
        """
        Whether there is any data to draw
        """
        return bool(self.series)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a plain dictionary
        """
        return {
            "series": [s.to_dict() for s in self.series],
            "labels": list(self.labels),
            "max": self.max,
            "stepsize": self.stepsize,
            "ylabels": [yl.to_dict() for yl in self.ylabels],
        }


def format_labels(
    period_ends: Iterable[TIMESTAMP],
    date_format: str = "%d %B %Y",
    show: bool = True,
) -> list[str]:
    """
    Format period ends as x-axis labels

    Parameters
    ----------
    period_ends
        Unix timestamps

    date_format
        [strftime][time.strftime] format to use (dates are in UTC)

    show
        If `False`, every label is blank

    Returns
    -------
    :
        One label per period end

    Examples
    --------
    >>> format_labels([0, 86400])
    ['01 January 1970', '02 January 1970']
    >>> format_labels([0, 86400], show=False)
    ['', '']
    """
    period_ends = list(period_ends)
    if not show:
        return [""] * len(period_ends)

    return [
        pd.Timestamp(ts, unit="s", tz="UTC").strftime(date_format)
        for ts in period_ends
    ]


def percent_ylabels(max_value: int = 100, step: int = 25) -> list[YLabel]:
    """
    Create y-axis labels for a percentage axis

    Parameters
    ----------
    max_value
        Top of the axis

    step
        Step between labels

    Returns
    -------
    :
        Labels from 0 to `max_value` inclusive

    Examples
    --------
    >>> [yl.label for yl in percent_ylabels()]
    ['0%', '25%', '50%', '75%', '100%']
    """
    return [YLabel(value=v, label=f"{v}%") for v in range(0, max_value + 1, step)]


def level_ylabels(
    max_value: float,
    middle: float,
    names: Sequence[str] = ("None", "Medium", "High"),
) -> list[YLabel]:
    """
    Create y-axis labels naming engagement levels

    Parameters
    ----------
    max_value
        Top of the axis, labelled with the last name

    middle
        Value labelled with the middle name

    names
        Names of the bottom, middle and top of the axis

    Returns
    -------
    :
        Labels at zero, `middle` and `max_value`
    """
    bottom, middle_name, top = names

    return [
        YLabel(value=0, label=bottom),
        YLabel(value=middle, label=middle_name),
        YLabel(value=max_value, label=top),
    ]
