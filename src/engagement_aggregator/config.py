"""
Configuration of the aggregator

Everything the aggregation needs to know about the host's settings
is carried explicitly in an [EngagementConfig][(m).],
rather than being looked up from global state at call time.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import attr
from attrs import converters, define, field, fields_dict

logger = logging.getLogger(__name__)

DAY_SECONDS: int = 24 * 60 * 60
"""Number of seconds in a day"""

WEEK_SECONDS: int = 7 * DAY_SECONDS
"""Number of seconds in a week"""

YEAR_SECONDS: int = 31_540_000
"""
Number of seconds we shift by when looking at the previous year's data

Slightly more than 365 days, so the previous year's window always covers
the equivalent period of this year.
"""

DEFAULT_COURSE_COLOURS: tuple[str, ...] = (
    "#613d7c",
    "#5cb85c",
    "#5bc0de",
    "#ff7518",
    "#d9534f",
    "#f0ad4e",
    "#337ab7",
    "#777777",
)
"""Palette cycled through when plotting one line per course"""


def _validate_positive(
    instance: EngagementConfig, attribute: attr.Attribute[Any], value: int
) -> None:
    if value < 1:
        msg = f"{attribute.name} must be at least 1, received {value=}"
        raise ValueError(msg)


def _validate_non_negative(
    instance: EngagementConfig, attribute: attr.Attribute[Any], value: int
) -> None:
    if value < 0:
        msg = f"{attribute.name} must not be negative, received {value=}"
        raise ValueError(msg)


@define
class EngagementConfig:
    """
    Settings that control how engagement is aggregated and presented
    """

    display_period: int = field(
        default=3 * DAY_SECONDS, converter=int, validator=_validate_positive
    )
    """
    Length of the periods samples are bucketed into (seconds)
    """

    user_history: int = field(
        default=4 * WEEK_SECONDS, converter=int, validator=_validate_positive
    )
    """
    How far back to look when only the end of a window is given (seconds)

    If neither end is given, the window is unbounded.
    """

    overlap_tolerance: int = field(
        default=0, converter=int, validator=_validate_non_negative
    )
    """
    How far (seconds) a period may run into the next kept period before being skipped

    The host store we were first built against truncated periods to the day
    and used a tolerance of one day.
    """

    prefer_latest: bool = field(default=True, converter=converters.to_bool)
    """
    When periods overlap, keep the most recent one

    If `False`, the earliest of overlapping periods is kept instead.
    """

    legacy_clamp: bool = field(default=False, converter=converters.to_bool)
    """
    Clamp normalised values to the pre-scaling maximum rather than to 100

    Only switch this on if you need numeric parity
    with charts drawn by the PHP report (local_ace).
    """

    colour_user_history: str = "#5cb85c"
    """Colour of a student's own engagement line"""

    colour_user_course_history: str = "#CEE9CE"
    """Colour of the population band on the student graph"""

    colour_teacher_course_history: str = "#613d7c"
    """Colour of a course's engagement line"""

    colour_filtered_engagement: str = "#5bc0de"
    """Colour of the filtered cohort line on the course graph"""

    colour_last_year: str = "#d9534f"
    """Colour of the previous year's line on the course graph"""

    course_colours: tuple[str, ...] = field(
        default=DEFAULT_COURSE_COLOURS, converter=tuple
    )
    """Palette used when there is one line per course"""

    course_year_pattern: str | None = field(default=r"^(.*-)(\d{2,4})(.*)$")
    """
    Regular expression locating the year in a course key

    It must have three groups: prefix, year, suffix.
    The previous year's course key is built as `prefix + (year - 1) + suffix`.
    Set to `None` to disable previous year comparisons.
    """

    label_date_format: str = "%d %B %Y"
    """[strftime][time.strftime] format of x-axis labels"""

    show_labels: bool = field(default=True, converter=converters.to_bool)
    """If `False`, x-axis labels are blanked (the axis still has one per period)"""

    percent_step_size: int = field(
        default=25, converter=int, validator=_validate_positive
    )
    """Step between ticks on percentage axes"""

    comparison_step_divisor: int = field(
        default=4, converter=int, validator=_validate_positive
    )
    """Number of ticks the student comparison axis is divided into"""

    cumulative_step_divisor: int = field(
        default=2, converter=int, validator=_validate_positive
    )
    """Number of ticks the cumulative activity axis is divided into"""

    activity_step_divisor: int = field(
        default=4, converter=int, validator=_validate_positive
    )
    """Number of ticks the (non-cumulative) activity axis is divided into"""

    empty_axis_max: int = field(
        default=100, converter=int, validator=_validate_positive
    )
    """Upper bound of the y-axis when there is no data"""

    empty_step_size: int = field(
        default=25, converter=int, validator=_validate_positive
    )
    """Step size of the y-axis when there is no data"""

    engagement_level_labels: tuple[str, str, str] = field(
        default=("None", "Medium", "High"), converter=tuple
    )
    """Labels for the bottom, middle and top of the comparison axis"""

    label_user: str = "Your engagement"
    label_average: str = "Average course engagement"
    label_course: str = "Engagement"
    label_filtered: str = "Filtered engagement"
    label_last_year: str = "Last year"
    legend_course: str = "Course engagement"
    legend_filtered: str = "Filtered course engagement"
    legend_last_year: str = "Last year's engagement"
    last_year_warning: str = (
        "Last year's engagement is aligned by period, "
        "so dates may not line up exactly with this year's."
    )

    @course_year_pattern.validator
    def validate_course_year_pattern(
        self, attribute: attr.Attribute[Any], value: str | None
    ) -> None:
        """
        Validate the course year pattern

        It must compile and have at least three groups
        """
        if value is None:
            return

        compiled = re.compile(value)
        if compiled.groups < 3:  # noqa: PLR2004
            msg = (
                f"{attribute.name} must have three groups (prefix, year, suffix). "
                f"Received {value=}"
            )
            raise ValueError(msg)

    @course_colours.validator
    def validate_course_colours(
        self, attribute: attr.Attribute[Any], value: tuple[str, ...]
    ) -> None:
        """
        Validate the course colours

        At least one colour is needed to cycle through
        """
        if not value:
            msg = f"{attribute.name} must contain at least one colour"
            raise ValueError(msg)

    @engagement_level_labels.validator
    def validate_engagement_level_labels(
        self, attribute: attr.Attribute[Any], value: tuple[str, ...]
    ) -> None:
        """
        Validate the engagement level labels
        """
        if len(value) != 3:  # noqa: PLR2004
            msg = f"{attribute.name} must have exactly three labels, {value=}"
            raise ValueError(msg)

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> EngagementConfig:
        """
        Initialise from a mapping of settings

        Unknown keys are ignored (hosts typically store many unrelated settings
        alongside ours).

        Parameters
        ----------
        settings
            Settings, keyed by attribute name

        Returns
        -------
        :
            Initialised configuration
        """
        known = fields_dict(cls)
        ignored = sorted(k for k in settings if k not in known)
        if ignored:
            logger.debug("Ignoring unknown settings: %s", ignored)

        return cls(**{k: v for k, v in settings.items() if k in known})

    def course_colour(self, i: int) -> str:
        """
        Get the colour to use for the `i`th course line

        Parameters
        ----------
        i
            Position of the course in the chart

        Returns
        -------
        :
            Colour, cycling through [course_colours][(c).]
        """
        return self.course_colours[i % len(self.course_colours)]
