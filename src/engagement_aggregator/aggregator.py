"""
Engagement charts for students, courses and activities

Each method of [EngagementAggregator][(m).] is one kind of chart.
They all take the identifiers of the entities involved explicitly,
nothing is read from the host's request state.
Authorisation is the caller's responsibility,
by the time a method is called the caller is allowed to see the data.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Collection, Iterable
from typing import Any

import pandas as pd
from attrs import define, field
from pandas_openscm.parallelisation import ParallelOpConfig, apply_op_parallel_progress

from engagement_aggregator.alignment import (
    MIN_AXIS_MAX,
    align_period_values,
    align_series,
    drop_overlapping_periods,
    pad_or_truncate,
    to_period_values,
)
from engagement_aggregator.charts import (
    ChartData,
    ChartSeries,
    format_labels,
    level_ylabels,
    percent_ylabels,
)
from engagement_aggregator.config import YEAR_SECONDS, EngagementConfig
from engagement_aggregator.exceptions import NoDataError, UnrecognisedValueError
from engagement_aggregator.normalisation import (
    PERCENT_MAX,
    calculate_axis,
    normalise_together,
    round_percentages,
)
from engagement_aggregator.population import (
    calculate_population_stats,
    comparison_band,
)
from engagement_aggregator.samples import (
    calculate_averages,
    combine_samples,
)
from engagement_aggregator.store import SampleStore
from engagement_aggregator.typing import TIMESTAMP

logger = logging.getLogger(__name__)

COMPARISON_AVERAGE: str = "average-course-engagement"
"""Compare a student with the engagement band of their course(s)"""

COMPARISON_NONE: str = "none"
"""Show a student's engagement on its own"""

COMPARISON_OPTIONS: tuple[str, ...] = (COMPARISON_AVERAGE, COMPARISON_NONE)


def previous_year_key(context_key: str, pattern: str | None) -> str | None:
    """
    Get the key of the previous year's instance of a course

    Parameters
    ----------
    context_key
        Key of the course, e.g. its shortname

    pattern
        Regular expression with three groups: prefix, year and suffix

    Returns
    -------
    :
        Key with the year decremented by one,
        `None` if `pattern` is `None` or doesn't match

    Examples
    --------
    >>> previous_year_key("ENGL101-23S1", r"^(.*-)(\\d{2,4})(.*)$")
    'ENGL101-22S1'
    >>> previous_year_key("ENGL101-2000S2", r"^(.*-)(\\d{2,4})(.*)$")
    'ENGL101-1999S2'
    >>> previous_year_key("ENGL101", r"^(.*-)(\\d{2,4})(.*)$") is None
    True
    """
    if pattern is None:
        return None

    match = re.match(pattern, context_key)
    if match is None:
        return None

    prefix, year, suffix = match.group(1), match.group(2), match.group(3)
    previous = int(year) - 1

    return f"{prefix}{previous:0{len(year)}d}{suffix}"


def shift_window(
    start: TIMESTAMP | None, end: TIMESTAMP | None, shift: int
) -> tuple[TIMESTAMP | None, TIMESTAMP | None]:
    """
    Shift a time window back in time

    Parameters
    ----------
    start
        Start of the window (`None` for unbounded)

    end
        End of the window (`None` for unbounded)

    shift
        Amount to shift by (seconds)

    Returns
    -------
    :
        Shifted start and end
    """
    return (
        None if start is None else start - shift,
        None if end is None else end - shift,
    )


def _student_graph(
    user_key: str, aggregator: EngagementAggregator, **kwargs: Any
) -> tuple[str, ChartData]:
    return user_key, aggregator.student_graph(user_key, **kwargs)


@define
class EngagementAggregator:
    """
    Builder of engagement charts from a [SampleStore][(p).store]
    """

    store: SampleStore
    """
    Where samples come from

    Errors raised by the store are passed on unchanged.
    """

    config: EngagementConfig = field(factory=EngagementConfig)
    """
    Settings to use
    """

    progress: bool = False
    """
    Should progress bars be shown when building many charts at once?
    """

    n_processes: int | None = None
    """
    Number of processes to use when building many charts at once

    Set to `None` to process in serial.
    """

    def _empty_chart(self, exc: NoDataError) -> ChartData:
        logger.info("Returning an empty chart: %s", exc)

        return ChartData.empty(
            max=self.config.empty_axis_max, stepsize=self.config.empty_step_size
        )

    def _window_start(
        self, start: TIMESTAMP | None, end: TIMESTAMP | None
    ) -> TIMESTAMP | None:
        if start is None and end is not None:
            return end - self.config.user_history

        return start

    def _labels(self, period_ends: Iterable[TIMESTAMP]) -> list[str]:
        return format_labels(
            period_ends,
            date_format=self.config.label_date_format,
            show=self.config.show_labels,
        )

    def _period_values(self, samples: pd.DataFrame) -> pd.Series[float]:  # type: ignore # pandas-stubs not up to date
        return to_period_values(
            samples,
            tolerance=self.config.overlap_tolerance,
            prefer_latest=self.config.prefer_latest,
        )

    def _percent_chart(self, series: list[ChartSeries], labels: list[str]) -> ChartData:
        step = self.config.percent_step_size
        return ChartData(
            series=series,
            labels=labels,
            max=PERCENT_MAX,
            stepsize=step,
            ylabels=percent_ylabels(PERCENT_MAX, step),
        )

    def student_graph(
        self,
        user_key: str,
        contexts: Collection[str] | None = None,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        comparison: str = COMPARISON_AVERAGE,
    ) -> ChartData:
        """
        Chart a student's engagement against the engagement of their peers

        Values are normalised over the combined range of the student's line
        and the comparison band, so the y-axis shows engagement levels
        rather than raw percentages.

        Parameters
        ----------
        user_key
            Student to chart

        contexts
            Courses to include. If `None`, all of the student's samples are used
            (and there is no population to compare with).

        start
            Only include periods ending after this time.
            If only `end` is given, defaults to `end` minus
            [user_history][(p).config.EngagementConfig.].

        end
            Only include periods ending at or before this time

        comparison
            What to compare the student with, one of `COMPARISON_OPTIONS`

        Returns
        -------
        :
            Chart data. If the student has no samples, the chart has no series.

        Raises
        ------
        UnrecognisedValueError
            `comparison` is not a known option
        """
        if comparison not in COMPARISON_OPTIONS:
            raise UnrecognisedValueError(
                comparison, name="comparison", known_values=COMPARISON_OPTIONS
            )

        start = self._window_start(start, end)
        period = self.config.display_period
        user_values = self._period_values(
            self.store.fetch_series(
                user_key, period, start=start, end=end, contexts=contexts
            )
        )

        values = {"user": user_values}
        if comparison == COMPARISON_AVERAGE and contexts:
            members = combine_samples(
                self.store.fetch_members(c, period, start=start, end=end)
                for c in contexts
            )
            stats = calculate_population_stats(
                members,
                tolerance=self.config.overlap_tolerance,
                prefer_latest=self.config.prefer_latest,
            )
            values["lower"], values["upper"] = comparison_band(stats)

        try:
            if user_values.empty:
                raise NoDataError([user_key])

            alignment = align_period_values(values, raise_on_empty=True)
        except NoDataError as exc:
            return self._empty_chart(exc)

        normalised = normalise_together(
            {k: alignment.values(k) for k in values},
            legacy_clamp=self.config.legacy_clamp,
        )
        observed_max = max(
            MIN_AXIS_MAX, *(v for series in normalised.values() for v in series)
        )
        max_axis, step = calculate_axis(
            observed_max, step_divisor=self.config.comparison_step_divisor
        )

        series = [
            ChartSeries(
                label=self.config.label_user,
                values=normalised["user"],
                colour=self.config.colour_user_history,
            )
        ]
        if "lower" in normalised:
            series.extend(
                [
                    ChartSeries(
                        label=self.config.label_average,
                        values=normalised["lower"],
                        colour=self.config.colour_user_course_history,
                    ),
                    ChartSeries(
                        label=self.config.label_average,
                        values=normalised["upper"],
                        colour=self.config.colour_user_course_history,
                        fill=True,
                    ),
                ]
            )

        return ChartData(
            series=series,
            labels=self._labels(alignment.labels),
            max=max_axis,
            stepsize=step,
            ylabels=level_ylabels(
                max_axis,
                middle=max_axis / 2,
                names=self.config.engagement_level_labels,
            ),
        )

    def student_graphs(
        self,
        user_keys: Iterable[str],
        contexts: Collection[str] | None = None,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        comparison: str = COMPARISON_AVERAGE,
    ) -> dict[str, ChartData]:
        """
        Chart many students at once

        Each chart is independent of the others,
        so they can be built in parallel (see [n_processes][(c).]).

        Parameters
        ----------
        user_keys
            Students to chart

        contexts
            Passed to [student_graph][(c).]

        start
            Passed to [student_graph][(c).]

        end
            Passed to [student_graph][(c).]

        comparison
            Passed to [student_graph][(c).]

        Returns
        -------
        :
            Chart data, keyed by student
        """
        res = apply_op_parallel_progress(
            func_to_call=_student_graph,
            iterable_input=list(user_keys),
            parallel_op_config=ParallelOpConfig.from_user_facing(
                progress=self.progress,
                max_workers=self.n_processes,
                progress_results_kwargs=dict(desc="Students to chart"),
            ),
            aggregator=self,
            contexts=contexts,
            start=start,
            end=end,
            comparison=comparison,
        )

        return dict(res)

    def user_courses_graph(
        self,
        user_key: str,
        contexts: Collection[str],
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
    ) -> ChartData:
        """
        Chart a student's engagement in each of their courses

        Parameters
        ----------
        user_key
            Student to chart

        contexts
            Courses to chart, one line each

        start
            Only include periods ending after this time.
            If only `end` is given, defaults to `end` minus
            [user_history][(p).config.EngagementConfig.].

        end
            Only include periods ending at or before this time

        Returns
        -------
        :
            Chart data, one series per course (percentages)
        """
        start = self._window_start(start, end)
        period = self.config.display_period
        samples = {
            c: self.store.fetch_series(
                user_key, period, start=start, end=end, contexts=[c]
            )
            for c in contexts
        }

        return self._per_context_chart(samples)

    def courses_graph(
        self,
        contexts: Collection[str],
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
    ) -> ChartData:
        """
        Chart the overall engagement of several courses

        Parameters
        ----------
        contexts
            Courses to chart, one line each

        start
            Only include periods ending after this time.
            If only `end` is given, defaults to `end` minus
            [user_history][(p).config.EngagementConfig.].

        end
            Only include periods ending at or before this time

        Returns
        -------
        :
            Chart data, one series per course (percentages)
        """
        start = self._window_start(start, end)
        period = self.config.display_period
        samples = {
            c: self.store.fetch_population(c, period, start=start, end=end)
            for c in contexts
        }

        return self._per_context_chart(samples)

    def _per_context_chart(self, samples: dict[str, pd.DataFrame]) -> ChartData:
        try:
            alignment = align_series(
                samples,
                tolerance=self.config.overlap_tolerance,
                prefer_latest=self.config.prefer_latest,
                raise_on_empty=True,
            )
        except NoDataError as exc:
            return self._empty_chart(exc)

        series = [
            ChartSeries(
                label=context_key,
                values=round_percentages(alignment.values(context_key)),
                colour=self.config.course_colour(i),
            )
            for i, context_key in enumerate(samples)
        ]

        return self._percent_chart(series, self._labels(alignment.labels))

    def course_graph(  # noqa: PLR0913
        self,
        context_key: str,
        period_length: int | None = None,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        members: Collection[str] | None = None,
        previous_year: bool = True,
    ) -> ChartData:
        """
        Chart the engagement of a course

        Parameters
        ----------
        context_key
            Course to chart

        period_length
            Length of the periods to chart (seconds).
            Defaults to the configured display period.

        start
            Only include periods ending after this time.
            If only `end` is given, defaults to `end` minus
            [user_history][(p).config.EngagementConfig.].

        end
            Only include periods ending at or before this time

        members
            If supplied, also chart the engagement of just these users
            (e.g. the students matching a report filter).
            This line is drawn first and its periods define the x-axis.

        previous_year
            If `True` and the previous year's course can be identified
            (see [course_year_pattern][(p).config.EngagementConfig.]),
            also chart the previous year's engagement.
            It is aligned by position, not by date.

        Returns
        -------
        :
            Chart data (percentages)
        """
        start = self._window_start(start, end)
        period = (
            period_length if period_length is not None else self.config.display_period
        )
        course_values = self._period_values(
            self.store.fetch_population(context_key, period, start=start, end=end)
        )

        series = []
        try:
            if members is None:
                axis_values = course_values
            else:
                axis_values = self._period_values(
                    self.store.fetch_population(
                        context_key, period, start=start, end=end, members=members
                    )
                )

            if axis_values.empty:
                raise NoDataError([context_key])

        except NoDataError as exc:
            return self._empty_chart(exc)

        axis = axis_values.index
        if members is not None:
            series.append(
                ChartSeries(
                    label=self.config.label_filtered,
                    legend=self.config.legend_filtered,
                    values=round_percentages(axis_values),
                    colour=self.config.colour_filtered_engagement,
                )
            )

        series.append(
            ChartSeries(
                label=self.config.label_course,
                legend=self.config.legend_course,
                values=round_percentages(course_values.reindex(axis, fill_value=0.0)),
                colour=self.config.colour_teacher_course_history,
            )
        )

        last_year_key = previous_year_key(context_key, self.config.course_year_pattern)
        if previous_year and last_year_key is not None:
            last_year_start, last_year_end = shift_window(start, end, YEAR_SECONDS)
            last_year_values = self._period_values(
                self.store.fetch_population(
                    last_year_key, period, start=last_year_start, end=last_year_end
                )
            )
            if last_year_values.empty:
                logger.debug("No previous year data for %s", last_year_key)
            else:
                series.append(
                    ChartSeries(
                        label=self.config.label_last_year,
                        legend=self.config.legend_last_year,
                        values=round_percentages(
                            pad_or_truncate(last_year_values.tolist(), len(axis))
                        ),
                        colour=self.config.colour_last_year,
                        warning=self.config.last_year_warning,
                    )
                )

        return self._percent_chart(series, self._labels(axis.tolist()))

    def activity_graph(
        self,
        context_key: str,
        start: TIMESTAMP | None = None,
        end: TIMESTAMP | None = None,
        cumulative: bool = False,
    ) -> ChartData:
        """
        Chart the engagement with an activity

        Parameters
        ----------
        context_key
            Activity to chart

        start
            Only include periods ending after this time.
            If only `end` is given, defaults to `end` minus
            [user_history][(p).config.EngagementConfig.].

        end
            Only include periods ending at or before this time

        cumulative
            If `True`, each point is the engagement over all periods
            up to and including that period

        Returns
        -------
        :
            Chart data (percentages), with the y-axis fitted to the data
        """
        start = self._window_start(start, end)
        samples = drop_overlapping_periods(
            self.store.fetch_population(
                context_key, self.config.display_period, start=start, end=end
            ),
            tolerance=self.config.overlap_tolerance,
            prefer_latest=self.config.prefer_latest,
        )
        if samples.empty:
            return self._empty_chart(NoDataError([context_key]))

        samples = samples.sort_values("period_end").reset_index(drop=True)
        if cumulative:
            samples[["count", "value_sum"]] = samples[["count", "value_sum"]].cumsum()
            divisor = self.config.cumulative_step_divisor
        else:
            divisor = self.config.activity_step_divisor

        values = round_percentages(calculate_averages(samples) * 100)
        max_axis, step = calculate_axis(max(values), step_divisor=divisor)

        return ChartData(
            series=[
                ChartSeries(
                    label=context_key,
                    values=values,
                    colour=self.config.colour_teacher_course_history,
                )
            ],
            labels=self._labels(samples["period_end"].tolist()),
            max=max_axis,
            stepsize=step,
            ylabels=percent_ylabels(max_axis, step),
        )
