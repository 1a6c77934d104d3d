"""
Integration tests of `engagement_aggregator.aggregator`

These go all the way from raw indicator values in a store
to chart-ready output.
"""

from __future__ import annotations

import json
import math
import re
from concurrent.futures import ThreadPoolExecutor

import pytest

from engagement_aggregator.aggregator import (
    COMPARISON_NONE,
    EngagementAggregator,
)
from engagement_aggregator.charts import ChartData, YLabel
from engagement_aggregator.config import DAY_SECONDS, EngagementConfig
from engagement_aggregator.exceptions import (
    InvalidPeriodError,
    StoreUnavailableError,
    UnrecognisedValueError,
)
from engagement_aggregator.store import InMemorySampleStore
from engagement_aggregator.testing import (
    COURSE,
    OTHER_COURSE,
    PERIOD_LENGTH,
    UnavailableSampleStore,
    get_indicator_records,
)

EXP_LABELS = ["31 January 1970", "03 February 1970", "06 February 1970"]


@pytest.fixture
def aggregator(store):
    return EngagementAggregator(store)


def assert_is_empty_chart(res: ChartData) -> None:
    assert not res.has_data
    assert res.to_dict() == {
        "series": [],
        "labels": [],
        "max": 100,
        "stepsize": 25,
        "ylabels": [],
    }


def test_course_graph(aggregator):
    res = aggregator.course_graph(COURSE)

    assert res.labels == EXP_LABELS
    assert res.max == 100  # noqa: PLR2004
    assert res.stepsize == 25  # noqa: PLR2004
    assert [yl.label for yl in res.ylabels] == ["0%", "25%", "50%", "75%", "100%"]

    course, last_year = res.series
    assert course.label == "Engagement"
    assert course.legend == "Course engagement"
    assert course.values == [50, 50, 25]
    assert course.colour == "#613d7c"
    assert course.warning is None

    # Aligned by position, truncated to this year's axis
    assert last_year.values == [20, 40, 60]
    assert last_year.legend == "Last year's engagement"
    assert last_year.colour == "#d9534f"
    assert last_year.warning is not None


def test_course_graph_members(aggregator):
    res = aggregator.course_graph(COURSE, members=["u2"])

    # The filtered cohort defines the axis
    assert res.labels == EXP_LABELS[:2]
    filtered, course, last_year = res.series
    assert filtered.values == [50, 0]
    assert filtered.colour == "#5bc0de"
    assert filtered.legend == "Filtered course engagement"
    assert course.values == [50, 50]
    assert last_year.values == [20, 40]


def test_course_graph_no_previous_year(aggregator):
    res = aggregator.course_graph(COURSE, previous_year=False)

    assert [s.label for s in res.series] == ["Engagement"]


def test_course_graph_previous_year_disabled_by_config(store):
    aggregator = EngagementAggregator(
        store, config=EngagementConfig(course_year_pattern=None)
    )

    res = aggregator.course_graph(COURSE)

    assert len(res.series) == 1


def test_course_graph_previous_year_missing(aggregator):
    # MATH102-22S1 has no data, so there is no last year line
    res = aggregator.course_graph(OTHER_COURSE)

    assert [s.values for s in res.series] == [[20, 40]]


def test_course_graph_window(aggregator, period_ends):
    res = aggregator.course_graph(
        COURSE, start=period_ends[0], end=period_ends[2], previous_year=False
    )

    assert res.labels == EXP_LABELS[1:]
    assert res.series[0].values == [50, 25]


def test_course_graph_default_start(store, period_ends):
    aggregator = EngagementAggregator(
        store, config=EngagementConfig(user_history=2 * PERIOD_LENGTH)
    )

    res = aggregator.course_graph(COURSE, end=period_ends[2], previous_year=False)

    # Start defaults to end - user_history, which excludes the first period
    assert res.labels == EXP_LABELS[1:]
    assert res.series[0].values == [50, 25]
    assert res == aggregator.course_graph(
        COURSE, start=period_ends[0], end=period_ends[2], previous_year=False
    )


def test_default_start_needs_an_end(store):
    aggregator = EngagementAggregator(
        store, config=EngagementConfig(user_history=PERIOD_LENGTH)
    )

    # Without an end the window is unbounded
    res = aggregator.courses_graph([COURSE])

    assert res.labels == EXP_LABELS


def test_course_graph_no_data(aggregator):
    assert_is_empty_chart(aggregator.course_graph("HIST101-23S1"))


def test_course_graph_invalid_period(aggregator):
    with pytest.raises(InvalidPeriodError, match=re.escape(f"{DAY_SECONDS} seconds")):
        aggregator.course_graph(COURSE, period_length=DAY_SECONDS)


def test_courses_graph(aggregator):
    res = aggregator.courses_graph([COURSE, OTHER_COURSE])

    assert res.labels == EXP_LABELS
    assert [s.label for s in res.series] == [COURSE, OTHER_COURSE]
    assert [s.values for s in res.series] == [[50, 50, 25], [0, 20, 40]]
    assert [s.colour for s in res.series] == ["#613d7c", "#5cb85c"]
    assert res.max == 100  # noqa: PLR2004


def test_courses_graph_no_data(aggregator):
    assert_is_empty_chart(aggregator.courses_graph(["HIST101-23S1", "HIST102-23S1"]))


def test_user_courses_graph(aggregator):
    res = aggregator.user_courses_graph("u1", [COURSE, OTHER_COURSE])

    assert res.labels == EXP_LABELS
    assert [s.values for s in res.series] == [[50, 100, 25], [0, 20, 40]]


def test_student_graph(aggregator):
    res = aggregator.student_graph("u1", contexts=[COURSE])

    assert res.labels == EXP_LABELS
    assert res.max == 100  # noqa: PLR2004
    assert res.stepsize == 25  # noqa: PLR2004
    assert res.ylabels == [
        YLabel(value=0, label="None"),
        YLabel(value=50, label="Medium"),
        YLabel(value=100, label="High"),
    ]

    user, lower, upper = res.series
    assert user.colour == "#5cb85c"
    assert not user.fill
    assert lower.colour == upper.colour == "#CEE9CE"
    assert upper.fill

    # The lowest value on the chart is the bottom of the band in the second period
    band_min = 50 - math.sqrt(5000) / 2
    exp_user = [(v - band_min) / (100 - band_min) * 100 for v in [50, 100, 25]]
    assert user.values == pytest.approx(exp_user)
    assert min(lower.values) == pytest.approx(0.0)
    assert max(user.values) == pytest.approx(100.0)
    for low, high in zip(lower.values, upper.values):
        assert low <= high


def test_student_graph_no_comparison(aggregator):
    res = aggregator.student_graph("u1", contexts=[COURSE], comparison=COMPARISON_NONE)

    assert len(res.series) == 1
    assert res.series[0].values == pytest.approx([100 / 3, 100.0, 0.0])


def test_student_graph_no_contexts(aggregator):
    # Without contexts there is no population to compare with
    res = aggregator.student_graph("u1")

    assert len(res.series) == 1
    assert res.labels == EXP_LABELS


def test_student_graph_no_data(aggregator):
    assert_is_empty_chart(aggregator.student_graph("nobody", contexts=[COURSE]))


def test_student_graph_unrecognised_comparison(aggregator):
    with pytest.raises(
        UnrecognisedValueError,
        match=re.escape("'median' is not a recognised value for comparison"),
    ):
        aggregator.student_graph("u1", contexts=[COURSE], comparison="median")


def test_student_graphs(aggregator):
    res = aggregator.student_graphs(["u1", "u2"], contexts=[COURSE])

    assert set(res) == {"u1", "u2"}
    assert res["u1"] == aggregator.student_graph("u1", contexts=[COURSE])
    assert res["u2"] == aggregator.student_graph("u2", contexts=[COURSE])


@pytest.fixture
def activity_store(period_ends):
    return InMemorySampleStore.from_records(
        [
            *get_indicator_records("quiz-1", "u1", period_ends, [[1.0], [0.0], [0.5]]),
            *get_indicator_records("quiz-1", "u2", period_ends, [[1.0], [0.0], [0.5]]),
        ]
    )


@pytest.mark.parametrize(
    "cumulative, exp_values, exp_stepsize, exp_ylabels",
    (
        pytest.param(
            False,
            [100, 0, 50],
            25,
            ["0%", "25%", "50%", "75%", "100%"],
            id="per-period",
        ),
        pytest.param(
            True,
            [100, 50, 50],
            50,
            ["0%", "50%", "100%"],
            id="cumulative",
        ),
    ),
)
def test_activity_graph(
    activity_store, cumulative, exp_values, exp_stepsize, exp_ylabels
):
    res = EngagementAggregator(activity_store).activity_graph(
        "quiz-1", cumulative=cumulative
    )

    assert res.labels == EXP_LABELS
    assert res.series[0].values == exp_values
    assert res.max == 100  # noqa: PLR2004
    assert res.stepsize == exp_stepsize
    assert [yl.label for yl in res.ylabels] == exp_ylabels


def test_activity_graph_no_data(activity_store):
    assert_is_empty_chart(EngagementAggregator(activity_store).activity_graph("quiz-2"))


def test_config_round_trip():
    store = InMemorySampleStore.from_records(
        get_indicator_records(
            "quiz-1",
            "u1",
            [DAY_SECONDS],
            [[0.5, 0.5, 0.5, 0.5]],
            period_length=DAY_SECONDS,
        )
    )
    config = EngagementConfig.from_mapping({"display_period": DAY_SECONDS})

    res = EngagementAggregator(store, config=config).activity_graph("quiz-1")

    assert res.series[0].values == [50]
    assert res.labels == ["02 January 1970"]


def test_hide_labels(store):
    aggregator = EngagementAggregator(
        store, config=EngagementConfig(show_labels=False)
    )

    res = aggregator.courses_graph([COURSE])

    assert res.labels == ["", "", ""]


def test_store_errors_are_passed_on():
    store = UnavailableSampleStore(reason="database is down")
    aggregator = EngagementAggregator(store)

    with pytest.raises(StoreUnavailableError, match="database is down"):
        aggregator.courses_graph([COURSE, OTHER_COURSE])

    # No retries
    assert store.calls == 1


def test_output_is_json_serialisable(aggregator):
    res = aggregator.course_graph(COURSE, members=["u2"])

    loaded = json.loads(json.dumps(res.to_dict()))

    assert loaded["labels"] == EXP_LABELS[:2]
    assert loaded["series"][0] == {
        "label": "Filtered engagement",
        "values": [50, 0],
        "colour": "#5bc0de",
        "legend": "Filtered course engagement",
    }
    assert "warning" in loaded["series"][2]


def test_repeated_calls_are_identical(aggregator):
    first = aggregator.course_graph(COURSE)
    second = aggregator.course_graph(COURSE)

    assert first == second


def test_concurrent_calls(aggregator):
    exp = aggregator.courses_graph([COURSE, OTHER_COURSE])

    with ThreadPoolExecutor(max_workers=4) as executor:
        res = list(
            executor.map(
                lambda _: aggregator.courses_graph([COURSE, OTHER_COURSE]), range(8)
            )
        )

    assert all(r == exp for r in res)
