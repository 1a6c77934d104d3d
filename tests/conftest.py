"""
Re-useable fixtures etc. for tests

See https://docs.pytest.org/en/7.1.x/reference/fixtures.html#conftest-py-sharing-fixtures-across-multiple-files
"""

import pandas as pd
import pytest

from engagement_aggregator.store import InMemorySampleStore
from engagement_aggregator.testing import (
    COURSE,
    LAST_YEAR_COURSE,
    OTHER_COURSE,
    PERIOD_LENGTH,
    get_indicator_records,
    get_period_ends,
)


@pytest.fixture(scope="session", autouse=True)
def pandas_terminal_width():
    # Set pandas terminal width so that doctests don't depend on terminal width.

    # We set the display width to 120 because examples should be short,
    # anything more than this is too wide to read in the source.
    pd.set_option("display.width", 120)

    # Display as many columns as you want (i.e. let the display width do the
    # truncation)
    pd.set_option("display.max_columns", 1000)


@pytest.fixture
def period_ends():
    return get_period_ends(3)


@pytest.fixture
def course_records(period_ends):
    return [
        *get_indicator_records(
            COURSE, "u1", period_ends, [[1.0, 0.0], [1.0], [0.0, 0.5]]
        ),
        *get_indicator_records(COURSE, "u2", period_ends[:2], [[0.5], [0.0]]),
    ]


@pytest.fixture
def store(course_records, period_ends):
    return InMemorySampleStore.from_records(
        [
            *course_records,
            *get_indicator_records(OTHER_COURSE, "u1", period_ends[1:], [[0.2], [0.4]]),
            *get_indicator_records(
                LAST_YEAR_COURSE,
                "u9",
                get_period_ends(4, first_end=2 * PERIOD_LENGTH),
                [[0.2], [0.4], [0.6], [0.8]],
            ),
        ]
    )
