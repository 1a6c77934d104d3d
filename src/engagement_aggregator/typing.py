"""
Type hints that are used throughout
"""

from __future__ import annotations

from typing import Union

import numpy as np
import pandas as pd
from typing_extensions import TypeAlias

NUMERIC_DATA: TypeAlias = Union[float, int, np.floating, np.integer]
"""
Type alias for a value that can be used in the data of an [AlignedDataFrame][(m).]
"""

TIMESTAMP: TypeAlias = int
"""
Type alias for a Unix timestamp (seconds since the epoch, UTC)
"""

SamplesDataFrame: TypeAlias = pd.DataFrame
"""
Type alias for the [pandas.DataFrame][pd.DataFrame] of period-bucketed samples

Each row is one observation for one entity over one period.
We expect the following columns:

1. `entity_key`: the series the sample belongs to (user, course, activity)
1. `period_start`, `period_end`: Unix timestamps bounding the period
1. `count`: number of raw indicator values summed
1. `value_sum`: sum of the raw indicator values

```python
  entity_key  period_start  period_end  count  value_sum
0       u1          259200      518400      4        2.0
1       u1               0      259200      2        0.5
```
"""

AlignedDataFrame: TypeAlias = pd.DataFrame
"""
Type alias for a collection of series that share one label axis

The index holds the entity key of each series.
The columns are the period-end timestamps of the shared axis,
in ascending chronological order.
Every cell is numeric, periods an entity did not report are filled with zero.

```python
                 259200  518400
entity_key
ABC-101            50.0    25.0
ABC-102             0.0    75.0
```
"""

SAMPLE_COLUMNS: tuple[str, ...] = (
    "entity_key",
    "period_start",
    "period_end",
    "count",
    "value_sum",
)
"""
Columns expected in a [SamplesDataFrame][(m).]
"""
