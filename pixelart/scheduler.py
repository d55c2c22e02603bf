"""Grid -> ordered list of commit tasks."""

import datetime as dt
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class CommitTask:
    date: dt.date
    level: int
    index: int  # position within the day, 0..level-1


def schedule(grid, dates, year: int) -> List[CommitTask]:
    """One task per unit of level, week by week.

    Columns are walked first, then rows, then the units inside a cell, so the
    chain is laid down in calendar order. A cell is skipped when its level is
    not positive or its date is not in `year`; the date check does not rely
    on the -1 marker.
    """
    if len(grid) != len(dates) or any(len(g) != len(d) for g, d in zip(grid, dates)):
        raise ValueError("grid and date matrix must have the same shape")

    tasks = []
    cols = len(grid[0]) if grid else 0
    for x in range(cols):
        for y in range(len(grid)):
            level = grid[y][x]
            day = dates[y][x]
            if level <= 0 or day.year != year:
                continue
            for i in range(level):
                tasks.append(CommitTask(day, level, i))
    return tasks


def days_count(tasks) -> int:
    return len({t.date for t in tasks})
