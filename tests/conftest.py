"""
Shared test configuration.

Adds src/ to sys.path so that the flat modules (correlation_engine,
constants, config) and the analytics/pipeline packages import with plain
`import module_name`, the same way the engine imports them.

This replaces the duplicated sys.path.insert() hack in every test file.
"""

import os
import sys
from datetime import date, timedelta

import numpy as np
import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from analytics.records import DailyRecord  # noqa: E402


def make_history(
    n_days: int = 60,
    end: date = date(2026, 3, 1),
    seed: int = 7,
    hrv: bool = False,
) -> list:
    """Synthetic day records where exercise time drives the sleep score.

    Steps are unrelated noise, Running happens roughly every third day,
    Meditation is a coin flip and "Cold Shower" only happens 3 times.
    """
    rng = np.random.RandomState(seed)
    records = []
    start = end - timedelta(days=n_days - 1)
    for i in range(n_days):
        exercise = float(rng.randint(0, 91))
        steps = float(rng.randint(2000, 12001))
        daylight = float(rng.randint(10, 121))
        score = 60 + 0.3 * exercise + rng.normal(0, 2)
        workouts = {}
        if i % 3 == 0:
            workouts["Running"] = float(rng.randint(30, 61))
        habits = {"Meditation": bool(rng.rand() < 0.5)}
        if i in (5, 20, 40):
            habits["Cold Shower"] = True
        records.append(DailyRecord(
            day=start + timedelta(days=i),
            outcomes={
                "sleep_score": score,
                "sleep_duration": 7 * 3600 + rng.normal(0, 1200),
                "total_awake_time": float(rng.randint(0, 3600)),
                "heart_rate": 50 + rng.normal(0, 3),
                "hrv": 45 + rng.normal(0, 5) if hrv else None,
            },
            health={"Exercise Time": exercise, "Steps": steps, "Time in Daylight": daylight},
            workouts=workouts,
            habits=habits,
        ))
    return records


@pytest.fixture
def history():
    return make_history()
