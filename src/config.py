"""Configuration loaded from .env"""

import os
from pathlib import Path
from dotenv import load_dotenv

from constants import DEFAULT_WINDOW_DAYS, TIME_WINDOWS, TOP_INSIGHTS_LIMIT

load_dotenv(Path(__file__).parent.parent / ".env")

# Analysis window (days), one of TIME_WINDOWS
ANALYSIS_WINDOW_DAYS = int(os.getenv("SLEEP_ANALYSIS_WINDOW_DAYS", str(DEFAULT_WINDOW_DAYS)))
if ANALYSIS_WINDOW_DAYS not in TIME_WINDOWS:
    raise ValueError(
        f"SLEEP_ANALYSIS_WINDOW_DAYS must be one of {TIME_WINDOWS}, got {ANALYSIS_WINDOW_DAYS}"
    )

# "approximate" (normal / polynomial blend) or "exact" (Student-t)
PVALUE_METHOD = os.getenv("SLEEP_PVALUE_METHOD", "approximate").strip().lower()

# Parallel fan-out across dependent metrics (1 = sequential)
MAX_WORKERS = int(os.getenv("SLEEP_ANALYSIS_MAX_WORKERS", "1"))

# Size of the global ranked list
TOP_INSIGHTS = int(os.getenv("SLEEP_TOP_INSIGHTS", str(TOP_INSIGHTS_LIMIT)))
