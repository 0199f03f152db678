import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .constants import ANY_TIME, COL_ENDED_AT, COL_STARTED_AT, MINUTES_PER_DAY, TIME_WINDOW_MINUTES
from .errors import TimeFilterError

LOG = logging.getLogger(__name__)


def format_time(minutes: int) -> str:
    """Formats a minute-of-day as a short US clock string, e.g. 545 -> '9:05 AM'."""
    hours, mins = divmod(int(minutes) % MINUTES_PER_DAY, 60)
    suffix = "AM" if hours < 12 else "PM"
    return f"{hours % 12 or 12}:{mins:02d} {suffix}"


@dataclass(frozen=True)
class TimeFilter:
    """
    Selection of the time-of-day slider.

    `minutes` is either ANY_TIME (no filter) or a minute of the day in [0, MINUTES_PER_DAY].
    Instances are immutable and handed by value to the re-aggregation step.
    """
    minutes: int = ANY_TIME
    window: int = TIME_WINDOW_MINUTES

    def __post_init__(self):
        if self.minutes != ANY_TIME and not 0 <= self.minutes <= MINUTES_PER_DAY:
            raise ValueError(f"Time filter must be {ANY_TIME} or within [0, {MINUTES_PER_DAY}], got {self.minutes}")
        if self.window < 0:
            raise ValueError(f"Time window must be non-negative, got {self.window}")

    @classmethod
    def from_slider(cls, value) -> "TimeFilter":
        return cls(minutes=int(value))

    @property
    def is_active(self) -> bool:
        return self.minutes != ANY_TIME

    @property
    def label(self) -> str:
        return format_time(self.minutes) if self.is_active else "Any Time"

    def matches(self, minute_of_day):
        """
        Whether a minute of the day (scalar or Series) lies within `window` minutes of the
        selection, wrapping around midnight. Missing minutes never match an active filter.
        """
        if not self.is_active:
            return True
        distance = np.abs(minute_of_day - self.minutes) % MINUTES_PER_DAY
        return np.minimum(distance, MINUTES_PER_DAY - distance) <= self.window


def minutes_since_midnight(timestamps: pd.Series) -> pd.Series:
    return timestamps.dt.hour * 60 + timestamps.dt.minute


def filter_trips_by_time(trips: pd.DataFrame, time_filter: TimeFilter) -> pd.DataFrame:
    """
    Keeps the trips that start or end within `time_filter.window` minutes of the selected
    time of day (wrapping around midnight). An inactive filter returns `trips` unchanged.

    Args:
        trips (pd.DataFrame): Trip rows with `started_at` and `ended_at` timestamps.
        time_filter (TimeFilter): The slider selection.

    Returns:
        pd.DataFrame: The matching subset of `trips`.

    Raises:
        TimeFilterError: If the filter is active and the trips carry no timestamps.
    """
    if not time_filter.is_active:
        return trips
    missing = [c for c in (COL_STARTED_AT, COL_ENDED_AT) if c not in trips.columns]
    if missing:
        raise TimeFilterError(f"Cannot filter trips by time without columns {missing}")

    started = minutes_since_midnight(pd.to_datetime(trips[COL_STARTED_AT], errors="coerce"))
    ended = minutes_since_midnight(pd.to_datetime(trips[COL_ENDED_AT], errors="coerce"))
    filtered = trips[time_filter.matches(started) | time_filter.matches(ended)]
    LOG.info(f"Time filter {time_filter.label} kept {len(filtered)} of {len(trips)} trips")
    return filtered
