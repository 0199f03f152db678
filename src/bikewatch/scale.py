import logging
import math
from typing import Mapping

import numpy as np
import pandas as pd

from .constants import COL_ARRIVALS, COL_DEPARTURES, COL_TOTAL, MAX_RADIUS, MIN_RADIUS

LOG = logging.getLogger(__name__)


def attach_traffic(stations: pd.DataFrame, departures: Mapping[str, int],
                   arrivals: Mapping[str, int]) -> pd.DataFrame:
    """
    Returns a copy of `stations` with `departures`, `arrivals` and `total_traffic` columns.

    Station ids missing from either mapping count as zero. The input frame is never
    modified, so calling this twice with the same inputs gives identical frames.

    Args:
        stations (pd.DataFrame): Station records indexed by canonical station id.
        departures (Mapping[str, int]): Departure counts per station id.
        arrivals (Mapping[str, int]): Arrival counts per station id.

    Returns:
        pd.DataFrame: The enriched station frame.
    """
    enriched = stations.copy()
    ids = enriched.index.astype(str)
    enriched[COL_DEPARTURES] = [int(departures.get(i, 0)) for i in ids]
    enriched[COL_ARRIVALS] = [int(arrivals.get(i, 0)) for i in ids]
    enriched[COL_TOTAL] = enriched[COL_DEPARTURES] + enriched[COL_ARRIVALS]
    return enriched


class RadiusScale:
    """
    Square-root scale from traffic in [0, max_traffic] to marker radius in
    [min_radius, max_radius], so that marker area grows linearly with traffic.
    Values outside the domain are clamped.
    """

    def __init__(self, max_traffic: float, min_radius: float = MIN_RADIUS, max_radius: float = MAX_RADIUS):
        if max_traffic <= 0:
            raise ValueError(f"max_traffic must be positive, got {max_traffic}")
        self.max_traffic = max_traffic
        self.min_radius = min_radius
        self.max_radius = max_radius

    def __repr__(self):
        return (f"RadiusScale(domain=[0, {self.max_traffic}], "
                f"range=[{self.min_radius}, {self.max_radius}])")

    def __call__(self, value: float) -> float:
        clamped = min(max(float(value), 0.0), self.max_traffic)
        return self.min_radius + (self.max_radius - self.min_radius) * math.sqrt(clamped / self.max_traffic)

    def apply(self, values) -> pd.Series:
        """Vectorised form of the scale for a Series (or array) of traffic values."""
        series = pd.Series(values, dtype=float)
        ratio = np.sqrt(series.clip(lower=0.0, upper=self.max_traffic) / self.max_traffic)
        return self.min_radius + (self.max_radius - self.min_radius) * ratio


def build_radius_scale(stations: pd.DataFrame, min_radius: float = MIN_RADIUS,
                       max_radius: float = MAX_RADIUS) -> RadiusScale:
    """
    Derives the marker radius scale from the traffic of every station.

    The domain upper bound is the largest `total_traffic`, floored at 1 so that an
    all-zero dataset still gives a valid scale (every station then maps to `min_radius`).

    Args:
        stations (pd.DataFrame): Enriched station frame from `attach_traffic`.
        min_radius (float, optional): Radius for zero traffic. Defaults to 3.
        max_radius (float, optional): Radius for the busiest station. Defaults to 15.

    Returns:
        RadiusScale: The scale function.
    """
    if COL_TOTAL in stations.columns and not stations.empty:
        max_traffic = max(int(stations[COL_TOTAL].max()), 1)
    else:
        max_traffic = 1
    scale = RadiusScale(max_traffic, min_radius=min_radius, max_radius=max_radius)
    LOG.info(f"Max traffic: {max_traffic}; {scale!r}")
    return scale
