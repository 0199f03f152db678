import logging
from collections import Counter
from typing import Optional, Tuple

import pandas as pd

from .constants import COL_END_ID, COL_START_ID
from .errors import ResolutionError
from .registry import StationIdMap
from .time_filter import TimeFilter, filter_trips_by_time

LOG = logging.getLogger(__name__)


def aggregate_trips(trips: pd.DataFrame, id_map: StationIdMap,
                    logger: Optional[logging.Logger] = None) -> Tuple[Counter, Counter]:
    """
    Counts departures and arrivals per canonical station id.

    Each trip resolves its start and end station through `id_map`. A trip with an
    unresolvable endpoint is logged and skipped; it never stops the aggregation and
    contributes to neither count.

    Args:
        trips (pd.DataFrame): Trip rows with `start_station_id` and `end_station_id`.
        id_map (StationIdMap): Short code to canonical id lookup.
        logger (logging.Logger, optional): Logger to report through. Defaults to the module logger.

    Returns:
        Tuple[Counter, Counter]: (departures, arrivals) keyed by canonical station id.
                                 Stations absent from a counter have zero trips.
    """
    log = logger or LOG
    departures: Counter = Counter()
    arrivals: Counter = Counter()
    skipped = 0

    for raw_start, raw_end in zip(trips[COL_START_ID], trips[COL_END_ID]):
        try:
            start_id = id_map.resolve(raw_start)
            end_id = id_map.resolve(raw_end)
        except ResolutionError as e:
            skipped += 1
            log.debug(f"Invalid trip {raw_start} -> {raw_end}: {e}")
            continue
        departures[start_id] += 1
        arrivals[end_id] += 1

    valid = sum(departures.values())
    if skipped:
        log.warning(f"Skipped {skipped} of {valid + skipped} trips with unresolvable stations")
    log.info(f"Aggregated {valid} trips over {len(departures)} departure and {len(arrivals)} arrival stations")
    return departures, arrivals


def aggregate_for_time(trips: pd.DataFrame, id_map: StationIdMap, time_filter: TimeFilter,
                       logger: Optional[logging.Logger] = None) -> Tuple[Counter, Counter]:
    """Re-aggregates the trips restricted to the slider's time window."""
    return aggregate_trips(filter_trips_by_time(trips, time_filter), id_map, logger=logger)
