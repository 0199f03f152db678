"""
Renders the bike traffic map. Run through the `bikewatch-map` console script or as
`python -m bikewatch.run_map`; the module uses package-relative imports.
"""
import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import folium
import pandas as pd

from .aggregator import aggregate_for_time
from .constants import (ANY_TIME, BIKE_LANE_SOURCES, MAP_OUTPUT, MAPBOX_ACCESS_TOKEN, MAX_RADIUS, MIN_RADIUS,
                        STATIONS_SOURCE, TRIPS_SOURCE)
from .errors import LoadError, TimeFilterError
from .registry import build_station_id_map, load_stations
from .scale import RadiusScale, attach_traffic, build_radius_scale
from .time_filter import TimeFilter
from .utils import load_trips, read_json
from .visualisation import (add_bike_lanes, add_time_slider, build_base_map, plot_station_markers,
                            plot_traffic_distribution)

LOG = logging.getLogger(__name__)


@dataclass
class TrafficMap:
    """Everything the pipeline produced: the folium map plus the enriched stations and scale."""
    map: folium.Map
    stations: pd.DataFrame
    scale: Optional[RadiusScale] = None


def add_bike_networks(m: folium.Map, sources: dict = BIKE_LANE_SOURCES) -> int:
    """Overlays every reachable bike-lane network; unreachable ones are logged and left out."""
    added = 0
    for name, source in sources.items():
        try:
            geojson = read_json(source)
        except LoadError as e:
            LOG.error(f"Failed to load {name}: {e}")
            continue
        add_bike_lanes(m, geojson, name)
        added += 1
    return added


def build_traffic_map(
        stations_source=STATIONS_SOURCE,
        trips_source=TRIPS_SOURCE,
        time_filter: TimeFilter = TimeFilter(),
        min_radius: float = MIN_RADIUS,
        max_radius: float = MAX_RADIUS,
        lane_sources: Optional[dict] = BIKE_LANE_SOURCES,
        mapbox_token: Optional[str] = MAPBOX_ACCESS_TOKEN,
) -> TrafficMap:
    """
    Runs the full station traffic pipeline and returns the rendered map.

    Workflow:
        1. Builds the basemap and overlays the bike-lane networks.
        2. Loads the stations and builds the short code lookup.
        3. Loads the trips. On failure the stations keep the default marker size.
        4. Aggregates departures / arrivals within the time filter.
        5. Attaches the counts to the stations and builds the radius scale.
        6. Plots the station markers and the time slider.

    Raises:
        LoadError: If the station feed cannot be loaded; nothing can be drawn without it.
    """
    m = build_base_map(mapbox_token)
    if lane_sources:
        add_bike_networks(m, lane_sources)

    stations = load_stations(stations_source)
    id_map = build_station_id_map(stations)

    try:
        trips = load_trips(trips_source)
    except LoadError as e:
        LOG.error(f"Failed to fetch traffic data: {e}")
        plot_station_markers(m, stations)
        add_time_slider(m, time_filter)
        return TrafficMap(map=m, stations=stations)

    departures, arrivals = aggregate_for_time(trips, id_map, time_filter)
    stations = attach_traffic(stations, departures, arrivals)
    scale = build_radius_scale(stations, min_radius=min_radius, max_radius=max_radius)
    plot_station_markers(m, stations, scale)
    add_time_slider(m, time_filter)
    folium.LayerControl().add_to(m)
    LOG.info("Traffic data applied and circle sizes updated with tooltips.")
    return TrafficMap(map=m, stations=stations, scale=scale)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render the bike traffic map of Boston / Cambridge stations.")
    parser.add_argument("--stations", default=STATIONS_SOURCE, help="station feed JSON (path or URL)")
    parser.add_argument("--trips", default=TRIPS_SOURCE, help="trips CSV (path or URL)")
    parser.add_argument("--output", default=MAP_OUTPUT, help="HTML file to write")
    parser.add_argument("--time", type=int, default=ANY_TIME,
                        help=f"minute of day to filter trips around ({ANY_TIME} for any time)")
    parser.add_argument("--min-radius", type=float, default=MIN_RADIUS)
    parser.add_argument("--max-radius", type=float, default=MAX_RADIUS)
    parser.add_argument("--no-lanes", action="store_true", help="skip the bike-lane overlays")
    parser.add_argument("--plot", default=None, help="also save a traffic distribution chart to this path")
    parser.add_argument("--verbose", action="store_true", help="log every skipped trip and marker")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        time_filter = TimeFilter.from_slider(args.time)
    except ValueError as e:
        LOG.error(f"{e}")
        return 2

    try:
        result = build_traffic_map(
            stations_source=args.stations,
            trips_source=args.trips,
            time_filter=time_filter,
            min_radius=args.min_radius,
            max_radius=args.max_radius,
            lane_sources=None if args.no_lanes else BIKE_LANE_SOURCES,
        )
    except LoadError as e:
        LOG.error(f"Error loading stations: {e}")
        return 1
    except TimeFilterError as e:
        LOG.error(f"Cannot apply time filter: {e}")
        return 2

    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    result.map.save(str(out_path))
    LOG.info(f"Map saved to {out_path}")

    if args.plot:
        if result.scale is None:
            LOG.warning("No traffic data; skipping distribution plot")
        else:
            plot_traffic_distribution(result.stations, args.plot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
