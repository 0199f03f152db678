import logging
import math
from typing import Optional, Tuple

import folium
import matplotlib.pyplot as plt
import pandas as pd
from branca.element import Element

from .constants import (ANY_TIME, COL_ARRIVALS, COL_DEPARTURES, COL_LAT, COL_LON, COL_TOTAL, DEFAULT_RADIUS,
                        LANE_STYLE, MAP_CENTER, MAP_MAX_ZOOM, MAP_MIN_ZOOM, MAP_ZOOM, MAPBOX_ACCESS_TOKEN,
                        MAPBOX_ATTRIBUTION, MAPBOX_TILES_URL, MARKER_FILL, MARKER_FILL_OPACITY, MARKER_STROKE,
                        MARKER_STROKE_WIDTH, MINUTES_PER_DAY, SENTINEL_LOCATION, TILE_SIZE)
from .errors import CoordinateError
from .scale import RadiusScale
from .time_filter import TimeFilter

LOG = logging.getLogger(__name__)


def build_base_map(mapbox_token: Optional[str] = MAPBOX_ACCESS_TOKEN) -> folium.Map:
    """
    Creates the basemap centred on Boston / Cambridge.

    Args:
        mapbox_token (str, optional): Mapbox access token. When given, the Mapbox
            streets style is used; otherwise OpenStreetMap tiles.

    Returns:
        folium.Map: The empty map.
    """
    if mapbox_token:
        m = folium.Map(location=MAP_CENTER, zoom_start=MAP_ZOOM, min_zoom=MAP_MIN_ZOOM, max_zoom=MAP_MAX_ZOOM,
                       tiles=None)
        folium.TileLayer(
            tiles=MAPBOX_TILES_URL.replace("{token}", mapbox_token),
            attr=MAPBOX_ATTRIBUTION, name="Mapbox Streets",
            min_zoom=MAP_MIN_ZOOM, max_zoom=MAP_MAX_ZOOM, tile_size=TILE_SIZE, zoom_offset=-1,
        ).add_to(m)
    else:
        m = folium.Map(location=MAP_CENTER, zoom_start=MAP_ZOOM, min_zoom=MAP_MIN_ZOOM, max_zoom=MAP_MAX_ZOOM)
    return m


def add_bike_lanes(m: folium.Map, geojson: dict, name: str) -> folium.GeoJson:
    """Overlays a bike-lane network as a green line layer."""
    layer = folium.GeoJson(geojson, name=name, style_function=lambda _: dict(LANE_STYLE))
    layer.add_to(m)
    return layer


def station_location(station: pd.Series) -> Tuple[float, float]:
    """
    Parses the latitude and longitude of a station record.

    Raises:
        CoordinateError: If either coordinate is missing or not numeric.
    """
    try:
        lat = float(station.get(COL_LAT))
        lon = float(station.get(COL_LON))
    except (TypeError, ValueError) as e:
        raise CoordinateError(f"Invalid coordinates for station {station.name}: "
                              f"{station.get(COL_LAT)!r}, {station.get(COL_LON)!r}") from e
    if math.isnan(lat) or math.isnan(lon):
        raise CoordinateError(f"Missing coordinates for station {station.name}")
    return lat, lon


def project(lat: float, lon: float, zoom: float) -> Tuple[float, float]:
    """
    Projects a geographic position to Web Mercator world-pixel coordinates.

    Args:
        lat (float): Latitude in degrees.
        lon (float): Longitude in degrees.
        zoom (float): Zoom level; the world is TILE_SIZE * 2**zoom pixels wide.

    Returns:
        tuple: (x, y) with the origin at the north-west corner of the world.
    """
    size = TILE_SIZE * 2 ** zoom
    siny = min(max(math.sin(math.radians(lat)), -0.9999), 0.9999)
    x = (lon + 180.0) / 360.0 * size
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * size
    return x, y


def traffic_tooltip(station: pd.Series) -> str:
    return (f"{station[COL_TOTAL]} trips ({station[COL_DEPARTURES]} departures, "
            f"{station[COL_ARRIVALS]} arrivals)")


def plot_station_markers(m: folium.Map, stations: pd.DataFrame,
                         scale: Optional[RadiusScale] = None) -> folium.FeatureGroup:
    """
    Plots one circle marker per station.

    Args:
        m (folium.Map): The map to draw on.
        stations (pd.DataFrame): Station records indexed by station id. When `scale` is
            given they must carry the traffic columns from `attach_traffic`.
        scale (RadiusScale, optional): Traffic to radius scale. Without it every marker
            gets DEFAULT_RADIUS and no tooltip.

    Stations with unusable coordinates are logged and drawn at SENTINEL_LOCATION.

    Returns:
        folium.FeatureGroup: The layer holding the markers.
    """
    group = folium.FeatureGroup(name="Stations")
    if scale is not None:
        radii = scale.apply(stations[COL_TOTAL]).tolist()
    else:
        radii = [DEFAULT_RADIUS] * len(stations)

    for (station_id, station), radius in zip(stations.iterrows(), radii):
        try:
            location = station_location(station)
        except CoordinateError as e:
            LOG.error(f"{e}; drawing at {SENTINEL_LOCATION}")
            location = SENTINEL_LOCATION

        tooltip = None
        if scale is not None:
            tooltip = traffic_tooltip(station)
            LOG.debug(f"Station ID: {station_id}, Traffic: {station[COL_TOTAL]}, Radius: {radius:.2f}")

        folium.CircleMarker(
            location=list(location),
            radius=radius,
            color=MARKER_STROKE,
            weight=MARKER_STROKE_WIDTH,
            fill=True,
            fill_color=MARKER_FILL,
            fill_opacity=MARKER_FILL_OPACITY,
            tooltip=tooltip,
        ).add_to(group)
    group.add_to(m)
    LOG.info(f"Plotted {len(stations)} station markers")
    return group


def add_time_slider(m: folium.Map, time_filter: TimeFilter) -> None:
    """
    Injects the time-of-day slider and its clock label into the map page.

    The label shows "Any Time" for the no-filter position and a short clock string
    otherwise, updated in the browser as the slider moves.
    """
    html = f"""
    <div id="time-control" style="position:fixed;top:10px;right:10px;z-index:10000;
         background:rgba(255,255,255,0.9);padding:8px 12px;border-radius:4px;font-family:sans-serif;">
      <label for="time-slider">Filter by time:</label>
      <input id="time-slider" type="range" min="{ANY_TIME}" max="{MINUTES_PER_DAY}" step="1"
             value="{time_filter.minutes}"/>
      <time id="selected-time" style="display:block;">{time_filter.label}</time>
    </div>
    <script>
    document.addEventListener('DOMContentLoaded', function () {{
      var timeSlider = document.getElementById('time-slider');
      var selectedTime = document.getElementById('selected-time');

      function formatTime(minutes) {{
        var date = new Date(0, 0, 0, 0, minutes);
        return date.toLocaleTimeString('en-US', {{ timeStyle: 'short' }});
      }}

      function updateTimeDisplay() {{
        var timeFilter = Number(timeSlider.value);
        selectedTime.textContent = timeFilter === {ANY_TIME} ? 'Any Time' : formatTime(timeFilter);
      }}

      timeSlider.addEventListener('input', updateTimeDisplay);
      updateTimeDisplay();
    }});
    </script>
    """
    m.get_root().html.add_child(Element(html))


def plot_traffic_distribution(stations: pd.DataFrame, output, top_n: int = 20) -> None:
    """
    Saves a stacked bar chart of departures and arrivals at the `top_n` busiest stations.

    Args:
        stations (pd.DataFrame): Enriched station frame from `attach_traffic`.
        output (str | Path): Image path to write.
        top_n (int, optional): Number of stations to show. Defaults to 20.
    """
    busiest = stations.sort_values(COL_TOTAL, ascending=False).head(top_n)
    labels = busiest["name"] if "name" in busiest.columns else busiest.index.astype(str)

    fig, ax = plt.subplots(figsize=(14, 7))
    ax.bar(range(len(busiest)), busiest[COL_DEPARTURES], color="steelblue", label="Departures")
    ax.bar(range(len(busiest)), busiest[COL_ARRIVALS], bottom=busiest[COL_DEPARTURES], color="darkorange",
           label="Arrivals")
    ax.set_xticks(range(len(busiest)))
    ax.set_xticklabels(labels, rotation=45, ha="right")
    ax.set_xlabel("Station")
    ax.set_ylabel("Number of Trips")
    ax.set_title(f"Traffic at the {len(busiest)} Busiest Stations")
    ax.grid(axis="y", linestyle="--", alpha=0.7)
    ax.legend()
    fig.tight_layout()
    fig.savefig(output, dpi=150)
    plt.close(fig)
    LOG.info(f"Traffic distribution plot saved to {output}")
