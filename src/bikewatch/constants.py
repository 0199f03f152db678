import os
from pathlib import Path

import dotenv

dotenv.load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()

# ── Data Input Files ──────────────────────────────────────────────────────────
STATIONS_SOURCE = os.getenv("BIKEWATCH_STATIONS_SOURCE", str(PROJECT_ROOT / "data/bluebikes-stations.json"))
TRIPS_SOURCE = os.getenv("BIKEWATCH_TRIPS_SOURCE", str(PROJECT_ROOT / "data/bluebikes-traffic-2024-03.csv"))

BIKE_LANE_SOURCES = {
    "Boston bike lanes": (
        "https://bostonopendata-boston.opendata.arcgis.com/datasets/boston::existing-bike-network-2022.geojson"
    ),
    "Cambridge bike lanes": (
        "https://raw.githubusercontent.com/cambridgegis/cambridgegis_data/main/"
        "Recreation/Bike_Facilities/RECREATION_BikeFacilities.geojson"
    ),
}
REQUEST_TIMEOUT = 30  # seconds, single attempt

# ── Data Output Files ─────────────────────────────────────────────────────────
MAP_OUTPUT = os.getenv("BIKEWATCH_MAP_OUTPUT", str(PROJECT_ROOT / "results/bikewatch.html"))

# ── Map & Visualization Settings ──────────────────────────────────────────────
MAP_CENTER = [42.36027, -71.09415]
MAP_ZOOM = 12
MAP_MIN_ZOOM = 5
MAP_MAX_ZOOM = 18
MAPBOX_ACCESS_TOKEN = os.getenv("MAPBOX_ACCESS_TOKEN")
MAPBOX_TILES_URL = (
    "https://api.mapbox.com/styles/v1/mapbox/streets-v12/tiles/{z}/{x}/{y}"
    "?access_token={token}"
)
MAPBOX_ATTRIBUTION = "© Mapbox © OpenStreetMap contributors"
TILE_SIZE = 512  # Mapbox GL world size at zoom 0

LANE_STYLE = {"color": "green", "weight": 3, "opacity": 0.4}

MARKER_FILL = "steelblue"
MARKER_STROKE = "white"
MARKER_STROKE_WIDTH = 0.5
MARKER_FILL_OPACITY = 0.6
DEFAULT_RADIUS = 5
SENTINEL_LOCATION = (0.0, 0.0)

# ── Traffic Scale ─────────────────────────────────────────────────────────────
MIN_RADIUS = 3
MAX_RADIUS = 15

# ── Time Filter ───────────────────────────────────────────────────────────────
ANY_TIME = -1
MINUTES_PER_DAY = 1440
TIME_WINDOW_MINUTES = 60

# ── Column Names ──────────────────────────────────────────────────────────────
COL_STATION_ID = "station_id"
COL_SHORT_NAME = "short_name"
COL_LAT = "lat"
COL_LON = "lon"
COL_START_ID = "start_station_id"
COL_END_ID = "end_station_id"
COL_STARTED_AT = "started_at"
COL_ENDED_AT = "ended_at"
COL_DEPARTURES = "departures"
COL_ARRIVALS = "arrivals"
COL_TOTAL = "total_traffic"
