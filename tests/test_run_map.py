import json

import pytest

from bikewatch.errors import LoadError
from bikewatch.run_map import add_bike_networks, build_base_map, build_traffic_map, main
from bikewatch.time_filter import TimeFilter

STATIONS = {
    "data": {
        "stations": [
            {"station_id": "1", "short_name": "A1", "name": "MIT", "lat": 42.36, "lon": -71.09},
            {"station_id": "2", "short_name": "A2", "name": "Kendall", "lat": "42.37", "lon": "-71.08"},
            {"station_id": "3", "short_name": "", "name": "Central", "lat": 42.365, "lon": -71.10},
        ]
    }
}

TRIPS_CSV = (
    "start_station_id,end_station_id,started_at,ended_at\n"
    "A1,A2,2024-03-01 08:00:00,2024-03-01 08:20:00\n"
    "A1,A2,2024-03-01 17:00:00,2024-03-01 17:25:00\n"
    "A1,ZZ9,2024-03-01 09:00:00,2024-03-01 09:10:00\n"
)


@pytest.fixture
def sources(tmp_path):
    stations = tmp_path / "stations.json"
    stations.write_text(json.dumps(STATIONS))
    trips = tmp_path / "trips.csv"
    trips.write_text(TRIPS_CSV)
    return stations, trips


def test_build_traffic_map_end_to_end(sources):
    stations_path, trips_path = sources
    result = build_traffic_map(stations_path, trips_path, lane_sources=None, mapbox_token=None)

    assert result.stations["departures"].to_dict() == {"1": 2, "2": 0, "3": 0}
    assert result.stations["arrivals"].to_dict() == {"1": 0, "2": 2, "3": 0}
    assert result.stations["total_traffic"].to_dict() == {"1": 2, "2": 2, "3": 0}
    assert result.scale.max_traffic == 2
    assert result.scale(2) == pytest.approx(15)
    assert result.scale(0) == pytest.approx(3)
    assert "2 trips (2 departures, 0 arrivals)" in result.map.get_root().render()


def test_build_traffic_map_with_time_filter(sources):
    stations_path, trips_path = sources
    result = build_traffic_map(stations_path, trips_path, time_filter=TimeFilter(minutes=8 * 60),
                               lane_sources=None, mapbox_token=None)
    assert result.stations["total_traffic"].to_dict() == {"1": 1, "2": 1, "3": 0}
    assert "8:00 AM" in result.map.get_root().render()


def test_trip_load_failure_keeps_default_markers(sources, tmp_path):
    stations_path, _ = sources
    result = build_traffic_map(stations_path, tmp_path / "missing.csv", lane_sources=None, mapbox_token=None)
    assert result.scale is None
    assert "total_traffic" not in result.stations.columns
    assert "trips (" not in result.map.get_root().render()


def test_station_load_failure_raises(tmp_path):
    with pytest.raises(LoadError):
        build_traffic_map(tmp_path / "missing.json", tmp_path / "trips.csv", lane_sources=None, mapbox_token=None)


def test_add_bike_networks_skips_unreachable_layers(tmp_path):
    lanes = tmp_path / "lanes.geojson"
    lanes.write_text(json.dumps({
        "type": "FeatureCollection",
        "features": [{
            "type": "Feature",
            "properties": {},
            "geometry": {"type": "LineString", "coordinates": [[-71.10, 42.36], [-71.09, 42.37]]},
        }],
    }))
    m = build_base_map(mapbox_token=None)
    added = add_bike_networks(m, {"Cambridge": lanes, "Boston": tmp_path / "missing.geojson"})
    assert added == 1


def test_main_writes_map_and_plot(sources, tmp_path):
    stations_path, trips_path = sources
    output = tmp_path / "out" / "map.html"
    plot = tmp_path / "traffic.png"
    code = main([
        "--stations", str(stations_path), "--trips", str(trips_path),
        "--output", str(output), "--no-lanes", "--plot", str(plot),
    ])
    assert code == 0
    assert output.exists()
    assert 'id="time-slider"' in output.read_text()
    assert plot.exists()


def test_main_fails_without_stations(tmp_path):
    code = main([
        "--stations", str(tmp_path / "missing.json"), "--trips", str(tmp_path / "trips.csv"),
        "--output", str(tmp_path / "map.html"), "--no-lanes",
    ])
    assert code == 1
    assert not (tmp_path / "map.html").exists()


def test_main_rejects_out_of_range_time(sources, tmp_path):
    stations_path, trips_path = sources
    code = main([
        "--stations", str(stations_path), "--trips", str(trips_path),
        "--output", str(tmp_path / "map.html"), "--no-lanes", "--time", "2000",
    ])
    assert code == 2


def test_main_writes_map_when_trips_are_undecodable(sources, tmp_path):
    stations_path, _ = sources
    trips = tmp_path / "broken.csv"
    trips.write_bytes(b"start_station_id,end_station_id\n\xff\xfeA1,A1\n")
    output = tmp_path / "map.html"
    code = main([
        "--stations", str(stations_path), "--trips", str(trips),
        "--output", str(output), "--no-lanes",
    ])
    assert code == 0
    assert output.exists()
    assert "trips (" not in output.read_text()


def test_main_rejects_time_filter_without_timestamps(sources, tmp_path):
    stations_path, _ = sources
    trips = tmp_path / "untimed.csv"
    trips.write_text("start_station_id,end_station_id\nA1,A2\n")
    output = tmp_path / "map.html"
    code = main([
        "--stations", str(stations_path), "--trips", str(trips),
        "--output", str(output), "--no-lanes", "--time", "480",
    ])
    assert code == 2
    assert not output.exists()
