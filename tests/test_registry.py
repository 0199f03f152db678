import json
import logging

import pandas as pd
import pytest

from bikewatch.errors import LoadError, ResolutionError
from bikewatch.registry import StationIdMap, build_station_id_map, load_stations, normalise_id


def _write_feed(tmp_path, stations, wrap=True):
    path = tmp_path / "stations.json"
    document = {"data": {"stations": stations}} if wrap else stations
    path.write_text(json.dumps(document))
    return path


def _stations(*records) -> pd.DataFrame:
    return pd.DataFrame.from_records(records).set_index("station_id")


def test_normalise_id():
    assert normalise_id("  A32019 ") == "A32019"
    assert normalise_id(67) == "67"
    assert normalise_id("") is None
    assert normalise_id("   ") is None
    assert normalise_id(None) is None
    assert normalise_id(float("nan")) is None


def test_load_stations_indexes_by_canonical_id(tmp_path):
    path = _write_feed(tmp_path, [
        {"station_id": 1, "short_name": "A1", "name": "MIT", "lat": 42.36, "lon": -71.09},
        {"station_id": "2", "short_name": " A2 ", "lat": "42.37", "lon": "-71.10"},
    ])
    stations = load_stations(path)
    assert list(stations.index) == ["1", "2"]
    assert stations.loc["2", "short_name"] == "A2"
    assert stations.loc["1", "name"] == "MIT"


def test_load_stations_accepts_bare_array(tmp_path):
    path = _write_feed(tmp_path, [{"station_id": "9", "lat": 1, "lon": 2}], wrap=False)
    stations = load_stations(path)
    assert list(stations.index) == ["9"]
    assert pd.isna(stations.loc["9", "short_name"])


def test_load_stations_missing_array(tmp_path):
    path = tmp_path / "stations.json"
    path.write_text(json.dumps({"data": {}}))
    with pytest.raises(LoadError):
        load_stations(path)


def test_load_stations_record_without_id(tmp_path):
    path = _write_feed(tmp_path, [{"station_id": "1"}, {"short_name": "A2"}])
    with pytest.raises(LoadError):
        load_stations(path)


def test_load_stations_unreachable(tmp_path):
    with pytest.raises(LoadError):
        load_stations(tmp_path / "missing.json")


def test_load_stations_uses_injected_logger(tmp_path, caplog):
    path = _write_feed(tmp_path, [{"station_id": "1", "short_name": "A1"}])
    logger = logging.getLogger("bikewatch.test.registry")
    with caplog.at_level(logging.INFO, logger="bikewatch.test.registry"):
        load_stations(path, logger=logger)
    assert any(r.name == "bikewatch.test.registry" for r in caplog.records)


def test_build_station_id_map_skips_stations_without_short_code():
    stations = _stations(
        {"station_id": "1", "short_name": "A1"},
        {"station_id": "2", "short_name": None},
        {"station_id": "3", "short_name": ""},
    )
    id_map = build_station_id_map(stations)
    assert id_map.short_codes == {"A1": "1"}
    assert len(id_map) == 1


def test_duplicate_short_code_last_write_wins_with_warning(caplog):
    stations = _stations(
        {"station_id": "1", "short_name": "A1"},
        {"station_id": "2", "short_name": "A1"},
    )
    with caplog.at_level(logging.WARNING):
        id_map = build_station_id_map(stations)
    assert id_map.resolve("A1") == "2"
    assert "Duplicate short code A1" in caplog.text


def test_duplicate_short_code_first_write_wins():
    stations = _stations(
        {"station_id": "1", "short_name": "A1"},
        {"station_id": "2", "short_name": "A1"},
    )
    id_map = build_station_id_map(stations, on_duplicate="first")
    assert id_map.resolve("A1") == "1"


def test_duplicate_short_code_raise():
    stations = _stations(
        {"station_id": "1", "short_name": "A1"},
        {"station_id": "2", "short_name": "A1"},
    )
    with pytest.raises(LoadError):
        build_station_id_map(stations, on_duplicate="raise")


def test_unknown_duplicate_policy():
    with pytest.raises(ValueError):
        build_station_id_map(_stations({"station_id": "1", "short_name": "A1"}), on_duplicate="ignore")


def test_resolve_short_code_and_canonical_id():
    id_map = StationIdMap({"A1": "1"}, canonical_ids=["1", "2"])
    assert id_map.resolve(" A1 ") == "1"
    assert id_map.resolve("2") == "2"
    assert id_map.resolve(2) == "2"
    assert "A1" in id_map
    assert "Z9" not in id_map


@pytest.mark.parametrize("raw", ["Z9", "", "  ", None, float("nan")])
def test_resolve_unknown_raises(raw):
    id_map = StationIdMap({"A1": "1"}, canonical_ids=["1"])
    with pytest.raises(ResolutionError):
        id_map.resolve(raw)


@pytest.mark.parametrize("records", [[1, 2], ["1", {"station_id": "2"}], [None]])
def test_load_stations_rejects_non_object_records(tmp_path, records):
    path = _write_feed(tmp_path, records)
    with pytest.raises(LoadError):
        load_stations(path)
