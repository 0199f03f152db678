import logging
from typing import Dict, Iterable, Optional

import pandas as pd

from .constants import COL_SHORT_NAME, COL_STATION_ID
from .errors import LoadError, ResolutionError
from .utils import read_json

LOG = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("warn", "first", "raise")


def normalise_id(raw) -> Optional[str]:
    """Coerces a raw identifier to a stripped string, or None when it is missing or blank."""
    if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
        return None
    text = str(raw).strip()
    return text or None


class StationIdMap:
    """
    Lookup from short alphanumeric codes to canonical station ids.

    Canonical ids resolve to themselves, so trip rows may use either form.
    """

    def __init__(self, short_codes: Optional[Dict[str, str]] = None, canonical_ids: Iterable[str] = ()):
        self.short_codes = dict(short_codes or {})
        self.canonical_ids = set(canonical_ids)

    def __len__(self):
        return len(self.short_codes)

    def __contains__(self, raw):
        return self.get(raw) is not None

    def get(self, raw) -> Optional[str]:
        key = normalise_id(raw)
        if key is None:
            return None
        if key in self.short_codes:
            return self.short_codes[key]
        if key in self.canonical_ids:
            return key
        return None

    def resolve(self, raw) -> str:
        """
        Resolves a raw trip endpoint to its canonical station id.

        Raises:
            ResolutionError: If the identifier is blank or unknown.
        """
        station_id = self.get(raw)
        if station_id is None:
            raise ResolutionError(raw)
        return station_id


def _extract_station_records(document) -> list:
    records = None
    if isinstance(document, list):
        records = document
    elif isinstance(document, dict):
        data = document.get("data", document)
        if isinstance(data, dict) and isinstance(data.get("stations"), list):
            records = data["stations"]
    if records is None:
        raise LoadError("Station feed has no 'data.stations' array")
    bad = [r for r in records if not isinstance(r, dict)]
    if bad:
        raise LoadError(f"Station feed has {len(bad)} records that are not objects, e.g. {bad[0]!r}")
    return records


def load_stations(source, logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """
    Loads station records from a station feed document (GBFS `station_information` layout),
    normalises the identifier columns to strings and indexes the frame by canonical station id.

    Args:
        source (str | Path): URL or path of the JSON feed.
        logger (logging.Logger, optional): Logger to report through. Defaults to the module logger.

    Returns:
        pd.DataFrame: Station records indexed by `station_id`, keeping every field of the feed.

    Raises:
        LoadError: If the feed is unreachable, malformed or a record lacks `station_id`.
    """
    log = logger or LOG
    records = _extract_station_records(read_json(source))
    stations = pd.DataFrame.from_records(records)
    if stations.empty:
        log.warning(f"Station feed at {source} is empty")
        return pd.DataFrame(columns=[COL_SHORT_NAME]).rename_axis(COL_STATION_ID)
    if COL_STATION_ID not in stations.columns:
        raise LoadError(f"Station feed at {source} has no '{COL_STATION_ID}' field")

    stations[COL_STATION_ID] = stations[COL_STATION_ID].map(normalise_id)
    if stations[COL_STATION_ID].isna().any():
        raise LoadError(f"Station feed at {source} has records without '{COL_STATION_ID}'")
    if COL_SHORT_NAME not in stations.columns:
        stations[COL_SHORT_NAME] = None
    stations[COL_SHORT_NAME] = stations[COL_SHORT_NAME].map(normalise_id)

    stations = stations.set_index(COL_STATION_ID)
    log.info(f"Loaded {len(stations)} stations from {source}")
    return stations


def build_station_id_map(stations: pd.DataFrame, on_duplicate: str = "warn",
                         logger: Optional[logging.Logger] = None) -> StationIdMap:
    """
    Builds the short code to canonical id lookup from the stations declaring a short code.

    Args:
        stations (pd.DataFrame): Station records indexed by `station_id`.
        on_duplicate (str, optional): What to do when two stations share a short code:
            "warn" keeps the last one and logs a warning, "first" keeps the first one,
            "raise" raises LoadError.
        logger (logging.Logger, optional): Logger to report through.

    Returns:
        StationIdMap: The lookup, also aware of every canonical id in `stations`.
    """
    if on_duplicate not in DUPLICATE_POLICIES:
        raise ValueError(f"on_duplicate must be one of {DUPLICATE_POLICIES}, got {on_duplicate!r}")
    log = logger or LOG

    short_codes: Dict[str, str] = {}
    column = stations[COL_SHORT_NAME] if COL_SHORT_NAME in stations.columns else pd.Series(dtype=object)
    for station_id, raw_code in column.items():
        code = normalise_id(raw_code)
        if code is None:
            continue
        if code in short_codes and short_codes[code] != station_id:
            if on_duplicate == "raise":
                raise LoadError(f"Short code {code!r} is declared by stations {short_codes[code]} and {station_id}")
            if on_duplicate == "first":
                log.warning(f"Duplicate short code {code}: keeping station {short_codes[code]}, "
                            f"ignoring {station_id}")
                continue
            log.warning(f"Duplicate short code {code}: station {station_id} replaces {short_codes[code]}")
        short_codes[code] = str(station_id)

    id_map = StationIdMap(short_codes, canonical_ids=(str(i) for i in stations.index))
    log.info(f"Mapped {len(id_map)} short codes onto {len(stations)} stations")
    return id_map
