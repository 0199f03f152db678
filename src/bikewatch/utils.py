import io
import json
import logging
from pathlib import Path
from urllib.parse import urlparse

import pandas as pd
import requests

from .constants import COL_END_ID, COL_ENDED_AT, COL_START_ID, COL_STARTED_AT, REQUEST_TIMEOUT
from .errors import LoadError

LOG = logging.getLogger(__name__)


def is_url(source) -> bool:
    return urlparse(str(source)).scheme in ("http", "https")


def read_json(source, timeout: float = REQUEST_TIMEOUT):
    """
    Reads a JSON document from a URL or a local path in a single attempt.

    Args:
        source (str | Path): HTTP(S) URL or filesystem path of the document.
        timeout (float, optional): Request timeout in seconds for URLs.

    Returns:
        The decoded JSON document.

    Raises:
        LoadError: If the source is unreachable or does not hold valid JSON.
    """
    if is_url(source):
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
            document = response.json()
        except requests.RequestException as e:
            raise LoadError(f"Could not fetch {source}: {e}") from e
        except ValueError as e:
            raise LoadError(f"Malformed JSON at {source}: {e}") from e
    else:
        try:
            with open(Path(source), encoding="utf-8") as f:
                document = json.load(f)
        except OSError as e:
            raise LoadError(f"Could not read {source}: {e}") from e
        except ValueError as e:
            raise LoadError(f"Malformed JSON in {source}: {e}") from e
    LOG.info(f"Loaded JSON document from {source}")
    return document


def load_trips(source, timeout: float = REQUEST_TIMEOUT) -> pd.DataFrame:
    """
    Loads the trip table from a CSV file or URL. Station id columns are kept as text
    so short codes and canonical ids survive untouched; `started_at` / `ended_at`
    are parsed to timestamps when present.

    Args:
        source (str | Path): Path or URL of the trips CSV.
        timeout (float, optional): Request timeout in seconds for URLs.

    Returns:
        pd.DataFrame: One row per trip.

    Raises:
        LoadError: If the file cannot be read, cannot be parsed or lacks the station id columns.
    """
    if is_url(source):
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise LoadError(f"Could not fetch {source}: {e}") from e
        buffer = io.StringIO(response.text)
    else:
        buffer = source

    # ParserError, EmptyDataError and UnicodeDecodeError are all ValueErrors
    try:
        df = pd.read_csv(buffer, dtype={COL_START_ID: str, COL_END_ID: str}, low_memory=False)
    except (OSError, ValueError) as e:
        raise LoadError(f"Could not load trips from {source}: {e}") from e

    missing = [c for c in (COL_START_ID, COL_END_ID) if c not in df.columns]
    if missing:
        raise LoadError(f"Trip data at {source} is missing columns: {missing}")

    for col in (COL_STARTED_AT, COL_ENDED_AT):
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce")
    LOG.info(f"Loaded {len(df)} trips from {source}")
    return df
