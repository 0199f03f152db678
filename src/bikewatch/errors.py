class BikeWatchError(Exception):
    """Base class for every error raised by the traffic map pipeline."""


class LoadError(BikeWatchError):
    """Raised when a data source is unreachable or malformed."""


class ResolutionError(BikeWatchError):
    """Raised when a trip endpoint cannot be resolved to a canonical station id."""

    def __init__(self, raw_id):
        super().__init__(f"Unknown station id {raw_id!r}")
        self.raw_id = raw_id


class CoordinateError(BikeWatchError):
    """Raised when a station carries non-numeric coordinates."""


class TimeFilterError(BikeWatchError, ValueError):
    """Raised when an active time filter cannot be applied to the trips."""
