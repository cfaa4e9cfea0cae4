from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    INVALID_LOCATION = "invalid_location"
    ROUTE_NOT_FOUND = "route_not_found"
    NO_CHARGERS_FOUND = "no_chargers_found"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


class TripPlannerError(Exception):
    """Raised for every trip planning failure; ``code`` tells the kinds apart."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class StationDirectoryError(Exception):
    """Raised when the charging-station directory cannot be queried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
