"""Custom exceptions for GEO MIST."""


class GeoMistError(Exception):
    """Base GEO MIST error."""

    status_code = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
        self.message = message


class ValidationError(GeoMistError):
    """Raised when a client payload misses a required field."""

    status_code = 400


class NotFoundError(GeoMistError):
    """Raised when a referenced record does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class MonitoringError(GeoMistError):
    """Raised for monitoring/streaming errors."""
