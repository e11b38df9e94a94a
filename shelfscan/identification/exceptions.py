"""
Exceptions for the metadata resolution pipeline.
"""


class ShelfScanError(Exception):
    """Base class for pipeline errors."""


class InvalidCandidateError(ShelfScanError):
    """A candidate or batch was rejected before any network activity."""


class SourceError(ShelfScanError):
    """A bibliographic source could not produce a usable answer."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class TransientSourceError(SourceError):
    """Timeout, transport failure, HTTP 5xx or 429."""


class MalformedResponseError(TransientSourceError):
    """Upstream payload could not be decoded into JSON."""

    def __init__(self, source: str, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(source, message)


class RetryExhaustedError(SourceError):
    """Attempt ceiling reached without success."""

    def __init__(self, source: str, attempts: int, last_error: Exception = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(source, f"gave up after {attempts} attempts ({last_error})")


class UnknownLocationError(ShelfScanError):
    """No catalogued location has the given id."""

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Unknown location: {location_id}")
