"""Error classes for the API PII analyser.

This module provides:
- ApiPiiError: Base exception class for all analyser errors
- ApiPiiConfigError: Invalid service or store configuration
- PatternConfigError: Pattern document cannot be read, parsed or validated
- TrafficSourceError: Traffic capture (HAR file, log message) cannot be decoded
- TrafficStoreError, RecordNotFoundError, ReportNotFoundError: Persistence exceptions
"""


class ApiPiiError(Exception):
    """Base exception for all API PII analyser errors."""

    pass


class ApiPiiConfigError(ApiPiiError):
    """Raised when service or store configuration is invalid."""

    pass


class PatternConfigError(ApiPiiError):
    """Raised when the detection pattern document cannot be loaded.

    The detector is unusable without its patterns, so this error is fatal
    for service start-up.
    """

    pass


class TrafficSourceError(ApiPiiError):
    """Raised when a traffic capture cannot be read or decoded."""

    pass


class TrafficStoreError(ApiPiiError):
    """Base exception for persistence related errors."""

    pass


class RecordNotFoundError(TrafficStoreError):
    """Raised when a stored traffic record does not exist."""

    pass


class ReportNotFoundError(TrafficStoreError):
    """Raised when no compliance report has been saved yet."""

    pass
