"""
Custom exception hierarchy for upstream sync and analytics operations.

Exception Hierarchy:
    UpstreamError (base)
    ├── UpstreamConnectionError  - Network/timeout issues (recoverable)
    ├── UpstreamAPIError         - API returned error response
    └── UpstreamDataError        - Invalid response structure

    ValidationError              - Input validation failed
    SyncAlreadyRunningError      - A sync run is already in progress

ConfigurationError lives in replenish.config next to the settings it guards.
"""


class UpstreamError(Exception):
    """Base exception for all upstream commerce API errors."""

    def __init__(self, message: str, details: str = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class UpstreamConnectionError(UpstreamError):
    """
    Network-related errors (timeout, connection refused, etc.).

    These are typically recoverable with retry.
    """

    def __init__(self, message: str, details: str = None, retry_after: int = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class UpstreamAPIError(UpstreamError):
    """API returned a non-success HTTP status."""

    def __init__(self, message: str, details: str = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code


class UpstreamDataError(UpstreamError):
    """
    API response has unexpected structure.

    The upstream returned something other than a list of records
    (or a {"data": [...]} envelope around one).
    """

    def __init__(self, message: str, details: str = None, expected: str = None, got: str = None):
        super().__init__(message, details)
        self.expected = expected
        self.got = got


class ValidationError(Exception):
    """
    Input validation failed.

    Used for validating caller input (date ranges, rates) before processing.
    """

    def __init__(self, field: str, message: str, value: any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"


class SyncAlreadyRunningError(Exception):
    """Raised when a manual sync is requested while a run is in progress."""

    def __init__(self, message: str = "Sync is already running"):
        super().__init__(message)
