"""
Custom error classes for Sales Pulse.
Structured error handling with error codes across all modules.

Hierarchy:
    PulseError
    ├── APIError
    │   └── MondayAPIError
    ├── DataError
    │   ├── ConfigError
    │   └── RecordFetchError
    ├── SettingsBackendError
    └── EnrichmentError
"""


class PulseError(Exception):
    """Base exception for all Sales Pulse errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- API Errors ---

class APIError(PulseError):
    """Base class for external API errors."""

    def __init__(self, message: str, code: str = "API_ERROR",
                 status_code: int = None, url: str = None, **kwargs):
        self.status_code = status_code
        self.url = url
        details = {"status_code": status_code, "url": url, **kwargs}
        super().__init__(message, code=code, details=details)


class MondayAPIError(APIError):
    """Monday.com GraphQL call failed (transport, HTTP status or errors list)."""

    def __init__(self, message: str, status_code: int = None, errors: list = None):
        super().__init__(
            message, code="MONDAY_ERROR", status_code=status_code,
            url="api.monday.com/v2", errors=errors or [],
        )


# --- Data Errors ---

class DataError(PulseError):
    """Base class for data processing errors."""
    pass


class ConfigError(DataError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, setting: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"setting": setting},
        )


class RecordFetchError(DataError):
    """Deal records could not be fetched by any strategy."""

    def __init__(self, message: str, attempts: list = None):
        super().__init__(
            message, code="RECORD_FETCH_FAILED",
            details={"attempts": attempts or []},
        )


# --- Degradable Errors ---

class SettingsBackendError(PulseError):
    """Settings persistence backend failed."""

    def __init__(self, message: str, backend: str = None):
        super().__init__(
            message, code="SETTINGS_BACKEND", details={"backend": backend},
        )


class EnrichmentError(PulseError):
    """News copy could not be generated."""

    def __init__(self, message: str, provider: str = None):
        super().__init__(
            message, code="ENRICHMENT_FAILED", details={"provider": provider},
        )
