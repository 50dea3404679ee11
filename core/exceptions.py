"""
Domain exceptions shared by services, storage and the API layer.
"""

from typing import Optional, Dict, Any


class ConsentLoggerError(Exception):
    """Base class for consent logger errors."""

    code = "CONSENT_LOGGER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidPayload(ConsentLoggerError):
    """Malformed or missing required input. Nothing was persisted."""

    code = "INVALID_PAYLOAD"


class NotFound(ConsentLoggerError):
    """Requested resource does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} with ID {resource_id} not found",
            details={"resource": resource, "resource_id": resource_id}
        )


class Unauthorized(ConsentLoggerError):
    """Missing or invalid credentials."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(ConsentLoggerError):
    """Authenticated caller lacks the required capability."""

    code = "FORBIDDEN"

    def __init__(self, scope: str):
        super().__init__(
            f"Insufficient permissions. Required scope: {scope}",
            details={"required_scope": scope}
        )


class ScanInProgress(ConsentLoggerError):
    """Another cookie scan currently holds the scan lock."""

    code = "SCAN_IN_PROGRESS"

    def __init__(self, message: str = "A cookie scan is already running"):
        super().__init__(message)


class TransientFetchFailure(ConsentLoggerError):
    """The site fetch of a scan failed. Recovered inside the scan."""

    code = "TRANSIENT_FETCH_FAILURE"


class StorageFailure(ConsentLoggerError):
    """A storage read or write failed."""

    code = "STORAGE_FAILURE"
