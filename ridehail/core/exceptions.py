"""
Domain errors raised by services and rendered by the API exception handler.
"""

from typing import Any, Dict, Optional


class RideHailError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 400
    error = "bad_request"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(RideHailError):
    status_code = 404
    error = "not_found"


class RideNotFoundError(NotFoundError):
    error = "ride_not_found"


class ConflictError(RideHailError):
    status_code = 409
    error = "conflict"


class RideConflictError(ConflictError):
    """The ride changed under the caller, e.g. another driver accepted it first."""

    error = "ride_conflict"


class InvalidTransitionError(ConflictError):
    error = "invalid_transition"


class PermissionDeniedError(RideHailError):
    status_code = 403
    error = "forbidden"


class MapsProviderError(RideHailError):
    status_code = 502
    error = "maps_provider_error"


class ServiceUnavailableError(RideHailError):
    """The database stayed busy after every retry."""

    status_code = 503
    error = "service_unavailable"
