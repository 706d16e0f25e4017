"""Exception hierarchy for dispatch and record operations.

Each exception carries the HTTP status it maps to and a stable ``error_kind``
string; ``main`` installs a single handler that renders them as
``{"error": ..., "details": ...}``.
"""


class DispatchError(Exception):
    """Base exception for all expected service failures."""

    status_code: int = 500
    error_kind: str = "Error"

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"error": self.message, "error_kind": self.error_kind}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequestError(DispatchError):
    """Request body is missing required fields or is not valid JSON."""

    status_code = 400
    error_kind = "InvalidRequest"


class MissingCoordinatesError(DispatchError):
    status_code = 400
    error_kind = "MissingCoordinates"


class InvalidCoordinateFormatError(DispatchError):
    status_code = 400
    error_kind = "InvalidCoordinateFormat"


class RecordNotFoundError(DispatchError):
    status_code = 404
    error_kind = "NotFound"


class IncidentNotFoundError(RecordNotFoundError):
    error_kind = "IncidentNotFound"


class ConflictError(DispatchError):
    status_code = 409
    error_kind = "Conflict"


class IncidentNotAssignableError(ConflictError):
    """Incident is past ``reported`` or already holds an active assignment."""

    error_kind = "IncidentNotAssignable"


class ResponderUnavailableError(ConflictError):
    error_kind = "ResponderUnavailable"


class InvalidTransitionError(ConflictError):
    error_kind = "InvalidTransition"


class StorageUnavailableError(DispatchError):
    """Underlying read or write failed after the allowed retries."""

    status_code = 500
    error_kind = "StorageUnavailable"
