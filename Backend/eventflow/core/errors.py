"""
Error taxonomy for the API.

Every handler raises one of these; the exception handlers registered in
``core.responses`` turn them into ``{"error": message}`` bodies. The message
is shown to the client unless the class sets ``expose = False``
(``Internal``), in which case it goes to the log only.
"""

from typing import Optional


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"
    expose: bool = True

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Unauthorised"


class NotFound(ApiError):
    """
    Missing planner, event or child resource.

    Ownership failures raise this too, so a caller cannot tell "does not
    exist" from "belongs to someone else".
    """

    status_code = 404

    def __init__(self, resource: str, message: Optional[str] = None):
        self.resource = resource
        super().__init__(message or f"{resource.capitalize()} not found")


class InvalidInput(ApiError):
    status_code = 400
    default_message = "Invalid input"


class Conflict(ApiError):
    status_code = 409
    default_message = "Already exists"


class Unprocessable(ApiError):
    status_code = 422
    default_message = "Unprocessable input"


class UpstreamFailure(ApiError):
    status_code = 502
    default_message = "Upstream provider rejected the request"


class Internal(ApiError):
    """Server-side failure. The message is logged; the client sees a generic one."""

    status_code = 500
    expose = False


class OperationFailed(Internal):
    """A 500 whose message is written for the client (e.g. "please try again")."""

    expose = True
