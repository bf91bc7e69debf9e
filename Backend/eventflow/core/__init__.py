"""
Core module - configuration, database, errors, logging and response formatting.
"""
from .config import Settings, get_settings
from .db import Base, Database, get_database, get_session
from .errors import (
    ApiError,
    Conflict,
    Internal,
    InvalidInput,
    NotFound,
    OperationFailed,
    Unauthenticated,
    Unprocessable,
    UpstreamFailure,
)
from .responses import register_exception_handlers, success_response, error_response

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "Database",
    "get_database",
    "get_session",
    # Errors
    "ApiError",
    "Conflict",
    "Internal",
    "InvalidInput",
    "NotFound",
    "OperationFailed",
    "Unauthenticated",
    "Unprocessable",
    "UpstreamFailure",
    # Responses
    "register_exception_handlers",
    "success_response",
    "error_response",
]
