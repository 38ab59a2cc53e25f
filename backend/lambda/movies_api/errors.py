"""errors.py — Error taxonomy for the movies write path.

Every error carries the HTTP status it surfaces as and the machine-readable
code used in the response error envelope.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "AuthorizationDenied",
    "IntegrationTimeout",
    "InternalError",
    "MoviesApiError",
    "RouteNotFound",
    "StorageError",
    "TopologyError",
    "TransportError",
    "ValidationError",
]


class MoviesApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    # Whether the failure belongs in the access log's integration error field.
    integration_error = False

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class RouteNotFound(MoviesApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, method: str, path: str) -> None:
        super().__init__(f"Unsupported route: {method} {path}", details={"method": method, "path": path})
        self.method = method
        self.path = path


class ValidationError(MoviesApiError):
    status_code = 400
    code = "INVALID_INPUT"


class StorageError(MoviesApiError):
    status_code = 502
    code = "STORAGE_ERROR"
    integration_error = True


class IntegrationTimeout(MoviesApiError):
    status_code = 504
    code = "TIMEOUT"
    integration_error = True


class InternalError(MoviesApiError):
    status_code = 500
    code = "INTERNAL_ERROR"
    integration_error = True


class AuthorizationDenied(MoviesApiError):
    """Raised when the execution context reaches outside its capability set.

    Clients only ever see an integration failure; the detail stays in logs.
    """

    status_code = 502
    code = "FORBIDDEN"
    integration_error = True

    def __init__(self, action: str, resource: str) -> None:
        super().__init__(
            f"Action {action} on {resource} is not granted to this execution context",
            details={"action": action, "resource": resource},
        )
        self.action = action
        self.resource = resource


class TransportError(MoviesApiError):
    status_code = 421
    code = "TRANSPORT_REJECTED"


class TopologyError(MoviesApiError):
    """The service description violates a structural constraint."""

    code = "INVALID_TOPOLOGY"
