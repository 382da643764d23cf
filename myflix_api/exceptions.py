"""Domain-specific exceptions for the myFlix API."""

from typing import Any


class MyFlixError(Exception):
    """Base exception for all myFlix API errors."""


class AuthenticationError(MyFlixError):
    """Missing, malformed, invalid or expired bearer credential."""


class AuthorizationError(MyFlixError):
    """Authenticated principal may not act on the addressed resource."""


class ValidationError(MyFlixError):
    """One or more field rules failed for a request payload."""

    def __init__(self, violations: list[dict[str, Any]]) -> None:
        self.violations = violations
        super().__init__("; ".join(v["msg"] for v in violations))


class NotFoundError(MyFlixError):
    """Addressed user, movie, genre or director does not exist."""


class ConflictError(MyFlixError):
    """Username already taken."""


class RepositoryError(MyFlixError):
    """Error raised by the underlying storage engine."""


class ConfigurationError(MyFlixError):
    """Error related to configuration issues."""
