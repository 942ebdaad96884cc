"""Failure kinds raised by the storage contract and the service layer.

The HTTP layer maps each kind to a status code; see
``codetime.middleware.error_handler``.
"""

from __future__ import annotations


class CodetimeError(Exception):
    """Base class for every failure surfaced to the transport layer."""

    detail = "Request failed"


class UnknownApiToken(CodetimeError):
    detail = "Unknown API token"


class InvalidCredentials(CodetimeError):
    detail = "Invalid credentials"


class ExpiredRefreshToken(CodetimeError):
    detail = "Refresh token is expired or unknown"


class MissingRefreshTokenCookie(CodetimeError):
    detail = "Missing refresh token cookie"


class UsernameExists(CodetimeError):
    """Registration attempted with a taken username."""

    detail = "Username already exists"

    def __init__(self, username: str) -> None:
        super().__init__(f"Username already exists: {username}")
        self.username = username


class RegistrationFailed(CodetimeError):
    """The credential could not be prepared for storage."""

    detail = "Registration failed"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Registration failed: {reason}")
        self.reason = reason


class InvalidRelation(CodetimeError):
    """The resolved user does not own the referenced project."""

    detail = "Project does not belong to the user"

    def __init__(self, username: str, project: str) -> None:
        super().__init__(f"User {username} does not own project {project}")
        self.username = username
        self.project = project


class InvalidTagRelation(CodetimeError):
    """The resolved user does not own the referenced tag."""

    detail = "Tag does not belong to the user"

    def __init__(self, username: str, tag: str) -> None:
        super().__init__(f"User {username} does not own tag {tag}")
        self.username = username
        self.tag = tag


class ImportInProgress(CodetimeError):
    """An import for this user is already queued or running."""

    detail = "An import is already in progress"

    def __init__(self, username: str) -> None:
        super().__init__(f"Import already in progress for {username}")
        self.username = username


class PersistenceError(CodetimeError):
    """Wraps any storage failure: constraint violations, timeouts, lost connections."""

    detail = "Internal server error"


class OperationError(CodetimeError):
    """An internal invariant did not hold."""

    detail = "Internal server error"
