"""Custom exception hierarchy for forge-cli.

All exceptions that cross layer boundaries must inherit from
:class:`ForgeError`.  Raw ``httpx`` and ``subprocess`` exceptions must
never propagate beyond the infrastructure layer; they are caught there
and re-raised as a typed subclass defined here.

Cancellation is deliberately *not* part of this hierarchy:
``asyncio.CancelledError`` and ``TimeoutError`` always propagate as-is.

Hierarchy
---------
ForgeError
├── APIError
│   ├── AuthenticationError
│   └── TransientAPIError
├── TransportFailure
├── RetriesExhaustedError
├── MissingDataError
├── ResponseDecodeError
├── ValidationError
│   └── MissingIDError
├── NotLoggedInError
├── AlreadyExistsError
├── SelectionCanceledError
│   └── CreationCanceledError
├── InputCanceledError
├── ConfigError
│   └── ConfigSaveError
├── RepoNotFoundError
└── DependencyError
"""

from __future__ import annotations


class ForgeError(Exception):
    """Base exception for all forge-cli errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Remote API ------------------------------------------------------------

class APIError(ForgeError):
    """Raised when the remote service answers with a non-success status.

    Errors of this exact class are *terminal*: the transport does not
    retry them.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code: int | None = status_code


class AuthenticationError(APIError):
    """Raised on HTTP 401/403.  Never retried, always aborts the command."""


class TransientAPIError(APIError):
    """Raised on rate-limit and gateway failures (429, 5xx)."""


class TransportFailure(ForgeError):
    """Raised when the request never produced an HTTP response."""

    def __init__(
        self,
        message: str,
        *,
        transient: bool = False,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.transient: bool = transient


class RetriesExhaustedError(ForgeError):
    """Raised after every attempt failed with a transient error."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"Failed after {attempts} retries: {last_error}")
        self.attempts: int = attempts
        self.last_error: Exception = last_error


class MissingDataError(ForgeError):
    """The response envelope carried no ``data`` field.

    Callers may treat this as "nothing found" rather than as a failure.
    """


class ResponseDecodeError(ForgeError):
    """Raised when a response body cannot be decoded into the expected type."""


# --- Validation ------------------------------------------------------------

class ValidationError(ForgeError):
    """Raised for invalid local input, before any network call is made."""


class MissingIDError(ValidationError):
    """Raised when a required identifier is empty."""


# --- Command state resolution ------------------------------------------------

class NotLoggedInError(ForgeError):
    """Raised when a command requires a valid login and none is present."""


class AlreadyExistsError(ForgeError):
    """Raised when an entity that must not exist is already selected."""


class SelectionCanceledError(ForgeError):
    """Raised when the user declines to pick an organization or project."""


class CreationCanceledError(SelectionCanceledError):
    """Raised when the user declines to create an organization or project."""


class InputCanceledError(ForgeError):
    """Raised when an interactive prompt is aborted."""


# --- Local environment -----------------------------------------------------

class ConfigError(ForgeError):
    """Raised when the local config file cannot be read."""


class ConfigSaveError(ConfigError):
    """Raised when the local config file cannot be written."""


class RepoNotFoundError(ForgeError):
    """Raised when the working directory is not a git checkout with a remote.

    Whatever was discovered before the failure is kept on the exception.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        url: str = "",
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.path: str = path
        self.url: str = url


class DependencyError(ForgeError):
    """Raised when a required runtime dependency is not available."""
