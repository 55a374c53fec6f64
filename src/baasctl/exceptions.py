"""Exception hierarchy for baasctl.

All exceptions inherit from :class:`BaasctlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`baasctl.exit_codes`.
The top-level error handler in :func:`baasctl.app.main` catches
``BaasctlError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    BaasctlError (exit 1)
    +-- InvalidUsageError            (exit 2)
    +-- AuthError                    (exit 3)
    +-- NotFoundError                (exit 4)
    +-- ServerError                  (exit 5)
    +-- ConnectionError_             (exit 6)
    +-- ArchiveError                 (exit 8)
    +-- PullError                    (exit 9)
    +-- PullCancelled                (exit 130)
    +-- RecordValidationError        (exit 1)
    +-- ConfigError                  (exit 1)
        +-- ProjectNotInitializedError
"""

from __future__ import annotations

from baasctl.exit_codes import (
    EXIT_ARCHIVE_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PARTIAL_FAILURE,
    EXIT_SERVER_ERROR,
)


class BaasctlError(Exception):
    """Base exception for all baasctl errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`baasctl.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(BaasctlError):
    """Raised for invalid CLI arguments, or when a prompt is needed but input is disabled."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(BaasctlError):
    """Raised when the API rejects the credentials (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(BaasctlError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(BaasctlError):
    """Raised when the API returns an HTTP 5xx error, or an unmapped 4xx."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(BaasctlError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ArchiveError(BaasctlError):
    """Raised when a downloaded deployment archive cannot be opened or extracted."""

    exit_code = EXIT_ARCHIVE_ERROR


class PullError(BaasctlError):
    """Raised at the end of a ``--keep-going`` pull when some resources failed.

    Args:
        message: Summary line printed to stderr.
        failures: ``(resource_id, reason)`` pairs for every failed resource.
    """

    exit_code = EXIT_PARTIAL_FAILURE

    def __init__(self, message: str, failures: list[tuple[str, str]] | None = None):
        super().__init__(message)
        self.failures = failures or []


class PullCancelled(BaasctlError):
    """Raised between pull stages once cancellation has been requested."""

    exit_code = EXIT_CANCELLED


class RecordValidationError(BaasctlError):
    """Raised when a fetched resource does not fit its typed record (e.g. no ``$id``)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConfigError(BaasctlError):
    """Raised for configuration problems (invalid JSON, unwritable files, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class ProjectNotInitializedError(ConfigError):
    """Raised when the project-local config has no project id to pull against."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "Project configuration not found. Run 'baasctl init --project-id <id>' first."
        )
