"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~baasctl.exceptions.BaasctlError` subclass.
Shell wrappers and CI jobs can inspect the exit code to tell a rejected API
key apart from a broken deployment archive without parsing stderr.

Example::

    $ baasctl pull functions --force
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the API key was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or needs input that was disabled."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_ARCHIVE_ERROR = 8
"""A deployment archive could not be read or extracted."""

EXIT_PARTIAL_FAILURE = 9
"""A pull finished, but one or more resources failed (``--keep-going``)."""

EXIT_CANCELLED = 130
"""The run was interrupted (SIGINT)."""
