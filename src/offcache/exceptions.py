"""Exception hierarchy for offcache.

All exceptions inherit from :class:`OffcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`offcache.exit_codes`.
The top-level error handler in :func:`offcache.app.main` catches
``OffcacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

On the request path the manager never lets :class:`CacheStorageError` or
:class:`NetworkError` escape a network-first interception; they are caught
and turned into the next fallback tier.

Subclass hierarchy::

    OffcacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- NotFoundError       (exit 4)
    +-- NetworkError        (exit 6)
    +-- CacheStorageError   (exit 8)
    +-- ConfigError         (exit 1)
"""

from offcache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NETWORK_ERROR,
    EXIT_NOT_FOUND,
    EXIT_STORAGE_ERROR,
)


class OffcacheError(Exception):
    """Base exception for all offcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`offcache.exit_codes`. The entry point catches
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


class InvalidUsageError(OffcacheError):
    """Raised for invalid CLI arguments or malformed partition names."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(OffcacheError):
    """Raised when a named cache partition does not exist."""

    exit_code = EXIT_NOT_FOUND


class NetworkError(OffcacheError):
    """Raised on network-level failures (DNS resolution, connection refused, offline).

    Font requests surface this to the caller on a cache miss; network-first
    requests catch it and fall back to the shell partition.
    """

    exit_code = EXIT_NETWORK_ERROR


class CacheStorageError(OffcacheError):
    """Raised when a cache partition cannot be opened, read, or written."""

    exit_code = EXIT_STORAGE_ERROR


class ConfigError(OffcacheError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
