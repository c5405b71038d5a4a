"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~offcache.exceptions.OffcacheError` subclass.
Shell wrappers and CI scripts can inspect the exit code to tell a missing
partition from an unreachable origin without parsing stderr.

Example::

    $ offcache caches show dagaz-cache-v0
    $ echo $?
    4   # EXIT_NOT_FOUND -- no such partition
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_NOT_FOUND = 4
"""The requested partition or entry does not exist."""

EXIT_NETWORK_ERROR = 6
"""A network-level error occurred (DNS failure, connection refused, offline)."""

EXIT_STORAGE_ERROR = 8
"""The on-disk cache storage could not be read or written."""
