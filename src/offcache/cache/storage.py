"""Registry of named cache partitions rooted in one directory.

:class:`CacheStorage` plays the role of the platform's cache storage: it
opens partitions by name, lists the names that exist on disk, and deletes
whole partitions. Partition directories persist across process restarts,
which is what lets a new manager generation find and evict the old one.
"""

from __future__ import annotations

import re
import shutil
import sqlite3
from pathlib import Path
from typing import Optional

import httpx
from diskcache.core import DBNAME

from offcache.cache.partition import CachePartition, RequestLike
from offcache.exceptions import CacheStorageError, InvalidUsageError

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_partition_name(name: str) -> str:
    """Return *name* unchanged if it is usable as a partition directory.

    Raises:
        InvalidUsageError: If the name is empty, starts with a dot or dash,
            or contains characters other than letters, digits, ``.``,
            ``_`` and ``-``.
    """
    if not _NAME_RE.match(name):
        raise InvalidUsageError(f"Invalid cache partition name: {name!r}")
    return name


class CacheStorage:
    """Named partitions stored as subdirectories of ``<root>/partitions``.

    Partition handles are opened lazily and reused. Deleting a partition
    closes its handle first.

    Args:
        root: Storage root, typically :func:`~offcache.config.get_cache_dir`.

    Example::

        storage = CacheStorage(get_cache_dir())
        shell = storage.open("dagaz-cache-v1.4")
        storage.keys()        # ['dagaz-cache-v1.4', 'dagaz-fonts-v1']
        storage.delete("dagaz-cache-v1.3")
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root) / "partitions"
        self._open: dict[str, CachePartition] = {}

    @property
    def root(self) -> Path:
        return self._root

    def open(self, name: str) -> CachePartition:
        """Open (creating if necessary) the partition called *name*."""
        validate_partition_name(name)
        partition = self._open.get(name)
        if partition is not None and not partition.closed and partition.directory.is_dir():
            return partition
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheStorageError(f"Cannot create cache root {self._root}: {exc}") from exc
        partition = CachePartition(name, self._root / name)
        self._open[name] = partition
        return partition

    def has(self, name: str) -> bool:
        """Return ``True`` if a partition called *name* exists on disk."""
        return (self._root / validate_partition_name(name)).is_dir()

    def keys(self) -> list[str]:
        """Return the names of all partitions on disk, sorted.

        Raises:
            CacheStorageError: If the storage root cannot be listed.
        """
        if not self._root.is_dir():
            return []
        try:
            return sorted(p.name for p in self._root.iterdir() if p.is_dir())
        except OSError as exc:
            raise CacheStorageError(f"Cannot list partitions in {self._root}: {exc}") from exc

    def delete(self, name: str) -> bool:
        """Delete the partition called *name*.

        Deleting a partition that is already gone is not an error, so two
        instances cleaning up concurrently do not trip over each other.

        Returns:
            ``True`` if a partition was removed, ``False`` if none existed.

        Raises:
            CacheStorageError: If the directory exists but cannot be removed.
        """
        validate_partition_name(name)
        partition = self._open.pop(name, None)
        if partition is not None:
            partition.close()
        path = self._root / name
        if not path.is_dir():
            return False
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CacheStorageError(f"Cannot delete partition '{name}': {exc}") from exc
        return True

    def match(self, request: RequestLike) -> Optional[httpx.Response]:
        """Look *request* up in every partition, in name order; first hit wins."""
        for name in self.keys():
            if name not in self._open and not (self._root / name / DBNAME).is_file():
                continue
            try:
                hit = self.open(name).match(request)
            except (CacheStorageError, InvalidUsageError):
                continue
            if hit is not None:
                return hit
        return None

    def close(self) -> None:
        """Close every open partition handle."""
        for partition in self._open.values():
            partition.close()
        self._open.clear()

    def __enter__(self) -> CacheStorage:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
