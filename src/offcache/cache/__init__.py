"""Disk-based cache partitions for offcache.

This package provides :class:`CachePartition`, one named store of
request -> response pairs backed by :mod:`diskcache`, and
:class:`CacheStorage`, the registry that opens, lists and deletes
partitions under a single root directory.

The storage is consumed by :class:`~offcache.manager.OfflineCacheManager`,
which keeps a versioned app-shell partition and a long-lived font
partition.
"""

from offcache.cache.partition import CachePartition
from offcache.cache.storage import CacheStorage, validate_partition_name

__all__ = ["CachePartition", "CacheStorage", "validate_partition_name"]
