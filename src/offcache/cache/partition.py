"""A single named cache partition of request -> response pairs.

Uses :mod:`diskcache` to persist responses on the filesystem. Each partition
lives in its own directory so that a whole generation can be dropped by
removing that directory (see :meth:`~offcache.cache.storage.CacheStorage.delete`).

Cache keys are SHA-256 hashes of ``METHOD|URL`` with the URL fragment
removed, so a request always resolves to the same entry. Values are plain
dicts (``url``, ``method``, ``status_code``, ``headers``, ``body``,
``response_url``) which round-trip to :class:`httpx.Response`.

Every ``put`` is a single :meth:`diskcache.Cache.set`, which is atomic per
key: a reader sees either the previous entry or the new one, never a torn
write. Concurrent writers to one key are last-write-wins.
"""

from __future__ import annotations

import hashlib
import sqlite3
from pathlib import Path
from typing import Any, Optional, Union

import diskcache
import httpx

from offcache.exceptions import CacheStorageError
from offcache.models import InterceptedRequest

RequestLike = Union[InterceptedRequest, str]

# Dropped on store: the body is kept decoded, so these would no longer describe it.
_HOP_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def _as_request(request: RequestLike) -> InterceptedRequest:
    if isinstance(request, InterceptedRequest):
        return request
    return InterceptedRequest(url=request)


class CachePartition:
    """Disk-backed store for the responses of one named partition.

    Args:
        name: Partition name (e.g. ``dagaz-cache-v1.4``).
        directory: Directory holding the partition's :class:`diskcache.Cache`.

    Example::

        partition = CachePartition("dagaz-fonts-v1", Path("/tmp/p/dagaz-fonts-v1"))
        partition.put("https://dagaz.example/fonts/a.woff2", response)
        hit = partition.match("https://dagaz.example/fonts/a.woff2")
    """

    def __init__(self, name: str, directory: str | Path) -> None:
        self._name = name
        self._directory = Path(directory)
        try:
            self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(self._directory))
        except (OSError, sqlite3.Error) as exc:
            raise CacheStorageError(f"Cannot open cache partition '{name}': {exc}") from exc

    @property
    def name(self) -> str:
        return self._name

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def closed(self) -> bool:
        return self._cache is None

    def match(self, request: RequestLike) -> Optional[httpx.Response]:
        """Look up the stored response for *request*.

        Args:
            request: An :class:`~offcache.models.InterceptedRequest` or a
                bare URL (treated as a ``GET``).

        Returns:
            A fresh :class:`httpx.Response` on a hit, ``None`` on a miss.

        Raises:
            CacheStorageError: If the underlying store cannot be read.
        """
        req = _as_request(request)
        key = self._make_key(req.method, req.cache_url)
        try:
            data = self._require().get(key)
        except (OSError, sqlite3.Error) as exc:
            raise CacheStorageError(f"Cache read failed in '{self._name}': {exc}") from exc
        if data is None:
            return None
        return _deserialise(data)

    def put(self, request: RequestLike, response: httpx.Response) -> None:
        """Store a copy of *response* for *request*, replacing any prior entry.

        The response body must already be read (``response.content``).

        Raises:
            CacheStorageError: If the underlying store cannot be written.
        """
        req = _as_request(request)
        key = self._make_key(req.method, req.cache_url)
        data = _serialise(req, response)
        try:
            self._require().set(key, data)
        except (OSError, sqlite3.Error) as exc:
            raise CacheStorageError(f"Cache write failed in '{self._name}': {exc}") from exc

    def delete(self, request: RequestLike) -> bool:
        """Remove the entry for *request*. Returns ``True`` if one existed."""
        req = _as_request(request)
        key = self._make_key(req.method, req.cache_url)
        try:
            return bool(self._require().delete(key))
        except (OSError, sqlite3.Error) as exc:
            raise CacheStorageError(f"Cache delete failed in '{self._name}': {exc}") from exc

    def keys(self) -> list[str]:
        """Return the request URLs stored in this partition, sorted."""
        cache = self._require()
        urls = []
        for key in cache.iterkeys():
            data = cache.get(key)
            if data is not None:
                urls.append(data["url"])
        return sorted(urls)

    def entries(self) -> list[dict[str, Any]]:
        """Return ``{url, method, status_code, size}`` summaries for every entry."""
        cache = self._require()
        rows = []
        for key in cache.iterkeys():
            data = cache.get(key)
            if data is None:
                continue
            rows.append({
                "url": data["url"],
                "method": data["method"],
                "status_code": data["status_code"],
                "size": len(data["body"]),
            })
        return sorted(rows, key=lambda row: row["url"])

    def clear(self) -> None:
        """Remove all entries from the partition."""
        self._require().clear()

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def __len__(self) -> int:
        return len(self._require())

    def __repr__(self) -> str:
        return f"CachePartition(name={self._name!r}, directory={str(self._directory)!r})"

    def _require(self) -> diskcache.Cache:
        if self._cache is None:
            raise CacheStorageError(f"Cache partition '{self._name}' is closed")
        return self._cache

    @staticmethod
    def _make_key(method: str, url: str) -> str:
        """Generate a cache key from method and URL."""
        raw = f"{method.upper()}|{url}"
        return hashlib.sha256(raw.encode()).hexdigest()


def _serialise(request: InterceptedRequest, response: httpx.Response) -> dict[str, Any]:
    headers = [
        (k, v) for k, v in response.headers.multi_items() if k.lower() not in _HOP_HEADERS
    ]
    try:
        response_url = str(response.url)
    except RuntimeError:
        # Responses built by hand may have no request attached.
        response_url = request.cache_url
    return {
        "url": request.cache_url,
        "method": request.method,
        "status_code": response.status_code,
        "headers": headers,
        "body": response.content,
        "response_url": response_url,
    }


def _deserialise(data: dict[str, Any]) -> httpx.Response:
    return httpx.Response(
        status_code=data["status_code"],
        headers=data["headers"],
        content=data["body"],
        request=httpx.Request(data["method"], data["response_url"]),
    )
