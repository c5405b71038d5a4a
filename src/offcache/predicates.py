"""Named request predicates used by the router.

Each predicate answers one question about an
:class:`~offcache.models.InterceptedRequest` or a URL, so the routing
decision in :mod:`offcache.router` reads as a sequence of named checks
rather than inline string matching.
"""

from __future__ import annotations

import re
from typing import Iterable

import httpx

from offcache.models import InterceptedRequest, RequestMode

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _origin_of(url: str) -> tuple[str, str, int | None]:
    """Return ``(scheme, host, port)`` with default ports made explicit."""
    parsed = httpx.URL(url)
    scheme = parsed.scheme.lower()
    port = parsed.port if parsed.port is not None else _DEFAULT_PORTS.get(scheme)
    return scheme, parsed.host.lower(), port


def is_read_only(request: InterceptedRequest) -> bool:
    """Return ``True`` for plain retrievals (``GET``) only."""
    return request.method == "GET"


def is_same_origin(url: str, origin: str) -> bool:
    """Return ``True`` when *url* has the same scheme, host and port as *origin*.

    Relative URLs and URLs without a host never match.

    Example::

        >>> is_same_origin("https://dagaz.example/blog", "https://dagaz.example")
        True
        >>> is_same_origin("https://dagaz.example.evil/", "https://dagaz.example")
        False
    """
    try:
        target = _origin_of(url)
        serving = _origin_of(origin)
    except httpx.InvalidURL:
        return False
    if not target[1]:
        return False
    return target == serving


def is_excluded_path(url: str, patterns: Iterable[str]) -> bool:
    """Return ``True`` if any of *patterns* occurs in *url* (plain substring match)."""
    return any(pattern and pattern in url for pattern in patterns)


def is_font_asset(url: str, extensions: Iterable[str]) -> bool:
    """Return ``True`` if the URL path ends with one of the font *extensions*.

    The query string is ignored and matching is case-insensitive, so
    ``/fonts/Noto.WOFF2?v=3`` is a font asset.
    """
    exts = [re.escape(ext.lower().lstrip(".")) for ext in extensions]
    if not exts:
        return False
    pattern = re.compile(r"\.(" + "|".join(exts) + r")$", re.IGNORECASE)
    try:
        path = httpx.URL(url).path
    except httpx.InvalidURL:
        return False
    return pattern.search(path) is not None


def is_navigation(request: InterceptedRequest) -> bool:
    """Return ``True`` if the request loads a full page rather than a sub-resource."""
    return request.mode == RequestMode.NAVIGATE
