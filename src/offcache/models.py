"""Canonical Pydantic models shared across all offcache modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ManagerConfig`, :class:`RequestConfig`, :class:`OutputConfig`,
    and :class:`GlobalConfig`.

**Runtime models** -- produced per request or per lifecycle transition:
    :class:`RequestMode`, :class:`LifecycleState`, and
    :class:`InterceptedRequest`.

All models use Pydantic v2. :class:`ManagerConfig` is passed explicitly to
:class:`~offcache.manager.OfflineCacheManager` so that nothing depends on
process-wide cache-name constants.
"""

from __future__ import annotations

import enum
from typing import Optional
from urllib.parse import urldefrag

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_SHELL_CACHE = "dagaz-cache-v1.4"
DEFAULT_FONTS_CACHE = "dagaz-fonts-v1"
DEFAULT_OFFLINE_URL = "/offline.html"

DEFAULT_PRECACHE_MANIFEST = [
    "/",
    DEFAULT_OFFLINE_URL,
    "/manifest.json",
    "/favicon.png",
    "/fonts/NotoSans-VariableFont_wdth,wght.ttf",
    "/fonts/NotoSans-Italic-VariableFont_wdth,wght.ttf",
]


# --- Configuration ---


class ManagerConfig(BaseModel):
    """Everything an :class:`~offcache.manager.OfflineCacheManager` needs to run.

    The two partition names are persisted identifiers: they must stay stable
    across deployments, because activation deletes every partition whose
    name matches neither of them. Bumping ``shell_cache_name`` is how a new
    deployment evicts the previous app shell.

    Example::

        ManagerConfig(
            origin="https://dagaz.example",
            shell_cache_name="dagaz-cache-v1.5",
        )
    """

    origin: str = Field(
        default="http://localhost:5173",
        description="Serving origin (scheme://host[:port]); other origins pass through",
    )
    shell_cache_name: str = Field(
        default=DEFAULT_SHELL_CACHE,
        description="Versioned app-shell partition name (the cache version tag)",
    )
    fonts_cache_name: str = Field(
        default=DEFAULT_FONTS_CACHE, description="Long-lived font partition name"
    )
    precache_manifest: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRECACHE_MANIFEST),
        description="Root-relative URLs stored in the shell partition at install",
    )
    offline_fallback_url: str = Field(
        default=DEFAULT_OFFLINE_URL,
        description="Page served to navigations when offline and uncached",
    )
    excluded_patterns: list[str] = Field(
        default_factory=lambda: ["browser-sync"],
        description="URL substrings that are never intercepted (e.g. live reload)",
    )
    font_extensions: list[str] = Field(
        default_factory=lambda: ["ttf", "woff", "woff2"],
        description="File extensions routed to the cache-first font strategy",
    )
    skip_waiting: bool = Field(
        default=True, description="Become eligible for activation right after install"
    )
    claim_clients: bool = Field(
        default=True, description="Take control of open clients after activation"
    )

    @field_validator("origin")
    @classmethod
    def _strip_origin(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("precache_manifest")
    @classmethod
    def _dedupe_manifest(cls, value: list[str]) -> list[str]:
        # dict preserves first-seen order
        return list(dict.fromkeys(value))

    @field_validator("font_extensions")
    @classmethod
    def _normalise_extensions(cls, value: list[str]) -> list[str]:
        return [ext.lower().lstrip(".") for ext in value]


class RequestConfig(BaseModel):
    """Default HTTP settings for the network side of the manager."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/offcache/config.json``.

    Loaded and saved by :func:`~offcache.config.load_global_config` and
    :func:`~offcache.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~offcache.config.resolve_config`
    for the full precedence chain.
    """

    site: ManagerConfig = Field(default_factory=ManagerConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache_dir: Optional[str] = Field(
        default=None, description="Override for the partition storage root"
    )


# --- Runtime models ---


class RequestMode(str, enum.Enum):
    """Request modes a client context can issue.

    Only ``NAVIGATE`` changes behaviour: an uncached navigation falls back
    to the offline page instead of a synthetic 404.
    """

    NAVIGATE = "navigate"
    SAME_ORIGIN = "same-origin"
    NO_CORS = "no-cors"
    CORS = "cors"


class LifecycleState(str, enum.Enum):
    """Lifecycle of one manager instance.

    ``INSTALLING`` and ``INSTALLED`` make up the installing phase,
    ``ACTIVATING`` and ``ACTIVATED`` the active phase. A superseded
    instance becomes ``REDUNDANT``.
    """

    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class InterceptedRequest(BaseModel):
    """Read-only description of an inbound fetch.

    Created by the host per network request, consumed by
    :func:`~offcache.router.route_request`, and discarded after a response
    is produced.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    method: str = "GET"
    mode: RequestMode = RequestMode.NO_CORS

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @property
    def cache_url(self) -> str:
        """The URL used as request identity.

        Scheme and host are lowercased, default ports dropped, an empty path
        becomes ``/`` and the fragment is removed, so
        ``https://Dagaz.example:443#top`` and ``https://dagaz.example/`` share
        one cache entry.
        """
        try:
            url = httpx.URL(self.url)
        except httpx.InvalidURL:
            return urldefrag(self.url).url
        if url.host and url.path == "/":
            url = url.copy_with(path="/")
        return str(url.copy_with(fragment=None))
