"""Offline cache manager -- executes routing decisions against storage and network.

:class:`OfflineCacheManager` is the side-effecting half of the design: the
pure :mod:`offcache.router` decides *what* to do for an event, and the
manager does it, using a :class:`~offcache.cache.CacheStorage` for the
partitions and an :class:`httpx.AsyncClient` for the network.

Lifecycle::

    parsed -> installing -> installed -> activating -> activated

A superseded instance is marked ``redundant`` from any state and keeps
that state while its in-flight work drains.

* **install** precaches the manifest into the shell partition. A URL that
  fails to fetch (transport error or non-2xx) is reported and skipped; the
  install still completes.
* **activate** deletes every partition that is neither the current shell
  tag nor the current fonts tag.
* **fetch** runs cache-first for fonts and network-first for everything
  else, and always produces a response for intercepted requests.
* **message** answers ``GET_VERSION`` with the shell tag.

Cache writes and lookups are best-effort throughout: a storage failure is
reported through :mod:`offcache.output` and the request carries on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

import httpx

from offcache.cache import CacheStorage
from offcache.events import ExtendableEvent, FetchEvent, MessageEvent, MessagePort
from offcache.exceptions import (
    CacheStorageError,
    InvalidUsageError,
    NetworkError,
    OffcacheError,
)
from offcache.models import (
    InterceptedRequest,
    LifecycleState,
    ManagerConfig,
    RequestConfig,
    RequestMode,
)
from offcache.output import debug, warning
from offcache.predicates import is_navigation, is_same_origin
from offcache.router import Action, ActionKind, handle, route_request


@dataclass
class InstallReport:
    """Outcome of one install pass.

    Attributes:
        cached: Absolute URLs stored in the shell partition, manifest order.
        failed: Absolute URL -> failure reason for every URL that was skipped.
    """

    cache_name: str
    cached: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        """``True`` when every manifest URL was cached."""
        return not self.failed


class OfflineCacheManager:
    """Intercepts requests for one origin and keeps its offline caches.

    Must be used as an async context manager unless an ``httpx.AsyncClient``
    is supplied, in which case the caller owns and closes that client.

    Args:
        config: Partition names, manifest, origin and routing settings.
        storage: Partition registry shared by every manager generation.
        request_config: Timeout and TLS settings for the owned client.
        client: Optional pre-built client (tests pass one with an
            :class:`httpx.MockTransport`).

    Example::

        async with OfflineCacheManager(config, CacheStorage(cache_dir)) as manager:
            await manager.install()
            await manager.activate()
            response = await manager.fetch(
                InterceptedRequest(url="https://dagaz.example/blog", mode="navigate")
            )
    """

    def __init__(
        self,
        config: ManagerConfig,
        storage: CacheStorage,
        request_config: Optional[RequestConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._request_config = request_config or RequestConfig()
        self._client = client
        self._owns_client = client is None
        self._state = LifecycleState.PARSED
        self._skipped_waiting = False
        self._claimed = False

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> OfflineCacheManager:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._request_config.timeout,
                verify=self._request_config.verify_ssl,
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ManagerConfig:
        return self._config

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def version(self) -> str:
        """The cache version tag (the shell partition name)."""
        return self._config.shell_cache_name

    @property
    def skipped_waiting(self) -> bool:
        """Whether install finished with ``skip_waiting`` in effect."""
        return self._skipped_waiting

    @property
    def claimed(self) -> bool:
        """Whether activation took control of open clients."""
        return self._claimed

    @property
    def ready_to_activate(self) -> bool:
        """Installed and allowed to activate without waiting for older instances."""
        return self._state == LifecycleState.INSTALLED and self._skipped_waiting

    def mark_redundant(self) -> None:
        """Retire this instance; in-flight work finishes but changes no state."""
        self._state = LifecycleState.REDUNDANT

    def _transition(self, state: LifecycleState) -> None:
        if self._state == LifecycleState.REDUNDANT:
            debug(f"lifecycle: {self.version} is redundant, staying put")
            return
        self._state = state

    # ------------------------------------------------------------------ #
    # Event dispatch
    # ------------------------------------------------------------------ #

    def dispatch(self, event: ExtendableEvent) -> Action:
        """Route *event* and attach the resulting work to it.

        Install and activate work is registered with
        :meth:`~offcache.events.ExtendableEvent.wait_until`; intercepted
        fetches with :meth:`~offcache.events.FetchEvent.respond_with`.
        Pass-through fetches are left untouched.

        Returns:
            The :class:`~offcache.router.Action` that was executed.
        """
        action = handle(event, self._config)
        debug(f"{event.type}: {action.kind.value}")

        if action.kind == ActionKind.PRECACHE:
            event.wait_until(self.install())
        elif action.kind == ActionKind.CLEANUP:
            event.wait_until(self.activate())
        elif action.intercepts:
            assert isinstance(event, FetchEvent)
            if self._state == LifecycleState.REDUNDANT:
                return Action(ActionKind.PASS_THROUGH, request=event.request)
            event.respond_with(self._execute_fetch(action))
        elif action.kind == ActionKind.REPLY_VERSION:
            assert isinstance(event, MessageEvent)
            self._reply_version(event.ports)
        return action

    # ------------------------------------------------------------------ #
    # Lifecycle operations
    # ------------------------------------------------------------------ #

    async def install(self) -> InstallReport:
        """Precache every manifest URL into the shell partition.

        URLs are fetched concurrently. Per-URL failures are reported and
        recorded in the returned :class:`InstallReport`; they never abort the
        install. Running install again overwrites each entry in place.
        """
        self._transition(LifecycleState.INSTALLING)
        report = InstallReport(cache_name=self.version)
        debug(f"install: precaching into {self.version}")

        entries = [self._manifest_url(entry) for entry in self._config.precache_manifest]
        urls = [url for url, reason in entries if reason is None]
        try:
            self._storage.open(self.version)
        except OffcacheError as exc:
            warning(f"install: cannot open {self.version}: {exc}")
            report.failed = {url: reason or str(exc) for url, reason in entries}
            self._finish_install()
            return report

        results = iter(await asyncio.gather(*(self._precache(url) for url in urls)))
        for url, reason in entries:
            if reason is None:
                reason = next(results)
            else:
                warning(f"install: failed to cache {url}: {reason}")
            if reason is None:
                report.cached.append(url)
            else:
                report.failed[url] = reason

        debug(f"install: cached {len(report.cached)}/{len(entries)} in {self.version}")
        self._finish_install()
        return report

    def _finish_install(self) -> None:
        self._transition(LifecycleState.INSTALLED)
        if self._config.skip_waiting:
            self._skipped_waiting = True

    async def _precache(self, url: str) -> Optional[str]:
        """Fetch and store one manifest URL. Returns a failure reason or ``None``."""
        request = InterceptedRequest(url=url)
        try:
            response = await self._network_fetch(request)
        except NetworkError as exc:
            warning(f"install: failed to cache {url}: {exc}")
            return str(exc)
        if not response.is_success:
            reason = f"HTTP {response.status_code}"
            warning(f"install: failed to cache {url}: {reason}")
            return reason
        try:
            self._storage.open(self.version).put(request, response)
        except OffcacheError as exc:
            warning(f"install: failed to cache {url}: {exc}")
            return str(exc)
        return None

    async def activate(self) -> list[str]:
        """Delete every partition other than the current shell and fonts partitions.

        Safe to run concurrently with another instance doing the same:
        partitions that vanish in between are skipped.

        Returns:
            Names of the partitions this call removed.
        """
        self._transition(LifecycleState.ACTIVATING)
        keep = {self._config.shell_cache_name, self._config.fonts_cache_name}
        deleted: list[str] = []

        try:
            names = self._storage.keys()
        except CacheStorageError as exc:
            warning(f"activate: cannot list partitions: {exc}")
            names = []

        for name in names:
            if name in keep:
                continue
            try:
                if self._storage.delete(name):
                    debug(f"activate: deleted old cache {name}")
                    deleted.append(name)
            except (CacheStorageError, InvalidUsageError) as exc:
                warning(f"activate: cannot delete {name}: {exc}")

        if self._config.claim_clients:
            self._claimed = True
        self._transition(LifecycleState.ACTIVATED)
        debug(f"activate: {self.version} is active")
        return deleted

    async def fetch(self, request: InterceptedRequest) -> Optional[httpx.Response]:
        """Handle one request the way a dispatched fetch event would.

        Returns:
            The response, or ``None`` when the request is not intercepted
            (the caller should go to the network itself).

        Raises:
            NetworkError: Only for a font request that misses the cache
                and cannot be fetched.
        """
        action = route_request(request, self._config)
        if not action.intercepts or self._state == LifecycleState.REDUNDANT:
            return None
        return await self._execute_fetch(action)

    def get_version(self) -> str:
        """Answer ``GET_VERSION`` over a fresh port and return the reply."""
        port = MessagePort()
        self.dispatch(MessageEvent("GET_VERSION", [port]))
        return port.messages[-1]

    def _reply_version(self, ports: list[MessagePort]) -> None:
        if not ports:
            debug("message: GET_VERSION without a reply port")
            return
        try:
            ports[0].post_message(self.version)
        except OffcacheError as exc:
            debug(f"message: cannot reply: {exc}")

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def _execute_fetch(self, action: Action) -> httpx.Response:
        assert action.request is not None and action.cache_name is not None
        if action.kind == ActionKind.CACHE_FIRST:
            return await self._cache_first(action.request, action.cache_name)
        return await self._network_first(action.request, action.cache_name)

    async def _cache_first(self, request: InterceptedRequest, cache_name: str) -> httpx.Response:
        cached = self._cache_match(cache_name, request)
        if cached is not None:
            debug(f"fetch: {request.url} served from {cache_name}")
            return cached

        try:
            response = await self._network_fetch(request)
        except NetworkError as exc:
            debug(f"fetch: font fetch failed for {request.url}: {exc}")
            raise
        if response.is_success:
            self._cache_put(cache_name, request, response)
        return response

    async def _network_first(self, request: InterceptedRequest, cache_name: str) -> httpx.Response:
        try:
            response = await self._network_fetch(request)
        except NetworkError as exc:
            debug(f"fetch: network failed for {request.url}, trying cache: {exc}")
            return self._offline_response(request, cache_name)

        if response.is_success and is_same_origin(str(response.url), self._config.origin):
            self._cache_put(cache_name, request, response)
        return response

    def _offline_response(self, request: InterceptedRequest, cache_name: str) -> httpx.Response:
        """Fallback chain: cached copy, then offline page (navigations), then 404."""
        try:
            cached = self._storage.open(cache_name).match(request)
        except OffcacheError as exc:
            warning(f"fetch: cache lookup failed for {request.url}: {exc}")
            return self._offline_page(request)

        if cached is not None:
            return cached
        if is_navigation(request):
            return self._offline_page(request)
        return httpx.Response(
            404,
            content=b"",
            request=httpx.Request(request.method, request.url),
        )

    def _offline_page(self, request: InterceptedRequest) -> httpx.Response:
        offline = InterceptedRequest(
            url=self._absolute(self._config.offline_fallback_url),
            mode=RequestMode.NAVIGATE,
        )
        page = self._cache_match(self._config.shell_cache_name, offline)
        if page is None:
            try:
                page = self._storage.match(offline)
            except OffcacheError as exc:
                warning(f"fetch: offline page lookup failed: {exc}")
        if page is not None:
            return page
        warning(f"fetch: offline page {offline.url} is not cached")
        return httpx.Response(
            503,
            content=b"",
            request=httpx.Request(request.method, request.url),
        )

    # ------------------------------------------------------------------ #
    # Best-effort storage and network helpers
    # ------------------------------------------------------------------ #

    def _cache_match(self, cache_name: str, request: InterceptedRequest) -> Optional[httpx.Response]:
        try:
            return self._storage.open(cache_name).match(request)
        except OffcacheError as exc:
            warning(f"fetch: cache lookup failed in {cache_name}: {exc}")
            return None

    def _cache_put(
        self, cache_name: str, request: InterceptedRequest, response: httpx.Response
    ) -> None:
        try:
            self._storage.open(cache_name).put(request, response)
        except OffcacheError as exc:
            warning(f"fetch: error caching {request.url}: {exc}")

    async def _network_fetch(self, request: InterceptedRequest) -> httpx.Response:
        """Send *request* and read its body; transport failures become :class:`NetworkError`."""
        assert self._client is not None, "Client not initialised -- use as async context manager"
        try:
            return await self._client.request(request.method, request.url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(f"{request.method} {request.url} failed: {exc}") from exc

    def _absolute(self, url: str) -> str:
        return str(httpx.URL(self._config.origin).join(url))

    def _manifest_url(self, entry: str) -> tuple[str, Optional[str]]:
        """Resolve a manifest entry against the origin; unparseable entries carry a reason."""
        try:
            return self._absolute(entry), None
        except httpx.InvalidURL as exc:
            return entry, f"invalid URL: {exc}"
