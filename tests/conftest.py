"""Shared test fixtures for offcache.

Provides an in-process fake network (backed by :class:`httpx.MockTransport`),
disk-backed cache storage under ``tmp_path``, isolated config directories,
and output state management. These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

import httpx
import pytest

from offcache.cache import CacheStorage
from offcache.manager import OfflineCacheManager
from offcache.models import ManagerConfig
from offcache.output import OutputFormat, OutputManager, reset_output, set_output


ORIGIN = "https://dagaz.example"


def absolute(path: str) -> str:
    """Resolve *path* against the test origin the same way the manager does."""
    return str(httpx.URL(ORIGIN).join(path))


# ---------------------------------------------------------------------------
# Fake network
# ---------------------------------------------------------------------------


class FakeNetwork:
    """Scripted network: maps absolute URLs to canned responses or failures.

    Every request is recorded in :attr:`calls`, so tests can assert that a
    cache hit never touched the network. Unknown URLs answer 404. Setting
    :attr:`offline` makes every request fail with a connection error.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Union[tuple[int, bytes, dict[str, str]], Exception]] = {}
        self.calls: list[str] = []
        self.offline = False

    def add(
        self,
        url: str,
        body: bytes = b"",
        status: int = 200,
        content_type: str = "text/html",
        headers: Optional[dict[str, str]] = None,
    ) -> str:
        key = absolute(url)
        self.routes[key] = (status, body, {"content-type": content_type, **(headers or {})})
        return key

    def fail(self, url: str) -> str:
        key = absolute(url)
        self.routes[key] = httpx.ConnectError(f"cannot reach {key}")
        return key

    def redirect(self, url: str, location: str, status: int = 302) -> str:
        key = absolute(url)
        self.routes[key] = (status, b"", {"location": absolute(location)})
        return key

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        if self.offline:
            raise httpx.ConnectError("network is offline", request=request)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, request=request)
        if isinstance(route, Exception):
            raise route
        status, body, headers = route
        return httpx.Response(status, content=body, headers=headers, request=request)

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


# ---------------------------------------------------------------------------
# Output state
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Install a quiet, colourless OutputManager and reset it afterwards.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; resetting avoids stale streams after CliRunner tests.
    """
    set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Site, storage and manager
# ---------------------------------------------------------------------------


@pytest.fixture
def site() -> ManagerConfig:
    """A site with a five-entry manifest and versioned partition names."""
    return ManagerConfig(
        origin=ORIGIN,
        shell_cache_name="shell-v1",
        fonts_cache_name="fonts-v1",
        precache_manifest=[
            "/",
            "/offline.html",
            "/manifest.json",
            "/favicon.png",
            "/fonts/NotoSans-VariableFont_wdth,wght.ttf",
        ],
    )


@pytest.fixture
def serve_manifest(network: FakeNetwork, site: ManagerConfig) -> FakeNetwork:
    """Make every manifest URL of *site* answer 200."""
    network.add("/", b"<html>home</html>")
    network.add("/offline.html", b"<html>offline</html>")
    network.add("/manifest.json", b'{"name": "dagaz"}', content_type="application/json")
    network.add("/favicon.png", b"\x89PNG", content_type="image/png")
    network.add(
        "/fonts/NotoSans-VariableFont_wdth,wght.ttf", b"\x00\x01font", content_type="font/ttf"
    )
    return network


@pytest.fixture
def storage(tmp_path: Path) -> CacheStorage:
    s = CacheStorage(tmp_path)
    yield s
    s.close()


@pytest.fixture
def manager(
    site: ManagerConfig, storage: CacheStorage, network: FakeNetwork
) -> OfflineCacheManager:
    return OfflineCacheManager(site, storage, client=network.client())


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME, XDG_CACHE_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, clears OFFCACHE_* variables, and changes
    the working directory to tmp_path.
    """
    monkeypatch.setattr("offcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "OFFCACHE_ORIGIN",
        "OFFCACHE_SHELL_CACHE",
        "OFFCACHE_FONTS_CACHE",
        "OFFCACHE_CACHE_DIR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
