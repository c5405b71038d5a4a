"""Lifecycle commands -- install, activate, fetch, version.

These top-level commands drive one :class:`~offcache.manager.OfflineCacheManager`
through the same events a browser would deliver: ``install`` precaches the
manifest, ``activate`` evicts old generations, ``fetch`` intercepts a
single request, and ``version`` asks for the cache version tag.

Each command resolves configuration via :func:`~offcache.config.resolve_config`
(honouring ``--origin`` from the root callback) and operates on the
partitions under the resolved cache root.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import httpx
import typer

from offcache.output import debug, error, info, print_data, success, warning


def _build_client(timeout: int, verify_ssl: bool) -> httpx.AsyncClient:
    """Create the HTTP client used for network fetches."""
    return httpx.AsyncClient(timeout=timeout, verify=verify_ssl, follow_redirects=True)


def _resolve(ctx: typer.Context):  # noqa: ANN202
    """Resolve ``(GlobalConfig, cache_root)`` or exit with the config error's code (1)."""
    from offcache.config import resolve_config
    from offcache.exceptions import ConfigError

    origin = ctx.obj.get("origin") if ctx.obj else None
    try:
        return resolve_config(cli_origin=origin)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


async def _run_install(config, cache_root: Path, activate: bool):  # noqa: ANN202
    from offcache.cache import CacheStorage
    from offcache.events import ActivateEvent, InstallEvent
    from offcache.manager import OfflineCacheManager

    with CacheStorage(cache_root) as storage:
        async with _build_client(config.request.timeout, config.request.verify_ssl) as client:
            manager = OfflineCacheManager(config.site, storage, config.request, client=client)
            install = InstallEvent()
            manager.dispatch(install)
            (report,) = await install.settle()

            deleted: Optional[list[str]] = None
            if activate and manager.ready_to_activate:
                event = ActivateEvent()
                manager.dispatch(event)
                (deleted,) = await event.settle()
            return report, deleted


def install_command(
    ctx: typer.Context,
    activate: Optional[bool] = typer.Option(
        None,
        "--activate/--no-activate",
        help="Activate right after install (defaults to the site's skip_waiting).",
    ),
) -> None:
    """Precache the site's manifest into the shell partition.

    URLs that cannot be fetched are reported and skipped; the install
    still completes. The exit code is 0 even when some URLs failed.

    Example::

        offcache install
        offcache --origin https://dagaz.example install --no-activate
    """
    config, cache_root = _resolve(ctx)
    should_activate = config.site.skip_waiting if activate is None else activate

    report, deleted = asyncio.run(_run_install(config, cache_root, should_activate))

    for url in report.cached:
        print_data(url)
    for url, reason in report.failed.items():
        warning(f"Not cached: {url} ({reason})")
    success(
        f"Installed {report.cache_name}: "
        f"{len(report.cached)} cached, {len(report.failed)} failed"
    )
    if deleted is not None:
        for name in deleted:
            info(f"Deleted old cache: {name}")
        success(f"Activated {report.cache_name}")


def activate_command(ctx: typer.Context) -> None:
    """Delete every partition other than the current shell and fonts partitions.

    Example::

        offcache activate
    """
    from offcache.cache import CacheStorage
    from offcache.events import ActivateEvent
    from offcache.manager import OfflineCacheManager

    config, cache_root = _resolve(ctx)

    async def _run() -> list[str]:
        with CacheStorage(cache_root) as storage:
            manager = OfflineCacheManager(config.site, storage, config.request)
            event = ActivateEvent()
            manager.dispatch(event)
            (deleted,) = await event.settle()
            return deleted

    deleted = asyncio.run(_run())
    for name in deleted:
        print_data(name)
    success(f"Activated {config.site.shell_cache_name}, removed {len(deleted)} old cache(s)")


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL, or a path relative to the origin."),
    navigate: bool = typer.Option(
        False, "--navigate", help="Treat the request as a full-page navigation."
    ),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
) -> None:
    """Intercept one request and print the response the manager produced.

    Requests the manager does not intercept (other origins, non-GET,
    excluded paths) are reported as pass-through and exit with code 0.

    Example::

        offcache fetch /blog --navigate
        offcache fetch /fonts/NotoSans-VariableFont_wdth,wght.ttf
    """
    from offcache.cache import CacheStorage
    from offcache.events import FetchEvent
    from offcache.exceptions import NetworkError
    from offcache.manager import OfflineCacheManager
    from offcache.models import InterceptedRequest, RequestMode
    from offcache.response import format_intercepted_response

    config, cache_root = _resolve(ctx)
    absolute = str(httpx.URL(config.site.origin).join(url))
    request = InterceptedRequest(
        url=absolute,
        method=method,
        mode=RequestMode.NAVIGATE if navigate else RequestMode.NO_CORS,
    )

    async def _run() -> tuple[str, Optional[httpx.Response]]:
        with CacheStorage(cache_root) as storage:
            async with _build_client(config.request.timeout, config.request.verify_ssl) as client:
                manager = OfflineCacheManager(config.site, storage, config.request, client=client)
                event = FetchEvent(request)
                action = manager.dispatch(event)
                return action.kind.value, await event.response()

    try:
        strategy, response = asyncio.run(_run())
    except NetworkError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    debug(f"{request.method} {request.url}: {strategy}")
    if response is None:
        info(f"pass-through: {request.method} {request.url} is not intercepted")
        return
    format_intercepted_response(response, strategy)


def version_command(ctx: typer.Context) -> None:
    """Print the current cache version tag (answer to ``GET_VERSION``).

    Example::

        offcache version
    """
    from offcache.cache import CacheStorage
    from offcache.manager import OfflineCacheManager

    config, cache_root = _resolve(ctx)
    with CacheStorage(cache_root) as storage:
        manager = OfflineCacheManager(config.site, storage, config.request)
        print_data(manager.get_version())
