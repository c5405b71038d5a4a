"""Cache commands -- inspect and maintain cache partitions.

Provides the ``offcache caches`` sub-command group: list partitions with
their role (shell, fonts, or stale), show the entries of one partition,
delete a partition, or clear every partition.
"""

from __future__ import annotations

import typer

from offcache.output import error, info, print_table, success


caches_app = typer.Typer(no_args_is_help=True)


def _storage(ctx: typer.Context):  # noqa: ANN202
    from offcache.cache import CacheStorage
    from offcache.commands.lifecycle import _resolve

    config, cache_root = _resolve(ctx)
    return config, CacheStorage(cache_root)


def _role(name: str, shell: str, fonts: str) -> str:
    if name == shell:
        return "shell"
    if name == fonts:
        return "fonts"
    return "stale"


@caches_app.command("list")
def caches_list(ctx: typer.Context) -> None:
    """List cache partitions with their role and entry count.

    Partitions that are neither the current shell nor the current fonts
    partition are shown as ``stale``; the next ``offcache activate``
    removes them.

    Example::

        offcache caches list
        offcache --json caches list
    """
    config, storage = _storage(ctx)
    with storage:
        names = storage.keys()
        if not names:
            info(f"No cache partitions under {storage.root}")
            return
        rows = []
        for name in names:
            count = len(storage.open(name))
            rows.append([
                name,
                _role(name, config.site.shell_cache_name, config.site.fonts_cache_name),
                str(count),
            ])
    print_table(["Name", "Role", "Entries"], rows, title="Cache partitions")


@caches_app.command("show")
def caches_show(
    ctx: typer.Context,
    name: str = typer.Argument(help="Partition name."),
) -> None:
    """Show the entries stored in one partition.

    Raises:
        typer.Exit: With code 4 if the partition does not exist, code 2 if
            the name is invalid.

    Example::

        offcache caches show dagaz-cache-v1.4
    """
    from offcache.exceptions import InvalidUsageError, NotFoundError

    _, storage = _storage(ctx)
    with storage:
        try:
            if not storage.has(name):
                raise NotFoundError(f"No cache partition named '{name}'")
        except (InvalidUsageError, NotFoundError) as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
        entries = storage.open(name).entries()

    rows = [
        [entry["method"], entry["url"], str(entry["status_code"]), str(entry["size"])]
        for entry in entries
    ]
    print_table(["Method", "URL", "Status", "Bytes"], rows, title=name)


@caches_app.command("delete")
def caches_delete(
    ctx: typer.Context,
    name: str = typer.Argument(help="Partition name."),
) -> None:
    """Delete one partition.

    Example::

        offcache caches delete dagaz-cache-v1.3
    """
    from offcache.exceptions import InvalidUsageError, NotFoundError

    _, storage = _storage(ctx)
    with storage:
        try:
            if not storage.delete(name):
                raise NotFoundError(f"No cache partition named '{name}'")
        except (InvalidUsageError, NotFoundError) as exc:
            error(str(exc))
            raise typer.Exit(code=exc.exit_code) from None
    success(f"Deleted {name}")


@caches_app.command("clear")
def caches_clear(ctx: typer.Context) -> None:
    """Delete every partition, including the current ones.

    Asks for confirmation unless ``--force`` is active.

    Example::

        offcache --force caches clear
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    _, storage = _storage(ctx)
    with storage:
        names = storage.keys()
        if not names:
            info("Nothing to clear.")
            return
        if not force:
            confirmed = typer.confirm(f"Delete {len(names)} cache partition(s)?")
            if not confirmed:
                info("Cancelled.")
                raise typer.Exit()
        for name in names:
            storage.delete(name)
    success(f"Deleted {len(names)} cache partition(s)")
