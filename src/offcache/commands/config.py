"""Config commands -- view and modify global configuration.

Provides the ``offcache config`` sub-command group for reading, updating,
and resetting the user's global configuration file
(:class:`~offcache.models.GlobalConfig`): the site origin, partition
names, precache manifest, and HTTP settings.
"""

from __future__ import annotations

from typing import Any

import typer

from offcache.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _coerce(current: Any, value: str, key: str) -> Any:
    """Coerce a CLI string to the type of the field's current value.

    Lists take a comma-separated value (``/,/offline.html``).
    """
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Prints the config directory to stderr and the resolved configuration
    (global config with project, environment and ``--origin`` overrides
    applied) to stdout.

    Example::

        offcache config show
        offcache --json config show
    """
    from offcache.commands.lifecycle import _resolve
    from offcache.config import get_config_dir

    config, cache_root = _resolve(ctx)
    info(f"Config directory: {get_config_dir()}")
    info(f"Cache root: {cache_root}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g. 'site.shell_cache_name')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the
    existing field's type and the result is validated before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        offcache config set site.origin https://dagaz.example
        offcache config set site.shell_cache_name dagaz-cache-v1.5
        offcache config set site.precache_manifest /,/offline.html
    """
    from offcache.config import load_global_config, save_global_config
    from offcache.models import GlobalConfig

    config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _coerce(target[final_key], value, key)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        offcache --force config reset
    """
    from offcache.config import save_global_config
    from offcache.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
