"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for offcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.offcache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~offcache.models.GlobalConfig`
  JSON file holding the site (origin, partition names, manifest), HTTP
  and output settings.
* **Project config** -- ``./offcache.json`` next to a site checkout; its
  ``site`` section overrides the global one key by key.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a half-written config.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from offcache.exceptions import ConfigError
from offcache.models import GlobalConfig, ManagerConfig

_APP_NAME = "offcache"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "offcache.json"

# Environment variable -> ManagerConfig field
_SITE_ENV_VARS = {
    "OFFCACHE_ORIGIN": "origin",
    "OFFCACHE_SHELL_CACHE": "shell_cache_name",
    "OFFCACHE_FONTS_CACHE": "fonts_cache_name",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, falling back to segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def _app_dir(env_var: str, default_segments: tuple[str, ...], fallback_sub: str = "") -> Path:
    if _is_xdg_platform():
        path = _xdg_base(env_var, default_segments) / _APP_NAME
    else:
        path = _fallback_base_dir()
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/offcache/`` (default ``~/.config/offcache/``).
    On macOS/Windows: ``~/.offcache/``.
    """
    return _app_dir("XDG_CONFIG_HOME", (".config",))


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Cache partitions live under ``<cache_dir>/partitions/``. Deleting the
    directory is safe; the next install repopulates it.

    On Linux/BSD: ``$XDG_CACHE_HOME/offcache/`` (default ``~/.cache/offcache/``).
    On macOS/Windows: ``~/.offcache/cache/``.
    """
    return _app_dir("XDG_CACHE_HOME", (".cache",), "cache")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/offcache/`` (default ``~/.local/share/offcache/``).
    On macOS/Windows: ``~/.offcache/logs/``.
    """
    return _app_dir("XDG_DATA_HOME", (".local", "share"), "logs")


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically using a temp file in the same directory + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration.

    Returns:
        The deserialised :class:`~offcache.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load ``./offcache.json`` if present.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file is not valid JSON or not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Precedence resolution ---


def resolve_config(
    cli_origin: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Path]:
    """Resolve the effective configuration and partition storage root.

    Precedence (high to low):
        1. CLI flags (``cli_origin``, ``cli_format``)
        2. Environment variables (``OFFCACHE_ORIGIN``, ``OFFCACHE_SHELL_CACHE``,
           ``OFFCACHE_FONTS_CACHE``, ``OFFCACHE_CACHE_DIR``)
        3. Project config (``./offcache.json``)
        4. User config (``~/.config/offcache/config.json``)
        5. Defaults

    Returns:
        A tuple of ``(global_config, cache_root)``.

    Raises:
        ConfigError: If any layer produces an invalid site configuration.
    """
    global_cfg = load_global_config()
    site: dict[str, Any] = global_cfg.site.model_dump()
    cache_dir = global_cfg.cache_dir

    project = load_project_config()
    if project is not None:
        site.update(project.get("site") or {})
        cache_dir = project.get("cache_dir", cache_dir)

    for var, field_name in _SITE_ENV_VARS.items():
        value = os.environ.get(var)
        if value:
            site[field_name] = value
    cache_dir = os.environ.get("OFFCACHE_CACHE_DIR") or cache_dir

    if cli_origin is not None:
        site["origin"] = cli_origin

    try:
        global_cfg.site = ManagerConfig.model_validate(site)
    except ValidationError as exc:
        raise ConfigError(f"Invalid site configuration: {exc}") from exc

    if cli_format is not None:
        global_cfg.output.format = cli_format

    cache_root = Path(cache_dir).expanduser() if cache_dir else get_cache_dir()
    return global_cfg, cache_root
