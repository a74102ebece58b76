"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for fetchcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.fetchcache/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **Config file** -- a single :class:`~fetchcache.models.AppConfig` JSON
  file (``<config_dir>/config.json``), read by :func:`load_config` and
  written atomically by :func:`save_config`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the config file and defaults into the effective
  configuration.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Optional

from fetchcache.cache.atomic import atomic_write_text
from fetchcache.exceptions import ConfigError
from fetchcache.models import AppConfig

_APP_NAME = "fetchcache"
_CONFIG_FILENAME = "config.json"

# Each setting accepts a namespaced variable first, then the short name the
# container image has always used.
ENV_CACHE_DIR = ("FETCHCACHE_CACHE_DIR", "CACHE_DIR")
ENV_PORT = ("FETCHCACHE_PORT", "PORT")
ENV_LOG_LEVEL = ("FETCHCACHE_LOG_LEVEL", "LOG_LEVEL")
ENV_FETCH_TIMEOUT = ("FETCHCACHE_FETCH_TIMEOUT",)


# --- Directory layout ---


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow the XDG base directory layout."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _home_dir() -> Path:
    """Single dot-directory used where XDG does not apply."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_dir(env_var: str, fallback: str) -> Path:
    """``$env_var/fetchcache``, or ``~/<fallback>/fetchcache`` when unset."""
    root = os.environ.get(env_var) or str(Path.home() / fallback)
    return Path(root) / _APP_NAME


def get_config_dir() -> Path:
    """Return the configuration directory (not created).

    On Linux/BSD: ``$XDG_CONFIG_HOME/fetchcache/`` (default ``~/.config/fetchcache/``).
    On macOS/Windows: ``~/.fetchcache/``.
    """
    if _is_xdg_platform():
        return _xdg_dir("XDG_CONFIG_HOME", ".config")
    return _home_dir()


def get_cache_dir() -> Path:
    """Return the default cache root (not created; the cache creates it on startup).

    On Linux/BSD: ``$XDG_CACHE_HOME/fetchcache/`` (default ``~/.cache/fetchcache/``).
    On macOS/Windows: ``~/.fetchcache/cache/``.
    """
    if _is_xdg_platform():
        return _xdg_dir("XDG_CACHE_HOME", ".cache")
    return _home_dir() / "cache"


def config_path() -> Path:
    """Path to the default config file."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Config file ---


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load the configuration file.

    Args:
        path: Explicit file to read; defaults to :func:`config_path`.

    Returns:
        The deserialised :class:`~fetchcache.models.AppConfig`. If the
        default file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file contains invalid JSON or fails Pydantic
            validation, or if an explicitly requested *path* is missing.
    """
    explicit = path is not None
    path = path or config_path()
    if not path.is_file():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return AppConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return AppConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    """Persist *config* atomically and return the path written."""
    path = path or config_path()
    data = config.model_dump(mode="json")
    atomic_write_text(path, json.dumps(data, indent=2) + "\n")
    return path


# --- Precedence resolution ---


def _env(names: tuple[str, ...]) -> Optional[tuple[str, str]]:
    """Return ``(name, value)`` for the first non-empty variable in *names*."""
    for name in names:
        value = os.environ.get(name)
        if value:
            return name, value
    return None


def _env_number(names: tuple[str, ...], kind: type) -> Optional[float]:
    found = _env(names)
    if found is None:
        return None
    name, value = found
    try:
        return kind(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be a number, got {value!r}") from None


def resolve_config(
    cli_config_path: Optional[str] = None,
    cli_cache_dir: Optional[str] = None,
    cli_port: Optional[int] = None,
    cli_host: Optional[str] = None,
    cli_log_level: Optional[str] = None,
) -> AppConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``FETCHCACHE_CACHE_DIR`` / ``CACHE_DIR``,
           ``FETCHCACHE_PORT`` / ``PORT``, ``FETCHCACHE_LOG_LEVEL`` /
           ``LOG_LEVEL``, ``FETCHCACHE_FETCH_TIMEOUT``)
        3. Config file (``--config`` or ``~/.config/fetchcache/config.json``)
        4. Defaults

    Raises:
        ConfigError: On an unreadable config file or a malformed value.
    """
    # 4 + 3. Defaults overlaid with the config file
    file_path = Path(cli_config_path).expanduser() if cli_config_path else None
    config = load_config(file_path)
    data = config.model_dump(mode="json")

    # 2. Environment variables
    env_cache_dir = _env(ENV_CACHE_DIR)
    if env_cache_dir:
        data["cache_dir"] = env_cache_dir[1]
    env_port = _env_number(ENV_PORT, int)
    if env_port is not None:
        data["server"]["port"] = env_port
    env_log_level = _env(ENV_LOG_LEVEL)
    if env_log_level:
        data["log_level"] = env_log_level[1]
    env_timeout = _env_number(ENV_FETCH_TIMEOUT, float)
    if env_timeout is not None:
        data["fetch"]["timeout"] = env_timeout

    # 1. CLI flags (highest precedence)
    if cli_cache_dir is not None:
        data["cache_dir"] = cli_cache_dir
    if cli_port is not None:
        data["server"]["port"] = cli_port
    if cli_host is not None:
        data["server"]["host"] = cli_host
    if cli_log_level is not None:
        data["log_level"] = cli_log_level

    try:
        return AppConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def resolve_cache_dir(config: AppConfig) -> Path:
    """Return the cache root for *config*, falling back to :func:`get_cache_dir`."""
    if config.cache_dir:
        return Path(config.cache_dir).expanduser()
    return get_cache_dir()
