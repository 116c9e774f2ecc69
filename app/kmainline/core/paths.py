"""Filesystem locations used by kmainline.

Settings live under $XDG_CONFIG_HOME/kmainline (default ~/.config/kmainline)
and downloaded packages under $XDG_CACHE_HOME/kmainline/store (default
~/.cache/kmainline/store).
"""

import os
from pathlib import Path

APP_NAME = "kmainline"
CONFIG_FILENAME = "config.toml"
STORE_SUBDIR = "store"


def _app_dir(env_var: str, fallback: str) -> Path:
    """Resolve an XDG base directory and append the application name.

    An unset or empty variable falls back to ``~/<fallback>``.
    """
    base = os.environ.get(env_var) or str(Path.home() / fallback)
    return Path(base) / APP_NAME


def get_config_dir() -> Path:
    """Directory holding config.toml and theme.toml."""
    return _app_dir("XDG_CONFIG_HOME", ".config")


def get_cache_dir() -> Path:
    """Directory the content store is kept in unless configured otherwise."""
    return _app_dir("XDG_CACHE_HOME", ".cache")


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILENAME


def get_store_dir(cache_dir: Path | None = None) -> Path:
    """Content store location.

    Args:
        cache_dir: Cache directory from the settings; the XDG cache
            directory when None.
    """
    return (cache_dir if cache_dir is not None else get_cache_dir()) / STORE_SUBDIR


def ensure_store_dir(cache_dir: Path | None = None) -> Path:
    """Create the content store directory.

    Returns:
        The store directory.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    store_dir = get_store_dir(cache_dir)
    try:
        store_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        reason = "Permission denied" if isinstance(e, PermissionError) else str(e)
        msg = f"Cannot create cache directory {store_dir}: {reason}"
        raise RuntimeError(msg) from e
    return store_dir
