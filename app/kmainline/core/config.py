"""User configuration for kmainline.

Configuration is stored in ~/.config/kmainline/config.toml. Every setting
is optional; a missing file yields the defaults.
"""

import logging
import os
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kmainline.core.errors import KMainlineError
from kmainline.core.paths import get_config_path

logger = logging.getLogger(__name__)

UBUNTU_MAINLINE_URL = "https://kernel.ubuntu.com/~kernel-ppa/mainline"


class Settings(BaseModel):
    """Settings for the catalog resolver and download cache.

    Attributes:
        repo_url: Root of the mainline kernel listing.
        cache_dir: Override for the download cache directory.
        default_variants: Variants downloaded when none are requested.
        timeout_seconds: HTTP timeout; None disables timeouts.
    """

    model_config = ConfigDict(extra="forbid")

    repo_url: Annotated[
        str,
        Field(description="Mainline kernel listing URL"),
    ] = UBUNTU_MAINLINE_URL
    cache_dir: Annotated[
        Path | None,
        Field(description="Download cache directory (None = XDG cache)"),
    ] = None
    default_variants: Annotated[
        list[str],
        Field(default_factory=lambda: ["generic"], description="Default kernel variants"),
    ]
    timeout_seconds: Annotated[
        float | None,
        Field(gt=0, description="HTTP timeout in seconds"),
    ] = 60.0

    @field_validator("repo_url")
    @classmethod
    def validate_repo_url(cls, v: str) -> str:
        """Require an http(s) URL without trailing slash."""
        url = v.strip()
        if not url.startswith(("http://", "https://")):
            msg = f"repo_url must be an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("default_variants")
    @classmethod
    def validate_variants(cls, v: list[str]) -> list[str]:
        """Require at least one variant name."""
        variants = [name.strip() for name in v if name.strip()]
        if not variants:
            msg = "default_variants must contain at least one variant"
            raise ValueError(msg)
        return variants


class ConfigError(KMainlineError):
    """Base exception for configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the config file cannot be parsed."""


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated Settings object; defaults if the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or fails validation.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return Settings()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        settings: The Settings object to save.
        path: Destination path. If None, uses the default config path.

    Returns:
        Path where the settings were saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = _settings_to_dict(settings)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def _settings_to_dict(settings: Settings) -> dict[str, object]:
    """Convert Settings to a TOML-serializable dictionary.

    TOML has no null, so unset optional values are omitted.
    """
    result: dict[str, object] = {
        "repo_url": settings.repo_url,
        "default_variants": list(settings.default_variants),
    }
    if settings.cache_dir is not None:
        result["cache_dir"] = str(settings.cache_dir)
    if settings.timeout_seconds is not None:
        result["timeout_seconds"] = settings.timeout_seconds
    return result
