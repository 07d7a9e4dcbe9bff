"""
Service Configuration
服务配置

Loads config.json from the service base directory and merges it over
the built-in defaults. The result is an immutable ImageServerConfig
that is created once at startup and passed to every component.

config.json (all keys optional):
    {
      "port": 3000,
      "proxyHeaders": ["x-forwarded-for"],
      "imagesFolder": "images",
      "logFile": "access.log"
    }
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigReadError

logger = logging.getLogger(__name__)

# ============================================
# Defaults
# ============================================

PACKAGE_DIR = Path(__file__).resolve().parent

INSTALL_DIR_NAMES = ("site-packages", "dist-packages")


def default_base_dir(package_dir: Path = PACKAGE_DIR, cwd: Optional[Path] = None) -> Path:
    """
    Directory that holds config.json, images/ and access.log by default.

    From a source checkout this is backend/, next to the package. An
    installed package lives under site-packages, so the working
    directory is used instead.
    """
    parent = package_dir.parent
    if any(part in INSTALL_DIR_NAMES for part in parent.parts):
        return cwd or Path.cwd()
    return parent


CONFIG_FILENAME = "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "port": 3000,
    "proxyHeaders": ["x-forwarded-for"],
    "imagesFolder": "images",
    "logFile": "access.log",
}


# ============================================
# Model
# ============================================

class ImageServerConfig(BaseModel):
    """Effective configuration, frozen after load"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    port: int = Field(DEFAULT_CONFIG["port"], ge=0, le=65535)
    proxy_headers: List[str] = Field(
        default_factory=lambda: list(DEFAULT_CONFIG["proxyHeaders"]),
        alias="proxyHeaders",
        description="Headers checked in order for the client address",
    )
    images_folder: str = Field(DEFAULT_CONFIG["imagesFolder"], alias="imagesFolder")
    log_file: str = Field(DEFAULT_CONFIG["logFile"], alias="logFile")

    def resolve_paths(self, base_dir: Path) -> "ImageServerConfig":
        """
        Return a copy whose images_folder/log_file are absolute.

        Relative paths are taken relative to base_dir, absolute paths
        are kept as they are.
        """
        return self.model_copy(update={
            "images_folder": str(_resolve(base_dir, self.images_folder)),
            "log_file": str(_resolve(base_dir, self.log_file)),
        })


def _resolve(base_dir: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return (base_dir / path).resolve()


# ============================================
# Loading
# ============================================

def _read_user_config(config_path: Path) -> Dict[str, Any]:
    """Read and parse config.json, raising ConfigReadError on any failure"""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigReadError(f"{config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigReadError(
            f"{config_path}: expected a JSON object, got {type(data).__name__}"
        )
    return data


def _write_default_config(config_path: Path) -> None:
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(DEFAULT_CONFIG, f, indent=2)
        f.write("\n")


def merge_config(user_config: Mapping[str, Any]) -> ImageServerConfig:
    """
    Shallow-merge user values over DEFAULT_CONFIG.

    Any top-level key present in user_config wins; missing keys keep
    their defaults. Raises ConfigReadError if the merged values do not
    validate.
    """
    merged = {**DEFAULT_CONFIG, **user_config}
    try:
        return ImageServerConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigReadError(f"Invalid configuration values: {e}") from e


def load_config(config_path: Optional[Path] = None) -> ImageServerConfig:
    """
    Load the effective configuration.

    - config.json present and valid: merged over defaults
    - config.json absent: defaults are written there, then used
    - config.json unreadable or malformed: error logged, defaults used

    Never raises. Paths in the result are absolute, resolved against the
    directory holding the config file.
    """
    config_path = Path(config_path) if config_path else default_base_dir() / CONFIG_FILENAME
    base_dir = config_path.resolve().parent

    try:
        if config_path.exists():
            config = merge_config(_read_user_config(config_path))
            logger.info(f"[Config] Loaded {config_path}")
        else:
            config = ImageServerConfig()
            try:
                _write_default_config(config_path)
                logger.info(f"[Config] Created default config file: {config_path}")
            except OSError as e:
                logger.error(f"[Config] Failed to write default config {config_path}: {e}")
    except ConfigReadError as e:
        logger.error(f"[Config] Error reading config file, using defaults: {e}")
        config = ImageServerConfig()

    return config.resolve_paths(base_dir)


def resolve_port(
    config: ImageServerConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """PORT from the environment wins over the configured port"""
    environ = os.environ if environ is None else environ
    raw = environ.get("PORT")
    if not raw:
        return config.port

    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[Config] Ignoring non-numeric PORT={raw!r}, using {config.port}")
        return config.port
