"""Configuration loading (TOML, env vars)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from codemaster.types.config import ClientConfig

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

_INT_KEYS = ("scrollback_lines", "max_result_lines", "title_max_chars")


def default_home() -> Path:
    if home := os.environ.get("CODEMASTER_HOME"):
        return Path(home).expanduser()
    return Path.home() / ".codemaster"


def load_env_config() -> dict[str, Any]:
    """Load configuration from environment variables."""
    config: dict[str, Any] = {}

    if home := os.environ.get("CODEMASTER_HOME"):
        config["data_dir"] = home
    if host := os.environ.get("CODEMASTER_HOST"):
        config["host_command"] = host
    if scrollback := os.environ.get("CODEMASTER_SCROLLBACK"):
        config["scrollback_lines"] = scrollback

    return config


def load_toml_config(home: Path | None = None) -> dict[str, Any]:
    """Load the ``[client]`` section of ``config.toml`` if it exists."""
    toml_path = (home or default_home()) / "config.toml"
    if not toml_path.exists():
        return {}
    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Cannot read %s: %s", toml_path, e)
        return {}
    section = data.get("client", {})
    return section if isinstance(section, dict) else {}


def load_config(**overrides: Any) -> ClientConfig:
    """Resolve the client config: TOML < environment < explicit overrides."""
    explicit = {k: v for k, v in overrides.items() if v is not None}
    home = Path(str(explicit["data_dir"])).expanduser() if "data_dir" in explicit else None

    merged: dict[str, Any] = {}
    merged.update(load_toml_config(home))
    merged.update(load_env_config())
    merged.update(explicit)

    config = ClientConfig()
    if "data_dir" in merged:
        config.data_dir = Path(str(merged["data_dir"])).expanduser()
    if merged.get("host_command"):
        config.host_command = str(merged["host_command"])
    for key in _INT_KEYS:
        if key not in merged:
            continue
        try:
            value = int(merged[key])
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer %s=%r", key, merged[key])
            continue
        if value > 0:
            setattr(config, key, value)
    return config
