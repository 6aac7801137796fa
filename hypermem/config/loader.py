"""Read and write the hypermem config file.

The file is JSON with camelCase keys, owner read/write only. A missing or
unreadable file yields the default configuration.
"""

import json
import os
import stat
from pathlib import Path
from typing import Any

from loguru import logger

from hypermem.config.schema import Config

CONFIG_ENV_VAR = "HYPERMEM_CONFIG"
FILE_MODE = 0o600


def get_config_path() -> Path:
    """Config file location: $HYPERMEM_CONFIG, else ~/.hypermem/config.json."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".hypermem" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load the configuration, falling back to defaults.

    Args:
        config_path: Config file to read (defaults to ``get_config_path()``)
    """
    path = config_path or get_config_path()
    if not path.exists():
        return Config()

    _restrict_permissions(path)

    try:
        data = _migrate_config(json.loads(path.read_text()))
        return Config.model_validate(data)
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write the configuration as camelCase JSON readable only by its owner."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    path.write_text(json.dumps(config.model_dump(by_alias=True), indent=2))
    os.chmod(path, FILE_MODE)
    logger.debug(f"Config saved: {path}")


def _restrict_permissions(path: Path) -> None:
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
        if mode != FILE_MODE:
            logger.warning(f"Config file {path} has mode {oct(mode)}, restricting to {oct(FILE_MODE)}")
            os.chmod(path, FILE_MODE)
    except OSError as e:
        logger.warning(f"Could not check config permissions: {e}")


def _migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """Upgrade older config layouts in place."""
    if not isinstance(data, dict):
        return data
    # memory.decay.intervalMinutes moved to memory.scheduler.intervalMinutes
    memory = data.get("memory") or {}
    decay = memory.get("decay") or {}
    if "intervalMinutes" in decay:
        memory.setdefault("scheduler", {}).setdefault("intervalMinutes", decay.pop("intervalMinutes"))
    return data


def camel_to_snake(name: str) -> str:
    """decayRate -> decay_rate; snake_case input is returned unchanged."""
    return "".join(f"_{c.lower()}" if c.isupper() and i else c.lower() for i, c in enumerate(name))
