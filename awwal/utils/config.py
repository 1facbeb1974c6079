"""
Settings loader for Awwal.

Reads an optional YAML file, then overlays AWWAL_* environment variables
(a project .env file is loaded first).
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

from awwal.classroom.remote import DEFAULT_API_URL, DEFAULT_TIMEOUT
from awwal.classroom.storage import DEFAULT_STORAGE_DB


DEFAULT_CONFIG_PATH = Path.home() / ".awwal" / "config.yaml"

ENV_VARS = {
    "api_url": "AWWAL_API_URL",
    "timeout_seconds": "AWWAL_TIMEOUT",
    "db_path": "AWWAL_DB_PATH",
    "timezone": "AWWAL_TIMEZONE",
    "log_level": "AWWAL_LOG_LEVEL",
}


class Settings(BaseModel):
    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = DEFAULT_TIMEOUT
    db_path: Path = DEFAULT_STORAGE_DB
    timezone: Optional[str] = None      # IANA name; host local time if unset
    log_level: str = "INFO"


def load_config_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML settings file.

    Returns:
        Parsed mapping, or {} if the file doesn't exist or is empty

    Raises:
        yaml.YAMLError: If YAML parsing fails
        ValueError: If the file does not contain a mapping
    """
    if not path.exists():
        return {}

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    env_file: Optional[Path] = None,
) -> Settings:
    """
    Build Settings from file and environment.

    Args:
        config_path: YAML file (default: ~/.awwal/config.yaml)
        env_file: .env file to load (default: search from the working directory)

    Returns:
        Validated Settings; environment variables win over the file
    """
    load_dotenv(env_file)

    values = load_config_file(config_path or DEFAULT_CONFIG_PATH)
    for field, var in ENV_VARS.items():
        if os.environ.get(var):
            values[field] = os.environ[var]

    settings = Settings.model_validate(values)
    return settings.model_copy(update={"db_path": settings.db_path.expanduser()})
