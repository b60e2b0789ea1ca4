"""
Centralised settings for gator (env-first, optional read-only YAML file).

The YAML file mirrors the keys of the classic ``~/.gatorconfig.json``
(``db_url``, ``current_user_name``) plus a few fetch knobs. Environment
variables win over the file; ``${VAR}`` placeholders inside the file are
expanded from the environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from gator.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.gatorconfig.yaml")


@dataclass
class GatorSettings:
    db_url: str = "sqlite:///gator.db"
    current_user_name: Optional[str] = None
    fetch_timeout: float = 10.0
    user_agent: str = "gator"
    log_level: str = "INFO"
    config_path: Optional[Path] = None


def _expand_env(data: Any) -> Any:
    if isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        return os.getenv(data[2:-1], "")
    if isinstance(data, dict):
        return {k: _expand_env(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env(item) for item in data]
    return data


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read the YAML config; a missing file is an empty config, an unreadable one is an error."""
    if not path.exists():
        logger.debug("Config file %s not found; using defaults", path)
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a mapping, got {type(data).__name__}")
    return _expand_env(data)


def _float_value(key: str, raw: Any, default: float) -> float:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
        return value if value > 0 else default
    except (TypeError, ValueError):
        logger.warning("Invalid number for %s=%s; using default %s", key, raw, default)
        return default


def _pick(env_key: str, file_data: Dict[str, Any], file_key: str) -> Any:
    raw = os.getenv(env_key)
    if raw is not None and raw.strip() != "":
        return raw
    return file_data.get(file_key)


def load_settings(config_path: Optional[Path] = None) -> GatorSettings:
    path = config_path or Path(os.getenv("GATOR_CONFIG") or DEFAULT_CONFIG_PATH).expanduser()
    file_data = load_config_file(path)
    defaults = GatorSettings()
    return GatorSettings(
        db_url=_pick("GATOR_DB_URL", file_data, "db_url") or defaults.db_url,
        current_user_name=_pick("GATOR_USER", file_data, "current_user_name") or None,
        fetch_timeout=_float_value(
            "fetch_timeout", _pick("GATOR_FETCH_TIMEOUT", file_data, "fetch_timeout"), defaults.fetch_timeout
        ),
        user_agent=_pick("GATOR_USER_AGENT", file_data, "user_agent") or defaults.user_agent,
        log_level=str(_pick("GATOR_LOG_LEVEL", file_data, "log_level") or defaults.log_level).upper(),
        config_path=path,
    )
