"""
YAML configuration loading for the chat-ops orchestrator.

Every section of ``config/config.yaml`` maps onto one of the dataclasses in
``models.config``. Values may reference the environment as ``${VAR}`` or
``${VAR:-default}``; references are resolved before the values are coerced
to the field types declared by the dataclass defaults.
"""

import logging
import os
import re
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigurationError
from .models import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

LIMIT_MESSAGE_MODES = ("template", "provider")

_TRUTHY = {"true", "1", "yes", "on"}

_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """Expand ``${VAR}`` / ``${VAR:-default}``; unset variables without a default become ``""``."""
    return _ENV_REFERENCE.sub(
        lambda m: os.environ.get(m.group(1), m.group(2) or ""), value
    )


def _expand(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    if isinstance(data, dict):
        return {key: _expand(item) for key, item in data.items()}
    if isinstance(data, list):
        return [_expand(item) for item in data]
    return data


def _coerce(where: str, raw: Any, default: Any) -> Any:
    """Convert ``raw`` to the type of ``default``. Blank values keep the default."""
    if raw is None or raw == "":
        return default
    if isinstance(default, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in _TRUTHY
        return bool(raw)
    if isinstance(default, list):
        if not isinstance(raw, list):
            raise ConfigurationError(f"{where} must be a list of names")
        return [str(item) for item in raw]
    try:
        return type(default)(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: cannot use {raw!r} ({e})") from e


def _build_section(where: str, data: Any, defaults: Any) -> Any:
    """Overlay a YAML mapping on a dataclass instance, recursing into nested sections."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{where} must be a mapping")

    values = {}
    for f in fields(defaults):
        default = getattr(defaults, f.name)
        key = f"{where}.{f.name}" if where else f.name
        if is_dataclass(default):
            values[f.name] = _build_section(key, data.get(f.name), default)
        else:
            values[f.name] = _coerce(key, data.get(f.name), default)
    return type(defaults)(**values)


def parse_app_config(raw_config: dict) -> AppConfig:
    """Build an AppConfig from an already-loaded mapping."""
    settings = _build_section("", _expand(raw_config), AppConfig())

    mode = settings.orchestrator.limit_message
    if mode not in LIMIT_MESSAGE_MODES:
        raise ConfigurationError(
            f"orchestrator.limit_message must be one of {', '.join(LIMIT_MESSAGE_MODES)}, got '{mode}'"
        )
    return settings


def _read_yaml(config_path: Path) -> dict:
    with config_path.open("r") as handle:
        raw = yaml.safe_load(handle)
    if raw is None:
        raise ConfigurationError(f"Configuration file {config_path} is empty")
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Return the process-wide AppConfig, reading it on first use.

    Args:
        path: YAML file to read. Defaults to ``$CONFIG_PATH`` and then to the
              bundled ``config/config.yaml``.
        reload: Re-read the file even when a config is already cached.

    A missing file yields the built-in defaults; an empty or non-mapping file
    raises ConfigurationError.
    """
    global _app_config

    if _app_config is None or reload:
        config_path = Path(path or os.environ.get("CONFIG_PATH") or DEFAULT_CONFIG_PATH)
        if config_path.exists():
            logger.info(f"Reading configuration from {config_path}")
            _app_config = parse_app_config(_read_yaml(config_path))
        else:
            logger.warning(f"No configuration at {config_path}; running with defaults")
            _app_config = AppConfig()
        logger.debug(
            f"Active config: version={_app_config.version} "
            f"model={_app_config.orchestrator.model} rounds={_app_config.orchestrator.max_rounds}"
        )

    return _app_config


def reset_config_cache() -> None:
    """Drop the cached config so the next load re-reads the file."""
    global _app_config
    _app_config = None
