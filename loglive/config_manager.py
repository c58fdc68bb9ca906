"""Configuration manager for LogLive using TOML files."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict

import toml

from .config import CONFIG_FILE
from .models import EnvironmentPolicy

logger = logging.getLogger(__name__)

SECTION = "evaluation"


@dataclass
class Settings:
    """Evaluation settings, read at the start of every run."""

    show_all_expressions: bool = False
    eval_timeout: float = 1.0
    environment_policy: EnvironmentPolicy = EnvironmentPolicy.FRESH
    inspect_depth: int = 2
    notify_failures: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["environment_policy"] = self.environment_policy.value
        return data


DEFAULT_SETTINGS: Dict[str, Any] = Settings().to_dict()


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _parse_timeout(value: Any) -> float:
    timeout = float(value)
    if timeout <= 0:
        raise ValueError("eval_timeout must be positive")
    return timeout


def _parse_depth(value: Any) -> int:
    depth = int(value)
    if depth < 0:
        raise ValueError("inspect_depth must not be negative")
    return depth


# Setting name -> parser accepting TOML values and CLI strings
SETTING_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "show_all_expressions": _parse_bool,
    "eval_timeout": _parse_timeout,
    "environment_policy": lambda value: EnvironmentPolicy(str(value).strip().lower()),
    "inspect_depth": _parse_depth,
    "notify_failures": _parse_bool,
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    try:
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.error("Could not write config file %s: %s", CONFIG_FILE, exc)
        return False


def load_settings() -> Settings:
    """Load evaluation settings from the ``[evaluation]`` section.

    Returns:
        Settings with every missing or invalid value replaced by its default.
    """
    section = load_full_config().get(SECTION, {})
    values: Dict[str, Any] = {}
    for key, parse in SETTING_PARSERS.items():
        if key not in section:
            continue
        try:
            values[key] = parse(section[key])
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid value for %s in %s: %s", key, CONFIG_FILE, exc)
    return Settings(**values)


def save_setting(key: str, value: Any) -> Any:
    """Validate and persist one setting.

    Preserves other keys and sections in the file.

    Args:
        key: Setting name (one of ``SETTING_PARSERS``).
        value: New value; strings are converted to the setting's type.

    Returns:
        The converted value that was written.

    Raises:
        KeyError: Unknown setting name.
        ValueError: The value does not convert, or the file could not be written.
    """
    if key not in SETTING_PARSERS:
        raise KeyError(key)
    parsed = SETTING_PARSERS[key](value)
    config = load_full_config()
    section = config.setdefault(SECTION, {})
    section[key] = parsed.value if isinstance(parsed, EnvironmentPolicy) else parsed
    if not _save_full_config(config):
        raise ValueError(f"could not write {CONFIG_FILE}")
    return parsed


def reset_settings() -> bool:
    """Remove the ``[evaluation]`` section, resetting every setting to its default."""
    config = load_full_config()
    config.pop(SECTION, None)
    return _save_full_config(config)


def settings_loader(**overrides: Any) -> Callable[[], Settings]:
    """Return a loader that reads the config file and applies *overrides*.

    ``None`` overrides are ignored, so CLI options left unset fall through
    to the file.
    """
    active = {key: value for key, value in overrides.items() if value is not None}
    unknown = set(active) - set(SETTING_PARSERS)
    if unknown:
        raise KeyError(", ".join(sorted(unknown)))

    def load() -> Settings:
        return replace(load_settings(), **{key: SETTING_PARSERS[key](value) for key, value in active.items()})

    return load
