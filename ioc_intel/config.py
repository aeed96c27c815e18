from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import ConfigError

DATA_DIR_ENV = "IOC_INTEL_DATA_DIR"

# Keep track of which config.yaml was actually loaded; useful when a setting
# "doesn't take".
_LAST_LOADED_CONFIG_PATH: str | None = None


def _set_last_loaded_config_path(p: Path | None) -> None:
    global _LAST_LOADED_CONFIG_PATH
    _LAST_LOADED_CONFIG_PATH = str(p) if p is not None else None


def get_last_loaded_config_path() -> str | None:
    return _LAST_LOADED_CONFIG_PATH


@dataclass
class AppConfig:
    # Storage
    data_dir: str = "data"
    preferences_file: str = "preferences.json"
    # Local (per machine) file instead of the synced one.
    use_local_storage: bool = False

    # Debounced preference saves
    save_delay_s: float = 0.5
    save_max_wait_s: float = 1.0

    # Classifier: short-circuit an empty selection before pattern tests
    treat_empty_as_none: bool = True

    # Investigation
    open_in_browser: bool = False

    # Logging
    log_filename: str = "ioc_intel_debug.log"
    # Console handler level; the log file always gets DEBUG.
    log_level: str = "INFO"

    @property
    def preferences_path(self) -> Path:
        name = "local_preferences.json" if self.use_local_storage else self.preferences_file
        return Path(self.data_dir) / name


def get_persisted_config_path(data_dir: str | None = None) -> Path:
    """Return the persisted config path (``<data_dir>/config.yaml``)."""
    d = (data_dir or os.environ.get(DATA_DIR_ENV) or "data").strip() or "data"
    return Path(d) / "config.yaml"


def load_config_yaml(path: str | Path | None = None) -> Dict[str, Any]:
    """Load a YAML config file as a dict.

    A missing file is not an error (everything has a default); a file that
    doesn't hold a mapping is.
    """
    p = Path(path) if path is not None else get_persisted_config_path()
    if not p.exists():
        _set_last_loaded_config_path(None)
        return {}

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Unable to parse {p}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {p}, got {type(data).__name__}")

    _set_last_loaded_config_path(p)
    return data


def _coerce(key: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
            return False
        raise ConfigError(f"{key}: expected a boolean, got {value!r}")
    if isinstance(default, float):
        try:
            out = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{key}: expected a number, got {value!r}") from e
        if out < 0:
            raise ConfigError(f"{key}: must not be negative")
        return out
    if value is None:
        raise ConfigError(f"{key}: must not be empty")
    return str(value)


def apply_config_overrides(cfg: AppConfig, overrides: Dict[str, Any]) -> AppConfig:
    """Apply known config.yaml keys onto an AppConfig instance. Unknown keys are ignored."""
    if not overrides:
        return cfg

    for f in fields(cfg):
        if f.name in overrides:
            setattr(cfg, f.name, _coerce(f.name, overrides[f.name], getattr(cfg, f.name)))
    return cfg


def load_app_config(path: str | Path | None = None) -> AppConfig:
    """Defaults, then config.yaml, then environment variables."""
    cfg = AppConfig()
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        cfg.data_dir = env_dir

    apply_config_overrides(cfg, load_config_yaml(path if path is not None else get_persisted_config_path(cfg.data_dir)))

    env: Dict[str, Any] = {}
    if env_dir:
        # Env var wins over whatever config.yaml says.
        env["data_dir"] = env_dir
    for key, var in (
        ("save_delay_s", "IOC_INTEL_SAVE_DELAY_S"),
        ("save_max_wait_s", "IOC_INTEL_SAVE_MAX_WAIT_S"),
        ("log_level", "IOC_INTEL_LOG_LEVEL"),
    ):
        if os.environ.get(var):
            env[key] = os.environ[var]
    return apply_config_overrides(cfg, env)


def save_config_yaml(cfg: AppConfig, data_dir: str | None = None) -> Path:
    """Persist current settings to <data_dir>/config.yaml.

    Merges onto the existing file so keys this version doesn't know survive.
    """
    p = get_persisted_config_path(data_dir or cfg.data_dir)
    p.parent.mkdir(parents=True, exist_ok=True)

    merged = dict(load_config_yaml(p))
    merged.update(asdict(cfg))

    # Atomic write: write tmp then replace.
    tmp = p.with_suffix(".yaml.tmp")
    tmp.write_text(yaml.safe_dump(merged, sort_keys=False, allow_unicode=True), encoding="utf-8")
    tmp.replace(p)
    _set_last_loaded_config_path(p)
    return p
