from pathlib import Path

import pytest
import yaml

from ioc_intel.config import (
    AppConfig,
    apply_config_overrides,
    get_last_loaded_config_path,
    get_persisted_config_path,
    load_app_config,
    load_config_yaml,
    save_config_yaml,
)
from ioc_intel.errors import ConfigError


def test_missing_file_is_empty(clean_env):
    assert load_config_yaml(clean_env / "nope.yaml") == {}
    assert get_last_loaded_config_path() is None


def test_empty_file_is_empty(clean_env):
    p = clean_env / "config.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config_yaml(p) == {}
    assert get_last_loaded_config_path() == str(p)


@pytest.mark.parametrize("content", ["a: [", "- 1\n- 2\n", "just a string"])
def test_bad_documents_raise(clean_env, content):
    p = clean_env / "config.yaml"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_yaml(p)


def test_overrides_are_coerced():
    cfg = apply_config_overrides(
        AppConfig(),
        {"save_delay_s": "0.25", "treat_empty_as_none": "no", "use_local_storage": True, "data_dir": 7, "theme": "dark"},
    )
    assert cfg.save_delay_s == 0.25
    assert cfg.treat_empty_as_none is False
    assert cfg.use_local_storage is True
    assert cfg.data_dir == "7"
    assert not hasattr(cfg, "theme")


@pytest.mark.parametrize(
    "overrides",
    [{"open_in_browser": "maybe"}, {"save_max_wait_s": "soon"}, {"save_delay_s": -1}, {"log_filename": None}],
)
def test_bad_override_values_raise(overrides):
    with pytest.raises(ConfigError):
        apply_config_overrides(AppConfig(), overrides)


def test_defaults_without_any_file(clean_env):
    cfg = load_app_config()
    assert cfg == AppConfig()
    assert cfg.preferences_path == Path("data") / "preferences.json"


def test_file_then_env(clean_env, monkeypatch):
    data_dir = clean_env / "state"
    data_dir.mkdir()
    (data_dir / "config.yaml").write_text(
        "data_dir: elsewhere\nsave_delay_s: 2\nsave_max_wait_s: 4\nuse_local_storage: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("IOC_INTEL_DATA_DIR", str(data_dir))
    monkeypatch.setenv("IOC_INTEL_SAVE_MAX_WAIT_S", "0.75")

    cfg = load_app_config()

    assert cfg.data_dir == str(data_dir)
    assert cfg.save_delay_s == 2.0
    assert cfg.save_max_wait_s == 0.75
    assert cfg.preferences_path == data_dir / "local_preferences.json"


def test_explicit_path(clean_env):
    p = clean_env / "custom.yaml"
    p.write_text("open_in_browser: yes\n", encoding="utf-8")
    assert load_app_config(p).open_in_browser is True


def test_log_level_from_file_then_env(clean_env, monkeypatch):
    (clean_env / "quiet.yaml").write_text("log_level: warning\n", encoding="utf-8")
    assert load_app_config(clean_env / "quiet.yaml").log_level == "warning"

    monkeypatch.setenv("IOC_INTEL_LOG_LEVEL", "DEBUG")
    assert load_app_config(clean_env / "quiet.yaml").log_level == "DEBUG"


def test_save_merges_and_writes_atomically(clean_env):
    path = get_persisted_config_path(str(clean_env))
    path.write_text("theme: dark\nsave_delay_s: 9\n", encoding="utf-8")

    cfg = AppConfig(data_dir=str(clean_env), save_delay_s=0.3)
    assert save_config_yaml(cfg) == path

    doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert doc["theme"] == "dark"
    assert doc["save_delay_s"] == 0.3
    assert sorted(p.name for p in clean_env.iterdir()) == ["config.yaml"]
    assert load_app_config(path) == cfg
