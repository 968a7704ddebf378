"""Unit tests for layered configuration."""

import pytest

from topo.config import ViewerConfig, load_config


def test_defaults():
    cfg = load_config(env={})
    assert cfg == ViewerConfig()
    assert cfg.timeout_s == 1.0
    assert cfg.refresh_delay_s == 0.5


def test_yaml_then_env_then_overrides(tmp_path):
    path = tmp_path / "mesh.yaml"
    path.write_text("base_url: http://a:1/\nport: 9000\ntimeout_s: 2\nunknown: x\n", encoding="utf-8")
    env = {"MESHVIEW_PORT": "9100", "MESHVIEW_VALIDATE": "no"}
    cfg = load_config(str(path), env=env, overrides={"timeout_s": 0.25, "host": None})
    assert cfg.base_url == "http://a:1"
    assert cfg.port == 9100
    assert cfg.validate is False
    assert cfg.timeout_s == 0.25
    assert cfg.host == "127.0.0.1"


def test_config_path_from_env(tmp_path):
    path = tmp_path / "mesh.yaml"
    path.write_text("log_level: debug\n", encoding="utf-8")
    cfg = load_config(env={"MESHVIEW_CONFIG": str(path)})
    assert cfg.log_level == "DEBUG"


def test_intervals_have_a_floor():
    cfg = load_config(env={"MESHVIEW_REFRESH_DELAY": "0"})
    assert cfg.refresh_delay_s == 0.05


@pytest.mark.parametrize("env", [{"MESHVIEW_PORT": "eighty"}, {"MESHVIEW_VALIDATE": "maybe"}])
def test_invalid_values_raise(env):
    with pytest.raises(ValueError):
        load_config(env=env)


def test_non_mapping_yaml_rejected(tmp_path):
    path = tmp_path / "mesh.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path), env={})
