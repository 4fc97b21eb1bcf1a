"""Tests for YAML configuration loading."""
import pytest
import yaml

from errors import ConfigError
from settings import DEFAULT_CONFIG, load_config


def test_default_config_is_created(config_home):
    config = load_config()
    created = config_home / "subnetplan" / "config.yaml"

    assert created.exists()
    assert yaml.safe_load(created.read_text()) == DEFAULT_CONFIG
    assert config["planner"]["strategy"] == "best-fit"
    assert config["path"] == str(created)


def test_legacy_config_in_current_directory(config_home, tmp_path):
    (tmp_path / "config.yaml").write_text("planner:\n  strategy: first-fit\n")

    config = load_config()

    assert config["planner"]["strategy"] == "first-fit"
    assert not (config_home / "subnetplan" / "config.yaml").exists()


def test_explicit_file_overrides_and_keeps_defaults(config_home, tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("planner:\n  usable_hosts_only: false\nlogging:\n  level: debug\n")

    config = load_config(path)

    assert config["planner"]["usable_hosts_only"] is False
    assert config["planner"]["strategy"] == "best-fit"
    assert config["planner"]["max_candidates"] == 10
    assert config["logging"]["level"] == "DEBUG"


@pytest.mark.parametrize(
    "content",
    [
        "planner:\n  strategy: worst-fit\n",
        "planner:\n  usable_hosts_only: maybe\n",
        "planner:\n  max_candidates: 0\n",
        "output:\n  format: xml\n",
        "logging:\n  level: loud\n",
        "planner: best-fit\n",
        "- just\n- a list\n",
        "planner: [unclosed\n",
    ],
)
def test_invalid_config(config_home, tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content)

    with pytest.raises(ConfigError):
        load_config(path)


def test_empty_file_uses_defaults(config_home, tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path)["output"]["format"] == "table"
