"""
Tests for configuration loading, validation and saving.
"""

import pytest
import yaml

from config_manager import DEFAULT_CONFIG, get_budgeting_setting, load_config, merge_config, save_config
from exceptions import ConfigError


def test_merge_config_is_recursive_and_pure():
    base = {"a": {"x": 1, "y": 2}, "b": 1}
    merged = merge_config(base, {"a": {"y": 3}, "c": 4})
    assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
    assert base == {"a": {"x": 1, "y": 2}, "b": 1}


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml", strict=True)
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_partial_file_is_merged_with_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"budgeting": {"warning_threshold": 60}, "currency_symbol": "€"}))

    config = load_config(path)

    assert config["budgeting"]["warning_threshold"] == 60
    assert config["budgeting"]["critical_threshold"] == 90.0
    assert config["currency_symbol"] == "€"
    assert config["logging"]["level"] == "INFO"


@pytest.mark.parametrize("content", [
    "budgeting: [unclosed",
    "- just\n- a list\n",
    "budgeting:\n  warning_threshold: 95\n  critical_threshold: 90\n",
    "budgeting:\n  warning_threshold: high\n",
])
def test_invalid_files(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content)

    with pytest.raises(ConfigError):
        load_config(path, strict=True)
    # lenient mode falls back to defaults
    assert load_config(path) == DEFAULT_CONFIG


def test_save_config_preserves_existing_settings(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"database": {"path": "other.db"}, "custom": True}))

    assert save_config({"budgeting": {"warning_threshold": 50}}, path) is True

    saved = yaml.safe_load(path.read_text())
    assert saved["database"]["path"] == "other.db"
    assert saved["custom"] is True
    assert saved["budgeting"]["warning_threshold"] == 50


def test_save_config_reports_failure(tmp_path):
    assert save_config({"a": 1}, tmp_path / "missing_dir" / "config.yaml") is False


def test_get_budgeting_setting():
    assert get_budgeting_setting(DEFAULT_CONFIG, "default_period") == "MONTHLY"
    assert get_budgeting_setting({}, "default_period", "WEEKLY") == "WEEKLY"
