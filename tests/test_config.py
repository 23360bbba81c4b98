"""Tests for YAML configuration loading and validation."""

import logging
from pathlib import Path

import pytest

from gesture_tree.config import (
    AppConfig,
    ConfigError,
    config_from_dict,
    load_config,
    save_config,
)


def write(tmp_path, text, name="config.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestDefaults:
    def test_no_path(self):
        config = load_config()
        assert config.classifier.extension_ratio == 0.8
        assert config.classifier.unknown_resets_edge
        assert config.coordinator.cooldown_seconds == 1.0
        assert config.tree.layers == 8
        assert config.physics.fade_step == 0.02
        assert (config.display.width, config.display.height) == (1280, 720)

    def test_empty_dict(self):
        assert config_from_dict({}) == AppConfig()

    def test_empty_file(self, tmp_path):
        assert load_config(write(tmp_path, "")) == AppConfig()

    def test_rules_from_classifier_section(self):
        rules = AppConfig().classifier.rules()
        assert rules.open_min_extended == 4
        assert not hasattr(rules, "unknown_resets_edge")


class TestLoad:
    def test_partial_override(self, tmp_path):
        path = write(tmp_path, """
classifier:
  extension_ratio: 0.9
coordinator:
  cooldown_seconds: 0.5
tree:
  layers: 4
  palette: ["#00ff00", "#ff0000"]
""")
        config = load_config(path)
        assert config.classifier.extension_ratio == 0.9
        assert config.classifier.open_min_extended == 4
        assert config.coordinator.cooldown_seconds == 0.5
        assert config.tree.layers == 4
        assert config.tree.palette == ["#00ff00", "#ff0000"]
        assert config.physics.shrink_factor == 0.95

    def test_unknown_keys_warn(self, tmp_path, caplog):
        path = write(tmp_path, """
classifier:
  sensitivity: 3
sound:
  volume: 11
""")
        with caplog.at_level(logging.WARNING, logger="gesture_tree.config"):
            config = load_config(path)
        assert config == AppConfig()
        assert "sensitivity" in caplog.text
        assert "sound" in caplog.text

    def test_save_and_reload(self, tmp_path):
        config = AppConfig()
        config.physics.glow = 4.0
        config.server.port = 9000
        path = save_config(config, tmp_path / "nested" / "out.yaml")
        assert load_config(path) == config


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_bad_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write(tmp_path, "tree: [1, 2"))

    def test_top_level_list(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write(tmp_path, "- a\n- b\n"))

    def test_section_not_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict({"tree": 5})

    def test_overlapping_thresholds(self):
        with pytest.raises(ConfigError):
            config_from_dict({"classifier": {"open_min_extended": 2, "closed_max_extended": 2}})

    def test_negative_cooldown(self):
        with pytest.raises(ConfigError):
            config_from_dict({"coordinator": {"cooldown_seconds": -1}})

    def test_zero_layers(self):
        with pytest.raises(ConfigError):
            config_from_dict({"tree": {"layers": 0}})

    def test_bad_physics(self):
        with pytest.raises(ConfigError):
            config_from_dict({"physics": {"shrink_factor": 1.5}})
        with pytest.raises(ConfigError):
            config_from_dict({"physics": {"fade_step": 0}})

    def test_bad_display(self):
        with pytest.raises(ConfigError):
            config_from_dict({"display": {"fps": 0}})

    @pytest.mark.parametrize("data", [
        {"classifier": {"extension_ratio": "high"}},
        {"coordinator": {"cooldown_seconds": None}},
        {"display": {"width": "wide"}},
    ])
    def test_wrong_value_type(self, data):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            config_from_dict(data)

    def test_wrong_value_type_from_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(write(tmp_path, "coordinator:\n  cooldown_seconds:\n"))

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestExampleConfig:
    def test_example_matches_defaults(self):
        path = Path(__file__).parent.parent / "examples" / "config.yaml"
        assert load_config(path) == AppConfig()
