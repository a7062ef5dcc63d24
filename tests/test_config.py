"""Tests for YAML configuration loading."""

import pytest

from autotag.utils.config import ConfigManager, get_default_config, load_config
from autotag.utils.errors import ConfigurationError


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestConfigManager:

    def test_dot_notation(self):
        manager = ConfigManager({"analyzers": {"key": {"frame_size": 4096}}})
        assert manager.get("analyzers.key.frame_size") == 4096
        assert manager.get("analyzers.tempo.max_bpm", 200) == 200

    def test_required_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager({}).get("store.max_attempts", required=True)
        assert exc_info.value.config_key == "store.max_attempts"

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AUTOTAG_TEST_LEVEL", "DEBUG")
        path = _write(tmp_path, "logging:\n  level: ${AUTOTAG_TEST_LEVEL}\n  file: ${AUTOTAG_UNSET_VAR}\n")
        manager = ConfigManager.from_file(path)
        assert manager.get("logging.level") == "DEBUG"
        assert manager.get("logging.file") == "${AUTOTAG_UNSET_VAR}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager.from_file(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager.from_file(_write(tmp_path, "audio: [unclosed\n"))

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager.from_file(_write(tmp_path, "- a\n- b\n"))

    def test_to_dict_is_a_copy(self):
        manager = ConfigManager({"a": {"b": 1}})
        manager.to_dict()["a"]["b"] = 2
        assert manager.get("a.b") == 1


class TestLoadConfig:

    def test_file_overrides_are_merged(self, tmp_path):
        path = _write(tmp_path, "reconcile:\n  key_confidence_threshold: 0.25\n")
        config = load_config(str(path))
        assert config["reconcile"]["key_confidence_threshold"] == 0.25
        assert config["reconcile"]["bpm_confidence_threshold"] == 0.3
        assert config["audio"]["target_sample_rate"] == 22050

    def test_wrong_type_is_rejected(self, tmp_path):
        path = _write(tmp_path, "performance:\n  max_workers: many\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(path))
        assert exc_info.value.config_key == "performance.max_workers"

    def test_unknown_log_format_is_rejected(self, tmp_path):
        path = _write(tmp_path, "logging:\n  format: xml\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(path))
        assert exc_info.value.config_key == "logging.format"

    def test_int_accepted_for_float(self, tmp_path):
        path = _write(tmp_path, "audio:\n  max_duration: 30\n")
        assert load_config(str(path))["audio"]["max_duration"] == 30

    def test_search_falls_back_to_bundled_or_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config()
        defaults = get_default_config()
        assert config["analyzers"] == defaults["analyzers"]
        assert config["reconcile"] == defaults["reconcile"]

    def test_defaults_have_every_section(self):
        config = get_default_config()
        for section in ("audio", "analyzers", "reconcile", "uploads", "store",
                        "logging", "performance"):
            assert section in config
