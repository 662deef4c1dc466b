"""Tests for energymon.config."""

from __future__ import annotations

import tomllib
from pathlib import Path
from unittest.mock import patch

import pytest

from energymon.config import DEFAULT_CONFIG, _deep_merge, dump_default_config, load_config


class TestLoadConfigDefaults:
    def test_defaults_returned_when_no_file(self, tmp_path: Path) -> None:
        # Point the default location somewhere empty
        with patch("energymon.config._DEFAULT_PATH", tmp_path / "missing.toml"):
            cfg = load_config(None)
        assert cfg["source"]["url"] == DEFAULT_CONFIG["source"]["url"]
        assert cfg["source"]["timeout"] == 10.0
        assert cfg["log_file"] == ""

    def test_all_default_keys_present(self, tmp_path: Path) -> None:
        with patch("energymon.config._DEFAULT_PATH", tmp_path / "missing.toml"):
            cfg = load_config(None)
        assert set(cfg.keys()) == set(DEFAULT_CONFIG.keys())

    def test_defaults_not_shared(self, tmp_path: Path) -> None:
        with patch("energymon.config._DEFAULT_PATH", tmp_path / "missing.toml"):
            cfg = load_config(None)
        cfg["source"]["url"] = "http://changed"
        assert DEFAULT_CONFIG["source"]["url"] != "http://changed"

    def test_default_location_used(self, tmp_path: Path) -> None:
        default = tmp_path / "config.toml"
        default.write_text('log_level = "DEBUG"\n')
        with patch("energymon.config._DEFAULT_PATH", default):
            cfg = load_config(None)
        assert cfg["log_level"] == "DEBUG"

    def test_invalid_default_location_ignored(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        default = tmp_path / "config.toml"
        default.write_text("this is [not valid toml\n")
        with patch("energymon.config._DEFAULT_PATH", default):
            cfg = load_config(None)
        assert cfg["log_level"] == "INFO"
        assert "ignoring invalid TOML" in capsys.readouterr().err


class TestTomlOverlay:
    def test_overrides_source_url(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "config.toml"
        toml_file.write_text('[source]\nurl = "http://localhost:8080/exec"\n')
        cfg = load_config(toml_file)
        assert cfg["source"]["url"] == "http://localhost:8080/exec"
        # Other source keys remain at defaults
        assert cfg["source"]["timeout"] == 10.0

    def test_overrides_scalar(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "config.toml"
        toml_file.write_text('log_file = "/tmp/energymon.log"\n')
        cfg = load_config(toml_file)
        assert cfg["log_file"] == "/tmp/energymon.log"
        assert cfg["source"] == DEFAULT_CONFIG["source"]


class TestExplicitPath:
    def test_missing_explicit_path_errors(self, tmp_path: Path) -> None:
        missing = tmp_path / "nonexistent.toml"
        with pytest.raises(SystemExit):
            load_config(missing)

    def test_invalid_toml_errors(self, tmp_path: Path) -> None:
        bad_file = tmp_path / "bad.toml"
        bad_file.write_text("this is [not valid toml\n")
        with pytest.raises(SystemExit):
            load_config(bad_file)


class TestDumpDefaultConfig:
    def test_is_valid_toml(self) -> None:
        parsed = tomllib.loads(dump_default_config())
        assert "source" in parsed
        assert "log_level" in parsed

    def test_roundtrips_defaults(self) -> None:
        parsed = tomllib.loads(dump_default_config())
        assert parsed["source"]["url"] == DEFAULT_CONFIG["source"]["url"]
        assert parsed["source"]["timeout"] == DEFAULT_CONFIG["source"]["timeout"]
        assert parsed["log_file"] == ""


class TestDeepMerge:
    def test_scalar_overwrite(self) -> None:
        result = _deep_merge({"a": 1, "b": 2}, {"a": 10})
        assert result == {"a": 10, "b": 2}

    def test_nested_dict_merge(self) -> None:
        base = {"x": {"a": 1, "b": 2}}
        overlay = {"x": {"b": 3, "c": 4}}
        result = _deep_merge(base, overlay)
        assert result["x"] == {"a": 1, "b": 3, "c": 4}

    def test_new_key_added(self) -> None:
        result = _deep_merge({"a": 1}, {"b": 2})
        assert result == {"a": 1, "b": 2}
