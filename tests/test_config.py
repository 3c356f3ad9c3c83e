"""Tests for stream_sniffer/config.py: SnifferConfig and its loaders."""

import dataclasses

import pytest

from stream_sniffer.config import SnifferConfig, load_config, load_yaml_config

_ENV_VARS = ("SNIFFER_HIGH_WATER_MARK", "SNIFFER_READ_CHUNK_SIZE", "SNIFFER_CONFIG")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ── Defaults ─────────────────────────────────────────────────────

class TestSnifferConfigDefaults:
    def test_default_high_water_mark(self):
        assert SnifferConfig().high_water_mark == 16384

    def test_default_read_chunk_size(self):
        assert SnifferConfig().read_chunk_size == 65536

    def test_frozen(self):
        cfg = SnifferConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.high_water_mark = 1


# ── from_env ─────────────────────────────────────────────────────

class TestFromEnv:
    def test_defaults_without_env(self):
        assert SnifferConfig.from_env() == SnifferConfig()

    def test_reads_env_vars(self, monkeypatch):
        monkeypatch.setenv("SNIFFER_HIGH_WATER_MARK", "1024")
        monkeypatch.setenv("SNIFFER_READ_CHUNK_SIZE", " 512 ")
        cfg = SnifferConfig.from_env()
        assert cfg.high_water_mark == 1024
        assert cfg.read_chunk_size == 512

    def test_blank_env_var_ignored(self, monkeypatch):
        monkeypatch.setenv("SNIFFER_HIGH_WATER_MARK", "")
        assert SnifferConfig.from_env().high_water_mark == 16384

    @pytest.mark.parametrize("value", ["abc", "0", "-5"])
    def test_invalid_env_var(self, monkeypatch, value):
        monkeypatch.setenv("SNIFFER_READ_CHUNK_SIZE", value)
        with pytest.raises(ValueError, match="SNIFFER_READ_CHUNK_SIZE"):
            SnifferConfig.from_env()


# ── YAML ─────────────────────────────────────────────────────────

class TestLoadYamlConfig:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "nope.yml")) == {}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_yaml_config(str(path)) == {}

    def test_reads_mapping(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("high_water_mark: 2048\n")
        assert load_yaml_config(str(path)) == {"high_water_mark": 2048}

    def test_drops_unknown_keys(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("read_chunk_size: 256\ntimeout: 5\n")
        assert load_yaml_config(str(path)) == {"read_chunk_size": 256}

    def test_rejects_non_positive_value(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("read_chunk_size: 0\n")
        with pytest.raises(ValueError, match="read_chunk_size"):
            load_yaml_config(str(path))

    def test_rejects_non_mapping_document(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("just a string\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_config(str(path))


class TestLoadConfig:
    def test_defaults(self):
        assert load_config() == SnifferConfig()

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("high_water_mark: 2048\nread_chunk_size: 4096\n")
        cfg = load_config(str(path))
        assert cfg.high_water_mark == 2048
        assert cfg.read_chunk_size == 4096

    def test_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "sniffer.yml"
        path.write_text("read_chunk_size: 128\n")
        monkeypatch.setenv("SNIFFER_CONFIG", str(path))
        assert load_config().read_chunk_size == 128

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "sniffer.yml"
        path.write_text("high_water_mark: 2048\n")
        monkeypatch.setenv("SNIFFER_HIGH_WATER_MARK", "99")
        assert load_config(str(path)).high_water_mark == 99

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("timeout: 5\n")
        assert load_config(str(path)) == SnifferConfig()

    def test_invalid_yaml_value(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("high_water_mark: -1\n")
        with pytest.raises(ValueError, match="high_water_mark"):
            load_config(str(path))

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "sniffer.yml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(str(path))
