"""Tests for treevault.config: environment overrides and load_config().

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models).
"""

import os

import pytest

from treevault.config import apply_env_overrides, load_config

_ENV_NAMES = (
    "TREEVAULT_HASH_ALGORITHM",
    "TREEVAULT_MAX_WORKERS",
    "TREEVAULT_TIMEOUT",
    "TREEVAULT_MAX_VERSIONS",
    "TREEVAULT_CONFIG",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


# -------------------------------------------------------------------------
# apply_env_overrides()
# -------------------------------------------------------------------------


class TestApplyEnvOverrides:
    def test_no_env_returns_copy(self):
        raw = {"engine": {"max_workers": 2}}
        merged = apply_env_overrides(raw)
        assert merged == raw
        merged["engine"]["max_workers"] = 9
        assert raw["engine"]["max_workers"] == 2

    def test_values_parsed(self, monkeypatch):
        monkeypatch.setenv("TREEVAULT_MAX_WORKERS", "16")
        monkeypatch.setenv("TREEVAULT_TIMEOUT", "2.5")
        monkeypatch.setenv("TREEVAULT_MAX_VERSIONS", "3")
        monkeypatch.setenv("TREEVAULT_HASH_ALGORITHM", "xxh64")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        merged = apply_env_overrides({"engine": {"max_workers": 2}})

        assert merged["engine"] == {
            "max_workers": 16,
            "timeout": 2.5,
            "hash_algorithm": "xxh64",
        }
        assert merged["versioning"] == {"max_versions": 3}
        assert merged["logging"] == {"level": "DEBUG"}

    def test_empty_value_ignored(self, monkeypatch):
        monkeypatch.setenv("TREEVAULT_MAX_WORKERS", "")
        assert apply_env_overrides({}) == {}

    def test_not_a_number(self, monkeypatch):
        monkeypatch.setenv("TREEVAULT_MAX_WORKERS", "many")
        with pytest.raises(ValueError, match="Invalid TREEVAULT_MAX_WORKERS 'many': must be a int"):
            apply_env_overrides({})

    def test_out_of_range(self, monkeypatch):
        monkeypatch.setenv("TREEVAULT_MAX_WORKERS", "100")
        with pytest.raises(ValueError, match="must be between 1 and 64"):
            apply_env_overrides({})

    def test_below_minimum(self, monkeypatch):
        monkeypatch.setenv("TREEVAULT_MAX_VERSIONS", "0")
        with pytest.raises(ValueError, match="must be at least 1"):
            apply_env_overrides({})


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    def test_defaults_without_sources(self):
        config = load_config(use_dotenv=False)
        assert config.engine.max_workers == 4
        assert config.versioning.max_versions == 10

    def test_precedence(self, monkeypatch, tmp_path):
        project = tmp_path / ".treevault" / "config.yml"
        project.parent.mkdir()
        project.write_text(
            "engine:\n  max_workers: 2\n  hash_algorithm: md5\n"
            "versioning:\n  max_versions: 5\n"
        )
        monkeypatch.setenv("TREEVAULT_MAX_WORKERS", "6")

        config = load_config({"versioning": {"max_versions": 7}}, use_dotenv=False)

        assert config.engine.hash_algorithm == "md5"
        assert config.engine.max_workers == 6
        assert config.versioning.max_versions == 7

    def test_files_can_be_disabled(self, tmp_path):
        project = tmp_path / ".treevault" / "config.yml"
        project.parent.mkdir()
        project.write_text("engine:\n  max_workers: 2\n")
        config = load_config(use_dotenv=False, use_files=False)
        assert config.engine.max_workers == 4

    def test_dotenv_file_read(self, tmp_path):
        (tmp_path / ".env").write_text("TREEVAULT_MAX_VERSIONS=4\n")
        try:
            config = load_config()
        finally:
            # load_dotenv writes os.environ directly
            os.environ.pop("TREEVAULT_MAX_VERSIONS", None)
        assert config.versioning.max_versions == 4

    def test_none_override_ignored(self):
        config = load_config({"engine": {"max_workers": None}}, use_dotenv=False)
        assert config.engine.max_workers == 4

    def test_invalid_file_value(self, tmp_path):
        project = tmp_path / ".treevault" / "config.yml"
        project.parent.mkdir()
        project.write_text("engine:\n  hash_algorithm: crc32\n")
        with pytest.raises(ValueError):
            load_config(use_dotenv=False)
