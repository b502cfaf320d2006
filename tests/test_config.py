"""Tests for configuration loading, saving and environment overrides."""

import pytest

from starwatch.config import (
    CONFIG_FILENAME,
    ProviderConfig,
    SyncConfig,
    apply_env_overrides,
    load_config,
    load_or_create_config,
    save_config,
)

ENV_VARS = (
    "GITHUB_TOKEN", "STAR_LIST_ID", "STARWATCH_DB", "STARWATCH_CACHE",
    "LLM_BASE_URL", "LLM_API_KEY", "LLM_MODEL",
    "EMBEDDING_BASE_URL", "EMBEDDING_API_KEY", "EMBEDDING_MODEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSyncConfig:

    def test_default_paths_under_home(self, tmp_path):
        config = SyncConfig(path=tmp_path)
        assert config.db_path == tmp_path / "starwatch.db"
        assert config.cache_path == tmp_path / "stars.json"
        assert config.config_path == tmp_path / CONFIG_FILENAME
        assert not config.exists()

    def test_default_providers(self, tmp_path):
        config = SyncConfig(path=tmp_path)
        assert config.summarization.params["model"] == "gpt-4o-mini"
        assert config.embedding.params["model"] == "text-embedding-3-small"
        assert config.embedding_dimension == 768


class TestLoadSave:

    def test_round_trip(self, tmp_path):
        config = SyncConfig(
            path=tmp_path,
            star_list_id="UL_abc",
            summarization=ProviderConfig("anthropic", {"model": "claude-haiku-4-5"}),
            embedding_dimension=512,
            enrich_concurrency=3,
        )
        save_config(config)

        loaded = load_config(tmp_path)

        assert loaded.star_list_id == "UL_abc"
        assert loaded.summarization.name == "anthropic"
        assert loaded.summarization.params == {"model": "claude-haiku-4-5"}
        assert loaded.embedding_dimension == 512
        assert loaded.enrich_concurrency == 3
        assert loaded.db_path == config.db_path

    def test_secrets_are_not_written(self, tmp_path):
        config = SyncConfig(path=tmp_path, github_token="ghp_secret")
        config.summarization.params["api_key"] = "sk-secret"
        save_config(config)

        text = config.config_path.read_text()
        assert "sk-secret" not in text
        assert "ghp_secret" not in text

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 99\n")
        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    def test_invalid_number_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text('[sync]\nembedding_dimension = "big"\n')
        with pytest.raises(ValueError, match="Invalid config"):
            load_config(tmp_path)

    def test_load_or_create_writes_defaults(self, tmp_path):
        home = tmp_path / "home"
        config = load_or_create_config(home)
        assert (home / CONFIG_FILENAME).exists()
        assert config.summarization.name == "openai"


class TestEnvOverrides:

    def test_environment_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        monkeypatch.setenv("STAR_LIST_ID", "UL_env")
        monkeypatch.setenv("STARWATCH_DB", str(tmp_path / "other.db"))
        monkeypatch.setenv("LLM_MODEL", "gpt-4.1-mini")
        monkeypatch.setenv("LLM_API_KEY", "sk-llm")
        monkeypatch.setenv("EMBEDDING_BASE_URL", "http://localhost:8080/v1")

        config = apply_env_overrides(SyncConfig(path=tmp_path, star_list_id="UL_file"))

        assert config.github_token == "ghp_env"
        assert config.star_list_id == "UL_env"
        assert config.db_path == tmp_path / "other.db"
        assert config.summarization.params["model"] == "gpt-4.1-mini"
        assert config.summarization.params["api_key"] == "sk-llm"
        assert config.embedding.params["base_url"] == "http://localhost:8080/v1"

    def test_defaults_filled_in(self, tmp_path):
        config = apply_env_overrides(SyncConfig(path=tmp_path))
        assert config.summarization.params["base_url"] == "https://api.openai.com/v1"
        assert config.embedding.params["dimensions"] == 768

    def test_explicit_dimensions_kept(self, tmp_path):
        config = SyncConfig(
            path=tmp_path,
            embedding=ProviderConfig("ollama", {"dimensions": 384}),
        )
        apply_env_overrides(config)
        assert config.embedding.params["dimensions"] == 384
        assert "model" not in config.embedding.params
