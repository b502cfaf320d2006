"""
Configuration management for starwatch.

The configuration is stored as a TOML file in the starwatch home directory
(``$STARWATCH_HOME`` or ``~/.starwatch``). It names the star list to sync,
where the database and snapshot cache live, and which providers to use for
summarization and embedding. Credentials come from the environment and are
never written back to the file.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .types import DEFAULT_EMBEDDING_DIMENSION


CONFIG_FILENAME = "starwatch.toml"
CONFIG_VERSION = 1

DEFAULT_DB_FILENAME = "starwatch.db"
DEFAULT_CACHE_FILENAME = "stars.json"

DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

DEFAULT_ENRICH_CONCURRENCY = 5
DEFAULT_EMBED_BATCH_SIZE = 256

# Provider params that hold secrets; kept out of the TOML file
_SECRET_PARAMS = frozenset({"api_key"})


@dataclass
class ProviderConfig:
    """Configuration for a single provider."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncConfig:
    """Complete starwatch configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    star_list_id: str = ""
    github_token: str = ""
    db_path: Optional[Path] = None
    cache_path: Optional[Path] = None

    summarization: ProviderConfig = field(
        default_factory=lambda: ProviderConfig("openai", {"model": DEFAULT_LLM_MODEL})
    )
    embedding: ProviderConfig = field(
        default_factory=lambda: ProviderConfig("openai", {"model": DEFAULT_EMBEDDING_MODEL})
    )
    embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION
    enrich_concurrency: int = DEFAULT_ENRICH_CONCURRENCY
    embed_batch_size: int = DEFAULT_EMBED_BATCH_SIZE

    def __post_init__(self):
        if self.db_path is None:
            self.db_path = self.path / DEFAULT_DB_FILENAME
        if self.cache_path is None:
            self.cache_path = self.path / DEFAULT_CACHE_FILENAME

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_home_directory() -> Path:
    """Resolve the starwatch home directory."""
    home = os.environ.get("STARWATCH_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".starwatch"


def apply_env_overrides(config: SyncConfig) -> SyncConfig:
    """
    Overlay environment variables onto a loaded config.

    Environment always wins over the file so that tokens and API keys
    can stay out of it.
    """
    env = os.environ

    if env.get("GITHUB_TOKEN"):
        config.github_token = env["GITHUB_TOKEN"]
    if env.get("STAR_LIST_ID"):
        config.star_list_id = env["STAR_LIST_ID"]
    if env.get("STARWATCH_DB"):
        config.db_path = Path(env["STARWATCH_DB"]).expanduser()
    if env.get("STARWATCH_CACHE"):
        config.cache_path = Path(env["STARWATCH_CACHE"]).expanduser()

    summ = config.summarization.params
    if env.get("LLM_BASE_URL"):
        summ["base_url"] = env["LLM_BASE_URL"]
    if env.get("LLM_API_KEY"):
        summ["api_key"] = env["LLM_API_KEY"]
    if env.get("LLM_MODEL"):
        summ["model"] = env["LLM_MODEL"]
    if config.summarization.name == "openai":
        summ.setdefault("base_url", DEFAULT_LLM_BASE_URL)
        summ.setdefault("model", DEFAULT_LLM_MODEL)

    emb = config.embedding.params
    if env.get("EMBEDDING_BASE_URL"):
        emb["base_url"] = env["EMBEDDING_BASE_URL"]
    if env.get("EMBEDDING_API_KEY"):
        emb["api_key"] = env["EMBEDDING_API_KEY"]
    if env.get("EMBEDDING_MODEL"):
        emb["model"] = env["EMBEDDING_MODEL"]
    if config.embedding.name == "openai":
        emb.setdefault("model", DEFAULT_EMBEDDING_MODEL)
    emb.setdefault("dimensions", config.embedding_dimension)

    return config


def load_config(home_path: Path) -> SyncConfig:
    """
    Load configuration from a starwatch home directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = home_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    def parse_provider(section: dict, default: str) -> ProviderConfig:
        return ProviderConfig(
            name=section.get("name", default),
            params={k: v for k, v in section.items() if k != "name"},
        )

    github = data.get("github", {})
    sync = data.get("sync", {})

    db_path = store.get("db_path")
    cache_path = store.get("cache_path")

    try:
        return SyncConfig(
            path=home_path,
            version=version,
            created=store.get("created", ""),
            star_list_id=github.get("star_list_id", ""),
            db_path=Path(db_path).expanduser() if db_path else None,
            cache_path=Path(cache_path).expanduser() if cache_path else None,
            summarization=parse_provider(data.get("summarization", {}), "openai"),
            embedding=parse_provider(data.get("embedding", {}), "openai"),
            embedding_dimension=int(sync.get("embedding_dimension", DEFAULT_EMBEDDING_DIMENSION)),
            enrich_concurrency=int(sync.get("enrich_concurrency", DEFAULT_ENRICH_CONCURRENCY)),
            embed_batch_size=int(sync.get("embed_batch_size", DEFAULT_EMBED_BATCH_SIZE)),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e


def save_config(config: SyncConfig) -> None:
    """
    Save configuration to the home directory.

    Creates the directory if it doesn't exist. Secret provider params
    are not written.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    def provider_to_dict(p: ProviderConfig) -> dict:
        d = {"name": p.name}
        d.update({k: v for k, v in p.params.items() if k not in _SECRET_PARAMS})
        return d

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
            "db_path": str(config.db_path),
            "cache_path": str(config.cache_path),
        },
        "github": {
            "star_list_id": config.star_list_id,
        },
        "sync": {
            "embedding_dimension": config.embedding_dimension,
            "enrich_concurrency": config.enrich_concurrency,
            "embed_batch_size": config.embed_batch_size,
        },
        "summarization": provider_to_dict(config.summarization),
        "embedding": provider_to_dict(config.embedding),
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(home_path: Optional[Path] = None) -> SyncConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management. Environment
    overrides are applied after loading.
    """
    home_path = home_path or get_home_directory()
    config_path = home_path / CONFIG_FILENAME

    if config_path.exists():
        config = load_config(home_path)
    else:
        config = SyncConfig(path=home_path)
        save_config(config)

    return apply_env_overrides(config)
