"""Configuration loader for the feedback pipeline."""

from dataclasses import dataclass, field
from pathlib import Path

from common.config import ConfigSingleton, find_config_path, load_yaml

CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"
CONFIG_ENV_VAR = "PIPELINE_CONFIG"


@dataclass
class ScrapeConfig:
    subreddit: str = "whoop"
    search_terms: list[str] = field(default_factory=lambda: ["WHOOP 5.0"])
    limit: int = 100
    timeframe: str = "month"
    sort: str = "new"
    request_timeout: int = 30
    term_delay: float = 1.0


@dataclass
class CleanConfig:
    batch_size: int = 100
    batch_delay: float = 0.1


@dataclass
class EmbeddingConfig:
    model: str = "text-embedding-ada-002"
    max_chars: int = 6000
    batch_size: int = 100
    batch_delay: float = 1.0
    max_attempts: int = 3
    retry_delay: float = 2.0
    cost_per_1k_tokens: float = 0.0001
    request_timeout: int = 30


@dataclass
class IndexConfig:
    backend: str = "postgres"  # "postgres" or "memory"
    batch_size: int = 100
    batch_delay: float = 0.5
    similarity_threshold: float = 0.7
    search_limit: int = 10


@dataclass
class ScheduleConfig:
    cron: str | None = None


@dataclass
class PipelineConfig:
    product_id: str = "whoop"
    save_posts: bool = True
    scrape: ScrapeConfig = field(default_factory=ScrapeConfig)
    clean: CleanConfig = field(default_factory=CleanConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)


def load_config(config_name: str | None = None) -> PipelineConfig:
    """Load configuration from YAML file.

    Args:
        config_name: Name of config file (without .yaml extension).
                    If None, uses PIPELINE_CONFIG env var or "default".

    Returns:
        Loaded PipelineConfig object
    """
    config_path = find_config_path(config_name, CONFIG_DIR, env_var=CONFIG_ENV_VAR)
    return _parse_config(load_yaml(config_path))


def _parse_config(data: dict) -> PipelineConfig:
    """Parse config dictionary into PipelineConfig object."""
    scrape_data = data.get("scrape", {})
    scrape = ScrapeConfig(
        subreddit=scrape_data.get("subreddit", "whoop"),
        search_terms=scrape_data.get("search_terms", ["WHOOP 5.0"]),
        limit=scrape_data.get("limit", 100),
        timeframe=scrape_data.get("timeframe", "month"),
        sort=scrape_data.get("sort", "new"),
        request_timeout=scrape_data.get("request_timeout", 30),
        term_delay=scrape_data.get("term_delay", 1.0),
    )

    clean_data = data.get("clean", {})
    clean = CleanConfig(
        batch_size=clean_data.get("batch_size", 100),
        batch_delay=clean_data.get("batch_delay", 0.1),
    )

    embedding_data = data.get("embedding", {})
    embedding = EmbeddingConfig(
        model=embedding_data.get("model", "text-embedding-ada-002"),
        max_chars=embedding_data.get("max_chars", 6000),
        batch_size=embedding_data.get("batch_size", 100),
        batch_delay=embedding_data.get("batch_delay", 1.0),
        max_attempts=embedding_data.get("max_attempts", 3),
        retry_delay=embedding_data.get("retry_delay", 2.0),
        cost_per_1k_tokens=embedding_data.get("cost_per_1k_tokens", 0.0001),
        request_timeout=embedding_data.get("request_timeout", 30),
    )

    index_data = data.get("index", {})
    index = IndexConfig(
        backend=index_data.get("backend", "postgres"),
        batch_size=index_data.get("batch_size", 100),
        batch_delay=index_data.get("batch_delay", 0.5),
        similarity_threshold=index_data.get("similarity_threshold", 0.7),
        search_limit=index_data.get("search_limit", 10),
    )

    schedule = ScheduleConfig(cron=data.get("schedule", {}).get("cron"))

    return PipelineConfig(
        product_id=data.get("product_id", "whoop"),
        save_posts=data.get("save_posts", True),
        scrape=scrape,
        clean=clean,
        embedding=embedding,
        index=index,
        schedule=schedule,
    )


_manager: ConfigSingleton[PipelineConfig] = ConfigSingleton(load_config)
get_config = _manager.get
set_config = _manager.set
reset_config = _manager.reset
