"""
Configuration for the study indexer.

Uses Pydantic for validation and environment loading.
Repositories are configured in a TOML file, one [[repository]] table each.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

OAI_PMH_HANDLER = "OAI-PMH"


class Repository(BaseModel):
    """A remote repository endpoint to harvest."""

    model_config = ConfigDict(frozen=True)

    url: str
    code: str
    name: str
    handler: str = OAI_PMH_HANDLER
    metadata_prefix: str = "ddi"
    set_spec: Optional[str] = None
    default_language: Optional[str] = Field(
        default=None, description="Overrides the global default language if set"
    )


class OaiPmhConfig(BaseModel):
    """Parsing options for harvested records."""

    default_language: str = Field(
        default="en", description="Language used when a record declares none"
    )
    concat_repeated_elements: bool = Field(
        default=True, description="Join repeated elements of the same language"
    )
    concat_separator: str = Field(default="<br>")
    request_timeout: float = Field(
        default=30.0, description="Repository request timeout in seconds"
    )


class SearchConfig(BaseModel):
    """Elasticsearch connection settings."""

    url: str = Field(default="http://localhost:9200")
    index_prefix: str = Field(default="cmmstudy")
    username: Optional[str] = None
    password: Optional[str] = None
    page_size: int = Field(default=500, description="Hits per scroll page")
    scroll_timeout: str = Field(default="60s")
    request_timeout: float = Field(default=60.0)


class HarvesterConfig(BaseModel):
    """Concurrency limits for a harvest run."""

    max_concurrent_repositories: int = Field(default=4)
    max_concurrent_lookups: int = Field(
        default=16, description="Concurrent index lookups while diffing"
    )


class SchedulerConfig(BaseModel):
    """Harvest trigger settings."""

    enabled: bool = True
    initial_delay_sec: int = Field(default=60)
    full_run_interval_sec: int = Field(
        default=7 * 24 * 3600, description="Fixed delay between full harvests"
    )
    daily_incremental_cron: str = Field(default="0 4 * * *")
    weekly_full_cron: str = Field(default="0 1 * * sun")


class IndexerConfig(BaseSettings):
    """Master configuration for the indexer."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    service_name: str = Field(default="studyindexer")
    log_level: str = Field(default="INFO")

    languages: list[str] = Field(
        default_factory=lambda: ["en"], description="Target index languages"
    )
    repositories_file: str = Field(default="repositories.toml")

    oai_pmh: OaiPmhConfig = Field(default_factory=OaiPmhConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    harvester: HarvesterConfig = Field(default_factory=HarvesterConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    @classmethod
    def from_env(cls) -> "IndexerConfig":
        """Load configuration from environment variables."""
        return cls(
            service_name=os.getenv("SERVICE_NAME", "studyindexer"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            languages=_split_list(os.getenv("INDEXER_LANGUAGES", "en")),
            repositories_file=os.getenv(
                "INDEXER_REPOSITORIES_FILE", "repositories.toml"
            ),
            oai_pmh=OaiPmhConfig(
                default_language=os.getenv("OAI_DEFAULT_LANGUAGE", "en"),
                concat_repeated_elements=os.getenv(
                    "OAI_CONCAT_REPEATED_ELEMENTS", "true"
                ).lower()
                == "true",
                concat_separator=os.getenv("OAI_CONCAT_SEPARATOR", "<br>"),
                request_timeout=float(os.getenv("OAI_REQUEST_TIMEOUT", "30.0")),
            ),
            search=SearchConfig(
                url=os.getenv("ELASTICSEARCH_URL", "http://localhost:9200"),
                index_prefix=os.getenv("ELASTICSEARCH_INDEX_PREFIX", "cmmstudy"),
                username=os.getenv("ELASTICSEARCH_USERNAME"),
                password=os.getenv("ELASTICSEARCH_PASSWORD"),
                page_size=int(os.getenv("ELASTICSEARCH_PAGE_SIZE", "500")),
                scroll_timeout=os.getenv("ELASTICSEARCH_SCROLL_TIMEOUT", "60s"),
                request_timeout=float(
                    os.getenv("ELASTICSEARCH_REQUEST_TIMEOUT", "60.0")
                ),
            ),
            harvester=HarvesterConfig(
                max_concurrent_repositories=int(
                    os.getenv("HARVESTER_MAX_CONCURRENT_REPOSITORIES", "4")
                ),
                max_concurrent_lookups=int(
                    os.getenv("HARVESTER_MAX_CONCURRENT_LOOKUPS", "16")
                ),
            ),
            scheduler=SchedulerConfig(
                enabled=os.getenv("SCHEDULER_ENABLED", "true").lower() == "true",
                initial_delay_sec=int(os.getenv("SCHEDULER_INITIAL_DELAY_SEC", "60")),
                full_run_interval_sec=int(
                    os.getenv("SCHEDULER_FULL_RUN_INTERVAL_SEC", str(7 * 24 * 3600))
                ),
                daily_incremental_cron=os.getenv(
                    "SCHEDULER_DAILY_INCREMENTAL_CRON", "0 4 * * *"
                ),
                weekly_full_cron=os.getenv("SCHEDULER_WEEKLY_FULL_CRON", "0 1 * * sun"),
            ),
        )


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_repositories(path: str | Path) -> list[Repository]:
    """Load repository endpoints from a TOML file.

    Expected layout::

        [[repository]]
        code = "UKDS"
        name = "UK Data Service"
        url = "https://oai.ukdataservice.ac.uk:8443/oai/provider"
        metadata_prefix = "ddi"

    Invalid entries are logged and skipped.
    """
    repositories_file = Path(path)
    if not repositories_file.exists():
        raise FileNotFoundError(f"Repositories file not found: {repositories_file}")

    with open(repositories_file, "rb") as f:
        data = tomllib.load(f)

    repositories = []
    for entry in data.get("repository", []):
        try:
            repositories.append(Repository(**entry))
        except ValidationError as e:
            logger.warning(f"Skipping invalid repository {entry.get('code', '?')}: {e}")

    return repositories


# Global config instance
_config: Optional[IndexerConfig] = None


def get_config() -> IndexerConfig:
    """Get or create the global config, loaded from the environment."""
    global _config
    if _config is None:
        _config = IndexerConfig.from_env()
    return _config


__all__ = [
    "OAI_PMH_HANDLER",
    "Repository",
    "OaiPmhConfig",
    "SearchConfig",
    "HarvesterConfig",
    "SchedulerConfig",
    "IndexerConfig",
    "load_repositories",
    "get_config",
]
