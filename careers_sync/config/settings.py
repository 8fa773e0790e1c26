"""
Application settings using Pydantic for type-safe configuration.

Loads configuration from environment variables (and a local ``.env`` file when
present) with defaults suitable for local runs and scheduled CI jobs.
"""

from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from careers_sync.job_fetcher.models import SourceConfig

# Load .env file if it exists
load_dotenv()


def parse_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class SourceSettings(BaseSettings):
    """Careers site the jobs are scraped from."""

    model_config = SettingsConfigDict(extra="ignore")

    company_id: str = Field(default="", alias="DRIVEHR_COMPANY_ID")
    careers_url: str = Field(default="", alias="DRIVEHR_CAREERS_URL")
    api_base_url: str = Field(default="", alias="DRIVEHR_API_BASE_URL")
    fetch_strategies: str = Field(default="html,browser", alias="JOB_FETCH_STRATEGIES")
    no_jobs_phrases: str = Field(default="", alias="NO_JOBS_PHRASES")

    @property
    def strategy_names(self) -> List[str]:
        return [name.lower() for name in parse_csv(self.fetch_strategies)]

    @property
    def no_jobs_phrase_list(self) -> List[str]:
        return parse_csv(self.no_jobs_phrases)


class HttpSettings(BaseSettings):
    """Outbound HTTP client configuration."""

    model_config = SettingsConfigDict(env_prefix="HTTP_", extra="ignore")

    user_agent: str = Field(default="CareersSync/1.0 (+https://github.com/careers-sync)")
    timeout_connect_s: float = Field(default=10.0)
    timeout_read_s: float = Field(default=30.0)
    rate_limit_per_host_s: float = Field(default=0.0)
    max_retries: int = Field(default=3)
    backoff_base_s: float = Field(default=0.5)
    backoff_max_s: float = Field(default=30.0)


class ScraperSettings(BaseSettings):
    """Headless browser scraper configuration."""

    model_config = SettingsConfigDict(env_prefix="SCRAPER_", extra="ignore")

    headless: bool = Field(default=True)
    timeout_ms: int = Field(default=30_000)
    retries: int = Field(default=3)
    debug: bool = Field(default=False)
    wait_for_selector: str = Field(default=".job-listing, .job-item, .career-listing")
    user_agent: str = Field(default="CareersSync-Scraper/1.0")
    screenshot_dir: str = Field(default="./temp")


class WordPressSettings(BaseSettings):
    """Webhook endpoint of the content system."""

    model_config = SettingsConfigDict(extra="ignore")

    api_url: str = Field(default="", alias="WP_API_URL")
    webhook_secret: str = Field(default="", alias="WEBHOOK_SECRET")
    timeout_s: float = Field(default=30.0, alias="WP_TIMEOUT_S")


class RuntimeSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    force_sync: bool = Field(default=False, alias="FORCE_SYNC")


class Settings(BaseSettings):
    """Main settings container aggregating all configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    source: SourceSettings = Field(default_factory=SourceSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    wordpress: WordPressSettings = Field(default_factory=WordPressSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)

    def source_config(self) -> SourceConfig:
        return SourceConfig(
            company_id=self.source.company_id.strip(),
            careers_url=self.source.careers_url.strip(),
            api_base_url=self.source.api_base_url.strip(),
            timeout_ms=self.scraper.timeout_ms,
            retries=self.scraper.retries,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Tests that change the environment should call ``get_settings.cache_clear()``.
    """
    return Settings()
