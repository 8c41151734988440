from __future__ import annotations

import os
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    llm_api_key: str | None = None
    llm_model: str = "gpt-4o"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_max_tokens: int = 2000
    llm_temperature: float = 0.7
    llm_timeout_seconds: int = 60
    llm_max_retries: int = 0
    llm_retry_backoff_seconds: float = 2.0

    langsmith_api_key: str | None = None
    langsmith_project: str = "news-narrator"
    langsmith_tracing: bool = False

    cache_dir: str = "cache"
    listing_max_age_hours: float = 24.0
    narration_max_age_days: int = 30
    narration_include_summary_task: bool = True

    sources_file: str = "data/news-sources.yaml"
    scrape_timeout_seconds: int = 15
    listing_timeout_seconds: int = 30
    http_concurrency: int = 4
    max_feed_items_per_source: int = 30
    max_listing_articles: int = 50
    max_article_chars: int = 4000
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    refresh_hour: int = 6
    refresh_interval_hours: int | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def missing_required_runtime_fields(self, needs_llm: bool) -> list[str]:
        missing: list[str] = []

        if needs_llm and not (self.llm_api_key or "").strip():
            missing.append("LLM_API_KEY")

        return missing


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_langsmith_env(settings: Settings) -> None:
    if settings.langsmith_api_key:
        os.environ["LANGSMITH_API_KEY"] = settings.langsmith_api_key
    os.environ["LANGSMITH_PROJECT"] = settings.langsmith_project
    os.environ["LANGSMITH_TRACING"] = "true" if settings.langsmith_tracing else "false"
