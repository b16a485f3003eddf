"""Classifieds configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class ClassifiedsSettings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///classifieds.db"
    echo_sql: bool = False
    app_title: str = "Classifieds API"
    log_level: str = "INFO"

    # Upstream category taxonomy
    taxonomy_base_url: str = "https://www.olx.com.lb/api"
    taxonomy_categories_path: str = "/categories/"
    taxonomy_category_fields_path: str = "/categoryFields"
    taxonomy_user_agent: str = "Mozilla/5.0 (Classifieds Sync)"
    taxonomy_timeout_seconds: float = 30.0
    taxonomy_retries: int = 3
    taxonomy_retry_wait_seconds: float = 1.0
    taxonomy_cache_ttl_seconds: int = 86400

    # Ad listing
    ads_default_limit: int = 15
    ads_max_limit: int = 100

    model_config = {"env_prefix": "CLASSIFIEDS_", "env_file": ".env", "extra": "ignore"}

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.database_url


settings = ClassifiedsSettings()
