from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "shukku_list"
    mongo_max_pool_size: int = 10
    mongo_timeout_ms: int = 5000

    # HTTP fetcher
    http_timeout: float = 10.0
    http_max_retries: int = 1
    http_verify_ssl: bool = True  # set False behind corporate SSL-inspection proxies
    http_user_agent: str = (
        "Mozilla/5.0 (compatible; ShukkuListBot/1.0; +https://github.com/shukkulist)"
    )

    # Metadata scraping
    metadata_max_bytes: int = 5_000_000
    metadata_cache_ttl_seconds: float = 30 * 60
    metadata_cache_max_entries: int = 100

    # Push notifications
    firebase_service_account: str | None = None  # service-account JSON document
    push_channel_id: str = "shukku_default"
    push_default_body: str = "Your family shopping list was updated"
    max_tokens_per_member: int = 10
    min_token_length: int = 100

    # CORS
    cors_allow_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"


settings = Settings()
