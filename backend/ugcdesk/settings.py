from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "ugc-desk"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "UGC_DESK_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/ugc_desk",
        validation_alias=AliasChoices("DATABASE_URL", "UGC_DESK_DATABASE_URL"),
    )
    redis_url: str = Field(default="redis://redis:6379/0", validation_alias=AliasChoices("REDIS_URL", "UGC_DESK_REDIS_URL"))
    celery_enabled: bool = Field(default=True, validation_alias=AliasChoices("CELERY_ENABLED", "UGC_DESK_CELERY_ENABLED"))

    # Discovery (Apify actors)
    apify_token: str | None = Field(default=None, validation_alias=AliasChoices("APIFY_TOKEN", "UGC_DESK_APIFY_TOKEN"))
    apify_instagram_actor: str = Field(
        default="apify/instagram-hashtag-scraper",
        validation_alias=AliasChoices("APIFY_INSTAGRAM_ACTOR", "UGC_DESK_APIFY_INSTAGRAM_ACTOR"),
    )
    apify_tiktok_actor: str = Field(
        default="clockworks/tiktok-scraper",
        validation_alias=AliasChoices("APIFY_TIKTOK_ACTOR", "UGC_DESK_APIFY_TIKTOK_ACTOR"),
    )
    discovery_timeout_sec: int = Field(default=120, validation_alias=AliasChoices("DISCOVERY_TIMEOUT_SEC", "UGC_DESK_DISCOVERY_TIMEOUT_SEC"))
    discovery_default_limit: int = Field(default=20, validation_alias=AliasChoices("DISCOVERY_DEFAULT_LIMIT", "UGC_DESK_DISCOVERY_DEFAULT_LIMIT"))
    discovery_hashtags: list[str] = Field(default_factory=list, validation_alias=AliasChoices("DISCOVERY_HASHTAGS", "UGC_DESK_DISCOVERY_HASHTAGS"))
    discovery_keywords: list[str] = Field(default_factory=list, validation_alias=AliasChoices("DISCOVERY_KEYWORDS", "UGC_DESK_DISCOVERY_KEYWORDS"))
    discovery_platforms: list[str] = Field(
        default_factory=lambda: ["instagram", "tiktok"],
        validation_alias=AliasChoices("DISCOVERY_PLATFORMS", "UGC_DESK_DISCOVERY_PLATFORMS"),
    )
    discovery_interval_minutes: int = Field(default=360, validation_alias=AliasChoices("DISCOVERY_INTERVAL_MINUTES", "UGC_DESK_DISCOVERY_INTERVAL_MINUTES"))

    # Classifier (OpenAI)
    openai_api_key: str | None = Field(default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "UGC_DESK_OPENAI_API_KEY"))
    openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias=AliasChoices("OPENAI_BASE_URL", "UGC_DESK_OPENAI_BASE_URL"))
    openai_model: str = Field(default="gpt-4o", validation_alias=AliasChoices("OPENAI_MODEL", "UGC_DESK_OPENAI_MODEL"))
    classifier_timeout_sec: int = Field(default=30, validation_alias=AliasChoices("CLASSIFIER_TIMEOUT_SEC", "UGC_DESK_CLASSIFIER_TIMEOUT_SEC"))
    classifier_max_attempts: int = Field(default=3, validation_alias=AliasChoices("CLASSIFIER_MAX_ATTEMPTS", "UGC_DESK_CLASSIFIER_MAX_ATTEMPTS"))

    # Derived-asset jobs
    asset_job_timeout_sec: int = Field(default=300, validation_alias=AliasChoices("ASSET_JOB_TIMEOUT_SEC", "UGC_DESK_ASSET_JOB_TIMEOUT_SEC"))
    serialize_asset_jobs_per_content: bool = Field(
        default=False,
        validation_alias=AliasChoices("SERIALIZE_ASSET_JOBS_PER_CONTENT", "UGC_DESK_SERIALIZE_ASSET_JOBS_PER_CONTENT"),
    )
    redis_semaphore_ttl_sec: int = Field(default=1800, validation_alias=AliasChoices("REDIS_SEMAPHORE_TTL_SEC", "UGC_DESK_REDIS_SEMAPHORE_TTL_SEC"))
    semaphore_wait_timeout_sec: int = Field(default=600, validation_alias=AliasChoices("SEMAPHORE_WAIT_TIMEOUT_SEC", "UGC_DESK_SEMAPHORE_WAIT_TIMEOUT_SEC"))

    # Voiceover (AWS Polly)
    aws_access_key_id: str | None = Field(default=None, validation_alias=AliasChoices("AWS_ACCESS_KEY_ID", "UGC_DESK_AWS_ACCESS_KEY_ID"))
    aws_secret_access_key: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY", "UGC_DESK_AWS_SECRET_ACCESS_KEY")
    )
    aws_region: str = Field(default="us-east-1", validation_alias=AliasChoices("AWS_REGION", "UGC_DESK_AWS_REGION"))
    polly_engine: str = Field(default="neural", validation_alias=AliasChoices("POLLY_ENGINE", "UGC_DESK_POLLY_ENGINE"))
    media_dir: str = Field(default="/data/media", validation_alias=AliasChoices("MEDIA_DIR", "UGC_DESK_MEDIA_DIR"))
    public_base_url: str = Field(default="", validation_alias=AliasChoices("PUBLIC_BASE_URL", "UGC_DESK_PUBLIC_BASE_URL"))

    # Notifications
    telegram_bot_token: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "UGC_DESK_TELEGRAM_BOT_TOKEN"))
    telegram_chat_id: str | None = Field(default=None, validation_alias=AliasChoices("TELEGRAM_CHAT_ID", "UGC_DESK_TELEGRAM_CHAT_ID"))

    scheduler_enabled: bool = Field(default=True, validation_alias=AliasChoices("SCHEDULER_ENABLED", "UGC_DESK_SCHEDULER_ENABLED"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def is_postgres(self) -> bool:
        return self.async_database_url.startswith("postgresql")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
