from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    internal_api_token: str = Field(
        default="dev_internal_token_change_me",
        alias="INTERNAL_API_TOKEN",
    )
    internal_api_allowlist: str = Field(
        default="127.0.0.1/32,::1/128",
        alias="INTERNAL_API_ALLOWLIST",
    )
    internal_api_trusted_proxies: str = Field(default="", alias="INTERNAL_API_TRUSTED_PROXIES")

    database_url: str = Field(alias="DATABASE_URL")
    redis_url: str = Field(alias="REDIS_URL")

    celery_broker_url: str = Field(alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(alias="CELERY_RESULT_BACKEND")
    celery_worker_concurrency: int = Field(default=5, alias="CELERY_WORKER_CONCURRENCY")

    business_timezone: str = Field(default="Asia/Jakarta", alias="BUSINESS_TIMEZONE")

    job_lock_ttl_seconds: int = Field(default=7200, alias="JOB_LOCK_TTL_SECONDS")
    job_lock_key_prefix: str = Field(default="ispsync:job-guard:", alias="JOB_LOCK_KEY_PREFIX")

    voucher_sync_interval_seconds: int = Field(default=60, alias="VOUCHER_SYNC_INTERVAL_SECONDS")
    agent_sales_interval_seconds: int = Field(default=300, alias="AGENT_SALES_INTERVAL_SECONDS")
    auto_isolir_interval_seconds: int = Field(default=3600, alias="AUTO_ISOLIR_INTERVAL_SECONDS")
    invoice_reminder_interval_seconds: int = Field(
        default=3600,
        alias="INVOICE_REMINDER_INTERVAL_SECONDS",
    )
    invoice_generate_hour: int = Field(default=7, alias="INVOICE_GENERATE_HOUR")
    invoice_generate_minute: int = Field(default=0, alias="INVOICE_GENERATE_MINUTE")
    invoice_generate_url: str = Field(default="", alias="INVOICE_GENERATE_URL")
    http_timeout_seconds: float = Field(default=30.0, alias="HTTP_TIMEOUT_SECONDS")

    isolir_group_name: str = Field(default="isolir", alias="ISOLIR_GROUP_NAME")
    isolir_group_priority: int = Field(default=1, alias="ISOLIR_GROUP_PRIORITY")

    radclient_path: str = Field(default="radclient", alias="RADCLIENT_PATH")
    coa_port: int = Field(default=3799, alias="COA_PORT")
    coa_timeout_seconds: float = Field(default=10.0, alias="COA_TIMEOUT_SECONDS")

    whatsapp_api_url: str = Field(default="", alias="WHATSAPP_API_URL")
    whatsapp_api_token: str = Field(default="", alias="WHATSAPP_API_TOKEN")
    whatsapp_timeout_seconds: float = Field(default=15.0, alias="WHATSAPP_TIMEOUT_SECONDS")

    reminder_messages_per_batch: int = Field(default=5, alias="REMINDER_MESSAGES_PER_BATCH")
    reminder_batch_delay_seconds: float = Field(default=10.0, alias="REMINDER_BATCH_DELAY_SECONDS")
    reminder_message_delay_seconds: float = Field(default=0.5, alias="REMINDER_MESSAGE_DELAY_SECONDS")
    reminder_send_timeout_seconds: float = Field(default=30.0, alias="REMINDER_SEND_TIMEOUT_SECONDS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
