from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Pomelo SEO/GEO Audit API"
    app_version: str = "0.3.0"
    environment: str = "local"
    log_json: bool = False

    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = False
    cors_allow_methods: list[str] = ["POST", "OPTIONS"]
    cors_allow_headers: list[str] = ["Content-Type"]

    # Upstream credentials, one per collaborator.
    google_api_key: str | None = None
    openai_api_key: str | None = None
    gemini_api_key: str | None = None
    resend_api_key: str | None = None

    pagespeed_url: str = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    pagespeed_strategy: str = "mobile"
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 150
    gemini_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    gemini_model: str = "gemini-2.0-flash"

    probe_timeout_seconds: float = 10.0
    pagespeed_timeout_seconds: float = 45.0

    audit_rate_limit: int = 3
    audit_rate_limit_window_seconds: int = 3600
    audit_rate_limit_message: str = "Zbyt wiele prób. Spróbuj za godzinę."
    redis_url: str | None = None
    # Reverse proxies in front of the app that append to X-Forwarded-For; 0 ignores the header.
    trusted_proxy_hops: int = 1

    report_from_email: str = "Pomelo SEO/GEO <onboarding@resend.dev>"
    report_contact_email: str = "pomelomarketingandsoft@gmail.com"
    report_price_label: str = "19 zł"

    max_concurrent_requests: int = 20

    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = 0.0
    sentry_enable_logs: bool = False
    sentry_log_level: str = "error"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
