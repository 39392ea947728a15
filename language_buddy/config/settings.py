"""
Application settings and configuration.
"""

from typing import Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Language Buddy"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, env="DEBUG")

    # Database
    state_db_path: str = Field(default="language_buddy.db", env="STATE_DB_PATH")

    # Subscription / throttling
    daily_conversation_limit: int = Field(default=3, env="DAILY_CONVERSATION_LIMIT")
    trial_days: int = Field(
        default=7, validation_alias=AliasChoices("trial_days", "SUBSCRIPTION_TRIAL_DAYS")
    )
    fallback_timezone: str = Field(default="UTC", env="FALLBACK_TIMEZONE")

    # Scheduler (hours are subscriber-local)
    scheduler_enabled: bool = Field(default=True, env="SCHEDULER_ENABLED")
    scheduler_interval_minutes: int = Field(default=1, env="SCHEDULER_INTERVAL_MINUTES")
    scheduler_concurrency: int = Field(default=5, env="SCHEDULER_CONCURRENCY")
    proactive_hour: int = Field(default=8, env="PROACTIVE_HOUR")
    nightly_digest_hour: int = Field(default=3, env="NIGHTLY_DIGEST_HOUR")

    # Conversation agent
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    agent_model: str = Field(default="gpt-4o-mini", env="AGENT_MODEL")
    agent_timeout_seconds: float = Field(default=60.0, env="AGENT_TIMEOUT_SECONDS")

    # Persistence lifetimes
    onboarding_ttl_hours: int = Field(default=24, env="ONBOARDING_TTL_HOURS")
    onboarding_min_assessment_messages: int = Field(
        default=8, env="ONBOARDING_MIN_ASSESSMENT_MESSAGES"
    )
    checkpoint_ttl_hours: int = Field(default=72, env="CHECKPOINT_TTL_HOURS")
    dedup_ttl_minutes: int = Field(default=30, env="DEDUP_TTL_MINUTES")
    digest_retention_days: int = Field(default=10, env="DIGEST_RETENTION_DAYS")

    # WhatsApp Cloud API
    whatsapp_api_base: str = Field(
        default="https://graph.facebook.com",
        env="WHATSAPP_API_BASE"
    )
    whatsapp_api_version: str = Field(default="v18.0", env="WHATSAPP_API_VERSION")
    whatsapp_phone_id: Optional[str] = Field(default=None, env="WHATSAPP_PHONE_ID")
    whatsapp_access_token: Optional[str] = Field(default=None, env="WHATSAPP_ACCESS_TOKEN")
    whatsapp_verify_token: Optional[str] = Field(default=None, env="WHATSAPP_VERIFY_TOKEN")
    whatsapp_app_secret: Optional[str] = Field(default=None, env="WHATSAPP_APP_SECRET")
    wa_max_message_length: int = Field(default=4096, env="WA_MAX_MESSAGE_LENGTH")
    whatsapp_timeout: float = Field(default=10.0, env="WHATSAPP_TIMEOUT")

    # Billing (Stripe)
    stripe_secret_key: Optional[str] = Field(default=None, env="STRIPE_SECRET_KEY")
    stripe_price_id: Optional[str] = Field(default=None, env="STRIPE_PRICE_ID")
    stripe_success_url: str = Field(
        default="https://prod.languagebuddy.maixnor.com/static/thanks.html",
        env="STRIPE_SUCCESS_URL"
    )
    payment_link_fallback: str = Field(
        default="https://buy.stripe.com/language-buddy",
        env="PAYMENT_LINK_FALLBACK"
    )

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
