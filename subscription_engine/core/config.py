from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DEBUG: bool = False
    APP_NAME: str = "subscription-engine"
    version: str = "0.1.0"
    APP_DATABASE_DSN: str = "sqlite:////tmp/subscription_engine.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Lifecycle engine defaults
    LIFECYCLE_TRIAL_REMINDER_DAYS: list[int] = [7, 3, 1]
    LIFECYCLE_RENEWAL_REMINDER_DAYS: list[int] = [7, 3, 1]
    LIFECYCLE_GRACE_PERIOD_DAYS: int = 7
    LIFECYCLE_PAYMENT_RETRY_DAYS: list[int] = [1, 3, 5]
    LIFECYCLE_DEFAULT_BILLING_CYCLE_DAYS: int = 30

    # Payment gateway: "simulated" or "stripe"
    PAYMENT_GATEWAY: str = "simulated"
    SIMULATED_PAYMENT_SUCCESS_RATE: float = 0.8
    stripe_api_key: str = ""

    # Lifecycle event delivery
    LIFECYCLE_WEBHOOK_URL: str = ""  # empty disables webhook delivery
    webhook_secret: str = "whsec_default_secret"

    @property
    def lifecycle_webhook_enabled(self) -> bool:
        return bool(self.LIFECYCLE_WEBHOOK_URL)


settings = Settings()
