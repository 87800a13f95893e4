from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for webhooks, payouts, account deletion

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: Optional[str] = None
    stripe_connect_webhook_secret: Optional[str] = None
    stripe_api_version: Optional[str] = None
    currency: str = "sek"

    # Expo push
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: Optional[str] = None
    expo_timeout_seconds: float = 10.0

    # App
    app_name: str = "fitpass-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:8081,http://127.0.0.1:3000,http://127.0.0.1:8081"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    strict_rate_limit: str = "5/minute"  # GDPR and payment endpoints
    frontend_url: str = "http://localhost:8081"

    # Background jobs
    enable_background_jobs: bool = False
    sync_interval_minutes: int = 30
    daily_access_interval_minutes: int = 60

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
