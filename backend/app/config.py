"""Settings, read from the environment (and ``.env``) once per process."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    APP_NAME: str = "Workflow Behavior Engine"
    APP_VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"
    ENVIRONMENT: str = "development"  # development, testing, staging, production

    DATABASE_URL: str = "sqlite+aiosqlite:///./workflows.db"
    SQLALCHEMY_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Shared with the identity service that issues tenant tokens
    SECRET_KEY: str = ""
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # A single behavior, and a whole run
    BEHAVIOR_TIMEOUT_SECONDS: float = 30.0
    RUN_TIMEOUT_SECONDS: float = 120.0

    # Trigger callbacks
    WEBHOOK_TIMEOUT_SECONDS: float = 15.0
    WEBHOOK_SIGNING_SECRET: str = ""

    # Confirmation emails
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_ADDRESS: str = "noreply@localhost"
    SMTP_USE_TLS: bool = True

    ALLOWED_ORIGINS: str = "http://localhost:3000"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def smtp_config(self) -> dict:
        """Keyword config for notifications.channels.EmailChannel."""
        return {
            "smtp_host": self.SMTP_HOST,
            "smtp_port": self.SMTP_PORT,
            "smtp_user": self.SMTP_USER,
            "smtp_password": self.SMTP_PASSWORD,
            "from_address": self.SMTP_FROM_ADDRESS,
            "use_tls": self.SMTP_USE_TLS,
        }

    def validate_secrets(self) -> None:
        """Refuse to serve production traffic with an unset token secret."""
        if self.is_production and not self.SECRET_KEY:
            raise RuntimeError("SECRET_KEY must be set when ENVIRONMENT=production")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
