from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_SECRETS = {"change-me", "change-me-too", ""}


class Settings(BaseSettings):
    # App
    app_name: str = "CRM"
    app_version: str = "1.0.0"
    environment: str = "development"  # development, test, production
    debug: bool = False
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # Database
    database_url: str
    database_echo: bool = False
    auto_create_schema: bool = False  # Production schema is managed by migrations

    # Security
    secret_key: str
    refresh_secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    password_reset_expire_minutes: int = 60
    email_verify_expire_days: int = 7
    bcrypt_rounds: int = 12

    # CORS - comma-separated list of allowed origins
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # Storage
    storage_root: str = "/var/crm/storage"
    max_upload_size: int = 10 * 1024 * 1024  # 10MB
    max_request_size: int = 12 * 1024 * 1024  # multipart overhead on top of uploads

    # Rate limiting (limits syntax, e.g. "5 per 15 minutes")
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    auth_rate_limit: str = "5 per 15 minutes"
    api_rate_limit: str = "100 per 15 minutes"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @model_validator(mode="after")
    def validate_security_config(self) -> "Settings":
        """Refuse to boot production with placeholder or shared signing secrets"""
        if self.is_production:
            if self.secret_key in _INSECURE_SECRETS or self.refresh_secret_key in _INSECURE_SECRETS:
                raise ValueError(
                    "secret_key and refresh_secret_key must be set in production. "
                    "Set SECRET_KEY and REFRESH_SECRET_KEY environment variables."
                )
            if self.secret_key == self.refresh_secret_key:
                raise ValueError("refresh_secret_key must differ from secret_key")
        if self.bcrypt_rounds < 4 or self.bcrypt_rounds > 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
