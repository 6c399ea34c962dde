import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment: "development" or "production"
    environment: str = "development"

    database_url: str = "postgresql+asyncpg://localhost/adspace"

    @model_validator(mode="before")
    @classmethod
    def _fix_database_url_for_asyncpg(cls, values: dict) -> dict:
        """Hosted Postgres gives postgresql:// — we need postgresql+asyncpg:// for asyncpg."""
        if not isinstance(values, dict):
            return values
        url = values.get("database_url") or ""
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            values["database_url"] = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return values

    # "" (plain), "require" (TLS, no cert check) or "verify"
    database_ssl: str = ""
    db_pool_size: int = 5

    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 60 * 24
    bcrypt_rounds: int = 12
    first_admin_email: str = ""  # Bootstrap: create first admin if no users exist
    first_admin_password: str = ""
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    encryption_key: str = ""

    # Dates ("today") are evaluated in this zone
    timezone: str = "UTC"

    # Cancellation fallback when no policy rows are configured
    cancellation_penalty_days: int = 7
    cancellation_penalty_pct: int = 50

    default_per_page: int = 15
    max_per_page: int = 100

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Enforce that critical secrets are set when running in production."""
        if self.is_production:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "SECRET_KEY must be set to a secure value in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if not self.encryption_key:
                raise ValueError(
                    "ENCRYPTION_KEY must be set in production. "
                    "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
                )
            if not self.database_url or "localhost" in self.database_url:
                logger.warning("DATABASE_URL appears to point at localhost in production.")
        if self.database_ssl not in ("", "require", "verify"):
            raise ValueError("DATABASE_SSL must be empty, require or verify")
        if not 0 <= self.cancellation_penalty_pct <= 100:
            raise ValueError("CANCELLATION_PENALTY_PCT must be between 0 and 100")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
