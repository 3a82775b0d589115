"""Application configuration using pydantic-settings."""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# HMAC/JWT secrets shorter than this are rejected at startup
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Secrets - read through core.secrets.SettingsSecretProvider, never directly
    jwt_secret: str = Field(default="", validation_alias="JWT_SECRET")
    csrf_secret: str = Field(default="", validation_alias="CSRF_SECRET")

    # Session tokens
    jwt_issuer: str = Field(default="storefront", validation_alias="JWT_ISSUER")
    auth_token_max_age: int = Field(
        default=7 * 24 * 60 * 60, validation_alias="AUTH_TOKEN_MAX_AGE",
    )

    # Set Secure on cookies (disable only for local http development)
    cookie_secure: bool = Field(default=False, validation_alias="COOKIE_SECURE")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Redis - optional shared store for rate limit counters
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=False, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")

    # Checkout pricing
    currency: str = Field(default="USD", validation_alias="STORE_CURRENCY")
    tax_rate: Decimal = Field(default=Decimal("0.08"), validation_alias="TAX_RATE")
    free_shipping_threshold: Decimal = Field(
        default=Decimal("100.00"), validation_alias="FREE_SHIPPING_THRESHOLD",
    )
    shipping_flat_fee: Decimal = Field(
        default=Decimal("9.99"), validation_alias="SHIPPING_FLAT_FEE",
    )

    @model_validator(mode="after")
    def validate_secret_lengths(self) -> "Settings":
        """
        Reject configured secrets that are too short to sign tokens safely.

        Empty secrets are allowed here so tooling (migrations, seed scripts) can
        load settings; signing fails at request time instead.
        """
        for name in ("jwt_secret", "csrf_secret"):
            value = getattr(self, name)
            if value and len(value) < MIN_SECRET_LENGTH:
                raise ValueError(
                    f"{name.upper()} must be at least {MIN_SECRET_LENGTH} characters long",
                )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite (local tooling and tests)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
