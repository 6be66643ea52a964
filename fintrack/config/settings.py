"""
Finance Tracker settings.

Read from environment variables (and an optional .env file) through
pydantic-settings. Each concern has its own prefix: MONGODB_ for the
document store, JWT_ for tokens and password hashing, none for the rest.
"""

from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoSettings(BaseSettings):
    """MongoDB document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string"
    )
    database: str = Field(
        default="finance_tracker",
        description="Name of the database holding all collections"
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="How long to wait for a reachable server"
    )

    # Collection names
    users_collection: str = Field(default="users")
    expenses_collection: str = Field(default="expenses")
    bills_collection: str = Field(default="bills")
    goals_collection: str = Field(default="goals")
    audit_collection: str = Field(default="audit_events")


class AuthSettings(BaseSettings):
    """Token signing and password hashing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    secret_key: str = Field(
        default="dev-secret-key-change-me",
        min_length=8,
        description="HMAC secret used to sign access tokens"
    )
    algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    expires_hours: int = Field(
        default=24,
        ge=1,
        le=24 * 30,
        description="Access token lifetime in hours"
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=16,
        description="bcrypt cost factor for password hashes"
    )

    @field_validator('algorithm')
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only symmetric HMAC algorithms are supported."""
        allowed = {"HS256", "HS384", "HS512"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported JWT algorithm: {v}. Allowed: {allowed}")
        return v.upper()


class AppSettings(BaseSettings):
    """Application behaviour: environment, CORS, bill windows and password rules."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # Bill windows
    upcoming_window_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="How far ahead the upcoming-bills summary looks"
    )
    due_soon_filter_days: int = Field(
        default=7,
        ge=0,
        le=30,
        description="Window used by the is_due_soon listing filter"
    )

    # Passwords
    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum accepted password length"
    )

    @property
    def is_development(self) -> bool:
        """Internal error details are only exposed in development."""
        return self.app_environment.lower() == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Groups are built on access so a bad JWT_ value only fails the auth group."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def mongo(self) -> MongoSettings:
        return MongoSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Cached; tests call get_settings.cache_clear() after changing the environment."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Build each settings group once.

    Failed groups map to False, with the reason under `<name>_error`.
    """
    results = {}

    settings = get_settings()

    for name in ("mongo", "auth", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValidationError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
