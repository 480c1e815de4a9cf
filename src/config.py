"""
ReRide API Configuration Management
Uses pydantic-settings for type-safe environment variable loading
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_JWT_SECRET = "reride-dev-secret-change-me"


class ApiConfig(BaseSettings):
    """Configuration for the ReRide API server"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    environment: Literal["development", "production", "test"] = Field(default="development")
    api_host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    api_port: int = Field(default=8000, description="Port to bind the server to")

    # Database Configuration
    database_backend: Literal["supabase", "firebase", "mongodb", "memory"] = Field(
        default="supabase",
        description="Which backend adapter serves all collections"
    )
    supabase_url: str = Field(default="")
    supabase_service_role_key: str = Field(default="")
    supabase_anon_key: str = Field(default="")
    firebase_database_url: str = Field(default="")
    firebase_service_account_key: str = Field(
        default="",
        description="Service account JSON, inline"
    )
    mongodb_uri: str = Field(default="")
    mongodb_database: str = Field(default="reride")

    # JWT Configuration
    jwt_secret: str = Field(default="")
    jwt_issuer: str = Field(default="reride-app")
    jwt_audience: str = Field(default="reride-users")
    jwt_access_token_expires_minutes: int = Field(default=24 * 60)
    jwt_refresh_token_expires_days: int = Field(default=14)
    jwt_clock_tolerance_seconds: int = Field(default=60)

    # Passwords
    bcrypt_rounds: int = Field(default=12)

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_max_requests: int = Field(default=100, description="Requests per window per client")
    rate_limit_window_minutes: int = Field(default=15)
    auth_rate_limit: str = Field(default="20/minute", description="Limit for login and registration")

    # Listings
    vehicle_cache_ttl_seconds: int = Field(default=30)
    listing_duration_days: int = Field(default=30)
    listing_sweep_enabled: bool = Field(default=False)
    listing_sweep_interval_seconds: int = Field(default=3600)

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # Seeding
    seed_secret_key: str = Field(default="")
    seed_admin_password: str = Field(default="")
    seed_seller_password: str = Field(default="")
    seed_customer_password: str = Field(default="")

    # AI
    gemini_api_key: str = Field(default="")
    gemini_api_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Development
    debug: bool = Field(default=False)
    reload: bool = Field(default=False)

    @field_validator("supabase_url", "firebase_database_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") if v else v

    @model_validator(mode="after")
    def require_jwt_secret_in_production(self):
        if not self.jwt_secret:
            if self.environment == "production":
                raise ValueError("JWT_SECRET must be set in production")
            self.jwt_secret = DEV_JWT_SECRET
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def default_rate_limit(self) -> str:
        """Limit string in slowapi notation, e.g. '100 per 15 minutes'"""
        return f"{self.rate_limit_max_requests} per {self.rate_limit_window_minutes} minutes"

    @property
    def supabase_key(self) -> Optional[str]:
        return self.supabase_service_role_key or self.supabase_anon_key or None


# Singleton instance
_api_config: ApiConfig | None = None


def get_api_config() -> ApiConfig:
    """Get or create API configuration singleton"""
    global _api_config
    if _api_config is None:
        _api_config = ApiConfig()
    return _api_config


def reset_api_config() -> None:
    """Drop the cached configuration so the next call re-reads the environment"""
    global _api_config
    _api_config = None
