"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a real bucket.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.auth.sessions import SESSION_DURATION_SECONDS

DEFAULT_BUCKET_LIMIT = 10 * 1024 * 1024 * 1024  # 10 GiB


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "filedrop"
    api_version: str = "v1"
    environment: str = Field(
        default="development",
        description="Deployment environment. Session cookies are marked secure in 'production'."
    )

    # Authentication
    admin_password: str = Field(
        default="",
        description="Shared dashboard password. When empty every login is rejected."
    )
    session_ttl_seconds: int = Field(
        default=SESSION_DURATION_SECONDS,
        description="Session lifetime in seconds. Also used as the cookie max-age."
    )

    # R2 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="filedrop",
        description="R2 bucket holding every uploaded file"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_public_url: str = Field(
        default="",
        description="Public base URL of the bucket (custom domain or r2.dev URL)"
    )
    r2_bucket_limit: int = Field(
        default=DEFAULT_BUCKET_LIMIT,
        description="Total bytes the bucket may hold. Uploads past this are rejected with 413."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2. Enables local dev without object storage."
    )

    # Links
    app_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the dashboard, used to build embed links"
    )

    # Application Behavior
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum size of a single upload in MB."
    )
    list_batch_size: int = Field(
        default=20,
        ge=1,
        description="How many metadata lookups run concurrently when listing files."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # Without a password nobody can log in
        if not self.admin_password:
            missing.append("ADMIN_PASSWORD")

        # R2 only required if not in mock mode
        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")
            if not self.r2_public_url:
                missing.append("R2_PUBLIC_URL")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() or pass Settings to create_app.
    """
    return Settings()
