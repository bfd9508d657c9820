"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Session Auth API"
    debug: bool = False
    port: int = 8000

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "sessionauth"
    db_user: str = "sessionauth"
    db_password: str = ""
    database_url: Optional[str] = None
    db_create_tables: bool = False

    # Connection pool settings
    db_pool_size: int = 20
    db_pool_max_overflow: int = 10
    db_pool_timeout: int = 30

    # Session cookie
    session_secret: str = "sessionauth-secret-key-change-in-production"
    session_cookie_name: str = "connect.sid"
    session_max_age: int = 86400  # 24 hours in seconds
    secure_cookies: bool = False

    # Authentication
    auth_redirect_url: str = "/login"
    auth_redirect_param: str = "return_url"
    auth_session_key: str = "AUTHUNIQUEID"
    auth_redirect_status_code: int = 301

    @property
    def async_database_url(self) -> str:
        """Build async database URL for SQLAlchemy."""
        if self.database_url:
            # Convert standard postgres:// to postgresql+asyncpg://
            url = self.database_url
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+asyncpg://", 1)
            elif url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return url

        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


class AuthConfig(BaseModel):
    """
    Settings for the auth middleware, guard and session helpers.

    Passed explicitly to each of them; there is no module-level state.
    """

    model_config = ConfigDict(frozen=True)

    # Relative URL of the login route
    redirect_url: str = "/login"

    # Query parameter carrying the path the user tried to visit
    redirect_param: str = "return_url"

    # Session key holding the user's unique id
    session_key: str = "AUTHUNIQUEID"

    redirect_status_code: int = 301

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            redirect_url=settings.auth_redirect_url,
            redirect_param=settings.auth_redirect_param,
            session_key=settings.auth_session_key,
            redirect_status_code=settings.auth_redirect_status_code,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
