"""Relay configuration using pydantic-settings"""

from typing import Dict, Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Relay configuration from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Downstream service
    downstream_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the downstream API and authorization server",
    )
    downstream_api_version: str = Field(
        default="v1",
        description="API version segment used to build the downstream API URL",
    )
    downstream_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for downstream HTTP calls",
    )

    # Outbound authentication
    auth_mode: Literal["bearer", "static"] = Field(
        default="bearer",
        description="'bearer' forwards each caller's token, 'static' sends fixed headers",
    )
    static_auth_headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent on every downstream call when auth_mode=static (JSON object)",
    )

    # Relay Configuration
    relay_host: str = Field(
        default="0.0.0.0",
        description="Relay bind host",
    )
    relay_port: int = Field(
        default=3001,
        description="Relay bind port",
    )
    public_url: Optional[str] = Field(
        default=None,
        description="Public-facing URL used in discovery documents",
    )

    # CORS Configuration
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def downstream_api_url(self) -> str:
        """Versioned downstream API URL (e.g. http://localhost:3000/api/v1)"""
        return f"{self.downstream_base_url.rstrip('/')}/api/{self.downstream_api_version}"

    @property
    def resolved_public_url(self) -> str:
        """Public URL, falling back to localhost on the bind port"""
        if self.public_url:
            return self.public_url.rstrip("/")
        return f"http://localhost:{self.relay_port}"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Singleton settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings singleton"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
