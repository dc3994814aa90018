# backend/config.py
"""
Application Configuration
Uses pydantic-settings for environment variable management
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    Create a .env file for local development

    The instance is frozen: build it once with get_settings() and pass it
    to every component that needs it.
    """

    # === Application ===
    APP_NAME: str = "WireGuard Peer Manager"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"  # development, staging, production
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # === API ===
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001
    API_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # === Database (key custody) ===
    DATABASE_URL: str = "sqlite:///./wireguard_peers.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # === Security ===
    # Empty disables the X-Admin-Token check
    ADMIN_SECRET: Optional[str] = None

    # === MikroTik Router (RouterOS REST API) ===
    ROUTER_HOST: str = "192.168.88.1"
    ROUTER_PORT: Optional[int] = None  # defaults to 443 / 80 by scheme
    ROUTER_USERNAME: str = "admin"
    ROUTER_PASSWORD: str = ""
    ROUTER_USE_TLS: bool = True
    ROUTER_VERIFY_TLS: bool = False
    ROUTER_TIMEOUT: float = 15.0  # seconds

    # === WireGuard ===
    WG_INTERFACE_NAME: Optional[str] = None  # first interface when unset
    CLIENT_SUBNET: str = "172.16.0"
    SERVER_ENDPOINT: str = "your.server.com:51820"
    SERVER_PORT: int = 51820
    ALLOWED_IPS: str = "0.0.0.0/0"
    DNS_SERVER: str = "172.16.0.1"

    # === Key Generation ===
    KEYGEN_PREFER_WG_TOOL: bool = True
    WG_PROBE_TIMEOUT: float = 5.0  # seconds
    WG_COMMAND_TIMEOUT: float = 10.0  # seconds

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.ENV.lower() == "development"

    @property
    def router_base_url(self) -> str:
        """Base URL of the RouterOS REST API"""
        scheme = "https" if self.ROUTER_USE_TLS else "http"
        port = self.ROUTER_PORT or (443 if self.ROUTER_USE_TLS else 80)
        return f"{scheme}://{self.ROUTER_HOST}:{port}/rest"


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance
    Build it once at startup and hand it to the components
    """
    return Settings()
