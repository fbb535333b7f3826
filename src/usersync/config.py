"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with USERSYNC_ prefix
(and an optional .env file for local development).

Learn: The REST backend address is resolved, not configured directly.
An explicit USERSYNC_BACKEND_IP wins; otherwise the address is derived
from the current host and the backend port. See resolve_backend_url().
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BACKEND_PORT = 3000
DEFAULT_DOMAINS = ["a.shop.com", "b.shop.com"]


def resolve_backend_url(
    override: Optional[str],
    current_host: Optional[str] = None,
    port: int = DEFAULT_BACKEND_PORT,
) -> str:
    """Work out the base URL of the REST backend.

    1. A non-blank override is used verbatim (``http://`` added when it
       carries no scheme), e.g. ``192.168.1.2:3000``.
    2. Otherwise ``http://<current_host>:<port>``.
    3. Otherwise an empty string. REST calls then fail with ApiError.
    """
    if override and override.strip():
        url = override.strip()
        if "://" not in url:
            url = f"http://{url}"
        return url.rstrip("/")

    if current_host and current_host.strip():
        return f"http://{current_host.strip()}:{port}"

    return ""


class Settings(BaseSettings):
    """All app configuration. Set via USERSYNC_* env vars."""

    # REST backend
    backend_ip: str = ""
    host: str = "localhost"
    backend_port: int = DEFAULT_BACKEND_PORT
    request_timeout: Optional[float] = None  # no timeout unless asked for

    # Realtime store (Redis); empty means in-process store
    realtime_url: str = ""
    realtime_prefix: str = "usersync"
    users_collection: str = "users"

    # Closed set of filter values, first one is the default
    domains: list[str] = list(DEFAULT_DOMAINS)

    # Reference backend server
    environment: str = "development"
    debug: bool = False
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="USERSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("domains")
    @classmethod
    def validate_domains(cls, value: list[str]) -> list[str]:
        """Domains are a small closed choice: at least two, no repeats."""
        cleaned = [d.strip() for d in value if d and d.strip()]
        if len(cleaned) < 2:
            raise ValueError("USERSYNC_DOMAINS must list at least two domains")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("USERSYNC_DOMAINS must not repeat a domain")
        return cleaned

    @property
    def backend_url(self) -> str:
        return resolve_backend_url(self.backend_ip, self.host, self.backend_port)

    @property
    def default_domain(self) -> str:
        return self.domains[0]


# Singleton, import this everywhere
settings = Settings()
