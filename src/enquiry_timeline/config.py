"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # CRM backend (pitch store, instruction lookup, mailbox and call search, forwarding)
    CRM_API_BASE_URL: str = "http://localhost:8080"
    CRM_API_TOKEN: str = ""
    HTTP_TIMEOUT_SECONDS: float | None = None  # None = wait indefinitely

    # Mailbox derivation for fee earners recorded by name only
    FIRM_EMAIL_DOMAIN: str = "helix-law.com"

    # Calendar-day comparisons in elapsed-time labels
    FIRM_TIMEZONE: str = "Europe/London"

    # Search result caps
    DEFAULT_MAX_RESULTS: int = 50

    def fee_earner_mailbox(self, point_of_contact: str | None) -> str | None:
        """Return the mailbox for a point of contact.

        Addresses are used as-is. A bare name such as "Jane Smith" becomes
        ``jane.smith@<FIRM_EMAIL_DOMAIN>``. Returns None when no contact is set.
        """
        if not point_of_contact or not point_of_contact.strip():
            return None
        contact = point_of_contact.strip()
        if "@" in contact:
            return contact
        local_part = ".".join(contact.lower().split())
        return f"{local_part}@{self.FIRM_EMAIL_DOMAIN}"

    @property
    def firm_timezone(self) -> ZoneInfo:
        return ZoneInfo(self.FIRM_TIMEZONE)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
