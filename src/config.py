# src/config.py

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.exceptions import ConfigurationError

# Environment override for the session signing secret; wins over JWT_SECRET.
SIGNING_SECRET_ENV = "STINKY_JWT_SECRET"
DEFAULT_JWT_EXPIRY_HOURS = 8


class Settings(BaseSettings):
    """
    Central application settings (Pydantic v2).

    Constructed once at startup and passed explicitly into the components
    that need it; nothing reads it through a module-level global.
    """

    # ------------------------------------------------------------------------------------
    # App
    # ------------------------------------------------------------------------------------
    PROJECT_NAME: str = Field(default="stinkykitty", alias="APP_NAME")
    ENVIRONMENT: str = Field(default="dev", alias="ENV")  # dev|staging|prod
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Optional[str] = Field(default=None)  # json|console

    # ------------------------------------------------------------------------------------
    # Storage / Tenancy
    # ------------------------------------------------------------------------------------
    DATABASE_URL: str = Field(default="sqlite:///./stinkykitty.db")
    BASE_DOMAIN: str = Field(default="localhost")

    # ------------------------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------------------------
    JWT_SECRET: str = Field(default="", description="HS256 signing secret (never commit real secrets)")
    JWT_EXPIRY_HOURS: int = Field(default=DEFAULT_JWT_EXPIRY_HOURS)

    # ------------------------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------------------------
    BLOCKED_IPS: List[str] = Field(default_factory=list)
    RATE_LIMITED_PATHS: List[str] = Field(default_factory=lambda: ["/admin/login"])
    LOGIN_RATE_LIMIT_CAPACITY: int = Field(default=5)
    LOGIN_RATE_LIMIT_INTERVAL_SECONDS: int = Field(default=60)

    # ------------------------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------------------------
    TLS_ENABLED: bool = Field(default=False)

    # ------------------------------------------------------------------------------------
    # Helper properties
    # ------------------------------------------------------------------------------------
    @property
    def is_dev(self) -> bool:
        return self.ENVIRONMENT.lower() in {"dev", "development", "local"}

    @property
    def is_prod(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    @property
    def session_expiry_hours(self) -> int:
        if self.JWT_EXPIRY_HOURS <= 0:
            return DEFAULT_JWT_EXPIRY_HOURS
        return self.JWT_EXPIRY_HOURS

    def resolve_signing_secret(self) -> str:
        """Environment override first, then the configured value."""
        secret = os.getenv(SIGNING_SECRET_ENV) or self.JWT_SECRET
        if not secret or not secret.strip():
            raise ConfigurationError(
                f"Session signing secret is not configured; set {SIGNING_SECRET_ENV} or JWT_SECRET"
            )
        return secret

    # ------------------------------------------------------------------------------------
    # Pydantic v2 settings config
    # ------------------------------------------------------------------------------------
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "populate_by_name": True,   # enable aliases
        "extra": "ignore",          # don't crash on unrelated env keys
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
