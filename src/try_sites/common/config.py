"""Try-Sites configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "secret_key": "insecure-dev-key-change-me",
}


class TrySitesSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TRYSITES_")

    environment: str = "development"
    secret_key: str = "insecure-dev-key-change-me"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/try_sites.db"

    # API
    api_title: str = "Try-Sites"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    # Tenants
    shells_root: str = "./data/sites"
    recipes_dir: str = ""
    database_provider: str = "Sqlite"
    admin_username: str = "admin"
    site_time_zone: str = ""
    stale_after_days: int = 7

    # Confirmation links
    confirmation_ttl_hours: int = 24

    # Email
    email_subject: str = "Try your demo site"
    email_provider: str = ""  # "sendgrid", "resend" or empty to only log
    email_api_key: str = ""
    default_sender: str = "demo@try-sites.local"
    from_name: str = "Try-Sites"
    email_to_bcc: bool = False

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"TRYSITES_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default secret key; set TRYSITES_SECRET_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> TrySitesSettings:
    settings = TrySitesSettings()
    settings.validate_for_production()
    return settings
