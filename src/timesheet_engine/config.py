"""Configuration management for the timesheet engine."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    engine_version: str
    host: str
    port: int
    debug: bool
    log_level: str
    auto_create_db: bool

    # Bearer credentials
    jwt_secret: str
    jwt_algorithm: str
    jwt_ttl_seconds: int

    # Mail
    smtp_host: str | None
    smtp_port: int
    smtp_username: str | None
    smtp_password: str | None
    smtp_tls: bool
    mail_from: str | None

    # Period picker window
    pay_periods_back: int
    pay_periods_forward: int

    @property
    def email_enabled(self) -> bool:
        """Whether outbound email is configured."""
        return bool(self.smtp_host and self.mail_from)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./var/timesheets.db",
            ),
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=_env_bool("DEBUG", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            auto_create_db=_env_bool("AUTO_CREATE_DB", "true"),
            jwt_secret=os.getenv("JWT_SECRET", "change-me"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_ttl_seconds=int(os.getenv("JWT_TTL_SECONDS", str(60 * 60 * 24 * 7))),
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_username=os.getenv("SMTP_USERNAME") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            smtp_tls=_env_bool("SMTP_TLS", "true"),
            mail_from=os.getenv("MAIL_FROM") or None,
            pay_periods_back=int(os.getenv("PAY_PERIODS_BACK", "6")),
            pay_periods_forward=int(os.getenv("PAY_PERIODS_FORWARD", "2")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
