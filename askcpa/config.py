from __future__ import annotations
"""
AskCPA — Configuration
=======================
All environment-supplied settings, read once into an immutable Settings
object that main.create_app() injects into the store, the notification
sink, the dispatcher and the session gate.

Environment variables (loaded from .env at the repo root):
    DATABASE_PATH           — SQLite file (empty = store not configured)
    SMTP_HOST / SMTP_PORT   — SMTP server (default smtp.gmail.com:587)
    SMTP_USER / SMTP_PASSWORD — SMTP credentials
    FROM_EMAIL              — sender address (defaults to SMTP_USER)
    ADMIN_EMAIL             — recipient of new-question alerts
    DASHBOARD_SECRET        — shared dashboard password
    DASHBOARD_SESSION_HOURS — lifetime of a dashboard session token
    NOTIFY_MAX_ATTEMPTS     — send attempts per notification
    NOTIFY_BACKOFF_SECONDS  — base delay between attempts (doubles each retry)
    BASE_URL                — public URL used in email links
    CORS_ORIGINS            — comma-separated allowed origins
    LOG_LEVEL               — root log level
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent.parent  # askcpa/config.py → repo root
DEFAULT_DATABASE_PATH = str(PROJECT_ROOT / "data" / "askcpa.db")


@dataclass(frozen=True)
class Settings:
    database_path: str = DEFAULT_DATABASE_PATH

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""

    admin_email: str = ""
    dashboard_secret: str = ""
    dashboard_session_hours: float = 12.0

    notify_max_attempts: int = 3
    notify_backoff_seconds: float = 2.0

    base_url: str = "http://localhost:8000"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"

    @property
    def sender_address(self) -> str:
        return self.from_email or self.smtp_user

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """Build settings from the process environment (after loading .env)."""
        load_dotenv(env_file or PROJECT_ROOT / ".env")

        return cls(
            database_path=os.getenv("DATABASE_PATH", DEFAULT_DATABASE_PATH),
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            from_email=os.getenv("FROM_EMAIL", ""),
            admin_email=os.getenv("ADMIN_EMAIL", ""),
            dashboard_secret=os.getenv("DASHBOARD_SECRET", ""),
            dashboard_session_hours=float(os.getenv("DASHBOARD_SESSION_HOURS", "12")),
            notify_max_attempts=int(os.getenv("NOTIFY_MAX_ATTEMPTS", "3")),
            notify_backoff_seconds=float(os.getenv("NOTIFY_BACKOFF_SECONDS", "2")),
            base_url=os.getenv("BASE_URL", "http://localhost:8000"),
            cors_origins=[
                o.strip()
                for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
                if o.strip()
            ],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
