from typing import Literal

from pydantic_settings import BaseSettings

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    debug: bool = False
    log_json: bool = True  # JSON log records outside debug mode
    storage_backend: Literal["mongo", "fs", "memory"] = "mongo"
    database_url: str = "mongodb://localhost:27017/emaillogin"
    storage_dir: str = "./shadow"  # Root directory for the "fs" backend
    session_lifespan_ms: int = 270 * DAY_MS  # About 9 months
    proof_lifespan_ms: int = HOUR_MS // 2
    renewal_period_ms: int = DAY_MS  # 0 disables secret renewal
    send_spacing_ms: int = 1000  # Minimum gap between proof mails to one domain
    send_delay_ceiling_ms: int = 120_000  # Reject proof requests queued longer than this
    mail_block: bool = False  # Drop outgoing mail instead of sending it (development, tests)
    mail_from: str = "noreply@localhost"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True
    site_name: str = "emaillogin"  # Used in the default mail subject
    root_url: str = "https://127.0.0.1/"  # Base URL of the login link in proof mails

    model_config = {
        "env_file": [".env"],
        "env_prefix": "EMAILLOGIN_",
        "extra": "ignore",
    }
