"""Configuration settings for the booking system."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = "sqlite:///./booker.db"

    # Booking job seed (copied into the database on first run)
    booking_url: str = ""
    preferences: list[str] = []
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None

    # Browser Settings
    headless: bool = True
    browser_timeout: int = 30000
    viewport_width: int = 1280
    viewport_height: int = 800

    # Search Settings
    search_horizon: int = 4  # Maximum number of weeks/months to advance
    calendar_timezone: Optional[str] = None  # IANA name; None uses the host timezone
    load_timeout: int = 15000
    navigation_settle_ms: int = 2000
    form_settle_ms: int = 1500
    confirmation_settle_ms: int = 3000

    # Debugging
    debug_snapshots: bool = False
    debug_dir: str = "./debug"

    # Scheduling
    dry_run: bool = False
    run_at: str = "00:00"  # Daily run time, HH:MM local time

    # Notification Settings
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_sender: str = "Booking Bot <booker@localhost>"
    smtp_use_tls: bool = True
    notify_every: int = 3  # Email on every Nth consecutive failure

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
