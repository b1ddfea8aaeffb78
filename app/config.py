"""MSYNC — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database (metrics source) ──
    database_url: str = ""
    db_statement_timeout_ms: int = 60000

    # ── Google Sheets ──
    google_spreadsheet_id: str = ""
    google_spreadsheet_id2: str = ""  # mileage / grade / registration sheets
    sheets_base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    http_timeout_seconds: float = 30.0

    # ── Service account sources (first match wins) ──
    google_service_account_json: Optional[str] = None
    google_service_account_client_email: Optional[str] = None
    google_service_account_private_key: Optional[str] = None
    google_service_account_project_id: Optional[str] = None
    google_service_account_key_file: Optional[str] = None

    # ── Calendar ──
    source_timezone: str = "Asia/Seoul"
    integration_cutoff: str = "2025-07-28T05:00:00+00:00"
    monthly_sheet_format: str = "%y.%m"  # 2025-08-xx -> "25.08"

    # ── Retry ──
    retry_max_attempts: int = 3
    fetch_retry_delay_seconds: float = 5.0
    sheets_retry_delay_seconds: float = 3.0

    # ── Scheduler ──
    scheduler_autostart: bool = False
    hourly_minute: int = 59
    daily_check_hour: int = 1

    # ── App ──
    log_level: str = "INFO"

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/msync.db"
        return "sqlite:///./msync.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
