"""
Central configuration via pydantic-settings.
All secrets are read from environment variables / .env file.
"""
from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Telegram ──────────────────────────────────────────────────────────────
    BOT_TOKEN: str

    # Raw comma-separated admin IDs, e.g. "123,456"
    ADMIN_IDS: str = ""

    LOG_LEVEL: str = "INFO"

    # ── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./arena.db"

    @property
    def async_database_url(self) -> str:
        """
        Hosting providers inject DATABASE_URL as 'postgresql://...'
        SQLAlchemy async requires 'postgresql+asyncpg://...'
        This property fixes the prefix automatically.
        """
        url = self.DATABASE_URL
        if url.startswith("postgresql://") or url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql://", 1).replace("://", "+asyncpg://", 1)
        return url

    # ── Blob store (payment evidence) ─────────────────────────────────────────
    MEDIA_ROOT: str = "media"
    MEDIA_BASE_URL: str = "http://localhost:8080/media"

    # ── Deposit verification ──────────────────────────────────────────────────
    DEPOSIT_POLL_INTERVAL: float = 15.0     # seconds between status reads
    DEPOSIT_POLL_TIMEOUT: float = 6 * 3600  # stop watching after this long

    # ── Flood protection ──────────────────────────────────────────────────────
    RATE_LIMIT: int = 30
    RATE_PERIOD: float = 60.0

    # ─────────────────────────────────────────────────────────────────────────

    @property
    def admin_ids_list(self) -> list[int]:
        """Parse ADMIN_IDS env var to a list of integers."""
        if not self.ADMIN_IDS:
            return []
        return [int(x.strip()) for x in self.ADMIN_IDS.split(",") if x.strip().isdigit()]

    @property
    def media_root_path(self) -> Path:
        return Path(self.MEDIA_ROOT).expanduser().resolve()


settings = Settings()
