import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    """Application configuration read from environment variables."""

    # Database
    database_url: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./data/league.db"
    )

    # Seasons are calendar months in this zone
    timezone: str = os.getenv("LEAGUE_TIMEZONE", "Europe/Amsterdam")

    # Reports
    standings_limit: int = int(os.getenv("STANDINGS_LIMIT", "10"))
    recommendation_limit: int = int(os.getenv("RECOMMENDATION_LIMIT", "10"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir: str = os.getenv("LOG_DIR", "logs")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


settings = Settings()
