import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/database.sqlite"
DEFAULT_VALORANT_API_BASE_URL = "https://api.henrikdev.xyz/valorant"


@dataclass(frozen=True)
class Settings:
    """Options passed explicitly to the database, the stats client and the workflows."""

    database_url: str = DEFAULT_DATABASE_URL
    valorant_api_key: Optional[str] = None
    valorant_api_base_url: str = DEFAULT_VALORANT_API_BASE_URL
    valorant_api_timeout: float = 10.0
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    discord_token: Optional[str] = None
    app_id: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        # .env only fills variables that are not already set
        load_dotenv()

        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            valorant_api_key=os.getenv("VALORANT_API_KEY") or None,
            valorant_api_base_url=os.getenv("VALORANT_API_BASE_URL", DEFAULT_VALORANT_API_BASE_URL),
            valorant_api_timeout=float(os.getenv("VALORANT_API_TIMEOUT", "10")),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8080")),
            discord_token=os.getenv("DISCORD_TOKEN") or None,
            app_id=os.getenv("APP_ID") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
