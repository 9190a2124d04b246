import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Client settings
    api_url: str = os.getenv("BOOKSHARE_API_URL", "http://127.0.0.1:8000/api")
    session_file: str = os.getenv(
        "BOOKSHARE_SESSION_FILE",
        str(Path.home() / ".bookshare" / "session.json"),
    )

    # Backend settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    database_file: str = os.getenv("BOOKSHARE_DB_FILE", "bookshare.db")
    cors_origins: List[str] = field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("BOOKSHARE_CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]
    )

    # Application settings
    app_name: str = os.getenv("APP_NAME", "BookShare")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    debug: bool = _as_bool(os.getenv("DEBUG", "False"))


settings = Settings()
