import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _base_url() -> str:
    """Strip the trailing slash so paths can always start with '/'."""
    return os.getenv("PORTAL_API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")


@dataclass
class Settings:
    """Runtime settings read from the environment (.env supported)."""

    api_base_url: str = _base_url()
    username: Optional[str] = os.getenv("PORTAL_USERNAME")
    password: Optional[str] = os.getenv("PORTAL_PASSWORD")
    role: str = os.getenv("PORTAL_ROLE", "student")

    data_dir: Path = Path(os.getenv("DATA_DIR", "data"))

    # Used until the server reports the real ceiling.
    default_max_credits: int = int(os.getenv("DEFAULT_MAX_CREDITS", "18"))

    user_agent: str = os.getenv("USER_AGENT", "uniportal-client/1.0")
    timeout: float = float(os.getenv("HTTP_TIMEOUT", "15"))
    max_retries: int = int(os.getenv("HTTP_MAX_RETRIES", "3"))

    @property
    def cookies_path(self) -> Path:
        """Session cookies saved by `uniportal login`."""
        return self.data_dir / "cookies_portal.json"

    @property
    def cache_path(self) -> Path:
        return self.data_dir / "enrollment_cache.json"

    @classmethod
    def from_env(cls) -> "Settings":
        """dotenv -> environment values."""
        return cls()
