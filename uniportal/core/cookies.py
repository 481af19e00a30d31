import json
import logging
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)


def load_cookies(path: Path) -> Dict[str, str]:
    """Read cookies saved by `save_cookies` into an httpx cookie dict."""
    if not path.exists():
        raise FileNotFoundError(f"Cookie file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        cookies: List[dict] = json.load(f)
    return {c["name"]: c["value"] for c in cookies}


def save_cookies(path: Path, cookies: Dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [{"name": name, "value": value} for name, value in cookies.items()]
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.debug(f"Saved {len(payload)} cookies to {path}")


def clear_cookies(path: Path) -> None:
    if path.exists():
        path.unlink()


def verify_login_status(path: Path) -> bool:
    """True when a non-empty, well-formed cookie file exists."""
    if not path.exists():
        return False
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return False
    return isinstance(data, list) and len(data) > 0
