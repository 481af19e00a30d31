import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from uniportal.api.models import EnrollmentSetting
from uniportal.core.http import ResponseShapeError

logger = logging.getLogger(__name__)


class EnrollmentCache:
    """
    Weak local cache of the last server answers, stored as JSON.

    Only used to avoid showing defaults before the first fetch completes.
    Every fresh server response overwrites the cached value.
    """

    def __init__(self, cache_path: Path = Path("data/enrollment_cache.json")):
        self.cache_path = Path(cache_path)
        self.data = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.cache_path.exists():
            return {}
        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable enrollment cache {self.cache_path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self) -> None:
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"Failed to save enrollment cache: {e}")

    # --- max credits ---

    def max_credits(self, default: int) -> int:
        value = self.data.get("max_credits")
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return default

    def set_max_credits(self, value: int) -> None:
        self.data["max_credits"] = int(value)
        self._save()

    # --- enrollment setting ---

    def enrollment_setting(self) -> Optional[EnrollmentSetting]:
        raw = self.data.get("enrollment_setting")
        if raw is None:
            return None
        try:
            return EnrollmentSetting.from_payload(raw)
        except ResponseShapeError as e:
            logger.warning(f"Discarding cached enrollment setting: {e}")
            return None

    def store_enrollment_setting(self, setting: EnrollmentSetting) -> None:
        """Overwrite the setting together with the values derived from it."""
        self.data["enrollment_setting"] = setting.to_dict()
        self.data["max_credits"] = setting.max_credits
        if setting.current_semester:
            self.data["current_semester"] = setting.current_semester
        self._save()

    # --- current credits / semester ---

    def current_credits(self) -> int:
        value = self.data.get("current_credits")
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
        return 0

    def set_current_credits(self, value: int) -> None:
        self.data["current_credits"] = int(value)
        self._save()

    def current_semester(self) -> Optional[str]:
        value = self.data.get("current_semester")
        return value if isinstance(value, str) and value else None

    def set_current_semester(self, value: str) -> None:
        self.data["current_semester"] = value
        self._save()

    def clear(self) -> None:
        self.data = {}
        self._save()
