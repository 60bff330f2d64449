import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DESIRED_CONTRAST_KEY = "desiredContrast"
DEFAULT_DESIRED_CONTRAST = 0.8
SETTINGS_FILE = Path.home() / ".text_contrast_settings.json"


class JsonSettingsStore:
    """String key-value store persisted as a JSON object."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else SETTINGS_FILE

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: not a JSON object", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._read().get(key, default)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def list(self) -> List[str]:
        return sorted(self._read().keys())

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


def validate_contrast(value) -> float:
    """Return `value` as a float in [0, 1] or raise ValueError."""
    v = float(value)
    if math.isnan(v) or not 0.0 <= v <= 1.0:
        raise ValueError(f"Desired contrast must be between 0 and 1: {value!r}")
    return v


def load_desired_contrast(store: JsonSettingsStore) -> float:
    raw = store.get(DESIRED_CONTRAST_KEY)
    try:
        return validate_contrast(raw)
    except (TypeError, ValueError):
        if raw is not None:
            logger.warning("Invalid %s %r, using %s", DESIRED_CONTRAST_KEY, raw, DEFAULT_DESIRED_CONTRAST)
        store.set(DESIRED_CONTRAST_KEY, str(DEFAULT_DESIRED_CONTRAST))
        return DEFAULT_DESIRED_CONTRAST


def save_desired_contrast(store: JsonSettingsStore, value) -> float:
    v = validate_contrast(value)
    store.set(DESIRED_CONTRAST_KEY, str(v))
    return v
