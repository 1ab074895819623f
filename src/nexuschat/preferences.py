"""Persist small user preferences (endpoint, selected model) to a JSON file."""

import json
import logging
from pathlib import Path
from typing import (
    Any,
    Dict,
    Optional,
)

from nexuschat.config import settings

logger = logging.getLogger(__name__)

ENDPOINT_KEY = "endpoint"
SELECTED_MODEL_KEY = "selected_model"


class PreferenceStore:
    """
    Key-value store backed by ``<DATA_DIR>/preferences.json``.

    Writes replace the whole file; there is no durability guarantee beyond that.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or Path(settings.DATA_DIR) / "preferences.json"
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(self._values, f, indent=2)
