"""Persisted per-class saved-state map (``window-app-states``)."""

import json
import logging
from typing import Any, Dict

from pydantic import ValidationError

from .constants import SettingsKeys
from .models.saved_state import SavedState
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


class StateStore:
    """Reads and writes the JSON object mapping class identifier to SavedState.

    Every read goes to the backing store so concurrent writers (other
    sessions, other processes) are always merged against fresh data.
    """

    def __init__(self, store: SettingsStore) -> None:
        self.store = store

    def load_all(self) -> Dict[str, Any]:
        """Return the raw saved-state map; malformed JSON reads as empty."""
        try:
            data = json.loads(self.store.get_string(SettingsKeys.STATES) or "{}")
        except json.JSONDecodeError as e:
            logger.error(f"Error reading {SettingsKeys.STATES}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"{SettingsKeys.STATES} must be a JSON object, got {type(data).__name__}")
            return {}
        return data

    def get(self, class_id: str) -> SavedState:
        """Return the saved state for ``class_id``.

        Fields with a bad value read as not set; the rest of the entry,
        unknown fields included, is kept so the next write preserves it.
        """
        raw = self.load_all().get(class_id)
        if raw is None:
            return SavedState()
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring non-object saved state for {class_id}")
            return SavedState()

        try:
            return SavedState.model_validate(raw)
        except ValidationError as e:
            invalid = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
            logger.warning(f"Ignoring invalid field(s) {sorted(invalid)} in saved state for {class_id}")

        cleaned = {key: value for key, value in raw.items() if key not in invalid}
        try:
            return SavedState.model_validate(cleaned)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid saved state for {class_id}: {e.error_count()} validation error(s)")
            return SavedState()

    def put(self, class_id: str, state: SavedState) -> None:
        """Merge ``state`` into the map under ``class_id`` and persist it."""
        states = self.load_all()
        states[class_id] = state.to_json()
        self.store.set_string(SettingsKeys.STATES, json.dumps(states, indent=2, sort_keys=True))
        logger.debug(f"Persisted saved state for {class_id}")

    def delete(self, class_id: str) -> bool:
        states = self.load_all()
        if class_id not in states:
            return False
        del states[class_id]
        self.store.set_string(SettingsKeys.STATES, json.dumps(states, indent=2, sort_keys=True))
        logger.info(f"Forgot saved state for {class_id}")
        return True
