"""Rule configuration loader for window-state-daemon.

Parses and caches the rule list stored under ``window-app-configs``,
answers rule lookups by class identifier, records observed class
identifiers, and offers the rule-editing operations used by a
configuration front-end.
"""

import json
import logging
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from .constants import SettingsKeys
from .matcher import match_rule
from .models.rule import RULE_FLAGS, WindowAppRule
from .settings_store import SettingsStore
from .subscription import Subscription

logger = logging.getLogger(__name__)


def parse_rules(text: str) -> List[WindowAppRule]:
    """Parse the JSON rule list.

    Malformed JSON or a non-array document yields an empty list. Invalid
    items are skipped so one bad entry doesn't disable every rule.
    """
    try:
        data = json.loads(text) if text else []
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing {SettingsKeys.RULES}: {e}")
        return []

    if data is None:
        return []
    if not isinstance(data, list):
        logger.error(f"{SettingsKeys.RULES} must be a JSON array, got {type(data).__name__}")
        return []

    rules: List[WindowAppRule] = []
    for index, item in enumerate(data):
        try:
            rules.append(WindowAppRule.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid rule #{index}: {e.error_count()} validation error(s)")
    return rules


class ConfigStore:
    """Cached view of the configured rules."""

    def __init__(self, store: SettingsStore) -> None:
        self.store = store
        self._rules: List[WindowAppRule] = []

    @property
    def rules(self) -> List[WindowAppRule]:
        return list(self._rules)

    def reload(self) -> List[WindowAppRule]:
        """Re-read and re-parse the rule list from the settings store."""
        self._rules = parse_rules(self.store.get_string(SettingsKeys.RULES))
        logger.info(f"Loaded {len(self._rules)} window rule(s)")
        return self.rules

    def find_rule(self, class_id: Optional[str]) -> Optional[WindowAppRule]:
        """Return the rule currently in force for ``class_id``."""
        return match_rule(class_id, self._rules)

    def connect_changed(self, callback: Callable[[], None]) -> Subscription:
        """Run ``callback`` whenever the stored rule list changes."""
        return self.store.connect(SettingsKeys.RULES, lambda _key: callback())

    # Known classes

    def known_classes(self) -> List[str]:
        return self.store.get_strv(SettingsKeys.KNOWN_CLASSES)

    def record_known_class(self, class_id: Optional[str]) -> bool:
        """Add ``class_id`` to the sorted known-classes list if absent."""
        if not class_id:
            return False

        known = self.known_classes()
        if class_id in known:
            return False

        known.append(class_id)
        known.sort()
        self.store.set_strv(SettingsKeys.KNOWN_CLASSES, known)
        logger.debug(f"Recorded new window class: {class_id}")
        return True

    # Rule editing

    def _read_raw(self) -> List[Any]:
        try:
            data = json.loads(self.store.get_string(SettingsKeys.RULES) or "[]")
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing {SettingsKeys.RULES}: {e}")
            return []
        return data if isinstance(data, list) else []

    def _write_raw(self, items: List[Any]) -> None:
        self.store.set_string(SettingsKeys.RULES, json.dumps(items, indent=2))

    def add_rule(self, class_pattern: str, is_regex: bool = False) -> bool:
        """Append a rule with every restoration flag off.

        Returns False if a rule with the same pattern already exists.
        """
        rule = WindowAppRule(class_pattern=class_pattern, is_regex=is_regex)
        items = self._read_raw()
        if any(isinstance(item, dict) and item.get("wm_class") == rule.class_pattern for item in items):
            logger.info(f"Rule for {rule.class_pattern} already exists")
            return False

        items.append(rule.to_json())
        self._write_raw(items)
        logger.info(f"Added rule for {rule.class_pattern} (regex={is_regex})")
        return True

    def remove_rule(self, class_pattern: str) -> bool:
        items = self._read_raw()
        kept = [item for item in items if not (isinstance(item, dict) and item.get("wm_class") == class_pattern)]
        if len(kept) == len(items):
            return False

        self._write_raw(kept)
        logger.info(f"Removed rule for {class_pattern}")
        return True

    def update_rule(self, class_pattern: str, field: str, value: bool) -> bool:
        """Set one flag on the first rule with ``class_pattern``.

        Raises:
            ValueError: If ``field`` is not a rule flag
        """
        if field not in RULE_FLAGS:
            raise ValueError(f"Unknown rule field: {field}. Must be one of: {', '.join(RULE_FLAGS)}")

        items = self._read_raw()
        for item in items:
            if isinstance(item, dict) and item.get("wm_class") == class_pattern:
                item[field] = bool(value)
                self._write_raw(items)
                logger.info(f"Updated rule {class_pattern}: {field}={bool(value)}")
                return True
        return False
