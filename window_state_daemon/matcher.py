"""Rule matching by window class identifier.

First match wins, in rule-list order. Regex rules use ``re.search``
semantics; a pattern that fails to compile never matches.
"""

import logging
import re
from functools import lru_cache
from typing import Optional, Pattern, Sequence

from .models.rule import WindowAppRule

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern)


def rule_matches(rule: WindowAppRule, class_id: str) -> bool:
    """Test one rule against a class identifier.

    Examples:
        >>> rule_matches(WindowAppRule(class_pattern="firefox"), "firefox")
        True
        >>> rule_matches(WindowAppRule(class_pattern="^fire", is_regex=True), "firefox")
        True
        >>> rule_matches(WindowAppRule(class_pattern="([", is_regex=True), "firefox")
        False
    """
    if not rule.is_regex:
        return rule.class_pattern == class_id

    try:
        return _compile(rule.class_pattern).search(class_id) is not None
    except (re.error, RecursionError) as e:
        logger.debug(f"Invalid regex rule {rule.class_pattern!r}, treating as non-match: {e}")
        return False


def match_rule(class_id: Optional[str], rules: Sequence[WindowAppRule]) -> Optional[WindowAppRule]:
    """Return the first rule matching ``class_id`` or None."""
    if not class_id:
        return None

    for rule in rules:
        if rule_matches(rule, class_id):
            return rule
    return None
