"""Subscription handles returned by every connect-style API.

Windowing-system and settings-store callbacks are released through the
handle returned at subscribe time instead of disconnect-by-identifier.
"""

import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Subscription:
    """Releasable handle for one registered callback.

    ``unsubscribe()`` is idempotent and never raises: releasing a
    subscription on an object that is already gone is logged and ignored.
    """

    def __init__(self, release: Callable[[], None], description: str = "") -> None:
        self._release: Optional[Callable[[], None]] = release
        self.description = description

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        release, self._release = self._release, None
        if release is None:
            return
        try:
            release()
        except Exception as e:
            logger.debug(f"Ignoring error while releasing subscription {self.description}: {e}")

    def __repr__(self) -> str:
        state = "active" if self.active else "released"
        return f"Subscription({self.description!r}, {state})"


async def invoke_callback(callback: Callable[..., Any], *args: Any) -> None:
    """Call a sync or async callback and await it if needed."""
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
