"""Cancellable one-shot timer slot.

A slot holds at most one pending task; scheduling again cancels the
previous one first (last-write-wins debounce, not a queue).
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from ..subscription import invoke_callback

logger = logging.getLogger(__name__)


class TimerSlot:
    """One pending delayed callback per purpose."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: float, callback: Callable[[], Any]) -> None:
        """Run ``callback`` after ``delay`` seconds, replacing any pending run."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(delay, callback), name=f"timer:{self.name}")

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, delay: float, callback: Callable[[], Any]) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            logger.debug(f"Timer {self.name} cancelled (rescheduled or torn down)")
            return

        if self._task is asyncio.current_task():
            self._task = None

        try:
            await invoke_callback(callback)
        except Exception as e:
            logger.exception(f"Timer {self.name} callback failed: {e}")
