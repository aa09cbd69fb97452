"""Key-value settings store backed by one JSON file per key.

Handles atomic writes, in-process change notification, and watching the
settings directory for edits made by other processes (configuration
front-ends, manual edits).
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .constants import DEFAULT_SETTINGS_DEBOUNCE_MS, SettingsKeys
from .subscription import Subscription

logger = logging.getLogger(__name__)

# Value returned for a key whose file does not exist yet
DEFAULTS: Dict[str, str] = {
    SettingsKeys.RULES: "[]",
    SettingsKeys.STATES: "{}",
    SettingsKeys.KNOWN_CLASSES: "[]",
}


class SettingsStore:
    """JSON-file settings store with per-key change notification.

    Example:
        >>> store = SettingsStore(Path("~/.config/window-state-daemon").expanduser())
        >>> store.get_string("window-app-configs")
        '[]'
    """

    def __init__(self, settings_dir: Path) -> None:
        self.settings_dir = settings_dir
        self._listeners: Dict[str, List[Callable[[str], None]]] = {}
        self._watcher: Optional["SettingsWatcher"] = None

    def path_for(self, key: str) -> Path:
        return self.settings_dir / f"{key}.json"

    def key_for_filename(self, filename: str) -> Optional[str]:
        if not filename.endswith(".json"):
            return None
        key = filename[: -len(".json")]
        return key if key in DEFAULTS else None

    def get_string(self, key: str) -> str:
        """Return the raw JSON text stored under ``key``."""
        path = self.path_for(key)
        try:
            return path.read_text()
        except FileNotFoundError:
            return DEFAULTS.get(key, "")
        except OSError as e:
            logger.error(f"Failed to read settings key {key} from {path}: {e}")
            return DEFAULTS.get(key, "")

    def set_string(self, key: str, value: str) -> None:
        """Store raw JSON text under ``key`` (atomic write) and notify listeners."""
        self._write_atomic(self.path_for(key), value)
        self._notify(key)

    def get_strv(self, key: str) -> List[str]:
        """Return a string-array value; malformed content reads as empty."""
        try:
            data = json.loads(self.get_string(key) or "[]")
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing {key}: {e}")
            return []
        if not isinstance(data, list):
            logger.error(f"Settings key {key} must be a JSON array, got {type(data).__name__}")
            return []
        return [str(item) for item in data if isinstance(item, str)]

    def set_strv(self, key: str, values: List[str]) -> None:
        self.set_string(key, json.dumps(list(values), indent=2))

    def connect(self, key: str, callback: Callable[[str], None]) -> Subscription:
        """Register ``callback(key)`` for changes of ``key``."""
        listeners = self._listeners.setdefault(key, [])
        listeners.append(callback)

        def release() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return Subscription(release, f"settings:{key}")

    def _notify(self, key: str) -> None:
        for callback in list(self._listeners.get(key, [])):
            try:
                callback(key)
            except Exception as e:
                logger.exception(f"Settings listener for {key} failed: {e}")

    def notify_external_change(self, key: str) -> None:
        """Entry point for the file watcher (runs on the event loop)."""
        logger.debug(f"Settings key changed on disk: {key}")
        self._notify(key)

    def _write_atomic(self, path: Path, text: str) -> None:
        """Write using temp file + rename to prevent corruption."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.rename(temp_path, path)
            logger.debug(f"Saved settings file {path.name}")
        except Exception:
            if Path(temp_path).exists():
                os.unlink(temp_path)
            raise

    def start_watching(
        self,
        loop: asyncio.AbstractEventLoop,
        debounce_ms: int = DEFAULT_SETTINGS_DEBOUNCE_MS,
    ) -> None:
        """Start watching the settings directory for external edits."""
        if self._watcher is not None:
            logger.warning("Settings watcher already started")
            return
        self._watcher = SettingsWatcher(self, loop, debounce_ms)
        self._watcher.start()

    def stop_watching(self) -> None:
        if self._watcher is None:
            return
        self._watcher.stop()
        self._watcher = None


class DebouncedSettingsHandler(FileSystemEventHandler):
    """File system event handler with per-key debounced notification.

    Watchdog delivers events on its own thread; debouncing and notification
    are marshalled onto the asyncio loop.
    """

    def __init__(self, store: SettingsStore, loop: asyncio.AbstractEventLoop, debounce_ms: int = 100) -> None:
        super().__init__()
        self.store = store
        self.debounce_seconds = debounce_ms / 1000
        self._loop = loop
        self._pending: Dict[str, asyncio.TimerHandle] = {}

    def _key_for_event(self, event) -> Optional[str]:
        if event.is_directory:
            return None
        # Atomic saves use temp file + rename, so prefer the destination
        event_path = getattr(event, "dest_path", None) or event.src_path
        return self.store.key_for_filename(Path(os.fsdecode(event_path)).name)

    def _schedule(self, event) -> None:
        key = self._key_for_event(event)
        if key is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._debounce, key)
        except RuntimeError:
            logger.debug(f"Event loop closed, dropping settings change for {key}")

    def _debounce(self, key: str) -> None:
        handle = self._pending.pop(key, None)
        if handle is not None:
            handle.cancel()
        self._pending[key] = self._loop.call_later(self.debounce_seconds, self._fire, key)

    def _fire(self, key: str) -> None:
        self._pending.pop(key, None)
        self.store.notify_external_change(key)

    def cancel_pending(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def on_modified(self, event) -> None:
        self._schedule(event)

    def on_moved(self, event) -> None:
        self._schedule(event)

    def on_created(self, event) -> None:
        self._schedule(event)


class SettingsWatcher:
    """Watchdog observer for the settings directory.

    Watches the directory rather than the files since atomic saves
    (create temp file + rename) don't trigger inotify on the file itself.
    """

    def __init__(self, store: SettingsStore, loop: asyncio.AbstractEventLoop, debounce_ms: int = 100) -> None:
        self.store = store
        self.observer = Observer()
        self.handler = DebouncedSettingsHandler(store, loop, debounce_ms)
        self._started = False

    def start(self) -> None:
        watch_dir = self.store.settings_dir
        watch_dir.mkdir(parents=True, exist_ok=True)

        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self._started = True
        logger.info(f"Started watching {watch_dir} for settings changes")

    def stop(self) -> None:
        if not self._started:
            return
        self.observer.stop()
        self.observer.join(timeout=5.0)
        self.handler.cancel_pending()
        self._started = False
        logger.info(f"Stopped watching {self.store.settings_dir}")
