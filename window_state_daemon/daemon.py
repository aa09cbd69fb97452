"""Daemon process: wires the stores, tracker and Sway backend together.

Under systemd it reports READY/WATCHDOG/STOPPING and logs to the journal;
elsewhere it logs to stderr.
"""

import asyncio
import contextlib
import logging
import os
import signal
import sys
from typing import Optional

try:
    from systemd import journal, daemon as sd_daemon
    SYSTEMD_AVAILABLE = True
except ImportError:
    SYSTEMD_AVAILABLE = False
    print("Warning: systemd-python not available, running without systemd integration", file=sys.stderr)

from .backend.sway import SwayBackend
from .config import ConfigStore
from .models.settings import DaemonSettings
from .settings_store import SettingsStore
from .state_store import StateStore
from .tracker import Tracker

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _silenced_fd2():
    """Route fd 2 to /dev/null; libsystemd prints there directly."""
    saved = os.dup(2)
    null = os.open(os.devnull, os.O_WRONLY)
    try:
        os.dup2(null, 2)
        yield
    finally:
        os.dup2(saved, 2)
        os.close(null)
        os.close(saved)


class DaemonHealthMonitor:
    """Manages systemd health notifications and watchdog pings."""

    def __init__(self) -> None:
        self.watchdog_interval: Optional[float] = None
        self._setup_watchdog()

    def _setup_watchdog(self) -> None:
        """Detect watchdog interval from systemd environment."""
        if not SYSTEMD_AVAILABLE:
            return

        watchdog_usec = os.environ.get("WATCHDOG_USEC")
        if watchdog_usec:
            # Ping at 1/3 of the timeout
            self.watchdog_interval = int(watchdog_usec) / 3_000_000
            logger.info(f"Systemd watchdog enabled: {self.watchdog_interval:.1f}s interval (1/3 of timeout)")
        else:
            logger.debug("Systemd watchdog not configured")

    def _notify(self, state: str) -> bool:
        if not SYSTEMD_AVAILABLE:
            return False
        with _silenced_fd2():
            sd_daemon.notify(state)
        return True

    def notify_ready(self) -> None:
        """Send READY=1 signal to systemd."""
        if self._notify("READY=1"):
            logger.info("Sent READY=1 to systemd")
        else:
            logger.debug("Systemd not available, skipping READY notification")

    def notify_watchdog(self) -> None:
        if self._notify("WATCHDOG=1"):
            logger.debug("Sent WATCHDOG=1 ping")

    def notify_stopping(self) -> None:
        if self._notify("STOPPING=1"):
            logger.info("Sent STOPPING=1 to systemd")

    async def watchdog_loop(self) -> None:
        """Background task that sends watchdog pings."""
        if not self.watchdog_interval:
            logger.debug("Watchdog not enabled, skipping watchdog loop")
            return

        logger.info(f"Starting watchdog loop (interval: {self.watchdog_interval}s)")

        while True:
            await asyncio.sleep(self.watchdog_interval)
            self.notify_watchdog()


class WindowStateDaemon:
    """Main daemon class."""

    def __init__(self, settings: Optional[DaemonSettings] = None) -> None:
        self.settings = settings or DaemonSettings.from_environment()
        self.settings_store: Optional[SettingsStore] = None
        self.config: Optional[ConfigStore] = None
        self.state_store: Optional[StateStore] = None
        self.backend: Optional[SwayBackend] = None
        self.tracker: Optional[Tracker] = None
        self.health_monitor: Optional[DaemonHealthMonitor] = None
        self.shutdown_event = asyncio.Event()

    async def initialize(self) -> None:
        """Initialize daemon components."""
        logger.info("Initializing window state daemon...")

        self.settings.settings_dir.mkdir(parents=True, exist_ok=True)
        self.settings_store = SettingsStore(self.settings.settings_dir)
        self.config = ConfigStore(self.settings_store)
        self.state_store = StateStore(self.settings_store)

        if self.settings.watch_settings:
            self.settings_store.start_watching(asyncio.get_running_loop(), self.settings.settings_debounce_ms)

        self.backend = SwayBackend()
        await self.backend.connect_with_retry()
        await self.backend.subscribe_events()
        await self.backend.load_existing_windows()

        self.tracker = Tracker(self.backend, self.config, self.state_store, settings=self.settings)
        self.tracker.start()

        self.health_monitor = DaemonHealthMonitor()

        logger.info(
            f"Daemon initialized: {len(self.config.rules)} rule(s), "
            f"save delay {self.settings.save_delay_ms}ms, settings in {self.settings.settings_dir}"
        )

    async def run(self) -> None:
        """Main event loop."""
        logger.info("Starting daemon event loop...")

        # Signal READY to systemd after full initialization
        if self.health_monitor:
            self.health_monitor.notify_ready()

        watchdog_task = None
        if self.health_monitor:
            watchdog_task = asyncio.create_task(self.health_monitor.watchdog_loop())

        try:
            if self.backend:
                await self.backend.main()

        except Exception as e:
            logger.error(f"Error in main loop: {e}")
            raise

        finally:
            if watchdog_task:
                watchdog_task.cancel()
                try:
                    await watchdog_task
                except asyncio.CancelledError:
                    pass

    async def shutdown(self) -> None:
        """Graceful shutdown; each step is bounded so systemd never has to SIGKILL."""
        logger.info("Shutting down daemon...")

        if self.health_monitor:
            self.health_monitor.notify_stopping()

        # Pending save timers are cancelled; the last debounced change may be lost
        if self.tracker:
            try:
                self.tracker.shutdown()
            except Exception as e:
                logger.error(f"Error stopping tracker: {e}")

        if self.settings_store:
            try:
                await asyncio.wait_for(asyncio.to_thread(self.settings_store.stop_watching), timeout=5.0)
                logger.info("Settings watcher stopped")
            except asyncio.TimeoutError:
                logger.warning("Settings watcher shutdown timed out after 5s (continuing)")
            except Exception as e:
                logger.error(f"Error stopping settings watcher: {e}")

        if self.backend:
            try:
                self.backend.close()
            except Exception as e:
                logger.error(f"Error closing window manager connection: {e}")

        logger.info("Daemon shutdown complete")

    def log_debug_info(self) -> None:
        """Dump tracked sessions and running tasks (SIGUSR1)."""
        logger.info("=== DEBUG INFO (USR1) ===")
        logger.info(f"PID: {os.getpid()}")
        if self.tracker:
            logger.info(f"Tracked windows: {len(self.tracker.sessions)}")
            for session in self.tracker.sessions.values():
                logger.info(f"  {session.window.window_id}: {session.class_id} [{session.state}]")
        try:
            tasks = asyncio.all_tasks()
            logger.info(f"Active tasks: {len(tasks)}")
            for task in tasks:
                logger.info(f"  Task: {task.get_name()}")
        except RuntimeError as e:
            logger.error(f"Error getting debug info: {e}")
        logger.info("======================")

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def shutdown_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            # Signal handlers must not touch the loop directly
            loop.call_soon_threadsafe(self.shutdown_event.set)

        def debug_handler(signum, frame):
            loop.call_soon_threadsafe(self.log_debug_info)

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)
        signal.signal(signal.SIGUSR1, debug_handler)


def setup_logging(level: Optional[str] = None) -> logging.Handler:
    """Attach one handler to the root logger: journald if available, else stderr."""
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    if SYSTEMD_AVAILABLE:
        with _silenced_fd2():
            handler: logging.Handler = journal.JournalHandler(SYSLOG_IDENTIFIER="window-state-daemon")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    logger.debug(f"Logging to {type(handler).__name__} at {level}")
    return handler


async def main_async(settings: Optional[DaemonSettings] = None) -> int:
    """Run the daemon until a stop signal or the IPC loop ends; return the exit code."""
    daemon = WindowStateDaemon(settings)
    daemon.setup_signal_handlers()

    try:
        await daemon.initialize()
        ipc = asyncio.create_task(daemon.run(), name="ipc-loop")
        stop = asyncio.create_task(daemon.shutdown_event.wait(), name="stop-signal")
        _, unfinished = await asyncio.wait({ipc, stop}, return_when=asyncio.FIRST_COMPLETED)
        for task in unfinished:
            task.cancel()
        exit_code = 0
    except Exception as e:
        logger.error(f"Daemon failed: {e}", exc_info=True)
        exit_code = 1

    await daemon.shutdown()
    return exit_code


def main() -> None:
    setup_logging()
    logger.info(f"window-state-daemon starting (pid {os.getpid()})")

    try:
        sys.exit(asyncio.run(main_async(DaemonSettings.from_environment())))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)


if __name__ == "__main__":
    main()
