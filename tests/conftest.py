"""Pytest configuration and fixtures for window-state-daemon tests."""

import json
import sys
from pathlib import Path
from typing import Any, Callable, List

import pytest

# Add the repository root to the path BEFORE test collection
package_root = Path(__file__).parent.parent
if str(package_root) not in sys.path:
    sys.path.insert(0, str(package_root))

from window_state_daemon.config import ConfigStore  # noqa: E402
from window_state_daemon.constants import SettingsKeys  # noqa: E402
from window_state_daemon.models.settings import DaemonSettings  # noqa: E402
from window_state_daemon.settings_store import SettingsStore  # noqa: E402
from window_state_daemon.state_store import StateStore  # noqa: E402


@pytest.fixture
def settings_dir(tmp_path: Path) -> Path:
    path = tmp_path / "window-state-daemon"
    path.mkdir()
    return path


@pytest.fixture
def settings_store(settings_dir: Path) -> SettingsStore:
    return SettingsStore(settings_dir)


@pytest.fixture
def config_store(settings_store: SettingsStore) -> ConfigStore:
    return ConfigStore(settings_store)


@pytest.fixture
def state_store(settings_store: SettingsStore) -> StateStore:
    return StateStore(settings_store)


@pytest.fixture
def fast_settings(settings_dir: Path) -> DaemonSettings:
    """Short delays so debounce behaviour runs on real timers."""
    return DaemonSettings(
        settings_dir=settings_dir,
        save_delay_ms=30,
        workspace_switch_delay_ms=10,
        watch_settings=False,
        settings_debounce_ms=20,
    )


@pytest.fixture
def write_rules(settings_store: SettingsStore) -> Callable[[List[Any]], None]:
    """Store a rule list the way a configuration front-end would."""

    def _write(rules: List[Any]) -> None:
        settings_store.set_string(SettingsKeys.RULES, json.dumps(rules))

    return _write


@pytest.fixture
def write_states(settings_store: SettingsStore) -> Callable[[dict], None]:
    def _write(states: dict) -> None:
        settings_store.set_string(SettingsKeys.STATES, json.dumps(states))

    return _write
