"""
Unit tests for StateStore and SavedState.

Tests cover tolerant loading, absent-field semantics, and merging entries.
"""

import json

from window_state_daemon.constants import SettingsKeys
from window_state_daemon.models.saved_state import SavedState


class TestSavedState:
    """Test the saved-state record."""

    def test_absent_fields_are_none(self):
        state = SavedState()

        assert state.x is None
        assert state.maximized is None
        assert state.has_position is False
        assert state.has_workspace is False
        assert state.to_json() == {}

    def test_false_is_distinct_from_absent(self):
        state = SavedState.model_validate({"maximized": False})

        assert state.maximized is False
        assert state.to_json() == {"maximized": False}

    def test_float_coordinates_are_rounded(self):
        state = SavedState.model_validate({"x": 560.0, "y": 239.6, "width": 800, "height": 600})

        assert (state.x, state.y) == (560, 240)

    def test_workspace_minus_one_means_none(self):
        assert SavedState(workspace=-1).has_workspace is False
        assert SavedState(workspace=0).has_workspace is True

    def test_unknown_fields_round_trip(self):
        state = SavedState.model_validate({"x": 1, "y": 2, "monitor": 1})

        assert state.to_json() == {"x": 1, "y": 2, "monitor": 1}


class TestStateStore:
    """Test reading and writing the window-app-states map."""

    def test_missing_file_reads_empty(self, state_store):
        assert state_store.load_all() == {}
        assert state_store.get("firefox") == SavedState()

    def test_put_then_get(self, state_store):
        state_store.put("firefox", SavedState(x=100, y=100, width=800, height=600))

        state = state_store.get("firefox")
        assert (state.x, state.y, state.width, state.height) == (100, 100, 800, 600)

    def test_put_keeps_other_classes(self, state_store, write_states):
        write_states({"kitty": {"width": 900, "height": 500}})

        state_store.put("firefox", SavedState(x=10, y=20))

        stored = state_store.load_all()
        assert stored["kitty"] == {"width": 900, "height": 500}
        assert stored["firefox"] == {"x": 10, "y": 20}

    def test_put_omits_unset_fields(self, state_store, settings_store):
        state_store.put("firefox", SavedState(width=800, height=600))

        raw = json.loads(settings_store.get_string(SettingsKeys.STATES))
        assert raw == {"firefox": {"width": 800, "height": 600}}

    def test_malformed_json_reads_empty(self, state_store, settings_store):
        settings_store.set_string(SettingsKeys.STATES, "{not json")

        assert state_store.load_all() == {}
        assert state_store.get("firefox") == SavedState()

    def test_non_object_document_reads_empty(self, state_store, settings_store):
        settings_store.set_string(SettingsKeys.STATES, "[1, 2]")

        assert state_store.load_all() == {}

    def test_invalid_entry_reads_empty(self, state_store, write_states):
        write_states({"firefox": "big", "kitty": {"x": "left"}, "code": {"x": 5, "y": 6}})

        assert state_store.get("firefox") == SavedState()
        assert state_store.get("kitty") == SavedState()
        assert state_store.get("code").has_position

    def test_invalid_field_dropped_rest_kept(self, state_store, write_states):
        write_states({
            "firefox": {
                "x": 100, "y": 100, "width": 800, "height": 600,
                "workspace": 2, "maximized": "sometimes", "future_field": 7,
            }
        })

        state = state_store.get("firefox")

        assert state.maximized is None
        assert (state.x, state.y, state.width, state.height, state.workspace) == (100, 100, 800, 600, 2)
        assert state.to_json()["future_field"] == 7

    def test_delete(self, state_store, write_states):
        write_states({"firefox": {"x": 1, "y": 1}})

        assert state_store.delete("firefox") is True
        assert state_store.delete("firefox") is False
        assert state_store.load_all() == {}
