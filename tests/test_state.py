"""Tests for session state construction, mutation and serialization."""

import pytest

from chatform.core.constants import META_PENDING_FIELD, META_SKIPPED_FIELDS
from chatform.core.errors import MetadataKeyError, StorageError
from chatform.core.state import (
    add_message,
    collected_field_names,
    dumps_state,
    get_metadata,
    loads_state,
    new_session,
    set_metadata,
    set_status,
    state_from_dict,
    update_field,
)
from chatform.core.types import FieldError


class TestNewSession:
    def test_cursor_starts_at_first_field(self, course_config):
        state = new_session("s1", course_config)

        assert state.status == "collecting"
        assert state.current_field == "name"
        assert state.collected_data == {}
        assert state.embedded_config["name"] == "course"
        assert state.created_at

    def test_seeded_values_skip_ahead(self, make_config):
        config = make_config(initial_data={"name": "From config", "duration": "5"})

        state = new_session("s1", config, initial_data={"name": "From caller", "level": ""})

        assert state.collected_data == {"name": "From caller", "duration": "5"}
        assert state.current_field == "level"


class TestTransitions:
    """Status edges of the lifecycle."""

    @pytest.mark.parametrize(
        "path",
        [
            ["confirming", "completed"],
            ["confirming", "enhancing", "confirming", "completed"],
            ["enhancing", "collecting", "cancelled"],
            ["completed"],
            ["confirming", "collecting"],
        ],
    )
    def test_legal_paths(self, course_config, path):
        state = new_session("s1", course_config)

        for status in path:
            set_status(state, status)

        assert state.status == path[-1]

    @pytest.mark.parametrize(
        "path",
        [
            ["enhancing", "completed"],
            ["completed", "collecting"],
            ["cancelled", "confirming"],
        ],
    )
    def test_illegal_edges_raise(self, course_config, path):
        state = new_session("s1", course_config)

        with pytest.raises(ValueError, match="Illegal status transition"):
            for status in path:
                set_status(state, status)

    def test_same_status_is_a_no_op(self, course_config):
        state = new_session("s1", course_config)

        set_status(state, "collecting")

        assert state.completed_at is None

    def test_terminal_status_stamps_completion(self, course_config):
        state = new_session("s1", course_config)

        set_status(state, "cancelled")

        assert state.completed_at is not None


class TestMutation:
    def test_update_field_clears_errors(self, course_config):
        state = new_session("s1", course_config)
        state.validation_errors["name"] = [FieldError("name", "min", "too short")]

        update_field(state, "name", "Laravel Basics")

        assert state.collected_data["name"] == "Laravel Basics"
        assert "name" not in state.validation_errors

    def test_collected_field_names_ignore_empty_values(self, course_config):
        state = new_session("s1", course_config, initial_data={"name": "Laravel"})
        state.collected_data["level"] = "  "

        assert collected_field_names(state) == ["name"]

    def test_metadata_is_a_closed_set(self, course_config):
        state = new_session("s1", course_config)

        set_metadata(state, META_PENDING_FIELD, "name")
        assert get_metadata(state, META_PENDING_FIELD) == "name"

        set_metadata(state, META_PENDING_FIELD, None)
        assert META_PENDING_FIELD not in state.metadata

        with pytest.raises(MetadataKeyError):
            set_metadata(state, "favourite_colour", "blue")
        with pytest.raises(KeyError):
            get_metadata(state, "favourite_colour")


class TestSerialization:
    def test_round_trip(self, course_config):
        state = new_session("s1", course_config, initial_data={"name": "Laravel"})
        add_message(state, "user", "مرحبا")
        set_metadata(state, META_SKIPPED_FIELDS, ["summary"])
        state.validation_errors["duration"] = [FieldError("duration", "numeric", "must be a number")]
        state.last_suggestions = {"field": "duration", "items": ["10", "20"]}

        restored = loads_state(dumps_state(state))

        assert restored == state

    def test_unknown_metadata_is_dropped_on_load(self):
        state = state_from_dict(
            {
                "session_id": "s1",
                "config_name": "course",
                "metadata": {"pending_field": "name", "legacy_flag": True},
            }
        )

        assert state.metadata == {"pending_field": "name"}
        assert state.status == "collecting"
        assert state.message_history == []

    def test_missing_identity_is_a_storage_error(self):
        with pytest.raises(StorageError):
            state_from_dict({"status": "collecting"})

    @pytest.mark.parametrize("raw", [b"{not json", b"[1, 2]", b"\xff\xfe"])
    def test_corrupt_bytes(self, raw):
        with pytest.raises(StorageError):
            loads_state(raw)
