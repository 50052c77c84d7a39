"""Tests for memory data models."""

from typing import get_args

import pytest
from pydantic import ValidationError

from src.memory.models import (
    MESSAGE_ROLES,
    TIMELINE_EVENT_NAMES,
    MessageFilter,
    MessageRole,
    TimelineEventName,
    TimelineEventValue,
)


class TestTimelineEventValue:
    def test_derives_type_and_status(self):
        value = TimelineEventValue(name="memory:write:start")
        assert value.type == "memory"
        assert value.status == "start"

    def test_explicit_fields_kept(self):
        value = TimelineEventValue(name="tool:error", type="tool-call", status="failed")
        assert (value.type, value.status) == ("tool-call", "failed")

    def test_rejects_unknown_name(self):
        with pytest.raises(ValidationError):
            TimelineEventValue(name="tool:exploded")

    def test_known_names_cover_all_families(self):
        families = {name.split(":")[0] for name in TIMELINE_EVENT_NAMES}
        assert families == {"tool", "agent", "memory", "retriever"}
        assert len(TIMELINE_EVENT_NAMES) == 15

    def test_known_names_match_literal_types(self):
        assert frozenset(get_args(TimelineEventName)) == TIMELINE_EVENT_NAMES
        assert frozenset(get_args(MessageRole)) == MESSAGE_ROLES
        assert {"user", "assistant", "system", "tool"} == MESSAGE_ROLES


class TestMessageFilter:
    def test_defaults(self):
        flt = MessageFilter()
        assert flt.limit == 50
        assert flt.conversation_id is None

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            MessageFilter(limit=-3)

    def test_rejects_unknown_role(self):
        with pytest.raises(ValidationError):
            MessageFilter(role="moderator")
