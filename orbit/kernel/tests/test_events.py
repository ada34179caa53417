"""
Tests for event construction, ids, serialization and ordering helpers.
"""

import json
import re

from orbit.kernel.events import (
    EVENT_TYPES,
    build_event,
    events_after,
    events_from_raw,
    make_event,
    next_entity_id,
    next_event_id,
    sort_events,
    sorts_after,
)
from orbit.kernel.registry import REDUCERS, is_registered
from orbit.kernel.types import Event, now_iso


class TestIds:
    def test_event_ids_are_unique(self):
        ids = {next_event_id() for _ in range(500)}
        assert len(ids) == 500
        assert all(re.fullmatch(r"evt-\d+-\d+", i) for i in ids)

    def test_entity_id_prefix(self):
        assert next_entity_id("account").startswith("account-")
        assert next_entity_id("note") != next_entity_id("note")

    def test_now_iso_format(self):
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", now_iso())


class TestBuild:
    def test_build_copies_payload(self):
        payload = {"name": "Acme", "metadata": {"tier": "gold"}}
        event = build_event("organization.created", "org-1", payload, "device-a")
        payload["metadata"]["tier"] = "silver"
        assert event.payload["metadata"]["tier"] == "gold"
        assert event.device_id == "device-a"

    def test_events_from_raw_share_timestamp(self):
        events = events_from_raw([
            {"type": "organization.created", "entityId": "org-1", "payload": {"name": "A"}},
            {"type": "organization.updated", "entityId": "org-1", "payload": {"name": "B"}},
        ], device_id="device-a")
        assert events[0].timestamp == events[1].timestamp
        assert sort_events(reversed(events)) == events

    def test_make_event_is_deterministic(self):
        a = make_event(3, "organization.created", {"id": "org-1", "name": "A"})
        b = make_event(3, "organization.created", {"id": "org-1", "name": "A"})
        assert a == b
        assert a.id == "evt-0003"
        assert a.timestamp == "2026-01-01T00:00:03.000Z"


class TestSerialization:
    def test_dict_uses_camel_case(self):
        event = make_event(1, "note.created", {"id": "n-1", "title": "T"}, entity_id="n-1")
        d = event.to_dict()
        assert d["entityId"] == "n-1"
        assert d["deviceId"] == "device-test"
        assert Event.from_dict(d) == event

    def test_record_payload_is_json_text(self):
        event = make_event(1, "note.created", {"title": "T", "id": "n-1"})
        record = event.to_record()
        assert json.loads(record["payload"]) == {"id": "n-1", "title": "T"}
        assert record["entity_id"] is None
        assert Event.from_record(record) == event


class TestOrdering:
    def test_events_after_is_strict(self, history):
        ts = history[4].timestamp
        assert [e.id for e in events_after(history, ts)] == [e.id for e in history[5:]]
        assert events_after(history, None) == history

    def test_events_after_position_breaks_timestamp_ties(self):
        ts = "2026-03-01T12:00:00.000Z"
        batch = [make_event(n, "note.created", {"id": f"n-{n}"}, timestamp=ts) for n in (9, 10, 11)]
        assert [e.id for e in events_after(batch, ts, "evt-0009")] == ["evt-0010", "evt-0011"]
        assert events_after(batch, ts) == []

    def test_sorts_after_is_numeric_aware(self):
        ts = "2026-03-01T12:00:00.000Z"
        later = make_event(1, "note.created", {"id": "n-1"}, timestamp=ts, event_id="evt-10")
        assert sorts_after(later, ts, "evt-9")
        assert not sorts_after(later, ts, "evt-10")
        assert not sorts_after(later, ts, "evt-11")


class TestRegistry:
    def test_every_event_type_has_a_reducer(self):
        assert set(REDUCERS) == set(EVENT_TYPES)
        assert len(EVENT_TYPES) == len(set(EVENT_TYPES))

    def test_is_registered(self):
        assert is_registered("calendarEvent.recurrence.deleted")
        assert not is_registered("account.merged")
