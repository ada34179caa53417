"""
Orbit Reducer -- Determinism Tests

The reducer is a pure, deterministic function: same events in, same
document out, every time and on every device.

Covers:
  - N-times replay identity
  - incremental vs. full replay equivalence
  - replay is order-independent (canonical sort) while apply_events is not
  - canonical tie-breaks on equal timestamps
  - merging logs from two devices
  - replay failures name the offending event
"""

import json
import random

import pytest

from orbit.kernel.document import empty_document
from orbit.kernel.errors import EntityNotFoundError, ReplayError
from orbit.kernel.events import make_event, merge_event_logs, sort_events
from orbit.kernel.reducer import apply_event, apply_events, replay


# ============================================================================
# Helpers
# ============================================================================


def snapshot_json(doc):
    """Canonical JSON representation with sorted keys for deterministic comparison."""
    return json.dumps(doc, sort_keys=True, ensure_ascii=True)


def build_incremental(events):
    doc = empty_document()
    for event in events:
        doc = apply_event(doc, event)
    return doc


# ============================================================================
# Tests
# ============================================================================


class TestReplayIdentity:
    def test_replay_many_times(self, history):
        expected = snapshot_json(replay(history))
        for _ in range(50):
            assert snapshot_json(replay(history)) == expected

    def test_incremental_equals_full(self, history):
        assert snapshot_json(build_incremental(history)) == snapshot_json(replay(history))

    def test_empty_log(self):
        assert replay([]) == empty_document()

    def test_replay_onto_base(self, history):
        base = replay(history[:5])
        assert snapshot_json(replay(history[5:], base=base)) == snapshot_json(replay(history))


class TestLogIsolation:
    def test_document_does_not_alias_event_payloads(self):
        event = make_event(1, "organization.created", {"id": "org-1", "name": "Acme", "metadata": {"tier": "gold"}})
        doc = apply_events(empty_document(), [event])
        doc["organizations"]["org-1"]["metadata"]["tier"] = "tampered"
        assert event.payload["metadata"] == {"tier": "gold"}
        assert replay([event])["organizations"]["org-1"]["metadata"] == {"tier": "gold"}

    def test_nested_lists_are_copied(self, history):
        doc = replay(history)
        doc["accounts"]["acct-1"]["excludedFloors"].append(5)
        assert history[1].payload["excludedFloors"] == [4]


class TestCanonicalOrder:
    def test_shuffled_input_same_document(self, history):
        expected = snapshot_json(replay(history))
        rng = random.Random(7)
        for _ in range(10):
            shuffled = list(history)
            rng.shuffle(shuffled)
            assert snapshot_json(replay(shuffled)) == expected

    def test_apply_events_respects_given_order(self, history):
        reordered = [history[1], history[0]]
        with pytest.raises(EntityNotFoundError):
            apply_events(empty_document(), reordered)
        assert "acct-1" in replay(reordered)["accounts"]

    def test_same_timestamp_orders_by_numeric_id(self):
        ts = "2026-03-01T12:00:00.000Z"
        create = make_event(1, "organization.created", {"id": "org-1", "name": "First"}, timestamp=ts, event_id="evt-9")
        rename = make_event(2, "organization.updated", {"id": "org-1", "name": "Second"}, timestamp=ts, event_id="evt-10")
        assert sort_events([rename, create]) == [create, rename]
        assert replay([rename, create])["organizations"]["org-1"]["name"] == "Second"

    def test_device_id_breaks_remaining_ties(self):
        ts = "2026-03-01T12:00:00.000Z"
        a = make_event(1, "device.registered", {}, timestamp=ts, event_id="evt-1", device_id="device-a")
        b = make_event(1, "device.registered", {}, timestamp=ts, event_id="evt-1", device_id="device-b")
        assert sort_events([b, a]) == [a, b]


class TestMultiDevice:
    def test_merged_logs_converge(self, history):
        phone = history[:6] + [
            make_event(30, "note.updated", {"id": "note-1", "body": "from phone"}, device_id="device-phone"),
        ]
        tablet = history + [
            make_event(31, "account.updated", {"id": "acct-1", "website": "https://acme.test"}, device_id="device-tablet"),
        ]
        on_phone = replay(merge_event_logs(phone, tablet))
        on_tablet = replay(merge_event_logs(tablet, phone))
        assert snapshot_json(on_phone) == snapshot_json(on_tablet)
        assert on_phone["notes"]["note-1"]["body"] == "from phone"
        assert on_phone["accounts"]["acct-1"]["website"] == "https://acme.test"

    def test_merge_deduplicates_by_id(self, history):
        assert len(merge_event_logs(history, history)) == len(history)


class TestReplayFailure:
    def test_error_names_event(self, history):
        bad = make_event(50, "account.updated", {"id": "acct-404", "name": "x"})
        with pytest.raises(ReplayError) as exc_info:
            replay(history + [bad])
        assert exc_info.value.event_id == "evt-0050"
        assert exc_info.value.event_type == "account.updated"
        assert "acct-404" in str(exc_info.value)

    def test_unknown_type_stops_replay(self, history):
        with pytest.raises(ReplayError, match="widget.created"):
            replay(history + [make_event(50, "widget.created", {})])
