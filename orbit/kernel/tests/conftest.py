"""
Orbit kernel test configuration.

Shared fixtures: a small but complete CRM history, in-memory stores, and a
store that fails its first N writes. PostgresStore tests that need
DATABASE_URL are skipped automatically when it is not set.
"""

import pytest

from orbit.kernel.events import make_event
from orbit.kernel.persistence import MemoryStore


def crm_history():
    """
    Ten events that touch every collection and both relation tables.

    org-1 owns acct-1 (floors 1..10 minus 4). contact-1 is the primary
    contact. note-1 and cal-1 are linked to the account, int-1 to the contact.
    """
    seq = 0

    def e(type, payload, **kw):
        nonlocal seq
        seq += 1
        return make_event(seq, type, payload, **kw)

    return [
        e("organization.created", {"id": "org-1", "name": "Acme Holdings"}),
        e("account.created", {
            "id": "acct-1", "organizationId": "org-1", "name": "Acme Tower",
            "minFloor": 1, "maxFloor": 10, "excludedFloors": [4],
        }),
        e("contact.created", {
            "id": "contact-1", "firstName": "Ada", "lastName": "Lovelace",
            "methods": {"emails": [{"value": "ada@acme.test"}]},
        }),
        e("account.contact.linked", {
            "id": "ac-1", "accountId": "acct-1", "contactId": "contact-1",
            "role": "account.contact.role.primary", "isPrimary": True,
        }),
        e("note.created", {"id": "note-1", "title": "Kickoff", "body": "Met the facilities team."}),
        e("note.linked", {
            "linkId": "link-1", "noteId": "note-1", "entityType": "account", "entityId": "acct-1",
        }),
        e("interaction.logged", {
            "id": "int-1", "type": "interaction.type.call",
            "occurredAt": "2026-01-02T10:00:00.000Z", "summary": "Intro call",
        }),
        e("interaction.linked", {
            "linkId": "link-2", "interactionId": "int-1", "entityType": "contact", "entityId": "contact-1",
        }),
        e("code.created", {
            "id": "code-1", "accountId": "acct-1", "label": "Lobby", "codeValue": "1234",
            "type": "code.type.door",
        }),
        e("calendarEvent.scheduled", {
            "id": "cal-1", "type": "calendarEvent.type.meeting",
            "scheduledFor": "2026-02-01T09:00:00.000Z", "summary": "Walkthrough",
            "linkedEntities": [{"linkId": "link-3", "entityType": "account", "entityId": "acct-1"}],
        }),
    ]


@pytest.fixture
def history():
    return crm_history()


@pytest.fixture
def crm_doc(history):
    from orbit.kernel.reducer import replay

    return replay(history)


@pytest.fixture
def memory_store():
    return MemoryStore()


class FlakyStore(MemoryStore):
    """MemoryStore whose first `failures` writes raise ConnectionError."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.write_attempts = 0

    def _maybe_fail(self):
        self.write_attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("disk unavailable")

    async def insert_events(self, records):
        self._maybe_fail()
        await super().insert_events(records)

    async def persist(self, snapshot, records):
        self._maybe_fail()
        await super().persist(snapshot, records)


@pytest.fixture
def flaky_store():
    """Factory: flaky_store(failures=N) -> FlakyStore."""
    return FlakyStore
