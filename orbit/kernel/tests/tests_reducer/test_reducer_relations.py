"""
Orbit Reducer -- Relation Invariants and Delete Semantics

Covers:
  - at most one primary contact per (account, role)
  - deletes never cascade: relations and links stay until explicitly unlinked
  - unlink events can clean up relations whose endpoints are gone
  - the full account lifecycle, with cleanup expressed as explicit events
"""

import pytest

from orbit.kernel.errors import EntityNotFoundError, InvalidPayloadError
from orbit.kernel.events import make_event
from orbit.kernel.reducer import apply_event, apply_events
from orbit.kernel.selectors import get_contacts_for_account, get_notes_for_entity, get_primary_contacts

ROLE = "account.contact.role.primary"


@pytest.fixture
def two_contacts(crm_doc):
    """crm_doc plus contact-2 linked to acct-1 in the same role (not primary)."""
    return apply_events(crm_doc, [
        make_event(20, "contact.created", {"id": "contact-2", "firstName": "Grace", "lastName": "Hopper"}),
        make_event(21, "account.contact.linked", {
            "id": "ac-2", "accountId": "acct-1", "contactId": "contact-2", "role": ROLE,
        }),
    ])


def _primaries(doc):
    return sorted(
        rel_id
        for rel_id, rel in doc["relations"]["accountContacts"].items()
        if rel["accountId"] == "acct-1" and rel["role"] == ROLE and rel["isPrimary"]
    )


class TestPrimaryUniqueness:
    def test_set_primary_demotes_previous(self, two_contacts):
        doc = apply_event(two_contacts, make_event(30, "account.contact.setPrimary", {"id": "ac-2"}))
        assert _primaries(doc) == ["ac-2"]
        assert get_primary_contacts(doc, "acct-1") == ["contact-2"]

    def test_link_as_primary_demotes_previous(self, crm_doc):
        doc = apply_events(crm_doc, [
            make_event(20, "contact.created", {"id": "contact-2", "name": "Grace Hopper"}),
            make_event(21, "account.contact.linked", {
                "id": "ac-2", "accountId": "acct-1", "contactId": "contact-2",
                "role": ROLE, "isPrimary": True,
            }),
        ])
        assert _primaries(doc) == ["ac-2"]

    def test_is_primary_must_be_boolean(self, crm_doc):
        with pytest.raises(InvalidPayloadError, match="isPrimary must be a boolean"):
            apply_events(crm_doc, [
                make_event(20, "contact.created", {"id": "contact-2", "name": "Grace Hopper"}),
                make_event(21, "account.contact.linked", {
                    "id": "ac-2", "accountId": "acct-1", "contactId": "contact-2",
                    "role": ROLE, "isPrimary": "false",
                }),
            ])

    def test_primary_scope_is_per_role(self, two_contacts):
        doc = apply_event(two_contacts, make_event(30, "account.contact.linked", {
            "id": "ac-3", "accountId": "acct-1", "contactId": "contact-2",
            "role": "account.contact.role.billing", "isPrimary": True,
        }))
        assert _primaries(doc) == ["ac-1"]
        assert get_primary_contacts(doc, "acct-1") == ["contact-1", "contact-2"]
        assert get_primary_contacts(doc, "acct-1", role="account.contact.role.billing") == ["contact-2"]

    def test_every_prefix_holds_the_invariant(self, two_contacts):
        events = [
            make_event(30, "account.contact.setPrimary", {"id": "ac-2"}),
            make_event(31, "account.contact.setPrimary", {"id": "ac-1"}),
            make_event(32, "account.contact.unsetPrimary", {"id": "ac-1"}),
            make_event(33, "account.contact.setPrimary", {"id": "ac-2"}),
        ]
        doc = two_contacts
        for event in events:
            doc = apply_event(doc, event)
            assert len(_primaries(doc)) <= 1


class TestDeletesDoNotCascade:
    def test_account_delete_keeps_relations_and_links(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "account.deleted", {"id": "acct-1"}))
        assert "acct-1" not in doc["accounts"]
        assert "ac-1" in doc["relations"]["accountContacts"]
        assert "link-1" in doc["relations"]["entityLinks"]
        assert "code-1" in doc["codes"]

    def test_dangling_relations_are_hidden_by_selectors(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "contact.deleted", {"id": "contact-1"}))
        assert "ac-1" in doc["relations"]["accountContacts"]
        assert get_contacts_for_account(doc, "acct-1") == []
        assert get_primary_contacts(doc, "acct-1") == []

    def test_unlink_cleans_up_after_delete(self, crm_doc):
        doc = apply_events(crm_doc, [
            make_event(20, "contact.deleted", {"id": "contact-1"}),
            make_event(21, "account.contact.unlinked", {"id": "ac-1"}),
            make_event(22, "note.deleted", {"id": "note-1"}),
            make_event(23, "note.unlinked", {"linkId": "link-1"}),
        ])
        assert doc["relations"]["accountContacts"] == {}
        assert "link-1" not in doc["relations"]["entityLinks"]

    def test_organization_delete_leaves_accounts(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "organization.deleted", {"id": "org-1"}))
        assert doc["accounts"]["acct-1"]["organizationId"] == "org-1"


class TestAccountLifecycle:
    def test_explicit_cleanup_then_delete(self, crm_doc):
        """Removing an account the way a client does: unlink, delete dependents, delete."""
        cleanup = [
            make_event(20, "account.contact.unlinked", {"accountId": "acct-1", "contactId": "contact-1"}),
            make_event(21, "note.unlinked", {"linkId": "link-1"}),
            make_event(22, "calendarEvent.unlinked", {"linkId": "link-3"}),
            make_event(23, "code.deleted", {"id": "code-1"}),
            make_event(24, "account.deleted", {"id": "acct-1"}),
        ]
        doc = apply_events(crm_doc, cleanup)

        assert doc["accounts"] == {}
        assert doc["codes"] == {}
        assert doc["relations"]["accountContacts"] == {}
        assert sorted(doc["relations"]["entityLinks"]) == ["link-2"]
        assert "note-1" in doc["notes"]
        assert "contact-1" in doc["contacts"]

    def test_recreating_a_deleted_account(self, crm_doc):
        doc = apply_events(crm_doc, [
            make_event(20, "account.deleted", {"id": "acct-1"}),
            make_event(21, "account.created", {"id": "acct-1", "organizationId": "org-1", "name": "Acme Tower II"}),
        ])
        assert doc["accounts"]["acct-1"]["name"] == "Acme Tower II"
        # relations recorded before the delete point at the new account
        assert get_notes_for_entity(doc, "account", "acct-1")[0]["id"] == "note-1"

    def test_unlink_already_removed_relation_fails(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "account.contact.unlinked", {"id": "ac-1"}))
        with pytest.raises(EntityNotFoundError):
            apply_event(doc, make_event(21, "account.contact.unlinked", {"id": "ac-1"}))
