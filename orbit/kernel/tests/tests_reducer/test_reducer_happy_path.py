"""
Orbit Reducer -- Happy Path Tests

One block per entity: create, partial update, status change, delete.
Every assertion reads the returned document; the input document must
come back unchanged.
"""

import copy

from orbit.kernel.document import empty_document
from orbit.kernel.events import make_event
from orbit.kernel.reducer import apply_event, apply_events, replay


# ============================================================================
# Organizations / accounts
# ============================================================================


class TestOrganization:
    def test_create_defaults_status_active(self):
        doc = apply_event(empty_document(), make_event(1, "organization.created", {"id": "org-1", "name": "Acme"}))
        org = doc["organizations"]["org-1"]
        assert org["name"] == "Acme"
        assert org["status"] == "organization.status.active"
        assert org["createdAt"] == org["updatedAt"] == "2026-01-01T00:00:01.000Z"

    def test_entity_id_from_envelope(self):
        doc = apply_event(
            empty_document(),
            make_event(1, "organization.created", {"name": "Acme"}, entity_id="org-9"),
        )
        assert "org-9" in doc["organizations"]

    def test_update_status_and_delete(self):
        doc = apply_events(empty_document(), [
            make_event(1, "organization.created", {"id": "org-1", "name": "Acme"}),
            make_event(2, "organization.status.updated", {"id": "org-1", "status": "organization.status.inactive"}),
        ])
        assert doc["organizations"]["org-1"]["status"] == "organization.status.inactive"
        assert doc["organizations"]["org-1"]["updatedAt"] == "2026-01-01T00:00:02.000Z"

        doc = apply_event(doc, make_event(3, "organization.deleted", {"id": "org-1"}))
        assert doc["organizations"] == {}


class TestAccount:
    def test_create_keeps_optional_fields(self, crm_doc):
        account = crm_doc["accounts"]["acct-1"]
        assert account["organizationId"] == "org-1"
        assert account["status"] == "account.status.active"
        assert account["excludedFloors"] == [4]

    def test_partial_update_preserves_other_fields(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "account.updated", {"id": "acct-1", "website": "https://acme.test"}))
        account = doc["accounts"]["acct-1"]
        assert account["website"] == "https://acme.test"
        assert account["name"] == "Acme Tower"
        assert account["minFloor"] == 1
        assert account["createdAt"] == "2026-01-01T00:00:02.000Z"
        assert account["updatedAt"] == "2026-01-01T00:00:20.000Z"

    def test_move_to_another_organization(self, crm_doc):
        doc = apply_events(crm_doc, [
            make_event(20, "organization.created", {"id": "org-2", "name": "Beta"}),
            make_event(21, "account.updated", {"id": "acct-1", "organizationId": "org-2"}),
        ])
        assert doc["accounts"]["acct-1"]["organizationId"] == "org-2"

    def test_input_document_untouched(self, crm_doc):
        before = copy.deepcopy(crm_doc)
        apply_event(crm_doc, make_event(20, "account.deleted", {"id": "acct-1"}))
        assert crm_doc == before


# ============================================================================
# Contacts
# ============================================================================


class TestContact:
    def test_legacy_name_is_split(self):
        doc = apply_event(empty_document(), make_event(1, "contact.created", {"id": "c-1", "name": "Grace Brewster Hopper"}))
        contact = doc["contacts"]["c-1"]
        assert contact["firstName"] == "Grace"
        assert contact["lastName"] == "Brewster Hopper"
        assert contact["name"] == "Grace Brewster Hopper"
        assert contact["type"] == "contact.type.external"
        assert contact["methods"] == {"emails": [], "phones": []}

    def test_single_word_name_is_last_name(self):
        doc = apply_event(empty_document(), make_event(1, "contact.created", {"id": "c-1", "name": "Cher"}))
        assert doc["contacts"]["c-1"]["firstName"] == ""
        assert doc["contacts"]["c-1"]["lastName"] == "Cher"

    def test_method_defaults(self, crm_doc):
        email = crm_doc["contacts"]["contact-1"]["methods"]["emails"][0]
        assert email == {
            "value": "ada@acme.test",
            "label": "contact.method.label.work",
            "status": "contact.method.status.active",
        }

    def test_method_added_and_updated(self, crm_doc):
        doc = apply_events(crm_doc, [
            make_event(20, "contact.method.added", {
                "id": "contact-1", "methodType": "phones",
                "method": {"value": "+1 555 0100", "label": "contact.method.label.mobile"},
            }),
            make_event(21, "contact.method.updated", {
                "id": "contact-1", "methodType": "emails", "index": 0,
                "method": {"value": "ada@orbit.test", "status": "contact.method.status.inactive"},
            }),
        ])
        methods = doc["contacts"]["contact-1"]["methods"]
        assert methods["phones"][0]["value"] == "+1 555 0100"
        assert methods["emails"][0]["value"] == "ada@orbit.test"
        assert methods["emails"][0]["status"] == "contact.method.status.inactive"

    def test_update_only_touches_given_fields(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "contact.updated", {"id": "contact-1", "title": "Facilities Lead"}))
        contact = doc["contacts"]["contact-1"]
        assert contact["title"] == "Facilities Lead"
        assert contact["firstName"] == "Ada"
        assert len(contact["methods"]["emails"]) == 1


# ============================================================================
# Account <-> contact relations
# ============================================================================


class TestAccountContacts:
    def test_link_records_relation(self, crm_doc):
        rel = crm_doc["relations"]["accountContacts"]["ac-1"]
        assert rel == {
            "accountId": "acct-1",
            "contactId": "contact-1",
            "role": "account.contact.role.primary",
            "isPrimary": True,
        }

    def test_unset_and_set_primary(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "account.contact.unsetPrimary", {"id": "ac-1"}))
        assert doc["relations"]["accountContacts"]["ac-1"]["isPrimary"] is False

        doc = apply_event(doc, make_event(21, "account.contact.setPrimary", {
            "accountId": "acct-1", "contactId": "contact-1", "role": "account.contact.role.primary",
        }))
        assert doc["relations"]["accountContacts"]["ac-1"]["isPrimary"] is True

    def test_unlink_by_pair_removes_every_role(self, crm_doc):
        doc = apply_events(crm_doc, [
            make_event(20, "account.contact.linked", {
                "id": "ac-2", "accountId": "acct-1", "contactId": "contact-1",
                "role": "account.contact.role.billing",
            }),
            make_event(21, "account.contact.unlinked", {"accountId": "acct-1", "contactId": "contact-1"}),
        ])
        assert doc["relations"]["accountContacts"] == {}


# ============================================================================
# Notes / interactions / links
# ============================================================================


class TestNotesAndInteractions:
    def test_note_created_at_defaults_to_event_time(self, crm_doc):
        assert crm_doc["notes"]["note-1"]["createdAt"] == "2026-01-01T00:00:05.000Z"

    def test_imported_note_keeps_created_at(self):
        doc = apply_event(empty_document(), make_event(1, "note.created", {
            "id": "n-1", "title": "Old", "createdAt": "2020-05-05T00:00:00.000Z",
        }))
        assert doc["notes"]["n-1"]["createdAt"] == "2020-05-05T00:00:00.000Z"

    def test_links_recorded_with_source_key(self, crm_doc):
        links = crm_doc["relations"]["entityLinks"]
        assert links["link-1"] == {
            "linkType": "note", "noteId": "note-1", "entityType": "account", "entityId": "acct-1",
        }
        assert links["link-2"]["interactionId"] == "int-1"
        assert links["link-3"]["calendarEventId"] == "cal-1"

    def test_unlink_by_lookup(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "note.unlinked", {
            "noteId": "note-1", "entityType": "account", "entityId": "acct-1",
        }))
        assert "link-1" not in doc["relations"]["entityLinks"]

    def test_interaction_status_defaults_completed(self, crm_doc):
        assert crm_doc["interactions"]["int-1"]["status"] == "interaction.status.completed"

    def test_interaction_status_updated(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "interaction.status.updated", {
            "id": "int-1", "status": "interaction.status.canceled",
        }))
        assert doc["interactions"]["int-1"]["status"] == "interaction.status.canceled"


# ============================================================================
# Codes
# ============================================================================


class TestCode:
    def test_created_unencrypted(self, crm_doc):
        code = crm_doc["codes"]["code-1"]
        assert code["isEncrypted"] is False
        assert code["accountId"] == "acct-1"

    def test_imported_code_keeps_created_at(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "code.created", {
            "id": "code-2", "accountId": "acct-1", "label": "Gate", "codeValue": "9",
            "createdAt": "2020-05-05T00:00:00.000Z",
        }))
        code = doc["codes"]["code-2"]
        assert code["createdAt"] == "2020-05-05T00:00:00.000Z"
        assert code["updatedAt"] == "2026-01-01T00:00:20.000Z"

    def test_encrypted_replaces_value(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "code.encrypted", {"id": "code-1", "codeValue": "enc:v1:abcd"}))
        assert doc["codes"]["code-1"]["codeValue"] == "enc:v1:abcd"
        assert doc["codes"]["code-1"]["isEncrypted"] is True


# ============================================================================
# Settings / device
# ============================================================================


class TestSettings:
    def test_security_update_merges(self):
        doc = apply_event(empty_document(), make_event(1, "settings.security.updated", {"authFrequency": "session"}))
        assert doc["settings"]["security"] == {
            "biometricAuth": "enabled",
            "blurTimeout": "30",
            "authFrequency": "session",
        }

    def test_appearance_update(self):
        doc = apply_event(empty_document(), make_event(1, "settings.appearance.updated", {"mode": "dark"}))
        assert doc["settings"]["appearance"]["mode"] == "dark"

    def test_device_registered_is_noop(self, crm_doc):
        doc = apply_event(crm_doc, make_event(20, "device.registered", {"deviceId": "device-a"}))
        assert doc == crm_doc


# ============================================================================
# Full history
# ============================================================================


def test_full_history_populates_every_collection(history):
    doc = replay(history)
    for name in ("organizations", "accounts", "contacts", "notes", "interactions", "codes", "calendarEvents"):
        assert len(doc[name]) == 1, name
    assert len(doc["relations"]["entityLinks"]) == 3
    assert len(doc["relations"]["accountContacts"]) == 1


def test_history_without_audits_leaves_audits_empty(crm_doc):
    assert crm_doc["audits"] == {}
