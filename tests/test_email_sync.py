import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock import create_app
from allinstock.errors import CredentialsExpiredError
from allinstock.extensions import db
from allinstock.services import clients, email_sync, suppliers
from allinstock.store import get_store


COMPANY = "acme"


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return get_store()


class FakeGmail:
    def __init__(self, emails=None, error=None):
        self.emails = emails or []
        self.error = error

    def fetch_messages(self, max_results=100, page_token=None):
        if self.error is not None:
            raise self.error
        return {"emails": self.emails[:max_results], "nextPageToken": None}


def _email(message_id, sender, to=(), date="2024-06-10T09:00:00+00:00", subject="Hello"):
    return {
        "messageId": message_id,
        "threadId": f"t-{message_id}",
        "subject": subject,
        "from": sender,
        "fromName": "",
        "to": list(to),
        "cc": [],
        "date": date,
        "body": "Body text",
        "snippet": "Body",
        "labels": ["INBOX"],
        "hasAttachments": False,
    }


def test_email_config_is_saved_once_and_cleared(store):
    first = email_sync.save_email_config(store, COMPANY, {"email": "ops@acme.pt", "accessToken": "a"})
    second = email_sync.save_email_config(store, COMPANY, {"email": "ops@acme.pt", "accessToken": "b"})

    assert first.id == second.id
    assert email_sync.get_email_config(store, COMPANY).access_token == "b"

    email_sync.delete_email_config(store, COMPANY)

    assert email_sync.get_email_config(store, COMPANY) is None
    assert email_sync.gmail_client_for(store, COMPANY) is None


def test_sync_matches_sender_then_recipients(store):
    clients.create_client(store, COMPANY, {"name": "Maria", "email": "Maria@Example.com"})
    suppliers.create_supplier(
        store, COMPANY, {"companyName": "Parts Lda", "email": "sales@parts.pt"}
    )
    client = FakeGmail(
        [
            _email("m1", "maria@example.com", to=["ops@acme.pt"]),
            _email("m2", "ops@acme.pt", to=["someone@else.pt", "SALES@parts.pt"]),
            _email("m3", "stranger@else.pt", to=["ops@acme.pt"]),
        ]
    )

    result = email_sync.sync_emails(store, COMPANY, client)

    assert result == {"fetched": 3, "saved": 3, "matched": 2, "nextPageToken": None}
    stored = {email.message_id: email for email in email_sync.list_emails(store, COMPANY)}
    assert stored["m1"].contact_type == "client"
    assert stored["m1"].contact_name == "Maria"
    assert stored["m2"].contact_type == "supplier"
    assert stored["m2"].contact_name == "Parts Lda"
    assert stored["m3"].contact_id is None


def test_shared_address_resolves_to_supplier(store):
    clients.create_client(store, COMPANY, {"name": "Rui", "email": "rui@tools.pt"})
    suppliers.create_supplier(
        store, COMPANY, {"companyName": "Tools SA", "name": "Rui", "email": "rui@tools.pt"}
    )

    contact = email_sync.match_contact(
        {"from": "rui@tools.pt", "to": []}, email_sync.contact_map(store, COMPANY)
    )

    assert contact["type"] == "supplier"


def test_sync_skips_messages_already_stored(store):
    client = FakeGmail([_email("m1", "a@example.com")])

    email_sync.sync_emails(store, COMPANY, client)
    result = email_sync.sync_emails(store, COMPANY, client)

    assert result["saved"] == 0
    assert len(email_sync.list_emails(store, COMPANY)) == 1


def test_expired_token_clears_config(store):
    email_sync.save_email_config(store, COMPANY, {"email": "ops@acme.pt", "accessToken": "a"})

    with pytest.raises(CredentialsExpiredError):
        email_sync.sync_emails(store, COMPANY, FakeGmail(error=CredentialsExpiredError()))

    assert email_sync.get_email_config(store, COMPANY) is None


def test_listing_contact_emails_and_search(store):
    email_sync.sync_emails(
        store,
        COMPANY,
        FakeGmail(
            [
                _email("m1", "maria@example.com", date="2024-06-01T09:00:00+00:00", subject="Order"),
                _email("m2", "ops@acme.pt", to=["maria@example.com"], date="2024-06-05T09:00:00+00:00"),
                _email("m3", "rui@tools.pt", subject="Invoice"),
            ]
        ),
    )

    assert [e.message_id for e in email_sync.contact_emails(store, COMPANY, "Maria@example.com")] == [
        "m2",
        "m1",
    ]
    assert [e.message_id for e in email_sync.search_emails(store, COMPANY, "invoice")] == ["m3"]
    assert [e.message_id for e in email_sync.list_emails(store, COMPANY, limit=1)] == ["m3"]


def test_sync_stats_counts_contact_types(store):
    clients.create_client(store, COMPANY, {"name": "Maria", "email": "maria@example.com"})
    email_sync.sync_emails(
        store,
        COMPANY,
        FakeGmail([_email("m1", "maria@example.com"), _email("m2", "x@example.com")]),
    )

    stats = email_sync.sync_stats(store, COMPANY)

    assert stats["totalEmails"] == 2
    assert stats["clientEmails"] == 1
    assert stats["supplierEmails"] == 0
    assert stats["unmatchedEmails"] == 1
    assert stats["lastSyncDate"] is not None
