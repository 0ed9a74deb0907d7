"""Gmail sync: pull messages, match them to clients and suppliers, store them.

Each message is matched by its sender first and then by its recipients,
against the lower-cased email addresses of the company's clients and
suppliers. Messages are stored once per Gmail message id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from allinstock.errors import CredentialsExpiredError
from allinstock.integrations.google import GmailClient
from allinstock.schemas import Client, EmailMessage, IntegrationConfig, Supplier
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import parse_timestamp, utc_now_iso


logger = logging.getLogger(__name__)

DEFAULT_SYNC_MAX_RESULTS = 200

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def config_path(company_id: str) -> str:
    return company_path(company_id, "emailConfig")


def emails_path(company_id: str) -> str:
    return company_path(company_id, "emails")


def get_email_config(store: DocumentStore, company_id: str) -> IntegrationConfig | None:
    documents = store.list(config_path(company_id))
    if not documents:
        return None
    return IntegrationConfig.from_document(documents[0])


def save_email_config(
    store: DocumentStore, company_id: str, data: dict[str, Any]
) -> IntegrationConfig:
    now = utc_now_iso()
    existing = get_email_config(store, company_id)
    payload = {
        "provider": data.get("provider") or "gmail",
        "email": data.get("email"),
        "accessToken": data.get("accessToken"),
        "connectedAt": data.get("connectedAt") or now,
        "updatedAt": now,
    }
    config = IntegrationConfig.from_document(payload)
    if existing is None:
        config.id = store.create(config_path(company_id), config.to_document())
    else:
        store.update(config_path(company_id), existing.id, config.to_document())
        config.id = existing.id
    logger.info("Saved %s email config for company %s", config.provider, company_id)
    return config


def delete_email_config(store: DocumentStore, company_id: str) -> None:
    for document in store.list(config_path(company_id)):
        store.delete(config_path(company_id), document["id"])
    logger.info("Cleared email config for company %s", company_id)


def gmail_client_for(
    store: DocumentStore, company_id: str, **client_options
) -> GmailClient | None:
    config = get_email_config(store, company_id)
    if config is None:
        return None
    return GmailClient(config.access_token, **client_options)


def _by_date(emails: list[EmailMessage]) -> list[EmailMessage]:
    return sorted(emails, key=lambda email: parse_timestamp(email.date) or _EPOCH, reverse=True)


def list_emails(store: DocumentStore, company_id: str, limit: int = 100) -> list[EmailMessage]:
    emails = [EmailMessage.from_document(doc) for doc in store.list(emails_path(company_id))]
    return _by_date(emails)[:limit]


def save_email(store: DocumentStore, company_id: str, data: dict[str, Any]) -> bool:
    """Store ``data`` unless a message with the same id exists. Returns True if stored."""

    email = EmailMessage.from_document({**data, "syncedAt": utc_now_iso()})
    for document in store.list(emails_path(company_id)):
        if document.get("messageId") == email.message_id:
            return False
    email.id = store.create(emails_path(company_id), email.to_document())
    return True


def contact_map(store: DocumentStore, company_id: str) -> dict[str, dict[str, Any]]:
    contacts: dict[str, dict[str, Any]] = {}
    for document in store.list(company_path(company_id, "clients")):
        client = Client.from_document(document)
        if client.email:
            contacts[client.email.lower()] = {
                "id": client.id,
                "name": client.name,
                "type": "client",
                "email": client.email,
            }
    # Suppliers are added second and win when an address is shared.
    for document in store.list(company_path(company_id, "suppliers")):
        supplier = Supplier.from_document(document)
        if supplier.email:
            contacts[supplier.email.lower()] = {
                "id": supplier.id,
                "name": supplier.name or supplier.company_name,
                "type": "supplier",
                "email": supplier.email,
            }
    return contacts


def match_contact(
    email: dict[str, Any], contacts: dict[str, dict[str, Any]]
) -> dict[str, Any] | None:
    sender = (email.get("from") or "").lower()
    if sender in contacts:
        return contacts[sender]
    for address in email.get("to") or []:
        contact = contacts.get(address.lower())
        if contact is not None:
            return contact
    return None


def sync_emails(
    store: DocumentStore,
    company_id: str,
    client: GmailClient,
    max_results: int = DEFAULT_SYNC_MAX_RESULTS,
) -> dict[str, Any]:
    """Fetch recent Gmail messages and store them with their matched contact.

    An expired token clears the stored email config before the error is
    re-raised, so the next request shows the account as disconnected.
    """

    try:
        result = client.fetch_messages(max_results=max_results)
    except CredentialsExpiredError:
        delete_email_config(store, company_id)
        raise

    contacts = contact_map(store, company_id)
    saved = 0
    matched = 0
    for email in result["emails"]:
        contact = match_contact(email, contacts)
        if contact is not None:
            matched += 1
        stored = save_email(
            store,
            company_id,
            {
                **email,
                "contactId": contact["id"] if contact else None,
                "contactName": contact["name"] if contact else None,
                "contactType": contact["type"] if contact else None,
            },
        )
        if stored:
            saved += 1

    logger.info(
        "Synced %s emails for company %s (%s new, %s matched)",
        len(result["emails"]),
        company_id,
        saved,
        matched,
    )
    return {
        "fetched": len(result["emails"]),
        "saved": saved,
        "matched": matched,
        "nextPageToken": result.get("nextPageToken"),
    }


def contact_emails(store: DocumentStore, company_id: str, address: str) -> list[EmailMessage]:
    needle = (address or "").lower()
    emails = [
        EmailMessage.from_document(document)
        for document in store.list(emails_path(company_id))
    ]
    return _by_date(
        [
            email
            for email in emails
            if email.sender.lower() == needle
            or needle in (recipient.lower() for recipient in email.to)
        ]
    )


def sync_stats(store: DocumentStore, company_id: str) -> dict[str, Any]:
    stats: dict[str, Any] = {
        "totalEmails": 0,
        "clientEmails": 0,
        "supplierEmails": 0,
        "unmatchedEmails": 0,
        "lastSyncDate": None,
    }
    last_synced = None
    for document in store.list(emails_path(company_id)):
        email = EmailMessage.from_document(document)
        stats["totalEmails"] += 1
        if email.contact_type == "client":
            stats["clientEmails"] += 1
        elif email.contact_type == "supplier":
            stats["supplierEmails"] += 1
        else:
            stats["unmatchedEmails"] += 1
        synced = parse_timestamp(email.synced_at)
        if synced is not None and (last_synced is None or synced > last_synced):
            last_synced = synced
            stats["lastSyncDate"] = email.synced_at
    return stats


def search_emails(store: DocumentStore, company_id: str, term: str) -> list[EmailMessage]:
    needle = (term or "").strip().lower()
    emails = [
        EmailMessage.from_document(document)
        for document in store.list(emails_path(company_id))
    ]
    if needle:
        emails = [
            email
            for email in emails
            if needle in email.subject.lower()
            or needle in email.sender.lower()
            or any(needle in address.lower() for address in email.to)
            or needle in email.body.lower()
        ]
    return _by_date(emails)
