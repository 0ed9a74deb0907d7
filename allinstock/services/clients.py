from __future__ import annotations

import logging
from typing import Any

from allinstock.errors import NotFoundError
from allinstock.schemas import Client
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import utc_now_iso


logger = logging.getLogger(__name__)


def clients_path(company_id: str) -> str:
    return company_path(company_id, "clients")


def list_clients(store: DocumentStore, company_id: str) -> list[Client]:
    clients = [Client.from_document(document) for document in store.list(clients_path(company_id))]
    clients.sort(key=lambda client: client.created_at or "", reverse=True)
    return clients


def get_client(store: DocumentStore, company_id: str, client_id: str) -> Client | None:
    document = store.get(clients_path(company_id), client_id)
    if document is None:
        return None
    return Client.from_document(document)


def create_client(store: DocumentStore, company_id: str, data: dict[str, Any]) -> Client:
    now = utc_now_iso()
    payload = {**data, "createdAt": now, "updatedAt": now}
    payload.pop("id", None)
    client = Client.from_document(payload)
    client.id = store.create(clients_path(company_id), client.to_document())
    logger.info("Created client %s (%s)", client.id, client.name)
    return client


def update_client(
    store: DocumentStore, company_id: str, client_id: str, data: dict[str, Any]
) -> Client:
    current = get_client(store, company_id, client_id)
    if current is None:
        raise NotFoundError("Client", client_id)
    merged = {**current.to_document(), **data, "updatedAt": utc_now_iso()}
    merged.pop("id", None)
    client = Client.from_document(merged)
    store.update(clients_path(company_id), client_id, client.to_document())
    client.id = client_id
    return client


def delete_client(store: DocumentStore, company_id: str, client_id: str) -> None:
    store.delete(clients_path(company_id), client_id)


def toggle_client_status(store: DocumentStore, company_id: str, client_id: str) -> Client | None:
    client = get_client(store, company_id, client_id)
    if client is None:
        return None
    new_status = "inactive" if client.status == "active" else "active"
    return update_client(store, company_id, client_id, {"status": new_status})


def search_clients(store: DocumentStore, company_id: str, term: str) -> list[Client]:
    clients = list_clients(store, company_id)
    needle = (term or "").strip().lower()
    if not needle:
        return clients
    return [
        client
        for client in clients
        if needle in client.name.lower()
        or needle in client.company_name.lower()
        or needle in client.email.lower()
        or needle in client.phone
        or needle in client.tax_id.lower()
    ]
