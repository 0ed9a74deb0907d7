from __future__ import annotations

import logging
from typing import Any

from allinstock.errors import NotFoundError
from allinstock.schemas import Supplier
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import utc_now_iso


logger = logging.getLogger(__name__)


def suppliers_path(company_id: str) -> str:
    return company_path(company_id, "suppliers")


def list_suppliers(store: DocumentStore, company_id: str) -> list[Supplier]:
    suppliers = [
        Supplier.from_document(document) for document in store.list(suppliers_path(company_id))
    ]
    suppliers.sort(key=lambda supplier: supplier.created_at or "", reverse=True)
    return suppliers


def get_supplier(store: DocumentStore, company_id: str, supplier_id: str) -> Supplier:
    document = store.get(suppliers_path(company_id), supplier_id)
    if document is None:
        raise NotFoundError("Supplier", supplier_id)
    return Supplier.from_document(document)


def create_supplier(store: DocumentStore, company_id: str, data: dict[str, Any]) -> Supplier:
    now = utc_now_iso()
    payload = {**data, "createdAt": now, "updatedAt": now}
    payload.pop("id", None)
    supplier = Supplier.from_document(payload)
    supplier.id = store.create(suppliers_path(company_id), supplier.to_document())
    logger.info("Created supplier %s (%s)", supplier.id, supplier.company_name)
    return supplier


def update_supplier(
    store: DocumentStore, company_id: str, supplier_id: str, data: dict[str, Any]
) -> Supplier:
    current = get_supplier(store, company_id, supplier_id)
    merged = {**current.to_document(), **data, "updatedAt": utc_now_iso()}
    merged.pop("id", None)
    supplier = Supplier.from_document(merged)
    store.update(suppliers_path(company_id), supplier_id, supplier.to_document())
    supplier.id = supplier_id
    return supplier


def delete_supplier(store: DocumentStore, company_id: str, supplier_id: str) -> None:
    store.delete(suppliers_path(company_id), supplier_id)


def toggle_supplier_status(store: DocumentStore, company_id: str, supplier_id: str) -> Supplier:
    supplier = get_supplier(store, company_id, supplier_id)
    new_status = "inactive" if supplier.status == "active" else "active"
    return update_supplier(store, company_id, supplier_id, {"status": new_status})


def search_suppliers(store: DocumentStore, company_id: str, term: str) -> list[Supplier]:
    suppliers = list_suppliers(store, company_id)
    raw = (term or "").strip()
    if not raw:
        return suppliers
    needle = raw.lower()
    return [
        supplier
        for supplier in suppliers
        if needle in supplier.company_name.lower()
        or needle in supplier.name.lower()
        or needle in supplier.email.lower()
        or raw in supplier.phone
        or needle in supplier.tax_id.lower()
    ]
