"""Client quotations with line discounts and a single tax rate."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from allinstock.errors import NotFoundError, ValidationError
from allinstock.schemas import QUOTATION_STATUSES, Quotation
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import parse_int, safe_number, utc_now_iso


logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 23.0


def quotations_path(company_id: str) -> str:
    return company_path(company_id, "quotations")


def line_subtotal(item: dict[str, Any]) -> float:
    quantity = safe_number(item.get("quantity"))
    unit_price = safe_number(item.get("unitPrice"))
    discount = safe_number(item.get("discount"))
    return quantity * unit_price * (1 - discount / 100)


def build_items(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValidationError("Items must be a list of objects", field="items")
    return [
        {
            "productId": item.get("productId"),
            "productName": item.get("productName") or "",
            "productReference": item.get("productReference") or "",
            "quantity": safe_number(item.get("quantity")),
            "unitPrice": safe_number(item.get("unitPrice")),
            "discount": safe_number(item.get("discount")),
            "subtotal": line_subtotal(item),
        }
        for item in items
    ]


def compute_totals(items: list[dict[str, Any]], tax_rate: float) -> dict[str, float]:
    subtotal = sum(item["subtotal"] for item in items)
    tax_amount = subtotal * (tax_rate / 100)
    return {
        "subtotal": subtotal,
        "taxRate": tax_rate,
        "taxAmount": tax_amount,
        "total": subtotal + tax_amount,
    }


def _tax_rate(value, default: float) -> float:
    if value is None or value == "":
        return default
    return safe_number(value, default)


def _sorted(quotations: list[Quotation]) -> list[Quotation]:
    return sorted(quotations, key=lambda quotation: quotation.created_at or "", reverse=True)


def next_quotation_number(store: DocumentStore, company_id: str, year: int | None = None) -> str:
    year = year or datetime.now(timezone.utc).year
    prefix = f"Q-{year}-"
    last = 0
    for document in store.list(quotations_path(company_id)):
        number = str(document.get("quotationNumber") or "")
        if number.startswith(prefix):
            last = max(last, parse_int(number[len(prefix):]))
    return f"{prefix}{last + 1:03d}"


def list_quotations(store: DocumentStore, company_id: str) -> list[Quotation]:
    return _sorted(
        [Quotation.from_document(document) for document in store.list(quotations_path(company_id))]
    )


def get_quotation(store: DocumentStore, company_id: str, quotation_id: str) -> Quotation:
    document = store.get(quotations_path(company_id), quotation_id)
    if document is None:
        raise NotFoundError("Quotation", quotation_id)
    return Quotation.from_document(document)


def create_quotation(
    store: DocumentStore,
    company_id: str,
    data: dict[str, Any],
    created_by: str | None = None,
    default_tax_rate: float = DEFAULT_TAX_RATE,
) -> Quotation:
    items = build_items(data.get("items"))
    now = utc_now_iso()
    payload = {
        "quotationNumber": next_quotation_number(store, company_id),
        "clientId": data.get("clientId"),
        "clientName": data.get("clientName"),
        "clientEmail": data.get("clientEmail"),
        "items": items,
        **compute_totals(items, _tax_rate(data.get("taxRate"), default_tax_rate)),
        "validUntil": data.get("validUntil"),
        "notes": data.get("notes"),
        "status": data.get("status") or "draft",
        "createdBy": created_by,
        "createdAt": now,
        "updatedAt": now,
    }
    quotation = Quotation.from_document(payload)
    quotation.id = store.create(quotations_path(company_id), quotation.to_document())
    logger.info(
        "Created quotation %s for client %s (total %.2f)",
        quotation.quotation_number,
        quotation.client_id,
        quotation.total,
    )
    return quotation


def update_quotation(
    store: DocumentStore,
    company_id: str,
    quotation_id: str,
    data: dict[str, Any],
    default_tax_rate: float = DEFAULT_TAX_RATE,
) -> Quotation:
    current = get_quotation(store, company_id, quotation_id)
    changes = dict(data)
    changes.pop("id", None)
    changes.pop("quotationNumber", None)
    if "items" in data and data["items"] is not None:
        items = build_items(data["items"])
        tax_rate = _tax_rate(data.get("taxRate"), default_tax_rate)
        changes.update(items=items, **compute_totals(items, tax_rate))

    merged = {**current.to_document(), **changes, "updatedAt": utc_now_iso()}
    quotation = Quotation.from_document(merged)
    store.update(quotations_path(company_id), quotation_id, quotation.to_document())
    quotation.id = quotation_id
    return quotation


def delete_quotation(store: DocumentStore, company_id: str, quotation_id: str) -> None:
    store.delete(quotations_path(company_id), quotation_id)


def set_quotation_status(
    store: DocumentStore, company_id: str, quotation_id: str, status: str
) -> Quotation:
    status = (status or "").strip().lower()
    if status not in QUOTATION_STATUSES:
        raise ValidationError(
            f"Status must be one of: {', '.join(QUOTATION_STATUSES)}", field="status"
        )
    get_quotation(store, company_id, quotation_id)
    store.update(
        quotations_path(company_id),
        quotation_id,
        {"status": status, "updatedAt": utc_now_iso()},
    )
    return get_quotation(store, company_id, quotation_id)


def quotations_by_client(store: DocumentStore, company_id: str, client_id: str) -> list[Quotation]:
    return [q for q in list_quotations(store, company_id) if q.client_id == client_id]


def quotations_by_status(store: DocumentStore, company_id: str, status: str) -> list[Quotation]:
    return [q for q in list_quotations(store, company_id) if q.status == status]


def search_quotations(store: DocumentStore, company_id: str, term: str) -> list[Quotation]:
    quotations = list_quotations(store, company_id)
    needle = (term or "").strip().lower()
    if not needle:
        return quotations
    return [
        quotation
        for quotation in quotations
        if needle in quotation.quotation_number.lower()
        or needle in quotation.client_name.lower()
        or needle in quotation.client_email.lower()
    ]
