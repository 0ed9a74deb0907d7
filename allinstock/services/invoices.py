"""Client invoices, usually raised from a quotation, and their payments."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from allinstock.errors import NotFoundError, ValidationError
from allinstock.schemas import INVOICE_STATUSES, Invoice
from allinstock.services import clients
from allinstock.services.quotations import (
    DEFAULT_TAX_RATE,
    build_items,
    compute_totals,
    get_quotation,
)
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import parse_int, safe_number, utc_now_iso


logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV-"
# Quotations in these states cannot be invoiced.
CLOSED_QUOTATION_STATUSES = ("rejected", "expired")


def invoices_path(company_id: str) -> str:
    return company_path(company_id, "invoices")


def next_invoice_number(store: DocumentStore, company_id: str) -> str:
    last = 0
    for document in store.list(invoices_path(company_id)):
        number = str(document.get("invoiceNumber") or "")
        if number.startswith(INVOICE_PREFIX):
            last = max(last, parse_int(number[len(INVOICE_PREFIX):]))
    return f"{INVOICE_PREFIX}{last + 1:05d}"


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def invoice_totals(items: list[dict[str, Any]], tax_rate: float, discount) -> dict[str, float]:
    totals = compute_totals(items, tax_rate)
    discount = max(safe_number(discount), 0.0)
    totals.update(discount=discount, total=max(totals["total"] - discount, 0.0))
    return totals


def list_invoices(store: DocumentStore, company_id: str) -> list[Invoice]:
    invoices = [
        Invoice.from_document(document) for document in store.list(invoices_path(company_id))
    ]
    invoices.sort(key=lambda invoice: invoice.created_at or "", reverse=True)
    return invoices


def get_invoice(store: DocumentStore, company_id: str, invoice_id: str) -> Invoice:
    document = store.get(invoices_path(company_id), invoice_id)
    if document is None:
        raise NotFoundError("Invoice", invoice_id)
    return Invoice.from_document(document)


def _store_invoice(store: DocumentStore, company_id: str, payload: dict[str, Any]) -> Invoice:
    now = utc_now_iso()
    invoice = Invoice.from_document(
        {
            **payload,
            "invoiceNumber": next_invoice_number(store, company_id),
            "status": "pending",
            "paymentStatus": "unpaid",
            "paymentMethod": "",
            "paidAmount": 0,
            "createdAt": now,
            "updatedAt": now,
        }
    )
    invoice.id = store.create(invoices_path(company_id), invoice.to_document())
    logger.info(
        "Created invoice %s for client %s (total %.2f)",
        invoice.invoice_number,
        invoice.client_id,
        invoice.total,
    )
    return invoice


def create_invoice(
    store: DocumentStore,
    company_id: str,
    data: dict[str, Any],
    created_by: str | None = None,
    default_tax_rate: float = DEFAULT_TAX_RATE,
) -> Invoice:
    items = build_items(data.get("items"))
    tax_rate = data.get("taxRate")
    if tax_rate is None or tax_rate == "":
        tax_rate = default_tax_rate
    return _store_invoice(
        store,
        company_id,
        {
            "quotationId": data.get("quotationId"),
            "clientId": data.get("clientId"),
            "clientName": data.get("clientName"),
            "clientEmail": data.get("clientEmail"),
            "clientPhone": data.get("clientPhone"),
            "clientAddress": data.get("clientAddress"),
            "date": data.get("date") or _today(),
            "dueDate": data.get("dueDate"),
            "items": items,
            **invoice_totals(items, safe_number(tax_rate, default_tax_rate), data.get("discount")),
            "notes": data.get("notes"),
            "createdBy": created_by,
        },
    )


def create_invoice_from_quotation(
    store: DocumentStore,
    company_id: str,
    quotation_id: str,
    data: dict[str, Any] | None = None,
    created_by: str | None = None,
) -> Invoice:
    """Copy a quotation's client, lines and totals into a new invoice.

    Phone and address come from the client record when it still exists.
    """

    data = data or {}
    quotation = get_quotation(store, company_id, quotation_id)
    if quotation.status in CLOSED_QUOTATION_STATUSES:
        raise ValidationError(
            f"A {quotation.status} quotation cannot be invoiced", field="status"
        )
    client = clients.get_client(store, company_id, quotation.client_id)
    items = build_items(quotation.items)
    totals = invoice_totals(items, quotation.tax_rate, data.get("discount"))
    return _store_invoice(
        store,
        company_id,
        {
            "quotationId": quotation_id,
            "clientId": quotation.client_id,
            "clientName": quotation.client_name,
            "clientEmail": quotation.client_email,
            "clientPhone": client.phone if client else "",
            "clientAddress": client.address if client else "",
            "date": data.get("date") or _today(),
            "dueDate": data.get("dueDate") or quotation.valid_until[:10],
            "items": items,
            **totals,
            "notes": data.get("notes") or quotation.notes,
            "createdBy": created_by,
        },
    )


def update_invoice(
    store: DocumentStore, company_id: str, invoice_id: str, data: dict[str, Any]
) -> Invoice:
    current = get_invoice(store, company_id, invoice_id)
    changes = dict(data)
    for key in ("id", "invoiceNumber", "paidAmount", "paymentStatus", "lastPaymentDate"):
        changes.pop(key, None)
    if any(key in data for key in ("items", "taxRate", "discount")):
        raw_items = data.get("items")
        items = build_items(current.items if raw_items is None else raw_items)
        tax_rate = safe_number(data.get("taxRate"), current.tax_rate)
        discount = data.get("discount", current.discount)
        changes.update(items=items, **invoice_totals(items, tax_rate, discount))

    invoice = Invoice.from_document(
        {**current.to_document(), **changes, "updatedAt": utc_now_iso()}
    )
    store.update(invoices_path(company_id), invoice_id, invoice.to_document())
    invoice.id = invoice_id
    return invoice


def delete_invoice(store: DocumentStore, company_id: str, invoice_id: str) -> None:
    store.delete(invoices_path(company_id), invoice_id)


def set_invoice_status(
    store: DocumentStore, company_id: str, invoice_id: str, status: str
) -> Invoice:
    status = (status or "").strip().lower()
    if status not in INVOICE_STATUSES:
        raise ValidationError(
            f"Status must be one of: {', '.join(INVOICE_STATUSES)}", field="status"
        )
    get_invoice(store, company_id, invoice_id)
    store.update(
        invoices_path(company_id), invoice_id, {"status": status, "updatedAt": utc_now_iso()}
    )
    return get_invoice(store, company_id, invoice_id)


def record_payment(
    store: DocumentStore,
    company_id: str,
    invoice_id: str,
    amount,
    method: str | None = None,
    payment_date: str | None = None,
) -> Invoice:
    """Add a payment; the invoice is ``paid`` once payments cover the total."""

    amount = safe_number(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero", field="amount")
    invoice = get_invoice(store, company_id, invoice_id)
    paid_amount = invoice.paid_amount + amount
    payment_status = "paid" if paid_amount >= invoice.total else "partially_paid"
    store.update(
        invoices_path(company_id),
        invoice_id,
        {
            "paidAmount": paid_amount,
            "paymentStatus": payment_status,
            "paymentMethod": (method or "").strip(),
            "lastPaymentDate": payment_date or utc_now_iso(),
            "updatedAt": utc_now_iso(),
        },
    )
    logger.info(
        "Recorded payment of %.2f on invoice %s (%s)",
        amount,
        invoice.invoice_number,
        payment_status,
    )
    return get_invoice(store, company_id, invoice_id)


def invoices_by_status(store: DocumentStore, company_id: str, status: str) -> list[Invoice]:
    return [invoice for invoice in list_invoices(store, company_id) if invoice.status == status]


def invoices_by_client(store: DocumentStore, company_id: str, client_id: str) -> list[Invoice]:
    return [
        invoice for invoice in list_invoices(store, company_id) if invoice.client_id == client_id
    ]


def outstanding_balance(invoice: Invoice) -> float:
    return max(invoice.total - invoice.paid_amount, 0.0)
