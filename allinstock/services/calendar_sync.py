"""Google Calendar connection, stored events and CRM event sync."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from allinstock.errors import AllInStockError, CredentialsExpiredError, NotFoundError
from allinstock.integrations.google import CalendarClient
from allinstock.schemas import CalendarEvent, IntegrationConfig
from allinstock.services import products
from allinstock.services.invoices import invoices_by_status
from allinstock.services.purchase_orders import list_purchase_orders
from allinstock.services.quotations import quotations_by_status
from allinstock.services.stock_summary import low_stock
from allinstock.store import DocumentStore, company_path, new_document_id
from allinstock.utils.formatters import format_currency, parse_timestamp, utc_now_iso


logger = logging.getLogger(__name__)

CONFIG_DOC_ID = "google"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
OPEN_ORDER_STATUSES = ("pending", "ordered")


def config_path(company_id: str) -> str:
    return company_path(company_id, "calendarConfig")


def events_path(company_id: str) -> str:
    return company_path(company_id, "calendarEvents")


def save_calendar_config(
    store: DocumentStore, company_id: str, data: dict[str, Any]
) -> IntegrationConfig:
    config = IntegrationConfig.from_document(
        {
            "provider": data.get("provider") or "google",
            "email": data.get("email"),
            "accessToken": data.get("accessToken"),
            "connectedAt": data.get("connectedAt") or utc_now_iso(),
            "updatedAt": utc_now_iso(),
        }
    )
    store.set(config_path(company_id), CONFIG_DOC_ID, config.to_document())
    config.id = CONFIG_DOC_ID
    return config


def get_calendar_config(store: DocumentStore, company_id: str) -> IntegrationConfig | None:
    document = store.get(config_path(company_id), CONFIG_DOC_ID)
    if document is None:
        return None
    return IntegrationConfig.from_document(document)


def delete_calendar_config(store: DocumentStore, company_id: str) -> None:
    store.delete(config_path(company_id), CONFIG_DOC_ID)


def calendar_client_for(
    store: DocumentStore, company_id: str, **client_options
) -> CalendarClient | None:
    config = get_calendar_config(store, company_id)
    if config is None:
        return None
    return CalendarClient(config.access_token, **client_options)


def save_event(store: DocumentStore, company_id: str, data: dict[str, Any]) -> str:
    event_id = data.get("id") or new_document_id()
    event = CalendarEvent.from_document({**data, "updatedAt": utc_now_iso()})
    store.set(events_path(company_id), event_id, event.to_document(), merge=True)
    return event_id


def get_event(store: DocumentStore, company_id: str, event_id: str) -> CalendarEvent | None:
    document = store.get(events_path(company_id), event_id)
    if document is None:
        return None
    return CalendarEvent.from_document(document)


def list_events(
    store: DocumentStore,
    company_id: str,
    start: str | None = None,
    end: str | None = None,
) -> list[CalendarEvent]:
    events = [CalendarEvent.from_document(doc) for doc in store.list(events_path(company_id))]

    def starts_at(event: CalendarEvent) -> datetime:
        return parse_timestamp(event.start) or _EPOCH

    if start and end:
        lower = parse_timestamp(start) or _EPOCH
        upper = parse_timestamp(end) or _EPOCH
        return sorted(
            [event for event in events if lower <= starts_at(event) <= upper], key=starts_at
        )
    return sorted(events, key=starts_at, reverse=True)


def update_event(
    store: DocumentStore, company_id: str, event_id: str, data: dict[str, Any]
) -> CalendarEvent:
    current = get_event(store, company_id, event_id)
    if current is None:
        raise NotFoundError("Calendar event", event_id)
    changes = dict(data)
    changes.pop("id", None)
    event = CalendarEvent.from_document(
        {**current.to_document(), **changes, "updatedAt": utc_now_iso()}
    )
    store.update(events_path(company_id), event_id, event.to_document())
    event.id = event_id
    return event


def delete_event(store: DocumentStore, company_id: str, event_id: str) -> None:
    store.delete(events_path(company_id), event_id)


def generate_crm_events(
    store: DocumentStore, company_id: str, now: datetime | None = None
) -> list[dict[str, Any]]:
    """Calendar entries derived from stock, open quotations, orders and invoices."""

    now = now or datetime.now(timezone.utc)
    events: list[dict[str, Any]] = []

    low = low_stock(products.list_products(store, company_id))
    if low:
        start = (now + timedelta(days=1)).replace(hour=9, minute=0, second=0, microsecond=0)
        lines = [f"- {view.product.name}: {view.total} {view.product.unit}" for view in low]
        events.append(
            {
                "summary": f"Low Stock Alert: {len(low)} products",
                "description": "Products low on stock:\n" + "\n".join(lines),
                "start": start.isoformat(),
                "end": (start + timedelta(hours=1)).isoformat(),
                "type": "alert",
                "sourceId": None,
                "sourceType": "stock",
                "isAllDay": False,
            }
        )

    for quotation in quotations_by_status(store, company_id, "sent"):
        valid_until = parse_timestamp(quotation.valid_until)
        if valid_until is None:
            continue
        day = valid_until.date()
        events.append(
            {
                "summary": f"Quotation expires: {quotation.client_name or quotation.quotation_number}",
                "description": (
                    f"Quotation {quotation.quotation_number}\n"
                    f"Client: {quotation.client_name}\nTotal: {format_currency(quotation.total)}"
                ),
                "start": day.isoformat(),
                "end": (day + timedelta(days=1)).isoformat(),
                "type": "quotation",
                "sourceId": quotation.id,
                "sourceType": "quotation",
                "isAllDay": True,
            }
        )

    for order in list_purchase_orders(store, company_id):
        expected = parse_timestamp(order.expected_date)
        if order.status not in OPEN_ORDER_STATUSES or expected is None:
            continue
        events.append(
            {
                "summary": f"Delivery: {order.supplier_name or order.po_number}",
                "description": (
                    f"Purchase Order {order.po_number}\n"
                    f"Supplier: {order.supplier_name}\nTotal: {format_currency(order.total)}"
                ),
                "start": expected.isoformat(),
                "end": (expected + timedelta(hours=1)).isoformat(),
                "type": "delivery",
                "sourceId": order.id,
                "sourceType": "purchaseOrder",
                "isAllDay": False,
            }
        )

    for invoice in invoices_by_status(store, company_id, "pending"):
        due = parse_timestamp(invoice.due_date)
        if due is None or invoice.payment_status == "paid":
            continue
        day = due.date()
        events.append(
            {
                "summary": f"Payment due: {invoice.client_name or invoice.invoice_number}",
                "description": (
                    f"Invoice {invoice.invoice_number}\n"
                    f"Client: {invoice.client_name}\nAmount: {format_currency(invoice.total)}"
                ),
                "start": day.isoformat(),
                "end": (day + timedelta(days=1)).isoformat(),
                "type": "payment",
                "sourceId": invoice.id,
                "sourceType": "invoice",
                "isAllDay": True,
            }
        )

    return events


def sync_crm_events(
    store: DocumentStore,
    company_id: str,
    client: CalendarClient,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Push CRM events to Google, updating ones that were pushed before.

    A single event failing is logged and skipped. An expired token clears
    the stored config and stops the sync.
    """

    synced = []
    for event in generate_crm_events(store, company_id, now=now):
        existing = next(
            (
                stored
                for stored in list_events(store, company_id)
                if stored.source_id == event["sourceId"]
                and stored.source_type == event["sourceType"]
            ),
            None,
        )
        try:
            if existing is not None and existing.google_event_id:
                client.update_event(existing.google_event_id, event)
                update_event(store, company_id, existing.id, event)
            else:
                created = client.create_event(event)
                save_event(
                    store,
                    company_id,
                    {**event, "googleEventId": created.get("id"), "syncedAt": utc_now_iso()},
                )
        except CredentialsExpiredError:
            delete_calendar_config(store, company_id)
            raise
        except AllInStockError:
            logger.exception("Failed to sync calendar event %s", event["summary"])
            continue
        synced.append(event)

    logger.info("Synced %s CRM events for company %s", len(synced), company_id)
    return synced


def check_connection(store: DocumentStore, company_id: str, **client_options) -> dict[str, Any]:
    """Verify the stored token with a one-second, one-event fetch."""

    config = get_calendar_config(store, company_id)
    if config is None:
        return {"connected": False, "reconnect": False, "email": None}

    client = CalendarClient(config.access_token, **client_options)
    now = datetime.now(timezone.utc)
    try:
        client.fetch_events(now.isoformat(), (now + timedelta(seconds=1)).isoformat(), 1)
    except CredentialsExpiredError:
        logger.info("Calendar token expired for company %s; clearing config", company_id)
        delete_calendar_config(store, company_id)
        return {"connected": False, "reconnect": True, "email": None}
    return {"connected": True, "reconnect": False, "email": config.email}


def load_google_events(
    store: DocumentStore,
    company_id: str,
    time_min: str | None = None,
    time_max: str | None = None,
    **client_options,
) -> dict[str, Any]:
    client = calendar_client_for(store, company_id, **client_options)
    if client is None:
        return {"events": [], "reconnect": False, "connected": False}
    try:
        events = client.fetch_events(time_min, time_max)
    except CredentialsExpiredError:
        logger.info("Calendar token expired for company %s; clearing config", company_id)
        delete_calendar_config(store, company_id)
        return {"events": [], "reconnect": True, "connected": False}
    return {"events": events, "reconnect": False, "connected": True}
