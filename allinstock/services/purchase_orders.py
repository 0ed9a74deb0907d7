"""Purchase orders placed with suppliers and receiving them into stock.

Receiving is the only path that changes stock from here: each line adds its
quantity to the product's main location, appends an ``entry`` movement and
records the purchase price against the supplier.
"""

from __future__ import annotations

import logging
from typing import Any

from allinstock.errors import NotFoundError, ValidationError
from allinstock.schemas import PURCHASE_ORDER_STATUSES, PurchaseOrder, StockLocation
from allinstock.services import products, stock_locations
from allinstock.services.stock_movements import record_movement
from allinstock.services.supplier_prices import price_for_supplier, record_purchase_price
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import coerce_quantity, parse_int, safe_number, utc_now_iso


logger = logging.getLogger(__name__)

PO_PREFIX = "PO-"
# Set by the status route only; ``receive_purchase_order`` owns the transition.
_RECEIVE_FIELDS = ("status", "receivedDate")


def purchase_orders_path(company_id: str) -> str:
    return company_path(company_id, "purchaseOrders")


def build_order_items(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValidationError("Items must be a list of objects", field="items")
    return [
        {
            "productId": item.get("productId"),
            "productName": item.get("productName") or "",
            "quantity": coerce_quantity(item.get("quantity")),
            "price": max(safe_number(item.get("price")), 0.0),
        }
        for item in items
    ]


def order_total(items: list[dict[str, Any]]) -> float:
    return sum(item["quantity"] * item["price"] for item in items)


def next_po_number(store: DocumentStore, company_id: str) -> str:
    last = 0
    for document in store.list(purchase_orders_path(company_id)):
        number = str(document.get("poNumber") or "")
        if number.startswith(PO_PREFIX):
            last = max(last, parse_int(number[len(PO_PREFIX):]))
    return f"{PO_PREFIX}{last + 1:05d}"


def list_purchase_orders(store: DocumentStore, company_id: str) -> list[PurchaseOrder]:
    orders = [
        PurchaseOrder.from_document(document)
        for document in store.list(purchase_orders_path(company_id))
    ]
    orders.sort(key=lambda order: order.created_at or "", reverse=True)
    return orders


def get_purchase_order(store: DocumentStore, company_id: str, order_id: str) -> PurchaseOrder:
    document = store.get(purchase_orders_path(company_id), order_id)
    if document is None:
        raise NotFoundError("Purchase order", order_id)
    return PurchaseOrder.from_document(document)


def create_purchase_order(
    store: DocumentStore,
    company_id: str,
    data: dict[str, Any],
    created_by: str | None = None,
) -> PurchaseOrder:
    items = build_order_items(data.get("items"))
    now = utc_now_iso()
    payload = {
        "poNumber": next_po_number(store, company_id),
        "supplierId": data.get("supplierId"),
        "supplierName": data.get("supplierName"),
        "orderDate": data.get("orderDate") or now[:10],
        "expectedDate": data.get("expectedDate"),
        "items": items,
        "total": order_total(items),
        "notes": data.get("notes"),
        "status": data.get("status") or "pending",
        "createdBy": created_by,
        "createdAt": now,
        "updatedAt": now,
    }
    if payload["status"] == "received":
        raise ValidationError("Orders are received through the receive action", field="status")
    order = PurchaseOrder.from_document(payload)
    order.id = store.create(purchase_orders_path(company_id), order.to_document())
    logger.info(
        "Created purchase order %s for supplier %s (total %.2f)",
        order.po_number,
        order.supplier_id,
        order.total,
    )
    return order


def update_purchase_order(
    store: DocumentStore, company_id: str, order_id: str, data: dict[str, Any]
) -> PurchaseOrder:
    current = get_purchase_order(store, company_id, order_id)
    if current.status == "received":
        raise ValidationError("A received purchase order cannot be edited", field="status")
    changes = {key: value for key, value in data.items() if key not in _RECEIVE_FIELDS}
    changes.pop("id", None)
    changes.pop("poNumber", None)
    if "items" in data and data["items"] is not None:
        items = build_order_items(data["items"])
        changes.update(items=items, total=order_total(items))

    order = PurchaseOrder.from_document(
        {**current.to_document(), **changes, "updatedAt": utc_now_iso()}
    )
    store.update(purchase_orders_path(company_id), order_id, order.to_document())
    order.id = order_id
    return order


def delete_purchase_order(store: DocumentStore, company_id: str, order_id: str) -> None:
    store.delete(purchase_orders_path(company_id), order_id)


def set_purchase_order_status(
    store: DocumentStore, company_id: str, order_id: str, status: str
) -> PurchaseOrder:
    """Change the status without touching stock.

    Marking an order ``received`` here only stamps ``receivedDate``; use
    ``receive_purchase_order`` to bring the goods into stock.
    """

    status = (status or "").strip().lower()
    if status not in PURCHASE_ORDER_STATUSES:
        raise ValidationError(
            f"Status must be one of: {', '.join(PURCHASE_ORDER_STATUSES)}", field="status"
        )
    get_purchase_order(store, company_id, order_id)
    changes: dict[str, Any] = {"status": status, "updatedAt": utc_now_iso()}
    if status == "received":
        changes["receivedDate"] = changes["updatedAt"]
    store.update(purchase_orders_path(company_id), order_id, changes)
    return get_purchase_order(store, company_id, order_id)


def purchase_orders_by_status(
    store: DocumentStore, company_id: str, status: str
) -> list[PurchaseOrder]:
    return [order for order in list_purchase_orders(store, company_id) if order.status == status]


def purchase_orders_by_supplier(
    store: DocumentStore, company_id: str, supplier_id: str
) -> list[PurchaseOrder]:
    return [
        order
        for order in list_purchase_orders(store, company_id)
        if order.supplier_id == supplier_id
    ]


def check_price_changes(
    store: DocumentStore, company_id: str, order_id: str
) -> list[dict[str, Any]]:
    """Lines whose price differs from the supplier's current purchase price."""

    order = get_purchase_order(store, company_id, order_id)
    changes = []
    for item in order.items:
        product_id = item.get("productId")
        if not product_id:
            continue
        current = price_for_supplier(store, company_id, product_id, order.supplier_id)
        new_price = safe_number(item.get("price"))
        if current is not None and current.purchase_price != new_price:
            changes.append(
                {
                    "productId": product_id,
                    "productName": item.get("productName") or "",
                    "oldPrice": current.purchase_price,
                    "newPrice": new_price,
                }
            )
    return changes


def _receiving_location(
    locations: list[StockLocation], main_location_name: str
) -> StockLocation | None:
    for location in locations:
        if location.is_main:
            return location
    for location in locations:
        if location.name == main_location_name:
            return location
    return locations[0] if locations else None


def receive_purchase_order(
    store: DocumentStore,
    company_id: str,
    order_id: str,
    update_prices: bool = False,
    main_location_name: str = products.DEFAULT_MAIN_LOCATION_NAME,
    user: str | None = None,
) -> dict[str, Any]:
    order = get_purchase_order(store, company_id, order_id)
    if order.status in ("received", "cancelled"):
        raise ValidationError(
            f"A {order.status} purchase order cannot be received", field="status"
        )

    received_at = utc_now_iso()
    received: list[dict[str, Any]] = []
    skipped: list[dict[str, Any]] = []
    price_changes: list[dict[str, Any]] = []

    for item in order.items:
        product_id = item.get("productId")
        quantity = coerce_quantity(item.get("quantity"))
        view = products.get_product(store, company_id, product_id) if product_id else None
        if view is None or quantity <= 0:
            skipped.append(item)
            continue

        location = _receiving_location(view.locations, main_location_name)
        if location is None:
            location = stock_locations.add_location(
                store,
                company_id,
                product_id,
                {
                    "name": main_location_name,
                    "type": "warehouse",
                    "quantity": quantity,
                    "isMain": True,
                },
            )
        else:
            location = stock_locations.update_location(
                store,
                company_id,
                product_id,
                location.id,
                {
                    "name": location.name,
                    "type": location.type,
                    "quantity": location.quantity + quantity,
                },
            )

        record_movement(
            store,
            company_id,
            product_id,
            {
                "type": "entry",
                "quantity": quantity,
                "toLocation": location.name,
                "reason": f"Purchase Order {order.po_number}",
                "supplierId": order.supplier_id,
                "supplierName": order.supplier_name,
                "purchaseOrderId": order_id,
                "user": user,
                "date": received_at,
            },
        )
        outcome = record_purchase_price(
            store,
            company_id,
            product_id,
            order.supplier_id,
            item.get("price"),
            purchase_order_id=order_id,
            purchase_date=received_at,
            update_current=update_prices,
        )
        if outcome.get("priceChanged"):
            price_changes.append(
                {
                    "productId": product_id,
                    "productName": view.product.name,
                    "oldPrice": outcome["oldPrice"],
                    "newPrice": outcome["newPrice"],
                }
            )
        received.append({"productId": product_id, "quantity": quantity, "locationId": location.id})

    store.update(
        purchase_orders_path(company_id),
        order_id,
        {"status": "received", "receivedDate": received_at, "updatedAt": received_at},
    )
    if skipped:
        logger.warning(
            "Purchase order %s received with %s lines skipped", order.po_number, len(skipped)
        )
    logger.info(
        "Received purchase order %s: %s lines into stock", order.po_number, len(received)
    )
    return {
        "purchaseOrder": get_purchase_order(store, company_id, order_id).to_dict(),
        "received": received,
        "skipped": skipped,
        "priceChanges": price_changes,
    }
