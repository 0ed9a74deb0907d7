"""Append-only movement history per product.

Nothing in the location ledger writes here. ``record_movement`` exists for
writers that want an audit entry (imports, external triggers, the API).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from allinstock.errors import ValidationError
from allinstock.schemas import MOVEMENT_TYPES, StockMovement
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import parse_timestamp, utc_now_iso


logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def movements_path(company_id: str, product_id: str) -> str:
    return company_path(company_id, "products", product_id, "movements")


def _sort_key(movement: StockMovement) -> datetime:
    return parse_timestamp(movement.date) or parse_timestamp(movement.created_at) or _EPOCH


def list_movements(
    store: DocumentStore,
    company_id: str,
    product_id: str,
    movement_type: str | None = None,
) -> list[StockMovement]:
    if movement_type in (None, "", "all"):
        wanted = None
    else:
        wanted = movement_type.strip().lower()
        if wanted not in MOVEMENT_TYPES:
            raise ValidationError(
                f"Unknown movement type filter: {movement_type}", field="type"
            )

    movements = [
        StockMovement.from_document(document)
        for document in store.list(movements_path(company_id, product_id))
    ]
    if wanted is not None:
        movements = [movement for movement in movements if movement.type == wanted]
    movements.sort(key=_sort_key, reverse=True)
    return movements


def record_movement(
    store: DocumentStore,
    company_id: str,
    product_id: str,
    data: dict[str, Any],
) -> StockMovement:
    now = utc_now_iso()
    movement = StockMovement.from_document(
        {
            "type": data.get("type"),
            "quantity": data.get("quantity"),
            "fromLocation": data.get("fromLocation"),
            "toLocation": data.get("toLocation"),
            "date": data.get("date") or now,
            "user": data.get("user"),
            "notes": data.get("notes"),
            "reason": data.get("reason"),
            "supplierId": data.get("supplierId"),
            "supplierName": data.get("supplierName"),
            "purchaseOrderId": data.get("purchaseOrderId"),
            "createdAt": now,
        }
    )
    movement.id = store.create(movements_path(company_id, product_id), movement.to_document())
    logger.info(
        "Recorded %s movement of %s units for product %s",
        movement.type,
        movement.quantity,
        product_id,
    )
    return movement
