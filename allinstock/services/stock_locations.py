"""Per-product stock locations.

A product's stock is the sum of the quantities held by its locations.
Location writes never append to the movement log; callers that want an
audit entry record one separately.
"""

from __future__ import annotations

import logging
from typing import Any

from allinstock.errors import NotFoundError
from allinstock.schemas import StockLocation
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import utc_now_iso


logger = logging.getLogger(__name__)


def locations_path(company_id: str, product_id: str) -> str:
    return company_path(company_id, "products", product_id, "stockLocations")


def list_locations(store: DocumentStore, company_id: str, product_id: str) -> list[StockLocation]:
    return [
        StockLocation.from_document(document)
        for document in store.list(locations_path(company_id, product_id))
    ]


def get_location(
    store: DocumentStore, company_id: str, product_id: str, location_id: str
) -> StockLocation | None:
    document = store.get(locations_path(company_id, product_id), location_id)
    if document is None:
        return None
    return StockLocation.from_document(document)


def add_location(
    store: DocumentStore, company_id: str, product_id: str, data: dict[str, Any]
) -> StockLocation:
    now = utc_now_iso()
    location = StockLocation.from_document(
        {
            "name": data.get("name"),
            "type": data.get("type"),
            "quantity": data.get("quantity"),
            "isMain": data.get("isMain", False),
            "address": data.get("address"),
            "contactPerson": data.get("contactPerson"),
            "contactPhone": data.get("contactPhone"),
            "createdAt": now,
            "updatedAt": now,
        }
    )
    location.id = store.create(locations_path(company_id, product_id), location.to_document())
    logger.info(
        "Added location %s (%s) with %s units to product %s",
        location.name,
        location.type,
        location.quantity,
        product_id,
    )
    return location


def update_location(
    store: DocumentStore,
    company_id: str,
    product_id: str,
    location_id: str,
    data: dict[str, Any],
) -> StockLocation:
    path = locations_path(company_id, product_id)
    current = store.get(path, location_id)
    if current is None:
        raise NotFoundError("Stock location", location_id)
    replacement = {
        **current,
        "name": data.get("name"),
        "type": data.get("type"),
        "quantity": data.get("quantity"),
        "updatedAt": utc_now_iso(),
    }
    if "isMain" in data:
        replacement["isMain"] = data["isMain"]
    location = StockLocation.from_document(replacement)
    store.update(path, location_id, location.to_document())
    location.id = location_id
    return location


def delete_location(
    store: DocumentStore, company_id: str, product_id: str, location_id: str
) -> int:
    """Delete a location and return the quantity it held.

    The quantity simply disappears from the product total; no compensating
    movement is written.
    """

    path = locations_path(company_id, product_id)
    document = store.get(path, location_id)
    removed_quantity = StockLocation.from_document(document).quantity if document else 0
    store.delete(path, location_id)
    if removed_quantity:
        logger.warning(
            "Deleted location %s of product %s holding %s units",
            location_id,
            product_id,
            removed_quantity,
        )
    return removed_quantity


def location_directory(store: DocumentStore, company_id: str) -> list[dict[str, Any]]:
    """Unique locations across all products, keyed by location name."""

    directory: dict[str, dict[str, Any]] = {}
    for product in store.list(company_path(company_id, "products")):
        for location in list_locations(store, company_id, product["id"]):
            entry = directory.get(location.name)
            if entry is None:
                entry = {
                    "name": location.name,
                    "type": location.type,
                    "address": location.address,
                    "contactPerson": location.contact_person,
                    "contactPhone": location.contact_phone,
                    "productCount": 0,
                    "totalQuantity": 0,
                }
                directory[location.name] = entry
            entry["productCount"] += 1
            entry["totalQuantity"] += location.quantity
    return sorted(directory.values(), key=lambda entry: entry["name"].lower())
