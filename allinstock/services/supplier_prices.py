"""Purchase prices a product has with each supplier.

``isPreferred`` is a display flag. ``set_preferred`` clears it on the
product's other records, but nothing else keeps it unique.
"""

from __future__ import annotations

import logging
from typing import Any

from allinstock.errors import NotFoundError
from allinstock.schemas import Product, SupplierPrice
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import safe_number, utc_now_iso


logger = logging.getLogger(__name__)


def prices_path(company_id: str, product_id: str) -> str:
    return company_path(company_id, "products", product_id, "supplierPrices")


def list_supplier_prices(
    store: DocumentStore, company_id: str, product_id: str
) -> list[SupplierPrice]:
    prices = [
        SupplierPrice.from_document(document)
        for document in store.list(prices_path(company_id, product_id))
    ]
    prices.sort(key=lambda price: price.created_at or "", reverse=True)
    return prices


def get_supplier_price(
    store: DocumentStore, company_id: str, product_id: str, price_id: str
) -> SupplierPrice:
    document = store.get(prices_path(company_id, product_id), price_id)
    if document is None:
        raise NotFoundError("Supplier price", price_id)
    return SupplierPrice.from_document(document)


def create_supplier_price(
    store: DocumentStore, company_id: str, product_id: str, data: dict[str, Any]
) -> SupplierPrice:
    now = utc_now_iso()
    payload = {
        **data,
        "lastPurchaseDate": data.get("lastPurchaseDate") or None,
        "lastPurchasePrice": data.get("lastPurchasePrice") or None,
        "priceHistory": data.get("priceHistory") or [],
        "createdAt": now,
        "updatedAt": now,
    }
    payload.pop("id", None)
    price = SupplierPrice.from_document(payload)
    price.id = store.create(prices_path(company_id, product_id), price.to_document())
    return price


def update_supplier_price(
    store: DocumentStore,
    company_id: str,
    product_id: str,
    price_id: str,
    data: dict[str, Any],
) -> SupplierPrice:
    current = get_supplier_price(store, company_id, product_id, price_id)
    merged = {**current.to_document(), **data, "updatedAt": utc_now_iso()}
    merged.pop("id", None)
    price = SupplierPrice.from_document(merged)
    store.update(prices_path(company_id, product_id), price_id, price.to_document())
    price.id = price_id
    return price


def delete_supplier_price(
    store: DocumentStore, company_id: str, product_id: str, price_id: str
) -> None:
    store.delete(prices_path(company_id, product_id), price_id)


def products_by_supplier(
    store: DocumentStore, company_id: str, supplier_id: str
) -> list[dict[str, Any]]:
    results = []
    for document in store.list(company_path(company_id, "products")):
        matching = [
            price
            for price in list_supplier_prices(store, company_id, document["id"])
            if price.supplier_id == supplier_id
        ]
        if not matching:
            continue
        payload = Product.from_document(document).to_dict()
        payload["supplierPrices"] = [price.to_dict() for price in matching]
        results.append(payload)
    return results


def set_preferred(
    store: DocumentStore, company_id: str, product_id: str, price_id: str
) -> None:
    path = prices_path(company_id, product_id)
    for price in list_supplier_prices(store, company_id, product_id):
        store.update(path, price.id, {"isPreferred": price.id == price_id})


def price_for_supplier(
    store: DocumentStore, company_id: str, product_id: str, supplier_id: str
) -> SupplierPrice | None:
    for price in list_supplier_prices(store, company_id, product_id):
        if price.supplier_id == supplier_id:
            return price
    return None


def record_purchase_price(
    store: DocumentStore,
    company_id: str,
    product_id: str,
    supplier_id: str,
    purchase_price,
    purchase_order_id: str | None = None,
    purchase_date: str | None = None,
    update_current: bool = False,
) -> dict[str, Any]:
    """Append a purchase to the supplier's price history for this product.

    ``update_current`` also moves ``purchasePrice`` to the new price.
    """

    new_price = safe_number(purchase_price)
    purchase_date = purchase_date or utc_now_iso()
    existing = price_for_supplier(store, company_id, product_id, supplier_id)

    if existing is None:
        create_supplier_price(
            store,
            company_id,
            product_id,
            {
                "supplierId": supplier_id,
                "purchasePrice": new_price,
                "lastPurchaseDate": purchase_date,
                "lastPurchasePrice": new_price,
                "priceHistory": [
                    {
                        "price": new_price,
                        "date": purchase_date,
                        "purchaseOrderId": purchase_order_id,
                    }
                ],
                "currency": "EUR",
            },
        )
        return {"isNew": True}

    old_price = existing.purchase_price
    history = list(existing.price_history)
    history.append(
        {
            "price": new_price,
            "date": purchase_date,
            "purchaseOrderId": purchase_order_id,
            "oldPrice": old_price,
        }
    )
    changes = {
        "lastPurchaseDate": purchase_date,
        "lastPurchasePrice": new_price,
        "priceHistory": history,
        "updatedAt": utc_now_iso(),
    }
    if update_current:
        changes["purchasePrice"] = new_price
    store.update(prices_path(company_id, product_id), existing.id, changes)
    if old_price != new_price:
        logger.info(
            "Purchase price for product %s from supplier %s changed %s -> %s",
            product_id,
            supplier_id,
            old_price,
            new_price,
        )
    return {
        "isNew": False,
        "priceChanged": old_price != new_price,
        "oldPrice": old_price,
        "newPrice": new_price,
    }
