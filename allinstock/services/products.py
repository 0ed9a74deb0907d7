"""Product catalog with stock derived from each product's locations."""

from __future__ import annotations

import logging
from typing import Any

from allinstock.errors import NotFoundError
from allinstock.schemas import Product
from allinstock.services import stock_locations
from allinstock.services.stock_summary import ProductStock, summarize_product
from allinstock.store import DocumentStore, company_path
from allinstock.utils.formatters import coerce_quantity, utc_now_iso


logger = logging.getLogger(__name__)

DEFAULT_MAIN_LOCATION_NAME = "Main Warehouse"

# Fields the product form may write; stock is never one of them.
EDITABLE_FIELDS = (
    "name",
    "reference",
    "family",
    "type",
    "category",
    "unit",
    "price",
    "minStock",
    "supplierId",
)


def products_path(company_id: str) -> str:
    return company_path(company_id, "products")


def _editable(data: dict[str, Any]) -> dict[str, Any]:
    return {key: data[key] for key in EDITABLE_FIELDS if key in data}


def _with_stock(store: DocumentStore, company_id: str, product: Product) -> ProductStock:
    locations = stock_locations.list_locations(store, company_id, product.id)
    return summarize_product(product, locations)


def list_products(store: DocumentStore, company_id: str) -> list[ProductStock]:
    products = [
        Product.from_document(document) for document in store.list(products_path(company_id))
    ]
    products.sort(key=lambda product: product.created_at or "", reverse=True)
    return [_with_stock(store, company_id, product) for product in products]


def get_product(store: DocumentStore, company_id: str, product_id: str) -> ProductStock | None:
    document = store.get(products_path(company_id), product_id)
    if document is None:
        return None
    return _with_stock(store, company_id, Product.from_document(document))


def create_product(
    store: DocumentStore,
    company_id: str,
    data: dict[str, Any],
    main_location_name: str = DEFAULT_MAIN_LOCATION_NAME,
) -> ProductStock:
    now = utc_now_iso()
    product = Product.from_document({**_editable(data), "createdAt": now, "updatedAt": now})
    product.id = store.create(products_path(company_id), product.to_document())

    locations = []
    initial_stock = coerce_quantity(data.get("initialStock"))
    if initial_stock > 0:
        locations.append(
            stock_locations.add_location(
                store,
                company_id,
                product.id,
                {
                    "name": main_location_name,
                    "type": "warehouse",
                    "quantity": initial_stock,
                    "isMain": True,
                },
            )
        )

    logger.info("Created product %s (%s) for company %s", product.id, product.name, company_id)
    return summarize_product(product, locations)


def update_product(
    store: DocumentStore, company_id: str, product_id: str, data: dict[str, Any]
) -> ProductStock:
    path = products_path(company_id)
    current = store.get(path, product_id)
    if current is None:
        raise NotFoundError("Product", product_id)

    product = Product.from_document({**current, **_editable(data), "updatedAt": utc_now_iso()})
    store.update(path, product_id, product.to_document())
    return _with_stock(store, company_id, product)


def delete_product(store: DocumentStore, company_id: str, product_id: str) -> None:
    """Delete a product after deleting each of its locations in turn.

    The deletes are independent; a failure part way through leaves the
    remaining locations (and the product) in place.
    """

    for location in stock_locations.list_locations(store, company_id, product_id):
        store.delete(stock_locations.locations_path(company_id, product_id), location.id)
    store.delete(products_path(company_id), product_id)
    logger.info("Deleted product %s for company %s", product_id, company_id)


def search_products(store: DocumentStore, company_id: str, term: str) -> list[ProductStock]:
    views = list_products(store, company_id)
    needle = (term or "").strip().lower()
    if not needle:
        return views
    return [
        view
        for view in views
        if needle in view.product.name.lower()
        or needle in view.product.reference.lower()
        or needle in view.product.family.lower()
    ]


def catalog_values(store: DocumentStore, company_id: str) -> dict[str, list[str]]:
    """Distinct family, type and category values used by the catalog."""

    families: set[str] = set()
    types: set[str] = set()
    categories: set[str] = set()
    for document in store.list(products_path(company_id)):
        product = Product.from_document(document)
        if product.family:
            families.add(product.family)
        if product.type:
            types.add(product.type)
        if product.category:
            categories.add(product.category)
    return {
        "families": sorted(families),
        "types": sorted(types),
        "categories": sorted(categories),
    }
