"""Derived stock figures. Everything here is recomputed on each read."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from allinstock.schemas import Product, StockLocation


NO_FAMILY = "No Family"

STATUS_OUT = "out"
STATUS_LOW = "low"
STATUS_IN = "in"


def total_stock(locations: Iterable[StockLocation]) -> int:
    return sum(location.quantity for location in locations)


def stock_status(total: int, min_stock: int) -> str:
    if total == 0:
        return STATUS_OUT
    if min_stock > 0 and total <= min_stock:
        return STATUS_LOW
    return STATUS_IN


def stock_value(total: int, price: float) -> float:
    return total * price


def is_low_stock(total: int, min_stock: int) -> bool:
    return min_stock > 0 and total <= min_stock


@dataclass
class ProductStock:
    product: Product
    locations: list[StockLocation] = field(default_factory=list)

    @property
    def total(self) -> int:
        return total_stock(self.locations)

    @property
    def status(self) -> str:
        return stock_status(self.total, self.product.min_stock)

    @property
    def value(self) -> float:
        return stock_value(self.total, self.product.price)

    def to_dict(self) -> dict[str, Any]:
        payload = self.product.to_dict()
        payload["stockLocations"] = [location.to_dict() for location in self.locations]
        payload["totalStock"] = self.total
        payload["stockStatus"] = self.status
        payload["stockValue"] = self.value
        return payload


def summarize_product(product: Product, locations: Iterable[StockLocation]) -> ProductStock:
    return ProductStock(product=product, locations=list(locations))


def portfolio_value(views: Iterable[ProductStock]) -> float:
    return sum(view.value for view in views)


def group_by_family(views: Iterable[ProductStock]) -> dict[str, dict[str, Any]]:
    groups: dict[str, dict[str, Any]] = {}
    for view in views:
        family = view.product.family or NO_FAMILY
        bucket = groups.setdefault(family, {"count": 0, "stock": 0, "value": 0.0})
        bucket["count"] += 1
        bucket["stock"] += view.total
        bucket["value"] += view.value
    return groups


def low_stock(views: Iterable[ProductStock]) -> list[ProductStock]:
    return [view for view in views if is_low_stock(view.total, view.product.min_stock)]


def out_of_stock(views: Iterable[ProductStock]) -> list[ProductStock]:
    return [view for view in views if view.total == 0]


def top_value(views: Iterable[ProductStock], limit: int = 10) -> list[ProductStock]:
    return sorted(views, key=lambda view: view.value, reverse=True)[:limit]


def inventory_report(views: Iterable[ProductStock]) -> dict[str, Any]:
    views = list(views)
    return {
        "totalProducts": len(views),
        "totalStock": sum(view.total for view in views),
        "totalValue": portfolio_value(views),
        "lowStockCount": len(low_stock(views)),
        "outOfStockCount": len(out_of_stock(views)),
        "byFamily": group_by_family(views),
        "lowStock": [_brief(view) for view in low_stock(views)],
        "outOfStock": [_brief(view) for view in out_of_stock(views)],
        "topValue": [_brief(view) for view in top_value(views)],
    }


def _brief(view: ProductStock) -> dict[str, Any]:
    return {
        "id": view.product.id,
        "name": view.product.name,
        "reference": view.product.reference,
        "family": view.product.family or NO_FAMILY,
        "unit": view.product.unit,
        "minStock": view.product.min_stock,
        "totalStock": view.total,
        "stockStatus": view.status,
        "price": view.product.price,
        "stockValue": view.value,
    }
