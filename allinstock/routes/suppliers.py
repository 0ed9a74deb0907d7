from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.errors import NotFoundError
from allinstock.routes import json_payload
from allinstock.services import products, supplier_prices, suppliers
from allinstock.store import get_store


bp = Blueprint("suppliers", __name__, url_prefix="/companies/<company_id>")


@bp.get("/suppliers")
def list_suppliers(company_id):
    term = request.args.get("q")
    if term:
        results = suppliers.search_suppliers(get_store(), company_id, term)
    else:
        results = suppliers.list_suppliers(get_store(), company_id)
    return jsonify([supplier.to_dict() for supplier in results])


@bp.post("/suppliers")
def create_supplier(company_id):
    supplier = suppliers.create_supplier(get_store(), company_id, json_payload())
    return jsonify(supplier.to_dict()), 201


@bp.get("/suppliers/<supplier_id>")
def get_supplier(company_id, supplier_id):
    return jsonify(suppliers.get_supplier(get_store(), company_id, supplier_id).to_dict())


@bp.put("/suppliers/<supplier_id>")
def update_supplier(company_id, supplier_id):
    supplier = suppliers.update_supplier(get_store(), company_id, supplier_id, json_payload())
    return jsonify(supplier.to_dict())


@bp.delete("/suppliers/<supplier_id>")
def delete_supplier(company_id, supplier_id):
    suppliers.delete_supplier(get_store(), company_id, supplier_id)
    return "", 204


@bp.post("/suppliers/<supplier_id>/toggle-status")
def toggle_supplier_status(company_id, supplier_id):
    supplier = suppliers.toggle_supplier_status(get_store(), company_id, supplier_id)
    return jsonify(supplier.to_dict())


@bp.get("/suppliers/<supplier_id>/products")
def supplier_products(company_id, supplier_id):
    return jsonify(supplier_prices.products_by_supplier(get_store(), company_id, supplier_id))


def _require_product(company_id: str, product_id: str) -> None:
    if products.get_product(get_store(), company_id, product_id) is None:
        raise NotFoundError("Product", product_id)


@bp.get("/products/<product_id>/supplier-prices")
def list_supplier_prices(company_id, product_id):
    prices = supplier_prices.list_supplier_prices(get_store(), company_id, product_id)
    return jsonify([price.to_dict() for price in prices])


@bp.post("/products/<product_id>/supplier-prices")
def create_supplier_price(company_id, product_id):
    _require_product(company_id, product_id)
    payload = json_payload()
    payload.setdefault("currency", current_app.config.get("DEFAULT_CURRENCY", "EUR"))
    price = supplier_prices.create_supplier_price(get_store(), company_id, product_id, payload)
    return jsonify(price.to_dict()), 201


@bp.post("/products/<product_id>/supplier-prices/purchases")
def record_purchase(company_id, product_id):
    _require_product(company_id, product_id)
    payload = json_payload()
    result = supplier_prices.record_purchase_price(
        get_store(),
        company_id,
        product_id,
        payload.get("supplierId"),
        payload.get("price"),
        purchase_order_id=payload.get("purchaseOrderId"),
        purchase_date=payload.get("date"),
    )
    return jsonify(result)


@bp.get("/products/<product_id>/supplier-prices/<price_id>")
def get_supplier_price(company_id, product_id, price_id):
    price = supplier_prices.get_supplier_price(get_store(), company_id, product_id, price_id)
    return jsonify(price.to_dict())


@bp.put("/products/<product_id>/supplier-prices/<price_id>")
def update_supplier_price(company_id, product_id, price_id):
    price = supplier_prices.update_supplier_price(
        get_store(), company_id, product_id, price_id, json_payload()
    )
    return jsonify(price.to_dict())


@bp.delete("/products/<product_id>/supplier-prices/<price_id>")
def delete_supplier_price(company_id, product_id, price_id):
    supplier_prices.delete_supplier_price(get_store(), company_id, product_id, price_id)
    return "", 204


@bp.post("/products/<product_id>/supplier-prices/<price_id>/preferred")
def set_preferred(company_id, product_id, price_id):
    supplier_prices.get_supplier_price(get_store(), company_id, product_id, price_id)
    supplier_prices.set_preferred(get_store(), company_id, product_id, price_id)
    prices = supplier_prices.list_supplier_prices(get_store(), company_id, product_id)
    return jsonify([price.to_dict() for price in prices])
