from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.routes import json_payload
from allinstock.schemas import parse_flag
from allinstock.services import products, purchase_orders
from allinstock.store import get_store


bp = Blueprint(
    "purchase_orders", __name__, url_prefix="/companies/<company_id>/purchase-orders"
)


def _user() -> str | None:
    return request.headers.get("X-User-Email")


@bp.get("")
def list_purchase_orders(company_id):
    store = get_store()
    status = request.args.get("status")
    supplier_id = request.args.get("supplierId")
    if status:
        orders = purchase_orders.purchase_orders_by_status(store, company_id, status)
    elif supplier_id:
        orders = purchase_orders.purchase_orders_by_supplier(store, company_id, supplier_id)
    else:
        orders = purchase_orders.list_purchase_orders(store, company_id)
    return jsonify([order.to_dict() for order in orders])


@bp.get("/next-number")
def next_number(company_id):
    return jsonify({"poNumber": purchase_orders.next_po_number(get_store(), company_id)})


@bp.post("")
def create_purchase_order(company_id):
    payload = json_payload()
    order = purchase_orders.create_purchase_order(
        get_store(), company_id, payload, created_by=_user() or payload.get("createdBy")
    )
    return jsonify(order.to_dict()), 201


@bp.get("/<order_id>")
def get_purchase_order(company_id, order_id):
    return jsonify(purchase_orders.get_purchase_order(get_store(), company_id, order_id).to_dict())


@bp.put("/<order_id>")
def update_purchase_order(company_id, order_id):
    order = purchase_orders.update_purchase_order(get_store(), company_id, order_id, json_payload())
    return jsonify(order.to_dict())


@bp.delete("/<order_id>")
def delete_purchase_order(company_id, order_id):
    purchase_orders.delete_purchase_order(get_store(), company_id, order_id)
    return "", 204


@bp.post("/<order_id>/status")
def set_status(company_id, order_id):
    order = purchase_orders.set_purchase_order_status(
        get_store(), company_id, order_id, json_payload().get("status")
    )
    return jsonify(order.to_dict())


@bp.get("/<order_id>/price-changes")
def price_changes(company_id, order_id):
    return jsonify(purchase_orders.check_price_changes(get_store(), company_id, order_id))


@bp.post("/<order_id>/receive")
def receive(company_id, order_id):
    payload = json_payload()
    result = purchase_orders.receive_purchase_order(
        get_store(),
        company_id,
        order_id,
        update_prices=parse_flag(payload.get("updatePrices"), "updatePrices"),
        main_location_name=current_app.config.get(
            "MAIN_LOCATION_NAME", products.DEFAULT_MAIN_LOCATION_NAME
        ),
        user=_user(),
    )
    return jsonify(result)
