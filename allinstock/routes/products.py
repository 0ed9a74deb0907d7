from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.errors import NotFoundError
from allinstock.routes import json_payload
from allinstock.services import products, stock_locations, stock_movements
from allinstock.store import get_store


bp = Blueprint("products", __name__, url_prefix="/companies/<company_id>")


def _require_product(company_id: str, product_id: str):
    view = products.get_product(get_store(), company_id, product_id)
    if view is None:
        raise NotFoundError("Product", product_id)
    return view


@bp.get("/products")
def list_products(company_id):
    term = request.args.get("q")
    if term:
        views = products.search_products(get_store(), company_id, term)
    else:
        views = products.list_products(get_store(), company_id)
    return jsonify([view.to_dict() for view in views])


@bp.post("/products")
def create_product(company_id):
    view = products.create_product(
        get_store(),
        company_id,
        json_payload(),
        main_location_name=current_app.config.get(
            "MAIN_LOCATION_NAME", products.DEFAULT_MAIN_LOCATION_NAME
        ),
    )
    return jsonify(view.to_dict()), 201


@bp.get("/products/catalog")
def catalog(company_id):
    return jsonify(products.catalog_values(get_store(), company_id))


@bp.get("/products/<product_id>")
def get_product(company_id, product_id):
    return jsonify(_require_product(company_id, product_id).to_dict())


@bp.put("/products/<product_id>")
def update_product(company_id, product_id):
    view = products.update_product(get_store(), company_id, product_id, json_payload())
    return jsonify(view.to_dict())


@bp.delete("/products/<product_id>")
def delete_product(company_id, product_id):
    _require_product(company_id, product_id)
    products.delete_product(get_store(), company_id, product_id)
    return "", 204


@bp.get("/products/<product_id>/locations")
def list_locations(company_id, product_id):
    locations = stock_locations.list_locations(get_store(), company_id, product_id)
    return jsonify([location.to_dict() for location in locations])


@bp.post("/products/<product_id>/locations")
def add_location(company_id, product_id):
    _require_product(company_id, product_id)
    location = stock_locations.add_location(get_store(), company_id, product_id, json_payload())
    return jsonify(location.to_dict()), 201


@bp.put("/products/<product_id>/locations/<location_id>")
def update_location(company_id, product_id, location_id):
    location = stock_locations.update_location(
        get_store(), company_id, product_id, location_id, json_payload()
    )
    return jsonify(location.to_dict())


@bp.delete("/products/<product_id>/locations/<location_id>")
def delete_location(company_id, product_id, location_id):
    removed = stock_locations.delete_location(get_store(), company_id, product_id, location_id)
    return jsonify({"deleted": location_id, "removedQuantity": removed})


@bp.get("/products/<product_id>/movements")
def list_movements(company_id, product_id):
    movements = stock_movements.list_movements(
        get_store(), company_id, product_id, request.args.get("type")
    )
    return jsonify([movement.to_dict() for movement in movements])


@bp.post("/products/<product_id>/movements")
def record_movement(company_id, product_id):
    _require_product(company_id, product_id)
    movement = stock_movements.record_movement(
        get_store(), company_id, product_id, json_payload()
    )
    return jsonify(movement.to_dict()), 201


@bp.get("/locations")
def location_directory(company_id):
    return jsonify(stock_locations.location_directory(get_store(), company_id))
