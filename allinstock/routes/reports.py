from __future__ import annotations

from flask import Blueprint, jsonify

from allinstock.services import products
from allinstock.services.stock_summary import NO_FAMILY, inventory_report
from allinstock.store import get_store
from allinstock.utils.csv_export import export_rows_to_csv


bp = Blueprint("reports", __name__, url_prefix="/companies/<company_id>/reports")

INVENTORY_COLUMNS = (
    ("reference", "Reference"),
    ("name", "Name"),
    ("family", "Family"),
    ("unit", "Unit"),
    ("minStock", "Min Stock"),
    ("totalStock", "Total Stock"),
    ("stockStatus", "Status"),
    ("price", "Price"),
    ("stockValue", "Stock Value"),
)


@bp.get("/inventory")
def inventory(company_id):
    views = products.list_products(get_store(), company_id)
    return jsonify(inventory_report(views))


@bp.get("/inventory.csv")
def inventory_csv(company_id):
    views = products.list_products(get_store(), company_id)
    rows = []
    for view in views:
        row = view.to_dict()
        row["family"] = row.get("family") or NO_FAMILY
        rows.append(row)
    return export_rows_to_csv(rows, INVENTORY_COLUMNS, f"inventory_{company_id}.csv")
