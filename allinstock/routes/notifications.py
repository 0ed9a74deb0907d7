from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from allinstock.services.notifications import build_notifications, get_poller
from allinstock.store import get_store


bp = Blueprint("notifications", __name__, url_prefix="/companies/<company_id>/notifications")


@bp.get("")
def current_notifications(company_id):
    notifications = build_notifications(
        get_store(),
        company_id,
        window_days=current_app.config.get("QUOTATION_EXPIRY_WINDOW_DAYS", 3),
    )
    return jsonify({"count": len(notifications), "notifications": notifications})


@bp.post("/watch")
def watch(company_id):
    poller = get_poller(current_app)
    result = poller.watch(company_id)
    return jsonify({"watching": True, "latest": result})


@bp.delete("/watch")
def unwatch(company_id):
    get_poller(current_app).unwatch(company_id)
    return jsonify({"watching": False})


@bp.get("/latest")
def latest(company_id):
    poller = get_poller(current_app)
    return jsonify(
        {"watching": poller.watching(company_id), "latest": poller.latest(company_id)}
    )
