from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from allinstock.extensions import db


bp = Blueprint("health", __name__, url_prefix="/health")


@bp.get("")
def health():
    database = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Health check could not reach the database: %s", exc)
        database = "unavailable"

    status_code = 200 if database == "ok" else 503
    return (
        jsonify(
            {
                "status": "ok" if status_code == 200 else "degraded",
                "database": database,
                "time": datetime.now(timezone.utc).isoformat(),
            }
        ),
        status_code,
    )
