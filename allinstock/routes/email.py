from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.errors import CredentialsExpiredError, ValidationError
from allinstock.integrations.google import client_options
from allinstock.routes import json_payload
from allinstock.services import email_sync
from allinstock.store import get_store


bp = Blueprint("email", __name__, url_prefix="/companies/<company_id>/email")


def _gmail_client(company_id: str):
    client = email_sync.gmail_client_for(
        get_store(), company_id, **client_options(current_app.config, "gmail")
    )
    if client is None:
        raise CredentialsExpiredError("Gmail is not connected.")
    return client


@bp.get("/config")
def get_config(company_id):
    config = email_sync.get_email_config(get_store(), company_id)
    if config is None:
        return jsonify({"connected": False})
    return jsonify(
        {
            "connected": True,
            "provider": config.provider,
            "email": config.email,
            "connectedAt": config.connected_at,
        }
    )


@bp.put("/config")
def save_config(company_id):
    config = email_sync.save_email_config(get_store(), company_id, json_payload())
    return jsonify({"connected": True, "provider": config.provider, "email": config.email})


@bp.delete("/config")
def delete_config(company_id):
    email_sync.delete_email_config(get_store(), company_id)
    return jsonify({"connected": False})


@bp.post("/sync")
def sync(company_id):
    max_results = int(current_app.config.get("EMAIL_SYNC_MAX_RESULTS", 200))
    result = email_sync.sync_emails(
        get_store(), company_id, _gmail_client(company_id), max_results=max_results
    )
    return jsonify(result)


@bp.post("/send")
def send(company_id):
    payload = json_payload()
    if not payload.get("to"):
        raise ValidationError("A recipient is required", field="to")
    client = _gmail_client(company_id)
    try:
        result = client.send_message(
            payload["to"],
            payload.get("subject") or "",
            payload.get("body") or "",
            cc=payload.get("cc") or [],
            bcc=payload.get("bcc") or [],
        )
    except CredentialsExpiredError:
        email_sync.delete_email_config(get_store(), company_id)
        raise
    return jsonify({"sent": True, "id": result.get("id")})


@bp.get("/messages")
def list_messages(company_id):
    term = request.args.get("q")
    if term:
        emails = email_sync.search_emails(get_store(), company_id, term)
    else:
        limit = request.args.get("limit", default=100, type=int)
        emails = email_sync.list_emails(get_store(), company_id, limit=limit)
    return jsonify([email.to_dict() for email in emails])


@bp.get("/contacts/<path:address>")
def contact_messages(company_id, address):
    emails = email_sync.contact_emails(get_store(), company_id, address)
    return jsonify([email.to_dict() for email in emails])


@bp.get("/stats")
def stats(company_id):
    return jsonify(email_sync.sync_stats(get_store(), company_id))
