from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.errors import CredentialsExpiredError, NotFoundError, ValidationError
from allinstock.integrations.google import client_options
from allinstock.routes import json_payload
from allinstock.schemas import CalendarEvent
from allinstock.services import calendar_sync
from allinstock.store import get_store


bp = Blueprint("calendar", __name__, url_prefix="/companies/<company_id>/calendar")


def _options() -> dict:
    return client_options(current_app.config, "calendar")


@bp.get("/config")
def connection(company_id):
    return jsonify(calendar_sync.check_connection(get_store(), company_id, **_options()))


@bp.put("/config")
def save_config(company_id):
    config = calendar_sync.save_calendar_config(get_store(), company_id, json_payload())
    return jsonify({"connected": True, "provider": config.provider, "email": config.email})


@bp.delete("/config")
def delete_config(company_id):
    calendar_sync.delete_calendar_config(get_store(), company_id)
    return jsonify({"connected": False})


@bp.get("/events")
def list_events(company_id):
    events = calendar_sync.list_events(
        get_store(), company_id, request.args.get("start"), request.args.get("end")
    )
    return jsonify([event.to_dict() for event in events])


@bp.post("/events")
def create_event(company_id):
    payload = json_payload()
    for required in ("summary", "start", "end"):
        if not payload.get(required):
            raise ValidationError(f"Event {required} is required", field=required)
    CalendarEvent.from_document(payload)

    store = get_store()
    client = calendar_sync.calendar_client_for(store, company_id, **_options())
    if client is not None:
        try:
            created = client.create_event(payload)
        except CredentialsExpiredError:
            calendar_sync.delete_calendar_config(store, company_id)
            raise
        payload = {**payload, "googleEventId": created.get("id")}

    event_id = calendar_sync.save_event(store, company_id, payload)
    return jsonify(calendar_sync.get_event(store, company_id, event_id).to_dict()), 201


@bp.get("/events/<event_id>")
def get_event(company_id, event_id):
    event = calendar_sync.get_event(get_store(), company_id, event_id)
    if event is None:
        raise NotFoundError("Calendar event", event_id)
    return jsonify(event.to_dict())


@bp.put("/events/<event_id>")
def update_event(company_id, event_id):
    event = calendar_sync.update_event(get_store(), company_id, event_id, json_payload())
    return jsonify(event.to_dict())


@bp.delete("/events/<event_id>")
def delete_event(company_id, event_id):
    calendar_sync.delete_event(get_store(), company_id, event_id)
    return "", 204


@bp.get("/google-events")
def google_events(company_id):
    result = calendar_sync.load_google_events(
        get_store(),
        company_id,
        request.args.get("timeMin"),
        request.args.get("timeMax"),
        **_options(),
    )
    return jsonify(result)


@bp.post("/sync")
def sync(company_id):
    store = get_store()
    client = calendar_sync.calendar_client_for(store, company_id, **_options())
    if client is None:
        raise CredentialsExpiredError("Google Calendar is not connected.")
    synced = calendar_sync.sync_crm_events(store, company_id, client)
    return jsonify({"synced": len(synced), "events": synced})
