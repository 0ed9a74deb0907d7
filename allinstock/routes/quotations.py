from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.routes import json_payload
from allinstock.services import quotations
from allinstock.store import get_store


bp = Blueprint("quotations", __name__, url_prefix="/companies/<company_id>/quotations")


def _default_tax_rate() -> float:
    return float(current_app.config.get("DEFAULT_TAX_RATE", quotations.DEFAULT_TAX_RATE))


@bp.get("")
def list_quotations(company_id):
    store = get_store()
    status = request.args.get("status")
    client_id = request.args.get("clientId")
    term = request.args.get("q")
    if term:
        results = quotations.search_quotations(store, company_id, term)
    elif status:
        results = quotations.quotations_by_status(store, company_id, status)
    elif client_id:
        results = quotations.quotations_by_client(store, company_id, client_id)
    else:
        results = quotations.list_quotations(store, company_id)
    return jsonify([quotation.to_dict() for quotation in results])


@bp.get("/next-number")
def next_number(company_id):
    return jsonify({"quotationNumber": quotations.next_quotation_number(get_store(), company_id)})


@bp.post("")
def create_quotation(company_id):
    payload = json_payload()
    quotation = quotations.create_quotation(
        get_store(),
        company_id,
        payload,
        created_by=request.headers.get("X-User-Email") or payload.get("createdBy"),
        default_tax_rate=_default_tax_rate(),
    )
    return jsonify(quotation.to_dict()), 201


@bp.get("/<quotation_id>")
def get_quotation(company_id, quotation_id):
    return jsonify(quotations.get_quotation(get_store(), company_id, quotation_id).to_dict())


@bp.put("/<quotation_id>")
def update_quotation(company_id, quotation_id):
    quotation = quotations.update_quotation(
        get_store(),
        company_id,
        quotation_id,
        json_payload(),
        default_tax_rate=_default_tax_rate(),
    )
    return jsonify(quotation.to_dict())


@bp.delete("/<quotation_id>")
def delete_quotation(company_id, quotation_id):
    quotations.delete_quotation(get_store(), company_id, quotation_id)
    return "", 204


@bp.post("/<quotation_id>/status")
def set_status(company_id, quotation_id):
    quotation = quotations.set_quotation_status(
        get_store(), company_id, quotation_id, json_payload().get("status")
    )
    return jsonify(quotation.to_dict())
