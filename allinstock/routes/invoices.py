from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from allinstock.routes import json_payload
from allinstock.services import invoices, quotations
from allinstock.store import get_store


bp = Blueprint("invoices", __name__, url_prefix="/companies/<company_id>")


def _user() -> str | None:
    return request.headers.get("X-User-Email")


def _invoice_dict(invoice) -> dict:
    return {**invoice.to_dict(), "balance": invoices.outstanding_balance(invoice)}


@bp.get("/invoices")
def list_invoices(company_id):
    store = get_store()
    status = request.args.get("status")
    client_id = request.args.get("clientId")
    if status:
        results = invoices.invoices_by_status(store, company_id, status)
    elif client_id:
        results = invoices.invoices_by_client(store, company_id, client_id)
    else:
        results = invoices.list_invoices(store, company_id)
    return jsonify([_invoice_dict(invoice) for invoice in results])


@bp.post("/invoices")
def create_invoice(company_id):
    payload = json_payload()
    invoice = invoices.create_invoice(
        get_store(),
        company_id,
        payload,
        created_by=_user() or payload.get("createdBy"),
        default_tax_rate=float(
            current_app.config.get("DEFAULT_TAX_RATE", quotations.DEFAULT_TAX_RATE)
        ),
    )
    return jsonify(_invoice_dict(invoice)), 201


@bp.post("/quotations/<quotation_id>/invoice")
def invoice_quotation(company_id, quotation_id):
    invoice = invoices.create_invoice_from_quotation(
        get_store(), company_id, quotation_id, json_payload(), created_by=_user()
    )
    return jsonify(_invoice_dict(invoice)), 201


@bp.get("/invoices/<invoice_id>")
def get_invoice(company_id, invoice_id):
    return jsonify(_invoice_dict(invoices.get_invoice(get_store(), company_id, invoice_id)))


@bp.put("/invoices/<invoice_id>")
def update_invoice(company_id, invoice_id):
    invoice = invoices.update_invoice(get_store(), company_id, invoice_id, json_payload())
    return jsonify(_invoice_dict(invoice))


@bp.delete("/invoices/<invoice_id>")
def delete_invoice(company_id, invoice_id):
    invoices.delete_invoice(get_store(), company_id, invoice_id)
    return "", 204


@bp.post("/invoices/<invoice_id>/status")
def set_status(company_id, invoice_id):
    invoice = invoices.set_invoice_status(
        get_store(), company_id, invoice_id, json_payload().get("status")
    )
    return jsonify(_invoice_dict(invoice))


@bp.post("/invoices/<invoice_id>/payments")
def record_payment(company_id, invoice_id):
    payload = json_payload()
    invoice = invoices.record_payment(
        get_store(),
        company_id,
        invoice_id,
        payload.get("amount"),
        method=payload.get("paymentMethod"),
        payment_date=payload.get("paymentDate"),
    )
    return jsonify(_invoice_dict(invoice))
