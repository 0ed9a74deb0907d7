from __future__ import annotations

from flask import Blueprint, jsonify, request

from allinstock.errors import NotFoundError
from allinstock.routes import json_payload
from allinstock.services import clients, quotations
from allinstock.store import get_store


bp = Blueprint("clients", __name__, url_prefix="/companies/<company_id>/clients")


@bp.get("")
def list_clients(company_id):
    term = request.args.get("q")
    if term:
        results = clients.search_clients(get_store(), company_id, term)
    else:
        results = clients.list_clients(get_store(), company_id)
    return jsonify([client.to_dict() for client in results])


@bp.post("")
def create_client(company_id):
    client = clients.create_client(get_store(), company_id, json_payload())
    return jsonify(client.to_dict()), 201


@bp.get("/<client_id>")
def get_client(company_id, client_id):
    client = clients.get_client(get_store(), company_id, client_id)
    if client is None:
        raise NotFoundError("Client", client_id)
    return jsonify(client.to_dict())


@bp.put("/<client_id>")
def update_client(company_id, client_id):
    client = clients.update_client(get_store(), company_id, client_id, json_payload())
    return jsonify(client.to_dict())


@bp.delete("/<client_id>")
def delete_client(company_id, client_id):
    clients.delete_client(get_store(), company_id, client_id)
    return "", 204


@bp.post("/<client_id>/toggle-status")
def toggle_client_status(company_id, client_id):
    client = clients.toggle_client_status(get_store(), company_id, client_id)
    if client is None:
        raise NotFoundError("Client", client_id)
    return jsonify(client.to_dict())


@bp.get("/<client_id>/quotations")
def client_quotations(company_id, client_id):
    results = quotations.quotations_by_client(get_store(), company_id, client_id)
    return jsonify([quotation.to_dict() for quotation in results])
