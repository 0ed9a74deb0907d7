import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock import create_app
from allinstock.errors import NotFoundError, ValidationError
from allinstock.extensions import db
from allinstock.services import clients, suppliers
from allinstock.store import get_store


COMPANY = "acme"


@pytest.fixture
def app():
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return get_store()


def test_create_supplier_defaults_status(store):
    supplier = suppliers.create_supplier(
        store, COMPANY, {"companyName": "Parts Lda", "email": "sales@parts.pt"}
    )

    assert supplier.status == "active"
    assert suppliers.get_supplier(store, COMPANY, supplier.id).company_name == "Parts Lda"


def test_create_supplier_requires_company_name(store):
    with pytest.raises(ValidationError):
        suppliers.create_supplier(store, COMPANY, {"name": "Ana"})


def test_get_missing_supplier_raises(store):
    with pytest.raises(NotFoundError):
        suppliers.get_supplier(store, COMPANY, "missing")


def test_update_and_toggle_supplier(store):
    supplier = suppliers.create_supplier(store, COMPANY, {"companyName": "Parts Lda"})

    updated = suppliers.update_supplier(store, COMPANY, supplier.id, {"paymentTerms": "30 days"})
    assert updated.payment_terms == "30 days"
    assert updated.company_name == "Parts Lda"

    toggled = suppliers.toggle_supplier_status(store, COMPANY, supplier.id)
    assert toggled.status == "inactive"
    assert suppliers.toggle_supplier_status(store, COMPANY, supplier.id).status == "active"


def test_search_suppliers(store):
    suppliers.create_supplier(
        store, COMPANY, {"companyName": "Parts Lda", "taxId": "PT500", "phone": "+351 21"}
    )
    suppliers.create_supplier(store, COMPANY, {"companyName": "Tools SA", "name": "Rui"})

    assert [s.company_name for s in suppliers.search_suppliers(store, COMPANY, "pt5")] == [
        "Parts Lda"
    ]
    assert [s.company_name for s in suppliers.search_suppliers(store, COMPANY, "+351")] == [
        "Parts Lda"
    ]
    assert [s.company_name for s in suppliers.search_suppliers(store, COMPANY, "rui")] == [
        "Tools SA"
    ]


def test_delete_supplier(store):
    supplier = suppliers.create_supplier(store, COMPANY, {"companyName": "Parts Lda"})

    suppliers.delete_supplier(store, COMPANY, supplier.id)

    assert suppliers.list_suppliers(store, COMPANY) == []


def test_client_lifecycle(store):
    client = clients.create_client(
        store, COMPANY, {"name": "Maria", "email": "maria@example.com", "companyName": "Casa"}
    )

    assert clients.get_client(store, COMPANY, client.id).email == "maria@example.com"

    updated = clients.update_client(store, COMPANY, client.id, {"phone": "912"})
    assert updated.phone == "912"
    assert updated.name == "Maria"

    assert clients.toggle_client_status(store, COMPANY, client.id).status == "inactive"

    clients.delete_client(store, COMPANY, client.id)
    assert clients.get_client(store, COMPANY, client.id) is None


def test_missing_client_reads_are_absent(store):
    assert clients.get_client(store, COMPANY, "missing") is None
    assert clients.toggle_client_status(store, COMPANY, "missing") is None
    with pytest.raises(NotFoundError):
        clients.update_client(store, COMPANY, "missing", {"name": "x"})


def test_search_clients(store):
    clients.create_client(store, COMPANY, {"name": "Maria", "companyName": "Casa Lda"})
    clients.create_client(store, COMPANY, {"name": "João", "taxId": "PT123"})

    assert [c.name for c in clients.search_clients(store, COMPANY, "casa")] == ["Maria"]
    assert [c.name for c in clients.search_clients(store, COMPANY, "pt1")] == ["João"]
