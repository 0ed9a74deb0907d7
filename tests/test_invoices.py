import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock import create_app
from allinstock.errors import NotFoundError, ValidationError
from allinstock.extensions import db
from allinstock.services import clients, invoices, quotations
from allinstock.store import get_store


COMPANY = "acme"

ITEMS = [{"productId": "p1", "productName": "Bolt", "quantity": 10, "unitPrice": 10}]


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


def _quotation(store, client_id="c1", **overrides):
    data = {
        "clientId": client_id,
        "clientName": "Maria",
        "clientEmail": "maria@example.com",
        "items": ITEMS,
        "taxRate": 23,
        "validUntil": "2024-07-01T00:00:00+00:00",
        "notes": "Delivery included",
        **overrides,
    }
    return quotations.create_quotation(store, COMPANY, data)


def test_invoice_from_quotation_copies_client_and_totals(store):
    client = clients.create_client(
        store, COMPANY, {"name": "Maria", "phone": "912000000", "address": "Rua 1, Porto"}
    )
    quotation = _quotation(store, client_id=client.id)

    invoice = invoices.create_invoice_from_quotation(store, COMPANY, quotation.id)

    assert invoice.invoice_number == "INV-00001"
    assert invoice.quotation_id == quotation.id
    assert invoice.client_name == "Maria"
    assert invoice.client_email == "maria@example.com"
    assert invoice.client_phone == "912000000"
    assert invoice.client_address == "Rua 1, Porto"
    assert invoice.subtotal == pytest.approx(100.0)
    assert invoice.tax_amount == pytest.approx(23.0)
    assert invoice.total == pytest.approx(123.0)
    assert invoice.due_date == "2024-07-01"
    assert invoice.notes == "Delivery included"
    assert invoice.status == "pending"
    assert invoice.payment_status == "unpaid"
    assert invoice.paid_amount == 0
    assert len(invoice.date) == 10


def test_invoice_numbers_increase(store):
    quotation = _quotation(store)

    first = invoices.create_invoice_from_quotation(store, COMPANY, quotation.id)
    second = invoices.create_invoice_from_quotation(store, COMPANY, quotation.id)

    assert [first.invoice_number, second.invoice_number] == ["INV-00001", "INV-00002"]
    assert invoices.next_invoice_number(store, COMPANY) == "INV-00003"


def test_invoice_from_quotation_applies_discount(store):
    quotation = _quotation(store)

    invoice = invoices.create_invoice_from_quotation(
        store, COMPANY, quotation.id, {"discount": 23, "dueDate": "2024-08-01"}
    )

    assert invoice.discount == 23
    assert invoice.total == pytest.approx(100.0)
    assert invoice.due_date == "2024-08-01"


def test_rejected_quotation_cannot_be_invoiced(store):
    quotation = _quotation(store)
    quotations.set_quotation_status(store, COMPANY, quotation.id, "rejected")

    with pytest.raises(ValidationError) as excinfo:
        invoices.create_invoice_from_quotation(store, COMPANY, quotation.id)

    assert excinfo.value.field == "status"
    assert invoices.list_invoices(store, COMPANY) == []


def test_invoice_from_missing_quotation_raises(store):
    with pytest.raises(NotFoundError):
        invoices.create_invoice_from_quotation(store, COMPANY, "missing")


def test_create_invoice_directly(store):
    invoice = invoices.create_invoice(
        store, COMPANY, {"clientId": "c1", "clientName": "Rui", "items": ITEMS, "taxRate": 0}
    )

    assert invoice.total == pytest.approx(100.0)
    assert invoice.quotation_id is None


def test_create_invoice_rejects_bad_items(store):
    with pytest.raises(ValidationError) as excinfo:
        invoices.create_invoice(store, COMPANY, {"clientId": "c1", "items": "abc"})

    assert excinfo.value.field == "items"


def test_partial_then_full_payment(store):
    invoice = invoices.create_invoice_from_quotation(store, COMPANY, _quotation(store).id)

    partial = invoices.record_payment(store, COMPANY, invoice.id, 100, "transfer", "2024-06-20")
    assert partial.paid_amount == pytest.approx(100.0)
    assert partial.payment_status == "partially_paid"
    assert partial.payment_method == "transfer"
    assert partial.last_payment_date == "2024-06-20"
    assert invoices.outstanding_balance(partial) == pytest.approx(23.0)

    remaining = str(invoices.outstanding_balance(partial))
    paid = invoices.record_payment(store, COMPANY, invoice.id, remaining, "cash")
    assert paid.payment_status == "paid"
    assert paid.payment_method == "cash"
    assert invoices.outstanding_balance(paid) == 0


@pytest.mark.parametrize("amount", [0, -5, "abc", None])
def test_payment_amount_must_be_positive(store, amount):
    invoice = invoices.create_invoice_from_quotation(store, COMPANY, _quotation(store).id)

    with pytest.raises(ValidationError) as excinfo:
        invoices.record_payment(store, COMPANY, invoice.id, amount)

    assert excinfo.value.field == "amount"
    assert invoices.get_invoice(store, COMPANY, invoice.id).paid_amount == 0


def test_update_keeps_payments_and_recalculates(store):
    invoice = invoices.create_invoice_from_quotation(store, COMPANY, _quotation(store).id)
    invoices.record_payment(store, COMPANY, invoice.id, 50)

    updated = invoices.update_invoice(
        store, COMPANY, invoice.id, {"taxRate": 0, "paidAmount": 0, "notes": "Revised"}
    )

    assert updated.total == pytest.approx(100.0)
    assert updated.paid_amount == pytest.approx(50.0)
    assert updated.notes == "Revised"
    assert updated.invoice_number == invoice.invoice_number


def test_status_and_filters(store):
    first = invoices.create_invoice(store, COMPANY, {"clientId": "c1", "items": []})
    invoices.create_invoice(store, COMPANY, {"clientId": "c2", "items": []})

    sent = invoices.set_invoice_status(store, COMPANY, first.id, "sent")
    assert sent.status == "sent"
    with pytest.raises(ValidationError):
        invoices.set_invoice_status(store, COMPANY, first.id, "lost")

    assert [i.id for i in invoices.invoices_by_status(store, COMPANY, "sent")] == [first.id]
    assert len(invoices.invoices_by_client(store, COMPANY, "c2")) == 1

    invoices.delete_invoice(store, COMPANY, first.id)
    with pytest.raises(NotFoundError):
        invoices.get_invoice(store, COMPANY, first.id)
