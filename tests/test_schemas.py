import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock.errors import ValidationError
from allinstock.schemas import (
    CalendarEvent,
    Client,
    EmailMessage,
    Invoice,
    Product,
    PurchaseOrder,
    Quotation,
    StockLocation,
    StockMovement,
    Supplier,
    SupplierPrice,
)


def test_product_requires_name():
    with pytest.raises(ValidationError) as excinfo:
        Product.from_document({"name": "   "})

    assert excinfo.value.field == "name"


def test_product_defaults_and_coercion():
    product = Product.from_document(
        {"name": " Bolt ", "price": "2.50", "minStock": "7 units", "unit": ""}
    )

    assert product.name == "Bolt"
    assert product.price == 2.5
    assert product.min_stock == 7
    assert product.unit == "pieces"


def test_product_negative_values_clamp_to_zero():
    product = Product.from_document({"name": "Bolt", "price": -4, "minStock": -3})

    assert product.price == 0.0
    assert product.min_stock == 0


def test_legacy_product_stock_fields_are_dropped():
    product = Product.from_document(
        {"name": "Bolt", "stock": 40, "initialStock": 40, "colour": "red"}
    )

    document = product.to_document()
    assert "stock" not in document
    assert "initialStock" not in document
    assert document["schemaVersion"] == Product.SCHEMA_VERSION
    assert product.extra == {"colour": "red"}
    assert "colour" not in document


def test_current_version_documents_are_not_migrated_again():
    product = Product.from_document({"name": "Bolt", "stock": 3, "schemaVersion": 1})

    assert product.extra == {"stock": 3}


def test_location_unknown_type_falls_back_to_warehouse():
    location = StockLocation.from_document({"name": "Van", "type": "truck", "quantity": "abc"})

    assert location.type == "warehouse"
    assert location.quantity == 0
    assert location.is_main is False


def test_location_requires_name():
    with pytest.raises(ValidationError):
        StockLocation.from_document({"quantity": 3})


def test_legacy_movement_types_are_migrated():
    movement = StockMovement.from_document(
        {"type": "in", "quantity": 4, "createdAt": "2024-03-01T10:00:00Z"}
    )

    assert movement.type == "entry"
    assert movement.date == "2024-03-01T10:00:00Z"


def test_movement_rejects_unknown_type():
    with pytest.raises(ValidationError) as excinfo:
        StockMovement.from_document({"type": "teleport", "schemaVersion": 1})

    assert excinfo.value.field == "type"


def test_supplier_requires_company_name():
    with pytest.raises(ValidationError) as excinfo:
        Supplier.from_document({"name": "Ana"})

    assert excinfo.value.field == "companyName"


def test_supplier_status_defaults_to_active():
    supplier = Supplier.from_document({"companyName": "Parts Lda", "status": "paused"})

    assert supplier.status == "active"


def test_supplier_price_normalizes_currency():
    price = SupplierPrice.from_document({"supplierId": "s1", "currency": "usd"})

    assert price.currency == "USD"
    assert price.price_history == []


def test_client_requires_name():
    with pytest.raises(ValidationError):
        Client.from_document({"email": "a@example.com"})


def test_quotation_requires_client():
    with pytest.raises(ValidationError) as excinfo:
        Quotation.from_document({"items": []})

    assert excinfo.value.field == "clientId"


def test_email_sender_uses_from_key():
    email = EmailMessage.from_document({"messageId": "m1", "from": "ana@example.com"})

    assert email.sender == "ana@example.com"
    assert email.to_document()["from"] == "ana@example.com"


def test_calendar_event_default_summary():
    event = CalendarEvent.from_document({"start": "2024-05-01"})

    assert event.summary == "(No title)"


def test_to_dict_includes_id_without_schema_version():
    product = Product.from_document({"id": "p1", "name": "Bolt"})

    payload = product.to_dict()
    assert payload["id"] == "p1"
    assert "schemaVersion" not in payload


@pytest.mark.parametrize(
    "raw, expected",
    [("false", False), ("False", False), ("0", False), ("", False), (0, False), (None, False),
     ("true", True), ("yes", True), (1, True), (True, True)],
)
def test_location_is_main_parses_form_values(raw, expected):
    location = StockLocation.from_document({"name": "Van", "isMain": raw})

    assert location.is_main is expected


@pytest.mark.parametrize(
    "schema, document, field",
    [
        (StockLocation, {"name": "Van", "isMain": "maybe"}, "isMain"),
        (SupplierPrice, {"supplierId": "s1", "isPreferred": [True]}, "isPreferred"),
        (EmailMessage, {"messageId": "m1", "hasAttachments": 2}, "hasAttachments"),
        (CalendarEvent, {"isAllDay": "sometimes"}, "isAllDay"),
    ],
)
def test_flags_reject_unrecognized_values(schema, document, field):
    with pytest.raises(ValidationError) as excinfo:
        schema.from_document(document)

    assert excinfo.value.field == field


def test_calendar_event_attendees_must_be_a_list():
    with pytest.raises(ValidationError) as excinfo:
        CalendarEvent.from_document({"attendees": 5})

    assert excinfo.value.field == "attendees"


def test_calendar_event_attendees_drop_blanks():
    event = CalendarEvent.from_document({"attendees": [" a@example.com ", "", None]})

    assert event.attendees == ["a@example.com"]


def test_email_recipients_must_be_lists():
    with pytest.raises(ValidationError) as excinfo:
        EmailMessage.from_document({"messageId": "m1", "to": "ana@example.com"})

    assert excinfo.value.field == "to"


@pytest.mark.parametrize("items", ["abc", {"productId": "p1"}, ["p1"], [{"productId": "p1"}, 3]])
def test_quotation_items_must_be_objects(items):
    with pytest.raises(ValidationError) as excinfo:
        Quotation.from_document({"clientId": "c1", "items": items})

    assert excinfo.value.field == "items"


def test_supplier_price_history_must_be_objects():
    with pytest.raises(ValidationError) as excinfo:
        SupplierPrice.from_document({"supplierId": "s1", "priceHistory": "1.5"})

    assert excinfo.value.field == "priceHistory"


def test_legacy_movement_keeps_supplier_fields():
    movement = StockMovement.from_document(
        {
            "type": "in",
            "quantity": 6,
            "reason": "Purchase Order PO-00003",
            "supplierId": "s1",
            "supplierName": "Parts Lda",
            "createdAt": "2024-03-01T10:00:00Z",
        }
    )

    assert movement.type == "entry"
    assert movement.supplier_id == "s1"
    assert movement.supplier_name == "Parts Lda"
    assert movement.extra == {}
    document = movement.to_document()
    assert document["supplierId"] == "s1"
    assert document["supplierName"] == "Parts Lda"


def test_purchase_order_requires_supplier():
    with pytest.raises(ValidationError) as excinfo:
        PurchaseOrder.from_document({"items": []})

    assert excinfo.value.field == "supplierId"


def test_purchase_order_unknown_status_falls_back_to_pending():
    order = PurchaseOrder.from_document({"supplierId": "s1", "status": "shipped"})

    assert order.status == "pending"
    assert order.received_date is None


def test_invoice_defaults():
    invoice = Invoice.from_document({"clientId": "c1", "paymentStatus": "whatever"})

    assert invoice.status == "pending"
    assert invoice.payment_status == "unpaid"
    assert invoice.paid_amount == 0.0
