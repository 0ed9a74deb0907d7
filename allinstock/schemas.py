"""Versioned schemas for every stored document.

Documents are read through ``from_document``: the raw dict is migrated to
the current ``SCHEMA_VERSION``, split into known fields and ``extra``, then
normalized and validated. ``to_document`` writes camelCase keys plus
``schemaVersion``; ``extra`` is never written back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, ClassVar

from allinstock.errors import ValidationError
from allinstock.utils.formatters import coerce_quantity, parse_int, safe_number


LOCATION_TYPES = ("warehouse", "customer", "transit")
MOVEMENT_TYPES = ("entry", "exit", "transfer", "adjustment")
PARTY_STATUSES = ("active", "inactive")
QUOTATION_STATUSES = ("draft", "sent", "accepted", "rejected", "expired")
PURCHASE_ORDER_STATUSES = ("pending", "ordered", "received", "cancelled")
INVOICE_STATUSES = ("draft", "pending", "sent", "paid", "cancelled")
PAYMENT_STATUSES = ("unpaid", "partially_paid", "paid", "overdue")

_LEGACY_MOVEMENT_TYPES = {"in": "entry", "out": "exit", "adjust": "adjustment", "move": "transfer"}

Migration = Callable[[dict[str, Any]], dict[str, Any]]
_MIGRATIONS: dict[str, dict[int, Migration]] = {}


def migration(kind: str, from_version: int):
    def register(func: Migration) -> Migration:
        _MIGRATIONS.setdefault(kind, {})[from_version] = func
        return func

    return register


def migrate_document(kind: str, document: dict[str, Any], target_version: int) -> dict[str, Any]:
    payload = dict(document)
    version = parse_int(payload.get("schemaVersion"), 0)
    steps = _MIGRATIONS.get(kind, {})
    while version < target_version:
        step = steps.get(version)
        if step is not None:
            payload = step(payload)
        version += 1
    payload["schemaVersion"] = version
    return payload


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _choice(value, allowed: tuple[str, ...], default: str) -> str:
    text = _text(value).lower()
    return text if text in allowed else default


_TRUE_WORDS = ("true", "1", "yes", "on")
_FALSE_WORDS = ("false", "0", "no", "off", "")


def parse_flag(value, field_name: str) -> bool:
    """Read a boolean the way form posts send it; anything else is rejected."""

    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValidationError(f"{field_name} must be true or false", field=field_name)


def _string_list(value, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be a list", field=field_name)
    return [_text(entry) for entry in value if _text(entry)]


def _record_list(value, field_name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(entry, dict) for entry in value):
        raise ValidationError(f"{field_name} must be a list of objects", field=field_name)
    return [dict(entry) for entry in value]


class DocumentSchema:
    KIND: ClassVar[str] = ""
    SCHEMA_VERSION: ClassVar[int] = 1

    @classmethod
    def _key_map(cls) -> dict[str, str]:
        return {
            f.metadata.get("key") or _camel(f.name): f.name
            for f in fields(cls)
            if f.name != "extra"
        }

    @classmethod
    def from_document(cls, document: dict[str, Any] | None):
        payload = migrate_document(cls.KIND, document or {}, cls.SCHEMA_VERSION)
        key_map = cls._key_map()
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in payload.items():
            if key == "schemaVersion":
                continue
            if key in key_map:
                values[key_map[key]] = value
            else:
                extra[key] = value
        instance = cls(**values)
        instance.extra = extra
        instance.normalize()
        return instance

    def normalize(self) -> None:
        """Coerce and validate fields in place."""

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {}
        for key, name in self._key_map().items():
            if name == "id":
                continue
            document[key] = getattr(self, name)
        document["schemaVersion"] = self.SCHEMA_VERSION
        return document

    def to_dict(self) -> dict[str, Any]:
        payload = self.to_document()
        payload.pop("schemaVersion", None)
        payload["id"] = getattr(self, "id", None)
        return payload


@migration("product", 0)
def _product_v0(document: dict[str, Any]) -> dict[str, Any]:
    # Stock used to live on the product body; locations are authoritative.
    document.pop("stock", None)
    document.pop("initialStock", None)
    document.pop("totalStock", None)
    document.pop("stockLocations", None)
    return document


@dataclass
class Product(DocumentSchema):
    KIND: ClassVar[str] = "product"

    id: str | None = None
    name: str = ""
    reference: str = ""
    family: str = ""
    type: str = ""
    category: str = ""
    unit: str = "pieces"
    price: float = 0.0
    min_stock: int = 0
    supplier_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.name = _text(self.name)
        if not self.name:
            raise ValidationError("Product name is required", field="name")
        self.reference = _text(self.reference)
        self.family = _text(self.family)
        self.type = _text(self.type)
        self.category = _text(self.category)
        self.unit = _text(self.unit) or "pieces"
        self.price = max(safe_number(self.price), 0.0)
        self.min_stock = coerce_quantity(self.min_stock)
        self.supplier_id = _text(self.supplier_id) or None


@migration("stockLocation", 0)
def _stock_location_v0(document: dict[str, Any]) -> dict[str, Any]:
    document.setdefault("type", "warehouse")
    document.setdefault("isMain", False)
    return document


@dataclass
class StockLocation(DocumentSchema):
    KIND: ClassVar[str] = "stockLocation"

    id: str | None = None
    name: str = ""
    type: str = "warehouse"
    quantity: int = 0
    is_main: bool = False
    address: str = ""
    contact_person: str = ""
    contact_phone: str = ""
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.name = _text(self.name)
        if not self.name:
            raise ValidationError("Location name is required", field="name")
        self.type = _choice(self.type, LOCATION_TYPES, "warehouse")
        self.quantity = coerce_quantity(self.quantity)
        self.is_main = parse_flag(self.is_main, "isMain")
        self.address = _text(self.address)
        self.contact_person = _text(self.contact_person)
        self.contact_phone = _text(self.contact_phone)


@migration("stockMovement", 0)
def _stock_movement_v0(document: dict[str, Any]) -> dict[str, Any]:
    raw_type = _text(document.get("type")).lower()
    document["type"] = _LEGACY_MOVEMENT_TYPES.get(raw_type, raw_type)
    if not document.get("date") and document.get("createdAt"):
        document["date"] = document["createdAt"]
    return document


@dataclass
class StockMovement(DocumentSchema):
    KIND: ClassVar[str] = "stockMovement"

    id: str | None = None
    type: str = ""
    quantity: int = 0
    from_location: str = ""
    to_location: str = ""
    date: str | None = None
    user: str | None = None
    notes: str = ""
    reason: str = ""
    supplier_id: str | None = None
    supplier_name: str = ""
    purchase_order_id: str | None = None
    created_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.type = _text(self.type).lower()
        if self.type not in MOVEMENT_TYPES:
            raise ValidationError(
                f"Movement type must be one of: {', '.join(MOVEMENT_TYPES)}",
                field="type",
            )
        self.quantity = coerce_quantity(self.quantity)
        self.from_location = _text(self.from_location)
        self.to_location = _text(self.to_location)
        self.user = _text(self.user) or None
        self.notes = _text(self.notes)
        self.reason = _text(self.reason)
        self.supplier_id = _text(self.supplier_id) or None
        self.supplier_name = _text(self.supplier_name)
        self.purchase_order_id = _text(self.purchase_order_id) or None


@dataclass
class Supplier(DocumentSchema):
    KIND: ClassVar[str] = "supplier"

    id: str | None = None
    company_name: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    tax_id: str = ""
    address: str = ""
    payment_terms: str = ""
    delivery_time: str = ""
    status: str = "active"
    notes: str = ""
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.company_name = _text(self.company_name)
        if not self.company_name:
            raise ValidationError("Supplier company name is required", field="companyName")
        for attr in ("name", "email", "phone", "tax_id", "address", "payment_terms", "delivery_time", "notes"):
            setattr(self, attr, _text(getattr(self, attr)))
        self.status = _choice(self.status, PARTY_STATUSES, "active")


@dataclass
class SupplierPrice(DocumentSchema):
    KIND: ClassVar[str] = "supplierPrice"

    id: str | None = None
    supplier_id: str = ""
    supplier_reference: str = ""
    purchase_price: float = 0.0
    currency: str = "EUR"
    is_preferred: bool = False
    last_purchase_date: str | None = None
    last_purchase_price: float | None = None
    price_history: list[dict[str, Any]] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.supplier_id = _text(self.supplier_id)
        if not self.supplier_id:
            raise ValidationError("A supplier is required", field="supplierId")
        self.supplier_reference = _text(self.supplier_reference)
        self.purchase_price = max(safe_number(self.purchase_price), 0.0)
        self.currency = (_text(self.currency) or "EUR").upper()
        self.is_preferred = parse_flag(self.is_preferred, "isPreferred")
        if self.last_purchase_price is not None:
            self.last_purchase_price = safe_number(self.last_purchase_price)
        self.price_history = _record_list(self.price_history, "priceHistory")


@dataclass
class Client(DocumentSchema):
    KIND: ClassVar[str] = "client"

    id: str | None = None
    name: str = ""
    company_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    tax_id: str = ""
    status: str = "active"
    notes: str = ""
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.name = _text(self.name)
        if not self.name:
            raise ValidationError("Client name is required", field="name")
        for attr in ("company_name", "email", "phone", "address", "tax_id", "notes"):
            setattr(self, attr, _text(getattr(self, attr)))
        self.status = _choice(self.status, PARTY_STATUSES, "active")


@dataclass
class Quotation(DocumentSchema):
    KIND: ClassVar[str] = "quotation"

    id: str | None = None
    quotation_number: str = ""
    client_id: str = ""
    client_name: str = ""
    client_email: str = ""
    items: list[dict[str, Any]] = field(default_factory=list)
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0
    valid_until: str = ""
    notes: str = ""
    status: str = "draft"
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.client_id = _text(self.client_id)
        if not self.client_id:
            raise ValidationError("A client is required", field="clientId")
        self.client_name = _text(self.client_name)
        self.client_email = _text(self.client_email)
        self.items = _record_list(self.items, "items")
        self.subtotal = safe_number(self.subtotal)
        self.tax_rate = safe_number(self.tax_rate)
        self.tax_amount = safe_number(self.tax_amount)
        self.total = safe_number(self.total)
        self.valid_until = _text(self.valid_until)
        self.notes = _text(self.notes)
        self.status = _choice(self.status, QUOTATION_STATUSES, "draft")


@dataclass
class PurchaseOrder(DocumentSchema):
    KIND: ClassVar[str] = "purchaseOrder"

    id: str | None = None
    po_number: str = ""
    supplier_id: str = ""
    supplier_name: str = ""
    order_date: str = ""
    expected_date: str = ""
    items: list[dict[str, Any]] = field(default_factory=list)
    total: float = 0.0
    notes: str = ""
    status: str = "pending"
    received_date: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.supplier_id = _text(self.supplier_id)
        if not self.supplier_id:
            raise ValidationError("A supplier is required", field="supplierId")
        self.po_number = _text(self.po_number)
        self.supplier_name = _text(self.supplier_name)
        self.order_date = _text(self.order_date)
        self.expected_date = _text(self.expected_date)
        self.items = _record_list(self.items, "items")
        self.total = safe_number(self.total)
        self.notes = _text(self.notes)
        self.status = _choice(self.status, PURCHASE_ORDER_STATUSES, "pending")
        self.received_date = _text(self.received_date) or None


@dataclass
class Invoice(DocumentSchema):
    KIND: ClassVar[str] = "invoice"

    id: str | None = None
    invoice_number: str = ""
    quotation_id: str | None = None
    client_id: str = ""
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    client_address: str = ""
    date: str = ""
    due_date: str = ""
    items: list[dict[str, Any]] = field(default_factory=list)
    subtotal: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    notes: str = ""
    status: str = "pending"
    payment_status: str = "unpaid"
    payment_method: str = ""
    paid_amount: float = 0.0
    last_payment_date: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.client_id = _text(self.client_id)
        if not self.client_id:
            raise ValidationError("A client is required", field="clientId")
        self.invoice_number = _text(self.invoice_number)
        self.quotation_id = _text(self.quotation_id) or None
        for attr in (
            "client_name",
            "client_email",
            "client_phone",
            "client_address",
            "date",
            "due_date",
            "notes",
            "payment_method",
        ):
            setattr(self, attr, _text(getattr(self, attr)))
        self.items = _record_list(self.items, "items")
        self.subtotal = safe_number(self.subtotal)
        self.tax_rate = safe_number(self.tax_rate)
        self.tax_amount = safe_number(self.tax_amount)
        self.discount = max(safe_number(self.discount), 0.0)
        self.total = safe_number(self.total)
        self.status = _choice(self.status, INVOICE_STATUSES, "pending")
        self.payment_status = _choice(self.payment_status, PAYMENT_STATUSES, "unpaid")
        self.paid_amount = max(safe_number(self.paid_amount), 0.0)
        self.last_payment_date = _text(self.last_payment_date) or None


@dataclass
class EmailMessage(DocumentSchema):
    KIND: ClassVar[str] = "email"

    id: str | None = None
    message_id: str = ""
    thread_id: str = ""
    subject: str = ""
    sender: str = field(default="", metadata={"key": "from"})
    from_name: str = ""
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    date: str | None = None
    body: str = ""
    snippet: str = ""
    labels: list[str] = field(default_factory=list)
    has_attachments: bool = False
    contact_id: str | None = None
    contact_name: str | None = None
    contact_type: str | None = None
    synced_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.message_id = _text(self.message_id)
        if not self.message_id:
            raise ValidationError("Email message id is required", field="messageId")
        self.sender = _text(self.sender)
        self.from_name = _text(self.from_name)
        self.thread_id = _text(self.thread_id)
        self.subject = _text(self.subject)
        self.body = "" if self.body is None else str(self.body)
        self.snippet = _text(self.snippet)
        self.to = _string_list(self.to, "to")
        self.cc = _string_list(self.cc, "cc")
        self.labels = _string_list(self.labels, "labels")
        self.has_attachments = parse_flag(self.has_attachments, "hasAttachments")


@dataclass
class CalendarEvent(DocumentSchema):
    KIND: ClassVar[str] = "calendarEvent"

    id: str | None = None
    summary: str = ""
    description: str = ""
    location: str = ""
    start: str | None = None
    end: str | None = None
    attendees: list[str] = field(default_factory=list)
    type: str = ""
    source_id: str | None = None
    source_type: str | None = None
    is_all_day: bool = False
    google_event_id: str | None = None
    synced_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.summary = _text(self.summary) or "(No title)"
        self.description = _text(self.description)
        self.location = _text(self.location)
        self.attendees = _string_list(self.attendees, "attendees")
        self.is_all_day = parse_flag(self.is_all_day, "isAllDay")


@dataclass
class IntegrationConfig(DocumentSchema):
    KIND: ClassVar[str] = "integrationConfig"

    id: str | None = None
    provider: str = ""
    email: str = ""
    access_token: str = ""
    connected_at: str | None = None
    updated_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def normalize(self) -> None:
        self.provider = _text(self.provider)
        self.email = _text(self.email)
        self.access_token = _text(self.access_token)
        if not self.access_token:
            raise ValidationError("An access token is required", field="accessToken")
