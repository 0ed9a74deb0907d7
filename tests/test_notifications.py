import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock import create_app
from allinstock.extensions import db
from allinstock.services import products, quotations
from allinstock.services.notifications import (
    NotificationPoller,
    build_notifications,
    get_poller,
)
from allinstock.store import get_store


COMPANY = "acme"
NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


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


def _sent_quotation(store, client_name, valid_until):
    quotation = quotations.create_quotation(
        store,
        COMPANY,
        {"clientId": "c1", "clientName": client_name, "validUntil": valid_until, "items": []},
    )
    quotations.set_quotation_status(store, COMPANY, quotation.id, "sent")
    return quotation


def test_low_stock_notification_uses_location_totals(store):
    products.create_product(store, COMPANY, {"name": "Bolt", "minStock": 5, "initialStock": 5})
    products.create_product(store, COMPANY, {"name": "Nut", "minStock": 5, "initialStock": 6})
    products.create_product(store, COMPANY, {"name": "Glue", "minStock": 0})

    notifications = build_notifications(store, COMPANY, now=NOW)

    assert [n["message"] for n in notifications] == ["Bolt (5/5)"]
    assert notifications[0]["severity"] == "warning"
    assert notifications[0]["type"] == "low-stock"


def test_expiring_quotations_within_window(store):
    _sent_quotation(store, "Soon", (NOW + timedelta(days=2)).isoformat())
    _sent_quotation(store, "Later", (NOW + timedelta(days=10)).isoformat())
    _sent_quotation(store, "Expired", (NOW - timedelta(days=2)).isoformat())
    draft = quotations.create_quotation(
        store,
        COMPANY,
        {"clientId": "c1", "clientName": "Draft", "validUntil": NOW.isoformat(), "items": []},
    )
    assert draft.status == "draft"

    notifications = build_notifications(store, COMPANY, now=NOW)

    assert [n["message"] for n in notifications] == ["Soon - 2 days"]
    assert notifications[0]["severity"] == "info"


def test_warnings_sort_before_info_then_newest_first(store):
    _sent_quotation(store, "Day1", (NOW + timedelta(days=1)).isoformat())
    _sent_quotation(store, "Day3", (NOW + timedelta(days=3)).isoformat())
    products.create_product(store, COMPANY, {"name": "Bolt", "minStock": 2})

    notifications = build_notifications(store, COMPANY, now=NOW)

    assert [n["type"] for n in notifications] == [
        "low-stock",
        "expiring-quotation",
        "expiring-quotation",
    ]
    assert notifications[1]["message"].startswith("Day3")


def test_poller_is_registered_but_not_started_in_tests(app):
    poller = get_poller(app)

    assert isinstance(poller, NotificationPoller)
    assert poller.scheduler.running is False


def test_poller_watch_refresh_and_unwatch(app, store):
    poller = get_poller(app)
    products.create_product(store, COMPANY, {"name": "Bolt", "minStock": 3, "initialStock": 1})

    result = poller.watch(COMPANY)

    assert poller.watching(COMPANY)
    assert result["count"] == 1
    assert poller.latest(COMPANY)["notifications"][0]["productId"] == result[
        "notifications"
    ][0]["productId"]

    job = poller.scheduler.get_job(NotificationPoller.job_id(COMPANY))
    assert job.trigger.interval == timedelta(minutes=5)

    poller.unwatch(COMPANY)

    assert not poller.watching(COMPANY)
    assert poller.latest(COMPANY) is None


def test_refresh_overwrites_latest_result(app, store):
    poller = get_poller(app)
    poller.refresh(COMPANY)
    assert poller.latest(COMPANY)["count"] == 0

    products.create_product(store, COMPANY, {"name": "Bolt", "minStock": 3})
    poller.refresh(COMPANY)

    assert poller.latest(COMPANY)["count"] == 1
