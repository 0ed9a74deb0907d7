"""Low-stock and expiring-quotation notifications.

Notifications are never stored. ``build_notifications`` recomputes the whole
set; ``NotificationPoller`` calls it on a fixed interval per watched company
and keeps only the latest result.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from allinstock.errors import AllInStockError
from allinstock.services import products
from allinstock.services.quotations import quotations_by_status
from allinstock.services.stock_summary import low_stock
from allinstock.store import DocumentStore, get_store
from allinstock.utils.formatters import parse_timestamp


logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"warning": 0, "info": 1}
DEFAULT_EXPIRY_WINDOW_DAYS = 3
DEFAULT_POLL_MINUTES = 5
POLLER_EXTENSION_KEY = "notification_poller"

_SECONDS_PER_DAY = 24 * 60 * 60


def days_until(valid_until: datetime, now: datetime) -> int:
    return math.ceil((valid_until - now).total_seconds() / _SECONDS_PER_DAY)


def _sort_key(notification: dict[str, Any]):
    timestamp = parse_timestamp(notification["timestamp"])
    return (SEVERITY_ORDER.get(notification["severity"], 99), -timestamp.timestamp())


def build_notifications(
    store: DocumentStore,
    company_id: str,
    now: datetime | None = None,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> list[dict[str, Any]]:
    now = now or datetime.now(timezone.utc)
    notifications: list[dict[str, Any]] = []

    for view in low_stock(products.list_products(store, company_id)):
        notifications.append(
            {
                "id": f"low-stock-{view.product.id}",
                "type": "low-stock",
                "title": "Low Stock",
                "message": f"{view.product.name} ({view.total}/{view.product.min_stock})",
                "productId": view.product.id,
                "timestamp": now.isoformat(),
                "severity": "warning",
            }
        )

    for quotation in quotations_by_status(store, company_id, "sent"):
        valid_until = parse_timestamp(quotation.valid_until)
        if valid_until is None:
            continue
        remaining = days_until(valid_until, now)
        if 0 <= remaining <= window_days:
            notifications.append(
                {
                    "id": f"expiring-quotation-{quotation.id}",
                    "type": "expiring-quotation",
                    "title": "Expiring Quotation",
                    "message": f"{quotation.client_name} - {remaining} days",
                    "quotationId": quotation.id,
                    "timestamp": valid_until.isoformat(),
                    "severity": "info",
                }
            )

    notifications.sort(key=_sort_key)
    return notifications


class NotificationPoller:
    """Refresh notifications for each watched company on an interval."""

    def __init__(self, app, scheduler: BackgroundScheduler | None = None) -> None:
        self.app = app
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.interval_minutes = app.config.get("NOTIFICATION_POLL_MINUTES", DEFAULT_POLL_MINUTES)
        self.window_days = app.config.get(
            "QUOTATION_EXPIRY_WINDOW_DAYS", DEFAULT_EXPIRY_WINDOW_DAYS
        )
        self._latest: dict[str, dict[str, Any]] = {}

    @staticmethod
    def job_id(company_id: str) -> str:
        return f"notifications-{company_id}"

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def watch(self, company_id: str) -> dict[str, Any] | None:
        self.scheduler.add_job(
            self.refresh,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.job_id(company_id),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            args=[company_id],
        )
        return self.refresh(company_id)

    def unwatch(self, company_id: str) -> None:
        if self.scheduler.get_job(self.job_id(company_id)) is not None:
            self.scheduler.remove_job(self.job_id(company_id))
        self._latest.pop(company_id, None)

    def watching(self, company_id: str) -> bool:
        return self.scheduler.get_job(self.job_id(company_id)) is not None

    def latest(self, company_id: str) -> dict[str, Any] | None:
        return self._latest.get(company_id)

    def refresh(self, company_id: str) -> dict[str, Any] | None:
        with self.app.app_context():
            try:
                notifications = build_notifications(
                    get_store(), company_id, window_days=self.window_days
                )
            except AllInStockError:
                logger.exception("Notification refresh failed for company %s", company_id)
                return self._latest.get(company_id)

        result = {
            "companyId": company_id,
            "refreshedAt": datetime.now(timezone.utc).isoformat(),
            "count": len(notifications),
            "notifications": notifications,
        }
        self._latest[company_id] = result
        return result


def initialize_notification_poller(app) -> NotificationPoller | None:
    if app.extensions.get(POLLER_EXTENSION_KEY) is not None:
        return app.extensions[POLLER_EXTENSION_KEY]

    poller = NotificationPoller(app)
    app.extensions[POLLER_EXTENSION_KEY] = poller
    if app.config.get("TESTING") or not app.config.get("NOTIFICATIONS_ENABLED", True):
        logger.info("Notification polling disabled")
        return poller

    poller.start()
    return poller


def get_poller(app) -> NotificationPoller | None:
    return app.extensions.get(POLLER_EXTENSION_KEY)
