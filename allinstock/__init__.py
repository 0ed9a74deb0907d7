from flask import Flask
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from config import Config
from .extensions import db
from . import models  # ensure models are registered with SQLAlchemy
from .routes import (
    calendar,
    clients,
    email,
    errors,
    health,
    invoices,
    notifications,
    products,
    purchase_orders,
    quotations,
    reports,
    suppliers,
)
from .services.notifications import initialize_notification_poller
from .store import init_store
from .utils.logging import configure_logging


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    configure_logging(app)
    db.init_app(app)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError:
            app.config["DATABASE_AVAILABLE"] = False
            app.logger.exception("Database initialization error")
            db.session.remove()

    init_store(app)

    app.register_blueprint(errors.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(products.bp)
    app.register_blueprint(suppliers.bp)
    app.register_blueprint(clients.bp)
    app.register_blueprint(quotations.bp)
    app.register_blueprint(purchase_orders.bp)
    app.register_blueprint(invoices.bp)
    app.register_blueprint(reports.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(email.bp)
    app.register_blueprint(calendar.bp)

    initialize_notification_poller(app)

    return app
