from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from werkzeug.exceptions import HTTPException

from allinstock.errors import (
    CredentialsExpiredError,
    IntegrationError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from allinstock.extensions import db

bp = Blueprint("errors", __name__)


@bp.app_errorhandler(ValidationError)
def handle_validation_error(error: ValidationError):
    return jsonify({"error": error.message, "field": error.field}), 400


@bp.app_errorhandler(NotFoundError)
def handle_not_found(error: NotFoundError):
    return jsonify({"error": str(error)}), 404


@bp.app_errorhandler(CredentialsExpiredError)
def handle_credentials_expired(error: CredentialsExpiredError):
    current_app.logger.info("Third-party credentials rejected: %s", error)
    return jsonify({"error": str(error), "reconnect": True}), 401


@bp.app_errorhandler(IntegrationError)
def handle_integration_error(error: IntegrationError):
    current_app.logger.warning("Integration failure: %s", error)
    return jsonify({"error": str(error), "status": error.status}), 502


@bp.app_errorhandler(StoreError)
def handle_store_error(error: StoreError):
    current_app.logger.error("Store failure: %s", error)
    return jsonify({"error": "The operation could not be completed. Please try again."}), 503


@bp.app_errorhandler(Exception)
def handle_exception(error: Exception):
    # Allow HTTP errors that are not 500 to propagate to their default handlers.
    if isinstance(error, HTTPException) and error.code != 500:
        return jsonify({"error": error.description}), error.code

    db.session.rollback()
    current_app.logger.exception("Unhandled exception", exc_info=error)
    return jsonify({"error": "Internal Server Error"}), 500
