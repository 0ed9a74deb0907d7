"""Document store over nested, per-company collections.

Collections are addressed by slash-joined paths such as
``companies/acme/products/p1/stockLocations``. Each operation is its own
round-trip and commits on its own; nothing spans calls.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from allinstock.errors import StoreError
from allinstock.extensions import db
from allinstock.models import Document


logger = logging.getLogger(__name__)

STORE_EXTENSION_KEY = "document_store"


def company_path(company_id: str, *segments: str) -> str:
    if not company_id:
        raise ValueError("A company id is required.")
    parts = ["companies", str(company_id)]
    parts.extend(str(segment) for segment in segments)
    return "/".join(parts)


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


class DocumentStore:
    """Contract every store backend implements."""

    def list(self, path: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def get(self, path: str, doc_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def create(self, path: str, data: dict[str, Any]) -> str:
        raise NotImplementedError

    def set(self, path: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError

    def update(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, path: str, doc_id: str) -> None:
        raise NotImplementedError


def _clean(data: dict[str, Any]) -> dict[str, Any]:
    payload = dict(data or {})
    payload.pop("id", None)
    return payload


class SqlDocumentStore(DocumentStore):
    """Store documents as JSON rows through Flask-SQLAlchemy."""

    def _commit(self, action: str, path: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Document store %s failed for %s", action, path)
            raise StoreError(f"Could not {action} document in {path}.") from exc

    def _row(self, path: str, doc_id: str) -> Document | None:
        try:
            return Document.query.filter_by(collection=path, doc_id=str(doc_id)).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Document store read failed for %s/%s", path, doc_id)
            raise StoreError(f"Could not read document from {path}.") from exc

    def list(self, path: str) -> list[dict[str, Any]]:
        try:
            rows = (
                Document.query.filter_by(collection=path)
                .order_by(Document.id)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Document store list failed for %s", path)
            raise StoreError(f"Could not list documents in {path}.") from exc
        return [row.to_dict() for row in rows]

    def get(self, path: str, doc_id: str) -> dict[str, Any] | None:
        row = self._row(path, doc_id)
        return row.to_dict() if row is not None else None

    def create(self, path: str, data: dict[str, Any]) -> str:
        doc_id = new_document_id()
        db.session.add(Document(collection=path, doc_id=doc_id, data=_clean(data)))
        self._commit("create", path)
        return doc_id

    def set(self, path: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> None:
        row = self._row(path, doc_id)
        payload = _clean(data)
        if row is None:
            db.session.add(Document(collection=path, doc_id=str(doc_id), data=payload))
        elif merge:
            row.data = {**(row.data or {}), **payload}
        else:
            row.data = payload
        self._commit("write", path)

    def update(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        row = self._row(path, doc_id)
        if row is None:
            raise StoreError(f"No document {doc_id} in {path}.")
        # Reassign so the JSON column registers the change.
        row.data = {**(row.data or {}), **_clean(data)}
        self._commit("update", path)

    def delete(self, path: str, doc_id: str) -> None:
        row = self._row(path, doc_id)
        if row is None:
            return
        db.session.delete(row)
        self._commit("delete", path)


def init_store(app, store: DocumentStore | None = None) -> DocumentStore:
    store = store or SqlDocumentStore()
    app.extensions[STORE_EXTENSION_KEY] = store
    return store


def get_store() -> DocumentStore:
    return current_app.extensions[STORE_EXTENSION_KEY]
