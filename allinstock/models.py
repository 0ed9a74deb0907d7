from datetime import datetime

from allinstock.extensions import db


class Document(db.Model):
    """A single JSON document addressed by its collection path and id."""

    __tablename__ = "document"
    __table_args__ = (
        db.UniqueConstraint("collection", "doc_id", name="uq_document_collection_doc_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(512), nullable=False, index=True)
    doc_id = db.Column(db.String(64), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self) -> dict:
        payload = dict(self.data or {})
        payload["id"] = self.doc_id
        return payload
