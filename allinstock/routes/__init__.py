from __future__ import annotations

from typing import Any

from flask import request

from allinstock.errors import ValidationError


def json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload
