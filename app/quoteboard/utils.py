from __future__ import annotations

from flask import Request


def request_payload(req: Request) -> dict:
    """JSON body if there is one, else form fields."""
    if req.is_json:
        data = req.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return req.form.to_dict()


def first_present(payload: dict, *keys: str):
    """Value of the first key present in payload (supports camelCase and snake_case clients)."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None
