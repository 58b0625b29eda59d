import uuid

from fastapi import Request


def _request_meta(request: Request) -> dict:
    meta = {"request_id": getattr(request.state, "request_id", None) or str(uuid.uuid4())}
    entry_id = getattr(request.state, "entry_id", None)
    if entry_id is not None:
        meta["entry_id"] = str(entry_id)
    return meta


def envelope(request: Request, data: dict | None, error: dict | None = None) -> dict:
    return {
        "data": data,
        "meta": _request_meta(request),
        "error": error,
    }


def exception_envelope(request: Request, status_code: int, message: str, code: str, details: dict | None = None) -> dict:
    return {
        "success": False,
        "errors": [{"code": code, "message": message, "details": details or {}}],
        "meta": {**_request_meta(request), "status_code": status_code},
    }
