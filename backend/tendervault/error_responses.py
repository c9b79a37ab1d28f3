from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .settings import get_settings
from .shared import clock

GENERIC_5XX_MESSAGE = "An unexpected error occurred"


def _request_id(request: Request) -> str:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        return str(rid)
    hdr = request.headers.get("x-request-id") or request.headers.get("X-Request-Id")
    return str(hdr) if hdr else "unknown"


def error_payload(
    *,
    request: Request,
    code: str,
    message: str,
    fields: list[dict[str, Any]] | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": code,
        "message": message,
        "requestId": _request_id(request),
        "timestamp": clock.now_iso(),
    }
    if fields:
        payload["fields"] = fields
    if extra:
        # Extension members (e.g. unlocksAt) never shadow the base keys.
        for k, v in extra.items():
            payload.setdefault(k, v)
    return payload


def error_response(
    *,
    request: Request,
    status_code: int,
    code: str,
    message: str,
    fields: list[dict[str, Any]] | None = None,
    extra: dict[str, Any] | None = None,
) -> ORJSONResponse:
    # Never leak internal details in production for server errors.
    safe_message = message
    if int(status_code) >= 500 and get_settings().is_production:
        safe_message = GENERIC_5XX_MESSAGE

    return ORJSONResponse(
        status_code=int(status_code),
        content=error_payload(
            request=request,
            code=code,
            message=safe_message,
            fields=fields,
            extra=extra,
        ),
    )
