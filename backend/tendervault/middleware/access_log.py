from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.logging import get_logger
from .auth import client_ip


def _actor_id(request: Request) -> str | None:
    actor = getattr(getattr(request, "state", None), "actor", None)
    return getattr(actor, "id", None) if actor else None


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One structured line per request. Query strings are not logged; presigned
    URLs only ever appear in response bodies.
    """

    def __init__(self, app, *, exclude_paths: set[str] | None = None):
        super().__init__(app)
        self._exclude = exclude_paths or set()
        self._log = get_logger("access")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self._exclude:
            return await call_next(request)

        start = time.perf_counter()
        method = request.method.upper()
        ip = client_ip(request)

        try:
            response = await call_next(request)
        except Exception:
            self._log.exception(
                "request_error",
                http_method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                client_ip=ip,
                user_sub=_actor_id(request),
            )
            raise

        self._log.info(
            "request",
            http_method=method,
            path=path,
            status_code=int(getattr(response, "status_code", 0) or 0),
            duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
            client_ip=ip,
            user_sub=_actor_id(request),
        )
        return response
