from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from . import __version__
from .db.dynamodb.errors import DdbError, InvalidNextToken
from .error_responses import GENERIC_5XX_MESSAGE, error_response
from .errors import TenderVaultError
from .middleware.access_log import AccessLogMiddleware
from .middleware.auth import AuthMiddleware
from .middleware.cors import cors_options
from .middleware.request_context import RequestContextMiddleware
from .observability.logging import configure_logging, get_logger
from .routers.audit_logs import router as audit_logs_router
from .routers.bids import router as bids_router
from .routers.health import router as health_router
from .routers.tenders import router as tenders_router
from .settings import settings

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def create_app() -> FastAPI:
    # Logging must be configured before the app starts handling requests.
    configure_logging(level="INFO")
    log = get_logger("startup")

    app = FastAPI(
        title="TenderVault API",
        version=__version__,
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )

    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Middlewares (order matters; last added is outermost)
    # Auth runs inside CORS so auth failures still get CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/", "/health"})
    app.add_middleware(CORSMiddleware, **cors_options(settings))
    # Outermost: request context (request-id) wraps everything.
    app.add_middleware(RequestContextMiddleware)

    # Error handlers
    app.add_exception_handler(TenderVaultError, _domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _ddb_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    # Routes
    app.include_router(health_router)
    app.include_router(tenders_router)
    app.include_router(bids_router)
    app.include_router(audit_logs_router)

    return app


def _domain_error_handler(request: Request, exc: TenderVaultError) -> Response:
    if exc.status_code >= 500:
        get_logger("errors").error(
            "domain_internal_error",
            code=exc.code,
            error=exc.message,
            path=request.url.path,
        )
    return error_response(
        request=request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        fields=exc.fields,
        extra=exc.extra(),
    )


def _ddb_error_handler(request: Request, exc: DdbError) -> Response:
    # The only caller-caused storage error is a bad continuation token.
    # Any other rejected store request is a 500.
    if isinstance(exc, InvalidNextToken):
        return error_response(
            request=request,
            status_code=400,
            code="VALIDATION_ERROR",
            message=exc.message,
            fields=[{"field": "nextToken", "message": exc.message}],
        )

    get_logger("ddb").error("ddb_error", error=exc.message, **exc.log_fields())
    return error_response(
        request=request,
        status_code=500,
        code="INTERNAL_ERROR",
        message=GENERIC_5XX_MESSAGE,
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)
    message = str(detail) if isinstance(detail, str) and detail else "Request failed"
    if status_code == 404:
        message = "Route not found"
    return error_response(
        request=request,
        status_code=status_code,
        code=_HTTP_CODES.get(status_code, "INTERNAL_ERROR" if status_code >= 500 else "ERROR"),
        message=message,
    )


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    fields: list[dict[str, str]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        path = ".".join(str(x) for x in loc if x not in ("body", "query", "path"))
        fields.append({"field": path or "body", "message": str(e.get("msg") or "Invalid value")})
    return error_response(
        request=request,
        status_code=400,
        code="VALIDATION_ERROR",
        message="Request validation failed",
        fields=fields,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    # Operators get the traceback; callers get a generic body.
    try:
        actor = getattr(getattr(request, "state", None), "actor", None)
        get_logger("unhandled").exception(
            "unhandled_exception",
            http_method=str(getattr(request, "method", "") or "").upper() or None,
            path=str(getattr(getattr(request, "url", None), "path", "") or ""),
            user_sub=getattr(actor, "id", None),
        )
    except Exception:
        # Never let logging crash the exception handler.
        pass

    return error_response(
        request=request,
        status_code=500,
        code="INTERNAL_ERROR",
        message=GENERIC_5XX_MESSAGE,
    )


app = create_app()
