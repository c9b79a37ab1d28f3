from __future__ import annotations

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.cognito import CognitoAuthError, verify_bearer_token
from ..error_responses import error_response
from ..modules.audit.audit_sink import AuditAction, AuditResult, record
from ..modules.identity.actor import UNKNOWN, ActorContext, actor_from_claims
from ..observability.logging import get_logger

PUBLIC_PATHS = frozenset({"/", "/health"})


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS


def client_ip(request: Request) -> str:
    # Behind API Gateway/ALB the caller is the first X-Forwarded-For hop.
    fwd = request.headers.get("x-forwarded-for") or ""
    first = fwd.split(",")[0].strip()
    if first:
        return first
    client = getattr(request, "client", None)
    return str(getattr(client, "host", "") or "") or UNKNOWN


def user_agent(request: Request) -> str:
    return str(request.headers.get("user-agent") or "").strip() or UNKNOWN


def _anonymous(request: Request) -> ActorContext:
    return actor_from_claims(None, ip=client_ip(request), user_agent=user_agent(request))


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Bearer-token enforcement as ASGI middleware.

    Every verification attempt is audited as AUTH_VERIFY. Add this *before*
    CORSMiddleware so CORS wraps auth failures too.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        # Let CORS preflight through without auth.
        if request.method.upper() == "OPTIONS" or is_public_path(path):
            return await call_next(request)

        log = get_logger("auth_middleware")
        auth = request.headers.get("authorization") or ""
        reason: str | None = None
        token = ""
        if not auth.strip():
            reason = "Missing Authorization header"
        else:
            parts = auth.split()
            if len(parts) == 2 and parts[0].lower() == "bearer":
                token = parts[1].strip()
            elif len(parts) == 1 and parts[0].lower() != "bearer":
                token = parts[0].strip()
            if not token:
                reason = "Empty token"

        if reason is None:
            try:
                # A cold JWKS cache means a blocking HTTP fetch.
                user = await run_in_threadpool(verify_bearer_token, token)
            except CognitoAuthError as e:
                reason = str(e) or "Invalid token"
            except Exception as e:
                log.exception("auth_middleware_error", path=path)
                reason = type(e).__name__
            else:
                actor = actor_from_claims(
                    user.claims, ip=client_ip(request), user_agent=user_agent(request)
                )
                request.state.user = user
                request.state.actor = actor
                await run_in_threadpool(
                    record, action=AuditAction.AUTH_VERIFY, result=AuditResult.SUCCESS, actor=actor
                )
                return await call_next(request)

        # Log auth failures (avoid PII)
        log.info("auth_middleware_denied", path=path, reason=reason)
        await run_in_threadpool(
            record,
            action=AuditAction.AUTH_VERIFY,
            result=AuditResult.DENIED,
            actor=_anonymous(request),
            metadata={"reason": reason, "path": path},
        )
        return error_response(
            request=request,
            status_code=401,
            code="UNAUTHORIZED",
            message="Unauthorized",
        )
