from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Iterator

from ...errors import TenderVaultError
from ...observability.logging import get_logger
from ...repositories import audit_log_repo
from ...settings import settings
from ...shared import clock
from ..identity.actor import UNKNOWN, ActorContext

log = get_logger("audit")

SYSTEM_USER = "SYSTEM"


class AuditAction(str, Enum):
    AUTH_VERIFY = "AUTH_VERIFY"
    TENDER_CREATED = "TENDER_CREATED"
    TENDER_UPDATED = "TENDER_UPDATED"
    TENDER_DELETED = "TENDER_DELETED"
    TENDER_VIEWED = "TENDER_VIEWED"
    TENDER_LISTED = "TENDER_LISTED"
    UPLOAD_URL_GENERATED = "UPLOAD_URL_GENERATED"
    BID_SUBMITTED = "BID_SUBMITTED"
    BIDS_LISTED = "BIDS_LISTED"
    DOWNLOAD_URL_GENERATED = "DOWNLOAD_URL_GENERATED"
    DOWNLOAD_DENIED_TIMELOCKED = "DOWNLOAD_DENIED_TIMELOCKED"
    VERSIONS_LISTED = "VERSIONS_LISTED"
    VERSION_RESTORED = "VERSION_RESTORED"
    BID_STATUS_UPDATED = "BID_STATUS_UPDATED"
    BID_SCORED = "BID_SCORED"
    AUDIT_LOG_VIEWED = "AUDIT_LOG_VIEWED"


class AuditResult(str, Enum):
    SUCCESS = "SUCCESS"
    DENIED = "DENIED"
    ERROR = "ERROR"


def _metadata(raw: dict[str, Any] | None) -> dict[str, str] | None:
    if not raw:
        return None
    out: dict[str, str] = {}
    for k, v in raw.items():
        if v is None:
            continue
        if isinstance(v, (list, tuple, set)):
            out[str(k)] = ",".join(str(x) for x in v)
        else:
            out[str(k)] = str(v)
    return out or None


def build_event(
    *,
    action: AuditAction | str,
    result: AuditResult | str,
    actor: ActorContext | None,
    tender_id: str | None = None,
    file_key: str | None = None,
    version_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    now = clock.utcnow()
    expiry = now + timedelta(days=max(1, int(settings.audit_retention_days)))
    event: dict[str, Any] = {
        "auditId": str(uuid.uuid4()),
        "timestamp": clock.to_iso(now),
        "userId": actor.id if actor else SYSTEM_USER,
        "userRole": actor.role_label if actor else SYSTEM_USER,
        "action": AuditAction(action).value,
        "tenderId": tender_id,
        "fileKey": file_key,
        "versionId": version_id,
        "ipAddress": actor.ip if actor else UNKNOWN,
        "userAgent": actor.user_agent if actor else UNKNOWN,
        "result": AuditResult(result).value,
        "metadata": _metadata(metadata),
        "retentionExpiry": int(expiry.timestamp()),
    }
    # Sparse GSI keys: omit absent attributes instead of writing nulls.
    return {k: v for k, v in event.items() if v is not None}


def record(
    *,
    action: AuditAction | str,
    result: AuditResult | str,
    actor: ActorContext | None,
    tender_id: str | None = None,
    file_key: str | None = None,
    version_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """
    Append one audit event. Never raises.

    The write is attempted exactly once; on failure the event is logged
    locally and dropped. Returns the stored event, or None when it was lost.
    """
    try:
        event = build_event(
            action=action,
            result=result,
            actor=actor,
            tender_id=tender_id,
            file_key=file_key,
            version_id=version_id,
            metadata=metadata,
        )
        audit_log_repo.put_event(event)
        return event
    except Exception as e:
        log.error(
            "audit_write_failed",
            action=str(getattr(action, "value", action)),
            result=str(getattr(result, "value", result)),
            user_id=actor.id if actor else SYSTEM_USER,
            tender_id=tender_id,
            error=str(e) or type(e).__name__,
            error_type=type(e).__name__,
        )
        return None


@dataclass
class AuditScope:
    """What the operation learned while running; recorded when the scope exits."""

    action: AuditAction
    tender_id: str | None = None
    file_key: str | None = None
    version_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    # A sealed download is recorded under its own action.
    denied_action: AuditAction | None = None


@contextmanager
def audited(
    action: AuditAction,
    actor: ActorContext | None,
    *,
    tender_id: str | None = None,
    file_key: str | None = None,
    version_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Iterator[AuditScope]:
    """
    Audit exactly one event for the wrapped operation attempt.

    Normal exit records SUCCESS. A TenderVaultError records its own
    ``audit_result`` (DENIED for role and time-lock refusals); anything else
    records ERROR. The exception always propagates unchanged.
    """
    scope = AuditScope(
        action=action,
        tender_id=tender_id,
        file_key=file_key,
        version_id=version_id,
        metadata=dict(metadata or {}),
    )

    def _emit(result: AuditResult, act: AuditAction) -> None:
        record(
            action=act,
            result=result,
            actor=actor,
            tender_id=scope.tender_id,
            file_key=scope.file_key,
            version_id=scope.version_id,
            metadata=scope.metadata,
        )

    try:
        yield scope
    except TenderVaultError as e:
        result = AuditResult(e.audit_result)
        scope.metadata.setdefault("errorCode", e.code)
        scope.metadata.setdefault("reason", e.message)
        act = scope.denied_action if (result is AuditResult.DENIED and scope.denied_action) else scope.action
        _emit(result, act)
        raise
    except Exception as e:
        scope.metadata.setdefault("errorType", type(e).__name__)
        _emit(AuditResult.ERROR, scope.action)
        raise
    else:
        _emit(AuditResult.SUCCESS, scope.action)
