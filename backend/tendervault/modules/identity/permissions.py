from __future__ import annotations

from enum import Enum

from ...errors import AuthDenied
from .actor import ActorContext
from .roles import Role


class Operation(str, Enum):
    CREATE_TENDER = "create_tender"
    UPDATE_TENDER = "update_tender"
    DELETE_TENDER = "delete_tender"
    LIST_TENDERS = "list_tenders"
    GET_TENDER = "get_tender"
    REQUEST_UPLOAD_URL = "request_upload_url"
    LIST_BIDS = "list_bids"
    DOWNLOAD_BID = "download_bid"
    LIST_VERSIONS = "list_versions"
    RESTORE_VERSION = "restore_version"
    SET_BID_STATUS = "set_bid_status"
    SCORE_BID = "score_bid"
    LIST_AUDIT_LOG = "list_audit_log"


_ADMIN = frozenset({Role.ADMIN})
_ANY = frozenset({Role.ADMIN, Role.BIDDER, Role.EVALUATOR})
_REVIEWERS = frozenset({Role.ADMIN, Role.EVALUATOR})

ALLOWED_ROLES: dict[Operation, frozenset[Role]] = {
    Operation.CREATE_TENDER: _ADMIN,
    Operation.UPDATE_TENDER: _ADMIN,
    Operation.DELETE_TENDER: _ADMIN,
    Operation.LIST_TENDERS: _ANY,
    Operation.GET_TENDER: _ANY,
    Operation.REQUEST_UPLOAD_URL: frozenset({Role.BIDDER}),
    Operation.LIST_BIDS: _REVIEWERS,
    Operation.DOWNLOAD_BID: _REVIEWERS,
    Operation.LIST_VERSIONS: _ADMIN,
    Operation.RESTORE_VERSION: _ADMIN,
    Operation.SET_BID_STATUS: _ADMIN,
    Operation.SCORE_BID: _REVIEWERS,
    Operation.LIST_AUDIT_LOG: _ADMIN,
}

_DENIAL_MESSAGES: dict[Operation, str] = {
    Operation.CREATE_TENDER: "Only procurement officers can create tenders",
    Operation.UPDATE_TENDER: "Only procurement officers can update tenders",
    Operation.DELETE_TENDER: "Only procurement officers can delete tenders",
    Operation.REQUEST_UPLOAD_URL: "Only bidders can submit bids",
    Operation.LIST_BIDS: "Only officers and evaluators can view bids",
    Operation.DOWNLOAD_BID: "Only officers and evaluators can download bids",
    Operation.LIST_VERSIONS: "Only officers can view version history",
    Operation.RESTORE_VERSION: "Only officers can restore versions",
    Operation.SET_BID_STATUS: "Only officers can update bid status",
    Operation.SCORE_BID: "Only evaluators and officers can score bids",
    Operation.LIST_AUDIT_LOG: "Only officers can view audit logs",
}


def is_allowed(actor: ActorContext, op: Operation) -> bool:
    allowed = ALLOWED_ROLES.get(op, frozenset())
    return any(r in allowed for r in actor.roles)


def require(actor: ActorContext, op: Operation) -> None:
    """Raise AuthDenied unless one of the actor's roles may perform ``op``."""
    if is_allowed(actor, op):
        return
    if not actor.roles:
        raise AuthDenied("No valid role found")
    raise AuthDenied(_DENIAL_MESSAGES.get(op, "Insufficient role"))
