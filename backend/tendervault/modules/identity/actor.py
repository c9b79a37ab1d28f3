from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .roles import NO_ROLE, Role, normalize_roles, primary_role

UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Who is calling, as far as every domain manager is concerned."""

    id: str
    roles: tuple[Role, ...]
    primary_role: Role | None
    email: str
    ip: str
    user_agent: str

    @property
    def role_label(self) -> str:
        return self.primary_role.value if self.primary_role else NO_ROLE

    def has_any(self, *roles: Role) -> bool:
        return any(r in self.roles for r in roles)


def actor_from_claims(
    claims: dict[str, Any] | None,
    *,
    ip: str | None = None,
    user_agent: str | None = None,
) -> ActorContext:
    c = claims if isinstance(claims, dict) else {}
    roles = normalize_roles(c.get("cognito:groups"))
    sub = str(c.get("sub") or "").strip() or UNKNOWN
    email = (
        str(c.get("email") or "").strip()
        or str(c.get("username") or "").strip()
        or str(c.get("cognito:username") or "").strip()
        or sub
    )
    return ActorContext(
        id=sub,
        roles=roles,
        primary_role=primary_role(roles),
        email=email,
        ip=str(ip or "").strip() or UNKNOWN,
        user_agent=str(user_agent or "").strip() or UNKNOWN,
    )
