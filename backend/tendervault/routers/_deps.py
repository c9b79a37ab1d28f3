from __future__ import annotations

from fastapi import Request

from ..middleware.auth import client_ip, user_agent
from ..modules.identity.actor import ActorContext, actor_from_claims


def get_actor(request: Request) -> ActorContext:
    """The caller as resolved by AuthMiddleware (an anonymous actor if it did not run)."""
    actor = getattr(request.state, "actor", None)
    if isinstance(actor, ActorContext):
        return actor
    user = getattr(request.state, "user", None)
    return actor_from_claims(
        getattr(user, "claims", None), ip=client_ip(request), user_agent=user_agent(request)
    )
