from __future__ import annotations

from enum import Enum
from typing import Any, Iterable


class Role(str, Enum):
    ADMIN = "tv-admin"
    EVALUATOR = "tv-evaluator"
    BIDDER = "tv-bidder"


# Explicit precedence for the primary role. Claim order is not stable across
# identity providers, so it is never used.
ROLE_PRECEDENCE: tuple[Role, ...] = (Role.ADMIN, Role.EVALUATOR, Role.BIDDER)

NO_ROLE = "NONE"


def normalize_roles(value: Any) -> tuple[Role, ...]:
    """
    Normalize a ``cognito:groups`` claim into known roles, ordered by precedence.

    Accepts a list/tuple, a single string, or a JSON-ish comma/space separated
    string (API Gateway flattens list claims that way). Unknown groups are
    dropped.
    """
    groups_in: Iterable[Any]
    if isinstance(value, (list, tuple, set, frozenset)):
        groups_in = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip().strip("[]")
        groups_in = [g.strip().strip('"') for g in raw.replace(",", " ").split()]
    else:
        groups_in = []

    seen: set[Role] = set()
    for g in groups_in:
        s = str(g or "").strip().lower()
        try:
            seen.add(Role(s))
        except ValueError:
            continue
    return tuple(r for r in ROLE_PRECEDENCE if r in seen)


def primary_role(roles: Iterable[Role]) -> Role | None:
    rr = set(roles)
    for r in ROLE_PRECEDENCE:
        if r in rr:
            return r
    return None
