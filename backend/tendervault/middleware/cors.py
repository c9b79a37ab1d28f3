from __future__ import annotations

from typing import Any

from ..settings import Settings

ALLOWED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-Request-Id"]


def cors_options(settings: Settings) -> dict[str, Any]:
    """
    CORSMiddleware kwargs from ALLOWED_ORIGINS.

    A wildcard allow-list cannot be combined with credentials, so ``*``
    switches credentials off; bearer tokens travel in a header anyway.
    """
    origins = settings.allowed_origin_list() or ["*"]
    wildcard = "*" in origins
    return {
        "allow_origins": ["*"] if wildcard else sorted(set(origins)),
        "allow_credentials": not wildcard,
        "allow_methods": ALLOWED_METHODS,
        "allow_headers": ALLOWED_HEADERS,
        "expose_headers": ["X-Request-Id"],
        "max_age": 3000,
    }
