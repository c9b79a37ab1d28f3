from __future__ import annotations

import base64
import binascii
import json
from decimal import Decimal
from typing import Any

from .errors import InvalidNextToken


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    raise TypeError(f"Unsupported key value: {type(value).__name__}")


def encode_next_token(last_evaluated_key: dict[str, Any] | None) -> str | None:
    """Opaque continuation token: base64 of the store's last evaluated key."""
    if not last_evaluated_key:
        return None
    raw = json.dumps(last_evaluated_key, separators=(",", ":"), sort_keys=True, default=_json_default)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_next_token(next_token: str | None) -> dict[str, Any] | None:
    tok = str(next_token or "").strip()
    if not tok:
        return None

    try:
        # Accept tokens with stripped padding.
        padded = tok + "=" * (-len(tok) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        payload = json.loads(raw)
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidNextToken(message="Invalid nextToken") from e

    if not isinstance(payload, dict) or not payload:
        raise InvalidNextToken(message="Invalid nextToken")
    # Keys are flat attribute maps of strings/numbers.
    for k, v in payload.items():
        if not isinstance(k, str) or not isinstance(v, (str, int, float)):
            raise InvalidNextToken(message="Invalid nextToken")
    return payload
