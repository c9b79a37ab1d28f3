from __future__ import annotations

from datetime import datetime
from typing import Any

from ...errors import ValidationFailed
from ...shared import clock
from .models import TenderStatus

TITLE_MIN, TITLE_MAX = 3, 200
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 2000


def _err(field: str, message: str) -> dict[str, str]:
    return {"field": field, "message": message}


def _check_text(
    errors: list[dict[str, str]],
    *,
    field: str,
    label: str,
    value: Any,
    lo: int,
    hi: int,
    required: bool,
) -> str | None:
    if value is None:
        if required:
            errors.append(_err(field, f"{label} is required and must be a string"))
        return None
    if not isinstance(value, str):
        errors.append(_err(field, f"{label} must be a string"))
        return None
    s = value.strip()
    if len(s) < lo or len(s) > hi:
        errors.append(_err(field, f"{label} must be {lo}-{hi} characters"))
        return None
    return s


def _check_deadline(
    errors: list[dict[str, str]], value: Any, *, now: datetime, required: bool
) -> datetime | None:
    if value is None:
        if required:
            errors.append(_err("deadline", "Deadline is required and must be an ISO 8601 string"))
        return None
    if not isinstance(value, str):
        errors.append(_err("deadline", "Deadline must be an ISO 8601 string"))
        return None
    dt = clock.parse_iso(value)
    if dt is None:
        errors.append(_err("deadline", "Deadline must be a valid ISO 8601 datetime"))
        return None
    if dt <= now:
        errors.append(_err("deadline", "Deadline must be in the future"))
        return None
    return dt


def validate_create(body: dict[str, Any], *, now: datetime) -> dict[str, Any]:
    errors: list[dict[str, str]] = []
    title = _check_text(
        errors, field="title", label="Title", value=body.get("title"),
        lo=TITLE_MIN, hi=TITLE_MAX, required=True,
    )
    description = _check_text(
        errors, field="description", label="Description", value=body.get("description"),
        lo=DESCRIPTION_MIN, hi=DESCRIPTION_MAX, required=True,
    )
    deadline = _check_deadline(errors, body.get("deadline"), now=now, required=True)
    if errors:
        raise ValidationFailed.from_fields(errors)
    return {"title": title, "description": description, "deadline": deadline}


def validate_update(body: dict[str, Any], *, now: datetime) -> dict[str, Any]:
    """
    Validate a partial update. Only keys present (and not null) are checked;
    at least one valid field is required. ``deadline`` comes back as a
    normalized ISO string.
    """
    errors: list[dict[str, str]] = []
    out: dict[str, Any] = {}

    title = _check_text(
        errors, field="title", label="Title", value=body.get("title"),
        lo=TITLE_MIN, hi=TITLE_MAX, required=False,
    )
    if title is not None:
        out["title"] = title
    description = _check_text(
        errors, field="description", label="Description", value=body.get("description"),
        lo=DESCRIPTION_MIN, hi=DESCRIPTION_MAX, required=False,
    )
    if description is not None:
        out["description"] = description
    deadline = _check_deadline(errors, body.get("deadline"), now=now, required=False)
    if deadline is not None:
        out["deadline"] = clock.to_iso(deadline)

    raw_status = body.get("status")
    if raw_status is not None:
        try:
            out["status"] = TenderStatus(str(raw_status).strip().upper()).value
        except ValueError:
            allowed = ", ".join(s.value for s in TenderStatus)
            errors.append(_err("status", f"status must be one of: {allowed}"))

    if not out and not errors:
        errors.append(
            _err("body", "At least one field (title, description, deadline, or status) must be provided")
        )
    if errors:
        raise ValidationFailed.from_fields(errors)
    return out
