from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ...shared import clock


class TenderStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


@dataclass(slots=True)
class Tender:
    tender_id: str
    title: str
    description: str
    deadline: datetime
    status: TenderStatus
    created_by: str
    created_at: str
    updated_at: str

    # Persisted and effective status are separate accessors; only the stored
    # value is ever written back.
    def stored_status(self) -> TenderStatus:
        return self.status

    def effective_status(self, now: datetime | None = None) -> TenderStatus:
        if self.status is TenderStatus.ARCHIVED:
            return TenderStatus.ARCHIVED
        at = now or clock.utcnow()
        if at >= self.deadline:
            return TenderStatus.CLOSED
        return self.status

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Tender":
        deadline = clock.parse_iso(item.get("deadline"))
        if deadline is None:
            raise ValueError(f"tender {item.get('tenderId')!r} has an unreadable deadline")
        try:
            status = TenderStatus(str(item.get("status") or "OPEN").upper())
        except ValueError:
            status = TenderStatus.OPEN
        return cls(
            tender_id=str(item.get("tenderId") or ""),
            title=str(item.get("title") or ""),
            description=str(item.get("description") or ""),
            deadline=deadline,
            status=status,
            created_by=str(item.get("createdBy") or ""),
            created_at=str(item.get("createdAt") or ""),
            updated_at=str(item.get("updatedAt") or ""),
        )

    def to_item(self) -> dict[str, Any]:
        return {
            "tenderId": self.tender_id,
            "title": self.title,
            "description": self.description,
            "deadline": clock.to_iso(self.deadline),
            "status": self.status.value,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_api(self, now: datetime | None = None) -> dict[str, Any]:
        effective = self.effective_status(now).value
        out = self.to_item()
        out["status"] = effective
        out["storedStatus"] = self.status.value
        out["effectiveStatus"] = effective
        return out
