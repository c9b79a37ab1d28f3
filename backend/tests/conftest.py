from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure `backend/` is on sys.path so `import tendervault.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from tendervault.auth.cognito import CognitoAuthError, VerifiedUser  # noqa: E402
from tendervault.db.dynamodb.errors import DdbUnavailable  # noqa: E402
from tendervault.db.dynamodb.table import Page  # noqa: E402
from tendervault.infrastructure.storage import bid_objects  # noqa: E402
from tendervault.middleware import auth as auth_middleware  # noqa: E402
from tendervault.repositories import audit_log_repo, bids_repo, tenders_repo  # noqa: E402
from tendervault.services import email_ses  # noqa: E402
from tendervault.shared import clock  # noqa: E402

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeVault:
    """In-memory stand-ins for DynamoDB, S3, SES and Cognito."""

    def __init__(self):
        self.now = T0
        self.tenders: dict[str, dict] = {}
        self.bids: dict[tuple[str, str], dict] = {}
        self.audit: list[dict] = []
        self.audit_fail = False
        self.objects: dict[str, list[dict]] = {}
        self.emails: list[dict] = []
        self.email_fail = False
        self.download_presigns: list[dict] = []
        self._vid = 0

    # --- clock ---

    def advance(self, **kw) -> None:
        self.now = self.now + timedelta(**kw)

    # --- S3 ---

    def upload(self, key: str, *, size: int = 1024, body: bytes = b"%PDF") -> dict:
        """Simulate a client PUT to a versioned bucket; returns the S3 event record."""
        self._vid += 1
        vid = f"v{self._vid}"
        self.advance(seconds=1)
        self.objects.setdefault(key, []).append(
            {"versionId": vid, "key": key, "size": size, "lastModified": clock.to_iso(self.now), "body": body}
        )
        return {
            "eventName": "ObjectCreated:Put",
            "s3": {
                "bucket": {"name": "bids-bucket"},
                "object": {"key": key.replace(" ", "+"), "size": size, "versionId": vid},
            },
        }

    def list_versions(self, *, prefix: str) -> list[dict]:
        out = []
        for key, versions in self.objects.items():
            if key.startswith(prefix):
                out.extend({k: v for k, v in ver.items() if k != "body"} for ver in versions)
        out.sort(key=lambda v: v["lastModified"], reverse=True)
        return out

    def copy_version(self, *, source_key: str, version_id: str, dest_key: str) -> str:
        src = next(v for v in self.objects[source_key] if v["versionId"] == version_id)
        self._vid += 1
        vid = f"v{self._vid}"
        self.advance(seconds=1)
        self.objects.setdefault(dest_key, []).append(
            {**src, "versionId": vid, "key": dest_key, "lastModified": clock.to_iso(self.now)}
        )
        return vid

    def body_of(self, key: str, version_id: str) -> bytes:
        return next(v["body"] for v in self.objects[key] if v["versionId"] == version_id)

    # --- audit ---

    def put_event(self, event: dict) -> None:
        if self.audit_fail:
            raise DdbUnavailable(message="audit table down", operation="PutItem")
        self.audit.append(dict(event))

    def events(self, action: str | None = None, result: str | None = None) -> list[dict]:
        return [
            e
            for e in self.audit
            if (action is None or e["action"] == action) and (result is None or e["result"] == result)
        ]

    # --- bids ---

    def put_pending_bid(self, *, tender_id, bidder_id, bidder_email, s3_key, file_name, file_size, now):
        item = {
            "tenderId": tender_id,
            "bidderId": bidder_id,
            "bidderEmail": bidder_email,
            "s3Key": s3_key,
            "fileName": file_name,
            "fileSize": int(file_size),
            "status": "PENDING",
            "createdAt": now,
            "updatedAt": now,
        }
        self.bids[(tender_id, bidder_id)] = item
        return dict(item)

    def mark_submitted(self, *, tender_id, bidder_id, s3_key, version_id, file_size, now):
        bid = self.bids.get((tender_id, bidder_id))
        if not bid or bid.get("s3Key") != s3_key:
            return None
        old = dict(bid)
        bid.update({"status": "SUBMITTED", "submittedAt": now, "updatedAt": now})
        if version_id:
            bid["currentVersionId"] = version_id
        if file_size is not None:
            bid["fileSize"] = int(file_size)
        return old, dict(bid)

    def _update_bid(self, tender_id, bidder_id, **fields):
        bid = self.bids.get((tender_id, bidder_id))
        if bid is None:
            return None
        bid.update(fields)
        return dict(bid)

    def put_evaluator_score(self, *, tender_id, bidder_id, evaluator_id, entry, now):
        bid = self.bids.get((tender_id, bidder_id))
        if bid is None:
            return None
        bid.setdefault("evaluationScores", {})[evaluator_id] = dict(entry)
        bid["updatedAt"] = now
        return {**bid, "evaluationScores": {k: dict(v) for k, v in bid["evaluationScores"].items()}}

    # --- tenders ---

    def update_tender(self, tender_id, changes, *, updated_at):
        t = self.tenders.get(tender_id)
        if t is None:
            return None
        t.update(changes)
        t["updatedAt"] = updated_at
        return dict(t)

    def seed_tender(self, *, tender_id: str = "t-1", deadline: datetime | None = None, status: str = "OPEN") -> dict:
        dl = deadline or (self.now + timedelta(hours=2))
        item = {
            "tenderId": tender_id,
            "title": "Road resurfacing",
            "description": "Resurface 12km of the ring road.",
            "deadline": clock.to_iso(dl),
            "status": status,
            "createdBy": "admin-1",
            "createdAt": clock.to_iso(self.now),
            "updatedAt": clock.to_iso(self.now),
        }
        self.tenders[tender_id] = item
        return item


def fake_verify(token: str) -> VerifiedUser:
    # Tokens look like "<group>[+<group>...]:<sub>"; anything else is invalid.
    if ":" not in token:
        raise CognitoAuthError("Invalid token")
    groups, sub = token.split(":", 1)
    claims = {
        "sub": sub,
        "cognito:groups": [g for g in groups.split("+") if g],
        "email": f"{sub}@example.com",
        "token_use": "access",
    }
    return VerifiedUser(sub=sub, username=sub, email=claims["email"], claims=claims)


def bearer(groups: str, sub: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {groups}:{sub}"}


ADMIN = bearer("tv-admin", "admin-1")
EVALUATOR = bearer("tv-evaluator", "eval-1")
EVALUATOR_2 = bearer("tv-evaluator", "eval-2")
BIDDER = bearer("tv-bidder", "bidder-1")


@pytest.fixture
def vault(monkeypatch) -> FakeVault:
    v = FakeVault()

    monkeypatch.setattr(clock, "utcnow", lambda: v.now)

    monkeypatch.setattr(tenders_repo, "get_tender", lambda tid: dict(v.tenders[tid]) if tid in v.tenders else None)
    monkeypatch.setattr(tenders_repo, "put_tender", lambda item: v.tenders.__setitem__(item["tenderId"], dict(item)))
    monkeypatch.setattr(tenders_repo, "update_tender", v.update_tender)
    monkeypatch.setattr(tenders_repo, "delete_tender", lambda tid: v.tenders.pop(tid, None))
    monkeypatch.setattr(tenders_repo, "list_all_tenders", lambda: [dict(t) for t in v.tenders.values()])
    monkeypatch.setattr(
        tenders_repo,
        "list_tenders_by_status",
        lambda status: [dict(t) for t in v.tenders.values() if t["status"] == status],
    )

    monkeypatch.setattr(bids_repo, "get_bid", lambda t, b: dict(v.bids[(t, b)]) if (t, b) in v.bids else None)
    monkeypatch.setattr(
        bids_repo, "list_bids_for_tender", lambda t: [dict(b) for (tid, _), b in v.bids.items() if tid == t]
    )
    monkeypatch.setattr(bids_repo, "put_pending_bid", v.put_pending_bid)
    monkeypatch.setattr(bids_repo, "mark_submitted", v.mark_submitted)
    monkeypatch.setattr(
        bids_repo,
        "set_current_version",
        lambda *, tender_id, bidder_id, version_id, now: v._update_bid(
            tender_id, bidder_id, currentVersionId=version_id, updatedAt=now
        ),
    )
    monkeypatch.setattr(
        bids_repo,
        "set_bid_status",
        lambda *, tender_id, bidder_id, bid_status, actor_id, now: v._update_bid(
            tender_id, bidder_id, bidStatus=bid_status, bidStatusUpdatedBy=actor_id, updatedAt=now
        ),
    )
    monkeypatch.setattr(bids_repo, "put_evaluator_score", v.put_evaluator_score)

    monkeypatch.setattr(audit_log_repo, "put_event", v.put_event)
    monkeypatch.setattr(
        audit_log_repo,
        "query_by_user",
        lambda uid, *, action=None, limit=50, next_token=None: Page(
            items=[e for e in reversed(v.audit) if e["userId"] == uid and (not action or e["action"] == action)][:limit],
            next_token=None,
        ),
    )
    monkeypatch.setattr(
        audit_log_repo,
        "query_by_tender",
        lambda tid, *, action=None, limit=50, next_token=None: Page(
            items=[e for e in reversed(v.audit) if e.get("tenderId") == tid and (not action or e["action"] == action)][
                :limit
            ],
            next_token=None,
        ),
    )

    monkeypatch.setattr(
        bid_objects,
        "presign_upload",
        lambda *, key, content_type: {"url": f"https://s3.test/put/{key}", "key": key, "expiresIn": 900},
    )

    def _presign_download(*, key, version_id, file_name):
        v.download_presigns.append({"key": key, "versionId": version_id})
        return {"url": f"https://s3.test/get/{key}?versionId={version_id}", "key": key, "expiresIn": 900}

    monkeypatch.setattr(bid_objects, "presign_download", _presign_download)
    monkeypatch.setattr(bid_objects, "list_versions", v.list_versions)
    monkeypatch.setattr(bid_objects, "copy_version", v.copy_version)

    def _send(*, to_email, subject, text):
        if v.email_fail:
            raise RuntimeError("SES is down")
        v.emails.append({"to": to_email, "subject": subject, "text": text})
        return {"ok": True, "messageId": f"m-{len(v.emails)}"}

    monkeypatch.setattr(email_ses, "send_text_email", _send)
    monkeypatch.setattr(auth_middleware, "verify_bearer_token", fake_verify)
    return v


@pytest.fixture
def client(vault):
    from fastapi.testclient import TestClient

    from tendervault.main import create_app

    return TestClient(create_app(), raise_server_exceptions=False)
