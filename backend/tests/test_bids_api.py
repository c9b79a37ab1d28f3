from __future__ import annotations

from datetime import timedelta

from conftest import ADMIN, BIDDER, EVALUATOR, bearer
from tendervault.modules.bids.upload_events import confirm_submissions

PDF = {"fileName": "proposal.pdf", "contentType": "application/pdf", "fileSize": 2048}


def _submit(client, vault, tender_id="t-1", headers=BIDDER, body=None) -> dict:
    r = client.post(f"/tenders/{tender_id}/bids/upload-url", json=body or PDF, headers=headers)
    assert r.status_code == 200, r.text
    out = r.json()
    rec = vault.upload(out["s3Key"], size=(body or PDF)["fileSize"], body=b"%PDF-" + out["s3Key"].encode())
    confirm_submissions([rec])
    return out


def test_upload_url_issues_pending_bid_and_scoped_key(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.post("/tenders/t-1/bids/upload-url", json=PDF, headers=BIDDER)
    assert r.status_code == 200
    body = r.json()
    assert body["expiresIn"] == 900
    assert body["s3Key"] == f"t-1/bidder-1/{int(vault.now.timestamp() * 1000)}-proposal.pdf"
    assert body["uploadUrl"].endswith(body["s3Key"])

    bid = vault.bids[("t-1", "bidder-1")]
    assert bid["status"] == "PENDING"
    assert bid["bidderEmail"] == "bidder-1@example.com"
    assert bid["s3Key"] == body["s3Key"]
    ev = vault.events("UPLOAD_URL_GENERATED", "SUCCESS")[0]
    assert ev["fileKey"] == body["s3Key"]


def test_upload_url_validation(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.post(
        "/tenders/t-1/bids/upload-url",
        json={"fileName": "proposal.docx", "contentType": "application/msword", "fileSize": 52428801},
        headers=BIDDER,
    )
    assert r.status_code == 400
    assert [f["field"] for f in r.json()["fields"]] == ["fileName", "contentType", "fileSize"]
    assert vault.bids == {}


def test_upload_url_after_deadline_is_refused_even_when_still_open(client, vault):
    vault.seed_tender(tender_id="t-1", deadline=vault.now - timedelta(seconds=1))
    r = client.post("/tenders/t-1/bids/upload-url", json=PDF, headers=BIDDER)
    assert r.status_code == 423
    assert r.json()["error"] == "BID_DEADLINE_PASSED"
    assert vault.events("UPLOAD_URL_GENERATED", "DENIED")


def test_upload_url_for_closed_tender(client, vault):
    vault.seed_tender(tender_id="t-1", status="CLOSED")
    r = client.post("/tenders/t-1/bids/upload-url", json=PDF, headers=BIDDER)
    assert r.status_code == 400
    assert r.json()["error"] == "TENDER_ALREADY_CLOSED"


def test_upload_url_is_bidder_only(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.post("/tenders/t-1/bids/upload-url", json=PDF, headers=ADMIN)
    assert r.status_code == 403
    assert client.post("/tenders/nope/bids/upload-url", json=PDF, headers=BIDDER).status_code == 404


def test_evaluator_download_before_deadline_is_locked(client, vault):
    # Create through the API, then ask for a download straight away.
    deadline = vault.now + timedelta(hours=2)
    created = client.post(
        "/tenders",
        json={
            "title": "School meals",
            "description": "Catering for twelve primary schools.",
            "deadline": deadline.isoformat(),
        },
        headers=ADMIN,
    ).json()
    tid = created["tenderId"]

    r = client.get(f"/tenders/{tid}/bids/bidder-1/download-url", headers=EVALUATOR)
    assert r.status_code == 423
    body = r.json()
    assert body["error"] == "TENDER_LOCKED"
    assert body["secondsRemaining"] == 7200
    assert body["unlocksAt"] == "2026-03-01T14:00:00.000Z"
    assert body["requestId"] and body["timestamp"]
    assert vault.download_presigns == []

    denied = vault.events("DOWNLOAD_DENIED_TIMELOCKED", "DENIED")
    assert len(denied) == 1
    assert denied[0]["metadata"]["targetBidderId"] == "bidder-1"
    assert vault.events("DOWNLOAD_URL_GENERATED") == []


def test_bid_listing_is_sealed_until_deadline(client, vault):
    vault.seed_tender(tender_id="t-1")
    _submit(client, vault)

    r = client.get("/tenders/t-1/bids", headers=ADMIN)
    assert r.status_code == 423
    assert r.json()["error"] == "TENDER_LOCKED"
    assert vault.events("BIDS_LISTED", "DENIED")

    vault.advance(hours=3)
    r = client.get("/tenders/t-1/bids", headers=EVALUATOR)
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 1
    assert body["bids"][0]["status"] == "SUBMITTED"
    assert body["bids"][0]["averageScore"] is None
    assert body["bids"][0]["scoreCount"] == 0


def test_download_after_deadline_uses_current_version(client, vault):
    vault.seed_tender(tender_id="t-1")
    up = _submit(client, vault)
    vault.advance(hours=3)

    r = client.get("/tenders/t-1/bids/bidder-1/download-url", headers=EVALUATOR)
    assert r.status_code == 200
    body = r.json()
    bid = vault.bids[("t-1", "bidder-1")]
    assert body["versionId"] == bid["currentVersionId"]
    assert body["fileName"] == "proposal.pdf"
    assert body["expiresIn"] == 900
    assert vault.download_presigns == [{"key": up["s3Key"], "versionId": bid["currentVersionId"]}]
    ev = vault.events("DOWNLOAD_URL_GENERATED", "SUCCESS")[0]
    assert ev["fileKey"] == up["s3Key"]


def test_download_for_unknown_bidder_after_deadline(client, vault):
    vault.seed_tender(tender_id="t-1", deadline=vault.now - timedelta(minutes=1))
    r = client.get("/tenders/t-1/bids/ghost/download-url", headers=ADMIN)
    assert r.status_code == 404
    assert r.json()["error"] == "BID_NOT_FOUND"


def test_bidder_cannot_download(client, vault):
    vault.seed_tender(tender_id="t-1", deadline=vault.now - timedelta(minutes=1))
    r = client.get("/tenders/t-1/bids/bidder-1/download-url", headers=BIDDER)
    assert r.status_code == 403
    # A role denial is not a time-lock denial.
    assert vault.events("DOWNLOAD_URL_GENERATED", "DENIED")
    assert vault.events("DOWNLOAD_DENIED_TIMELOCKED") == []


def test_restore_round_trip(client, vault):
    vault.seed_tender(tender_id="t-1")
    first = _submit(client, vault)
    v1 = vault.bids[("t-1", "bidder-1")]["currentVersionId"]
    second = _submit(client, vault, body={**PDF, "fileName": "proposal-v2.pdf"})
    v2 = vault.bids[("t-1", "bidder-1")]["currentVersionId"]
    assert first["s3Key"] != second["s3Key"]

    versions = client.get("/tenders/t-1/bids/bidder-1/versions", headers=ADMIN).json()
    assert [v["versionId"] for v in versions["versions"]] == [v2, v1]
    assert [v["isLatest"] for v in versions["versions"]] == [True, False]

    r = client.post("/tenders/t-1/bids/bidder-1/restore", json={"versionId": v1}, headers=ADMIN)
    assert r.status_code == 200
    body = r.json()
    assert body["restoredFrom"] == v1
    v3 = body["newVersionId"]
    assert v3 not in (v1, v2)
    assert vault.bids[("t-1", "bidder-1")]["currentVersionId"] == v3

    after = client.get("/tenders/t-1/bids/bidder-1/versions", headers=ADMIN).json()
    assert after["count"] == 3
    latest = after["versions"][0]
    assert latest["versionId"] == v3 and latest["isLatest"] is True
    assert latest["key"] == second["s3Key"]
    assert vault.body_of(second["s3Key"], v3) == vault.body_of(first["s3Key"], v1)
    assert any(v["versionId"] == v1 for v in after["versions"])

    ev = vault.events("VERSION_RESTORED", "SUCCESS")[0]
    assert ev["versionId"] == v3
    assert ev["metadata"]["restoredFrom"] == v1


def test_restore_unknown_version(client, vault):
    vault.seed_tender(tender_id="t-1")
    _submit(client, vault)
    r = client.post("/tenders/t-1/bids/bidder-1/restore", json={"versionId": "nope"}, headers=ADMIN)
    assert r.status_code == 404
    assert r.json()["error"] == "VERSION_NOT_FOUND"

    r = client.post("/tenders/t-1/bids/bidder-1/restore", json={}, headers=ADMIN)
    assert r.status_code == 400


def test_versions_are_admin_only(client, vault):
    vault.seed_tender(tender_id="t-1")
    _submit(client, vault)
    assert client.get("/tenders/t-1/bids/bidder-1/versions", headers=EVALUATOR).status_code == 403
    assert client.get("/tenders/t-1/bids/other/versions", headers=ADMIN).status_code == 404


def test_multi_role_actor_gets_union_of_permissions(client, vault):
    vault.seed_tender(tender_id="t-1")
    both = bearer("tv-bidder+tv-admin", "dual-1")
    assert client.post("/tenders/t-1/bids/upload-url", json=PDF, headers=both).status_code == 200
    ev = vault.events("UPLOAD_URL_GENERATED", "SUCCESS")[0]
    assert ev["userRole"] == "tv-admin"
