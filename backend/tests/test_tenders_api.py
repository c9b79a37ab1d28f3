from __future__ import annotations

from datetime import timedelta

from conftest import ADMIN, BIDDER, EVALUATOR, bearer
from tendervault.shared import clock


def _create(client, vault, **overrides):
    body = {
        "title": "  Water treatment plant  ",
        "description": "Design and build a 5 MLD water treatment plant.",
        "deadline": clock.to_iso(vault.now + timedelta(hours=2)),
    }
    body.update(overrides)
    return client.post("/tenders", json=body, headers=ADMIN)


def test_admin_creates_tender(client, vault):
    r = _create(client, vault)
    assert r.status_code == 201
    body = r.json()
    assert body["title"] == "Water treatment plant"
    assert body["status"] == "OPEN"
    assert body["effectiveStatus"] == "OPEN"
    assert body["createdBy"] == "admin-1"
    assert vault.tenders[body["tenderId"]]["status"] == "OPEN"
    assert vault.events("TENDER_CREATED", "SUCCESS")[0]["tenderId"] == body["tenderId"]


def test_create_reports_every_invalid_field(client, vault):
    r = _create(client, vault, title="ab", description="short", deadline=clock.to_iso(vault.now))
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert {f["field"] for f in body["fields"]} == {"title", "description", "deadline"}
    assert body["requestId"]
    assert vault.tenders == {}
    assert vault.events("TENDER_CREATED", "ERROR")


def test_naive_deadline_is_read_as_utc(client, vault):
    naive = (vault.now + timedelta(hours=1)).replace(tzinfo=None).isoformat()
    r = _create(client, vault, deadline=naive)
    assert r.status_code == 201
    assert r.json()["deadline"] == "2026-03-01T13:00:00.000Z"


def test_non_admin_delete_is_denied_and_audited(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.delete("/tenders/t-1", headers=EVALUATOR)
    assert r.status_code == 403
    assert r.json()["error"] == "AUTH_INSUFFICIENT_ROLE"
    assert "t-1" in vault.tenders
    denied = vault.events("TENDER_DELETED", "DENIED")
    assert len(denied) == 1
    assert denied[0]["userId"] == "eval-1"
    assert denied[0]["userRole"] == "tv-evaluator"
    assert denied[0]["tenderId"] == "t-1"


def test_delete_missing_tender_is_404(client, vault):
    r = client.delete("/tenders/nope", headers=ADMIN)
    assert r.status_code == 404
    assert r.json()["error"] == "TENDER_NOT_FOUND"


def test_delete_keeps_bids(client, vault):
    vault.seed_tender(tender_id="t-1")
    vault.put_pending_bid(
        tender_id="t-1", bidder_id="b-1", bidder_email="b@example.com",
        s3_key="t-1/b-1/1-a.pdf", file_name="a.pdf", file_size=10, now="x",
    )
    r = client.delete("/tenders/t-1", headers=ADMIN)
    assert r.status_code == 200
    assert "t-1" not in vault.tenders
    assert ("t-1", "b-1") in vault.bids


def test_list_is_role_filtered_and_sorted_by_deadline(client, vault):
    vault.seed_tender(tender_id="later", deadline=vault.now + timedelta(days=3))
    vault.seed_tender(tender_id="sooner", deadline=vault.now + timedelta(days=1))
    vault.seed_tender(tender_id="expired", deadline=vault.now - timedelta(days=1))
    vault.seed_tender(tender_id="closed", status="CLOSED")
    vault.seed_tender(tender_id="archived", status="ARCHIVED")

    def ids(headers):
        r = client.get("/tenders", headers=headers)
        assert r.status_code == 200
        body = r.json()
        assert body["count"] == len(body["tenders"])
        return [t["tenderId"] for t in body["tenders"]]

    assert set(ids(ADMIN)) == {"later", "sooner", "expired", "closed", "archived"}
    assert ids(ADMIN)[0] == "expired"
    assert set(ids(EVALUATOR)) == {"later", "sooner", "expired", "closed"}
    assert ids(BIDDER) == ["sooner", "later"]
    assert len(vault.events("TENDER_LISTED", "SUCCESS")) == 4


def test_get_applies_the_same_role_filter(client, vault):
    vault.seed_tender(tender_id="closed", status="CLOSED")
    vault.seed_tender(tender_id="archived", status="ARCHIVED")

    assert client.get("/tenders/closed", headers=BIDDER).status_code == 404
    assert client.get("/tenders/closed", headers=EVALUATOR).status_code == 200
    assert client.get("/tenders/archived", headers=EVALUATOR).status_code == 404
    assert client.get("/tenders/archived", headers=ADMIN).status_code == 200


def test_user_without_known_role_is_denied(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.get("/tenders/t-1", headers=bearer("guests", "g-1"))
    assert r.status_code == 403
    assert r.json()["message"] == "No valid role found"
    assert vault.events("TENDER_VIEWED", "DENIED")[0]["userRole"] == "NONE"


def test_update_changes_only_given_fields(client, vault):
    vault.seed_tender(tender_id="t-1")
    vault.advance(minutes=5)
    r = client.put("/tenders/t-1", json={"title": "New title", "status": "closed"}, headers=ADMIN)
    assert r.status_code == 200
    stored = vault.tenders["t-1"]
    assert stored["title"] == "New title"
    assert stored["status"] == "CLOSED"
    assert stored["description"] == "Resurface 12km of the ring road."
    assert stored["updatedAt"] == clock.to_iso(vault.now)
    ev = vault.events("TENDER_UPDATED", "SUCCESS")[0]
    assert ev["metadata"]["fieldsUpdated"] == "status,title"


def test_update_requires_a_field_and_never_upserts(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.put("/tenders/t-1", json={}, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["fields"][0]["field"] == "body"

    r = client.put("/tenders/missing", json={"title": "Anything"}, headers=ADMIN)
    assert r.status_code == 404
    assert "missing" not in vault.tenders


def test_update_rejects_unknown_status(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.put("/tenders/t-1", json={"status": "PAUSED"}, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["fields"][0]["field"] == "status"


def test_deadline_passing_closes_tender_without_touching_stored_status(client, vault):
    vault.seed_tender(tender_id="t-1", deadline=vault.now + timedelta(days=7))
    new_deadline = vault.now + timedelta(minutes=1)
    r = client.put("/tenders/t-1", json={"deadline": clock.to_iso(new_deadline)}, headers=ADMIN)
    assert r.status_code == 200

    vault.advance(minutes=2)
    body = client.get("/tenders/t-1", headers=ADMIN).json()
    assert body["effectiveStatus"] == "CLOSED"
    assert body["storedStatus"] == "OPEN"
    assert vault.tenders["t-1"]["status"] == "OPEN"


def test_update_rejects_past_deadline(client, vault):
    vault.seed_tender(tender_id="t-1")
    r = client.put(
        "/tenders/t-1",
        json={"deadline": clock.to_iso(vault.now - timedelta(hours=1))},
        headers=ADMIN,
    )
    assert r.status_code == 400
    assert r.json()["fields"] == [{"field": "deadline", "message": "Deadline must be in the future"}]
