"""Tests for partner organization verification."""

import pytest

from app.services.change_feed import ChangeFeed
from app.services.errors import Forbidden, NotFound, ValidationFailed
from app.services.partners import PartnerVerification

from conftest import ADMIN, APPLICANT, PARTNER, as_user, caller


ORGANIZATION = {
    "id": "org-1",
    "user_id": PARTNER["id"],
    "organization_name": "Lagos Tech Hub",
    "verification_status": "pending",
}


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def partners(db, dispatcher, feed):
    db.seed("partner_organizations", ORGANIZATION)
    return PartnerVerification(db, dispatcher, feed=feed)


def test_verify_marks_organization_and_notifies_owner(db, mailer, partners):
    outcome = partners.verify("org-1", "verified", caller(ADMIN), verification_notes="Documents checked")

    row = db.rows("partner_organizations", id="org-1")[0]
    assert row["verification_status"] == "verified"
    assert row["verified_by"] == ADMIN["id"]
    assert row["verified_at"]
    assert row["verification_notes"] == "Documents checked"
    assert outcome.all_delivered
    assert db.rows("notifications", user_id=PARTNER["id"])[0]["title"] == "Organization Verified!"
    assert mailer.sent[0]["to"] == PARTNER["email"]
    assert mailer.sent[0]["subject"] == "Organization Verified - Lagos Tech Hub"


def test_reject_sends_rejection_template(db, mailer, partners):
    partners.verify("org-1", "rejected", caller(ADMIN))

    assert db.rows("partner_organizations", id="org-1")[0]["verification_status"] == "rejected"
    assert db.rows("notifications", user_id=PARTNER["id"])[0]["type"] == "warning"
    assert mailer.sent[0]["subject"] == "Organization Verification Update - Lagos Tech Hub"


def test_verification_publishes_change(feed, partners):
    events = []
    subscription = feed.subscribe("partner_organizations", events.append)

    partners.verify("org-1", "verified", caller(ADMIN))
    subscription.unsubscribe()

    assert len(events) == 1
    assert events[0].old_status == "pending"
    assert events[0].record["verification_status"] == "verified"


def test_notification_failures_keep_verification(db, mailer, partners):
    mailer.fail = True
    db.fail_on("notifications", "insert")

    outcome = partners.verify("org-1", "verified", caller(ADMIN))

    assert [r.ok for r in outcome.side_effects] == [False, False]
    assert db.rows("partner_organizations", id="org-1")[0]["verification_status"] == "verified"


def test_verify_checks_admin_and_input(db, partners):
    with pytest.raises(Forbidden):
        partners.verify("org-1", "verified", caller(PARTNER))
    with pytest.raises(ValidationFailed, match="Missing required fields"):
        partners.verify("org-1", None, caller(ADMIN))
    with pytest.raises(ValidationFailed, match="Invalid status"):
        partners.verify("org-1", "approved", caller(ADMIN))
    with pytest.raises(NotFound):
        partners.verify("org-404", "verified", caller(ADMIN))

    assert db.rows("partner_organizations", id="org-1")[0]["verification_status"] == "pending"


def test_list_is_scoped_by_role(db, partners):
    db.seed("partner_organizations", {"id": "org-2", "user_id": "partner-9", "verification_status": "verified"})

    assert {o["id"] for o in partners.list(caller(ADMIN))} == {"org-1", "org-2"}
    assert [o["id"] for o in partners.list(caller(ADMIN), verification_status="verified")] == ["org-2"]
    assert [o["id"] for o in partners.list(caller(PARTNER))] == ["org-1"]
    with pytest.raises(Forbidden):
        partners.list(caller(APPLICANT))


def test_verify_endpoint(client, db, mailer):
    db.seed("partner_organizations", ORGANIZATION)
    body = {"organization_id": "org-1", "verification_status": "verified"}

    assert client.post("/api/partners/verify", json=body, headers=as_user(PARTNER)).status_code == 403
    assert client.post(
        "/api/partners/verify", json={"organization_id": "org-1", "verification_status": "maybe"}, headers=as_user(ADMIN)
    ).status_code == 400

    response = client.post("/api/partners/verify", json=body, headers=as_user(ADMIN))

    assert response.status_code == 200
    assert response.json()["data"]["verification_status"] == "verified"
    assert [n["ok"] for n in response.json()["notifications"]] == [True, True]
    own = client.get("/api/partners", headers=as_user(PARTNER)).json()
    assert own["items"][0]["verification_status"] == "verified"
