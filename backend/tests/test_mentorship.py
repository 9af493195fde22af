"""Tests for the mentorship match lifecycle."""

import pytest

from app.services.change_feed import ChangeFeed
from app.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.services.mentorship import MentorshipLifecycle, mentor_is_available

from conftest import ADMIN, APPLICANT, BUSY_MENTOR, MENTOR, OTHER_APPLICANT, PARTNER, caller


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def mentorship(db, dispatcher, feed):
    return MentorshipLifecycle(db, dispatcher, feed=feed)


@pytest.fixture
def pending(mentorship):
    return mentorship.request_mentor(MENTOR["id"], "Learn to code", caller(APPLICANT)).record


def test_request_creates_pending_match(db, pending):
    rows = db.rows("mentorship_matches", mentor_id=MENTOR["id"], mentee_id=APPLICANT["id"])

    assert len(rows) == 1
    assert rows[0]["status"] == "pending"
    assert rows[0]["start_date"]
    assert rows[0]["goals"] == "Learn to code"


def test_request_notifies_both_sides(db, mailer, mentorship):
    outcome = mentorship.request_mentor(MENTOR["id"], None, caller(APPLICANT))

    assert len(outcome.side_effects) == 4
    assert outcome.all_delivered
    assert db.rows("notifications", user_id=MENTOR["id"])[0]["title"] == "New Mentorship Request"
    assert db.rows("notifications", user_id=APPLICANT["id"])[0]["title"] == "Mentorship Request Sent"
    assert sorted(m["to"] for m in mailer.sent) == sorted([MENTOR["email"], APPLICANT["email"]])


def test_each_side_effect_is_attempted_independently(db, mailer, mentorship):
    mailer.fail = True

    outcome = mentorship.request_mentor(MENTOR["id"], None, caller(APPLICANT))

    assert [r.ok for r in outcome.side_effects] == [True, False, True, False]
    assert len(db.rows("notifications")) == 2
    assert db.rows("mentorship_matches")[0]["status"] == "pending"


def test_second_request_while_pending_is_refused(db, mentorship, pending):
    with pytest.raises(Conflict, match="pending mentorship request"):
        mentorship.request_mentor(MENTOR["id"], None, caller(APPLICANT))
    assert len(db.rows("mentorship_matches")) == 1


def test_second_request_while_active_is_refused(mentorship, pending):
    mentorship.accept(pending["id"], caller(MENTOR))
    with pytest.raises(Conflict, match="already have an active mentor"):
        mentorship.request_mentor(MENTOR["id"], None, caller(APPLICANT))


def test_request_checks_mentor(mentorship):
    with pytest.raises(NotFound):
        mentorship.request_mentor("ghost", None, caller(APPLICANT))
    with pytest.raises(ValidationFailed, match="not a mentor"):
        mentorship.request_mentor(OTHER_APPLICANT["id"], None, caller(APPLICANT))
    with pytest.raises(ValidationFailed, match="not currently accepting"):
        mentorship.request_mentor(BUSY_MENTOR["id"], None, caller(APPLICANT))


def test_mentor_availability_flags():
    assert mentor_is_available({"is_available": True})
    assert not mentor_is_available({"is_available": False, "availability_status": "available"})
    assert mentor_is_available({"availability_status": "available"})
    assert not mentor_is_available({})


def test_withdraw_keeps_history_and_allows_new_request(db, mentorship, pending):
    outcome = mentorship.withdraw(pending["id"], caller(APPLICANT))

    assert outcome.record["status"] == "withdrawn"
    assert db.rows("mentorship_matches", id=pending["id"])[0]["status"] == "withdrawn"
    assert db.rows("notifications", user_id=MENTOR["id"])[-1]["title"] == "Mentorship Withdrawn"

    mentorship.request_mentor(MENTOR["id"], None, caller(APPLICANT))
    assert len(db.rows("mentorship_matches", mentee_id=APPLICANT["id"])) == 2


def test_only_owning_mentee_can_withdraw(mentorship, pending):
    with pytest.raises(Forbidden):
        mentorship.withdraw(pending["id"], caller(OTHER_APPLICANT))
    with pytest.raises(Forbidden):
        mentorship.withdraw(pending["id"], caller(MENTOR))


def test_withdraw_twice_is_refused(mentorship, pending):
    mentorship.withdraw(pending["id"], caller(APPLICANT))
    with pytest.raises(Conflict):
        mentorship.withdraw(pending["id"], caller(APPLICANT))


def test_accept_activates_match_and_notifies_mentee(db, mailer, mentorship, pending):
    mailer.sent.clear()

    outcome = mentorship.accept(pending["id"], caller(MENTOR))

    assert outcome.record["status"] == "active"
    assert outcome.record["matched_at"]
    assert db.rows("notifications", user_id=APPLICANT["id"])[-1]["title"] == "Mentorship Request Accepted!"
    assert [m["to"] for m in mailer.sent] == [APPLICANT["email"]]


def test_reject_is_terminal(db, mentorship, pending):
    mentorship.reject(pending["id"], caller(MENTOR))

    assert db.rows("mentorship_matches", id=pending["id"])[0]["status"] == "rejected"
    with pytest.raises(Conflict):
        mentorship.accept(pending["id"], caller(MENTOR))


def test_only_requested_mentor_or_admin_can_respond(mentorship, pending):
    with pytest.raises(Forbidden):
        mentorship.accept(pending["id"], caller(BUSY_MENTOR))
    assert mentorship.accept(pending["id"], caller(ADMIN)).record["status"] == "active"


def test_status_changes_are_published(feed, mentorship, pending):
    events = []
    feed.subscribe("mentorship_matches", events.append)

    mentorship.accept(pending["id"], caller(MENTOR))

    assert [(e.old_status, e.record["status"]) for e in events] == [("pending", "active")]


def test_current_match_gates_new_requests(mentorship):
    empty = mentorship.current_match(caller(APPLICANT))
    assert not empty.has_mentor
    assert empty.can_request_mentor

    mentorship.request_mentor(MENTOR["id"], "Goals", caller(APPLICANT))
    status = mentorship.current_match(caller(APPLICANT))

    assert status.has_mentor
    assert not status.can_request_mentor
    assert status.status == "pending"
    assert status.mentor_name == MENTOR["full_name"]


def test_admin_creates_active_match(db, mentorship):
    match = mentorship.create_match(MENTOR["id"], OTHER_APPLICANT["id"], None, caller(ADMIN))

    assert match["status"] == "active"
    assert match["matched_at"]
    with pytest.raises(Conflict):
        mentorship.create_match(MENTOR["id"], OTHER_APPLICANT["id"], None, caller(ADMIN))
    with pytest.raises(Forbidden):
        mentorship.create_match(MENTOR["id"], APPLICANT["id"], None, caller(MENTOR))


def test_list_matches_is_role_scoped(mentorship, pending):
    mentorship.create_match(BUSY_MENTOR["id"], OTHER_APPLICANT["id"], None, caller(ADMIN))

    assert [m["id"] for m in mentorship.list_matches(caller(MENTOR))] == [pending["id"]]
    assert [m["id"] for m in mentorship.list_matches(caller(APPLICANT))] == [pending["id"]]
    assert len(mentorship.list_matches(caller(ADMIN))) == 2
    assert mentorship.list_matches(caller(ADMIN), status="active")[0]["mentee_id"] == OTHER_APPLICANT["id"]
    assert mentorship.list_matches(caller(PARTNER)) == []
