"""Tests for the mentorship session log."""

import pytest
from pydantic import ValidationError

from app.schemas.mentorship import SessionCreate, SessionUpdate
from app.services.errors import Forbidden, NotFound, ValidationFailed
from app.services.sessions import SessionLog, compute_session_stats

from conftest import ADMIN, APPLICANT, BUSY_MENTOR, MENTOR, OTHER_APPLICANT, PARTNER, caller


@pytest.fixture
def match(db):
    db.seed("mentorship_matches", {
        "id": "match-1", "mentor_id": MENTOR["id"], "mentee_id": APPLICANT["id"], "status": "active",
    })
    return db.rows("mentorship_matches", id="match-1")[0]


@pytest.fixture
def other_match(db):
    db.seed("mentorship_matches", {
        "id": "match-2", "mentor_id": BUSY_MENTOR["id"], "mentee_id": OTHER_APPLICANT["id"], "status": "active",
    })
    return db.rows("mentorship_matches", id="match-2")[0]


@pytest.fixture
def log(db):
    return SessionLog(db)


def new_session(match_id, minutes=60, **extra):
    return SessionCreate(match_id=match_id, session_date="2025-02-01T10:00:00Z", duration_minutes=minutes, **extra)


# ===============================
# Stats
# ===============================
def test_stats_for_completed_sessions():
    stats = compute_session_stats([
        {"duration_minutes": 60, "status": "completed"},
        {"duration_minutes": 90, "status": "completed"},
        {"duration_minutes": 30, "status": "completed"},
    ])

    assert stats.total == 3
    assert stats.total_hours == 3.0
    assert stats.average_duration == 60
    assert stats.by_status == {"completed": 3}


def test_stats_only_count_completed_hours():
    stats = compute_session_stats([
        {"duration_minutes": 45, "status": "completed"},
        {"duration_minutes": 60, "status": "cancelled"},
    ])

    assert stats.total_hours == 0.75
    assert stats.average_duration == 52.5
    assert stats.by_status == {"completed": 1, "cancelled": 1}


def test_stats_read_legacy_duration_column():
    stats = compute_session_stats([
        {"duration": 45, "status": "completed"},
        {"duration_minutes": None, "duration": 75, "status": "completed"},
    ])

    assert stats.total_hours == 2.0
    assert stats.average_duration == 60


def test_stats_for_no_sessions():
    stats = compute_session_stats([])
    assert stats.total == 0
    assert stats.total_hours == 0
    assert stats.average_duration == 0


# ===============================
# Create
# ===============================
def test_mentor_logs_session(db, log, match):
    session = log.create(new_session(match["id"], topics_covered=["CV review"]), caller(MENTOR))

    assert session["status"] == "completed"
    assert session["mode"] == "video"
    assert session["duration_minutes"] == 60
    assert len(db.rows("mentorship_sessions", match_id=match["id"])) == 1


def test_legacy_duration_field_is_accepted(log, match):
    payload = SessionCreate.model_validate({"match_id": match["id"], "session_date": "2025-02-01", "duration": 45})
    assert log.create(payload, caller(MENTOR))["duration_minutes"] == 45


def test_create_by_non_mentor_is_forbidden(log, match):
    with pytest.raises(Forbidden):
        log.create(new_session(match["id"]), caller(BUSY_MENTOR))
    with pytest.raises(Forbidden):
        log.create(new_session(match["id"]), caller(APPLICANT))


def test_admin_can_log_session(log, match):
    assert log.create(new_session(match["id"]), caller(ADMIN))["match_id"] == match["id"]


def test_create_requires_fields_and_existing_match(log, match):
    with pytest.raises(ValidationFailed):
        log.create(SessionCreate(match_id=match["id"], session_date="2025-02-01"), caller(MENTOR))
    with pytest.raises(NotFound):
        log.create(new_session("missing"), caller(MENTOR))


def test_create_requires_active_match(db, log, match):
    db.table("mentorship_matches").update({"status": "pending"}).eq("id", match["id"]).execute()

    with pytest.raises(ValidationFailed, match="active"):
        log.create(new_session(match["id"]), caller(MENTOR))


# ===============================
# List
# ===============================
def test_list_scopes_by_role(log, match, other_match):
    log.create(new_session(match["id"]), caller(MENTOR))
    log.create(new_session(other_match["id"]), caller(BUSY_MENTOR))

    assert [s["match_id"] for s in log.list(caller(MENTOR))] == [match["id"]]
    assert [s["match_id"] for s in log.list(caller(APPLICANT))] == [match["id"]]
    assert len(log.list(caller(ADMIN))) == 2
    assert log.list(caller(PARTNER)) == []


def test_list_for_match_requires_participant(log, match):
    log.create(new_session(match["id"]), caller(MENTOR))

    assert len(log.list(caller(APPLICANT), match_id=match["id"])) == 1
    with pytest.raises(Forbidden):
        log.list(caller(OTHER_APPLICANT), match_id=match["id"])


def test_list_filters_status(log, match):
    log.create(new_session(match["id"]), caller(MENTOR))
    log.create(new_session(match["id"], status="scheduled"), caller(MENTOR))

    assert [s["status"] for s in log.list(caller(MENTOR), status="scheduled")] == ["scheduled"]


# ===============================
# Update / delete
# ===============================
def test_partial_update_only_touches_given_fields(db, log, match):
    session = log.create(new_session(match["id"], notes="first notes"), caller(MENTOR))

    updated = log.update(session["id"], SessionUpdate(status="no_show"), caller(MENTOR))

    assert updated["status"] == "no_show"
    assert updated["notes"] == "first notes"
    assert updated["duration_minutes"] == 60


def test_empty_update_is_rejected(log, match):
    session = log.create(new_session(match["id"]), caller(MENTOR))
    with pytest.raises(ValidationFailed):
        log.update(session["id"], SessionUpdate(), caller(MENTOR))


def test_update_and_delete_check_ownership(db, log, match):
    session = log.create(new_session(match["id"]), caller(MENTOR))

    with pytest.raises(Forbidden):
        log.update(session["id"], SessionUpdate(notes="x"), caller(APPLICANT))
    with pytest.raises(Forbidden):
        log.delete(session["id"], caller(BUSY_MENTOR))

    log.delete(session["id"], caller(MENTOR))
    assert db.rows("mentorship_sessions") == []
    with pytest.raises(NotFound):
        log.delete(session["id"], caller(MENTOR))


@pytest.mark.parametrize("field", ["duration_minutes", "session_date", "status", "mode"])
def test_update_refuses_explicit_null_for_required_fields(field):
    with pytest.raises(ValidationError):
        SessionUpdate(**{field: None})


def test_update_can_clear_optional_notes(db, log, match):
    session = log.create(new_session(match["id"], notes="first notes"), caller(MENTOR))

    updated = log.update(session["id"], SessionUpdate(notes=None), caller(MENTOR))

    assert updated["notes"] is None
    assert updated["duration_minutes"] == 60
    assert updated["status"] == "completed"
