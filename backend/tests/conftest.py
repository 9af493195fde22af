"""Shared fixtures: in-memory Supabase double, recording mailer, caller overrides."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Optional
import itertools

import pytest
from fastapi import Header
from fastapi.testclient import TestClient

from app.api.deps import get_caller, get_db
from app.main import app
from app.schemas.context import CallerContext
from app.services.captcha import get_captcha_verifier
from app.services.email_client import get_mailer
from app.services.errors import EmailDeliveryError, NotAuthenticated
from app.services.notifications import NotificationDispatcher


# ===============================
# Supabase double
# ===============================
def _same(left, right) -> bool:
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right
    return str(left) == str(right)


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters = []
        self._order = []
        self._limit = None
        self._range = None

    def select(self, *columns, count=None):
        self._op = "select"
        return self

    def insert(self, payload):
        self._op = "insert"
        self._payload = payload
        return self

    def update(self, payload):
        self._op = "update"
        self._payload = payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: _same(row.get(column), value))
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: not _same(row.get(column), value))
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: any(_same(row.get(column), v) for v in values))
        return self

    def ilike(self, column, pattern):
        needle = pattern.strip("%").lower()
        self._filters.append(lambda row: needle in str(row.get(column) or "").lower())
        return self

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def execute(self):
        self._db.calls.append((self._table, self._op))
        if (self._table, self._op) in self._db.failures:
            raise RuntimeError(f"{self._table}.{self._op} failed")

        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            created = []
            for item in items:
                row = dict(item)
                if row.get("id") is None:
                    row["id"] = self._db.next_id(self._table)
                row.setdefault("created_at", self._db.now())
                rows.append(row)
                created.append(dict(row))
            return FakeResponse(created)

        matched = [row for row in rows if all(f(row) for f in self._filters)]
        if self._op == "update":
            for row in matched:
                row.update(self._payload)
            return FakeResponse([dict(row) for row in matched])
        if self._op == "delete":
            self._db.tables[self._table] = [row for row in rows if row not in matched]
            return FakeResponse([dict(row) for row in matched])

        result = [dict(row) for row in matched]
        for column, desc in reversed(self._order):
            result.sort(key=lambda r: (r.get(column) is None, str(r.get(column) or "")), reverse=desc)
        if self._range is not None:
            result = result[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            result = result[:self._limit]
        return FakeResponse(result, count=len(result))


class FakeAuth:
    def __init__(self):
        self.tokens = {}

    def get_user(self, token):
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.tokens[token]))


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.failures = set()
        self.calls = []
        self.auth = FakeAuth()
        self._ids = itertools.count(1)
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def table(self, name):
        return FakeQuery(self, name)

    def next_id(self, table):
        return f"{table}-{next(self._ids)}"

    def now(self):
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def fail_on(self, table, op):
        self.failures.add((table, op))

    def rows(self, table, **filters):
        return [
            row for row in self.tables.get(table, [])
            if all(_same(row.get(k), v) for k, v in filters.items())
        ]

    def seed(self, table, *rows):
        for row in rows:
            self.table(table).insert(row).execute()


# ===============================
# Mailer / captcha doubles
# ===============================
class FakeMailer:
    def __init__(self):
        self.sent = []
        self.contacts = {}
        self.fail = False
        self.from_email = "noreply@example.org"

    def is_configured(self):
        return True

    def send(self, to, subject, html, text=None, to_name=None, reply_to=None):
        if self.fail:
            raise EmailDeliveryError("Brevo unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return {"message_id": f"msg-{len(self.sent)}"}

    def add_contact(self, email, attributes=None):
        if self.fail:
            raise EmailDeliveryError("Brevo unavailable")
        if email in self.contacts:
            return {"created": False}
        self.contacts[email] = attributes or {}
        return {"created": True}


class FakeCaptcha:
    def __init__(self):
        self.accept = True
        self.tokens = []

    def verify(self, token):
        self.tokens.append(token)
        return self.accept


# ===============================
# Seed data
# ===============================
ADMIN = {"id": "admin-1", "user_id": "auth-admin-1", "role": "admin", "full_name": "Ada Admin", "email": "ada@example.org"}
APPLICANT = {"id": "applicant-1", "user_id": "auth-applicant-1", "role": "applicant", "full_name": "Amaka Obi", "email": "amaka@example.org"}
OTHER_APPLICANT = {"id": "applicant-2", "user_id": "auth-applicant-2", "role": "applicant", "full_name": "Bola Ade", "email": "bola@example.org"}
MENTOR = {"id": "mentor-1", "user_id": "auth-mentor-1", "role": "mentor", "full_name": "Chidi Eze", "email": "chidi@example.org"}
BUSY_MENTOR = {"id": "mentor-2", "user_id": "auth-mentor-2", "role": "mentor", "full_name": "Dayo Ola", "email": "dayo@example.org"}
PARTNER = {"id": "partner-1", "user_id": "auth-partner-1", "role": "partner", "full_name": "Partner Org", "email": "partner@example.org"}
PROGRAM = {"id": "program-1", "title": "STEM Excellence Grant", "type": "education", "status": "active"}

COMPLETE_FORM = {
    "current_institution": "University of Lagos",
    "program_of_study": "Computer Science",
    "year_of_study": "2",
    "grant_type": "education_level_1",
    "amount_requested": "500000",
    "purpose_of_grant": "Tuition",
    "academic_goals": "Graduate with first class honours",
    "how_grant_will_help": "Covers my tuition for the year",
    "declaration_accepted": True,
}


def caller(profile) -> CallerContext:
    return CallerContext(caller_id=profile["id"], caller_role=profile["role"], user_id=profile["user_id"])


def as_user(profile) -> dict:
    return {"X-Caller-Id": profile["id"], "X-Caller-Role": profile["role"]}


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.seed("profiles", ADMIN, APPLICANT, OTHER_APPLICANT, MENTOR, BUSY_MENTOR, PARTNER)
    fake.seed(
        "mentor_profiles",
        {"user_id": MENTOR["id"], "is_available": True, "status": "approved"},
        {"user_id": BUSY_MENTOR["id"], "is_available": False, "status": "approved"},
    )
    fake.seed("programs", PROGRAM)
    return fake


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def captcha():
    return FakeCaptcha()


@pytest.fixture
def dispatcher(db, mailer):
    return NotificationDispatcher(db, mailer)


def header_caller(
    x_caller_id: Optional[str] = Header(None),
    x_caller_role: Optional[str] = Header(None),
) -> CallerContext:
    if not x_caller_id or not x_caller_role:
        raise NotAuthenticated("Unauthorized")
    return CallerContext(caller_id=x_caller_id, caller_role=x_caller_role)


@pytest.fixture
def client(db, mailer, captcha):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_captcha_verifier] = lambda: captcha
    app.dependency_overrides[get_caller] = header_caller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
