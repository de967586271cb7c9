"""
Shared test fixtures for the portfolio backend.
Replaces the Supabase client with an in-memory fake (tables, unique
constraints, cascading deletes, a storage bucket and the auth admin API).
Zero network calls.
"""
import time
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import jwt
import pytest
from postgrest.exceptions import APIError

TEST_JWT_SECRET = "test-secret-with-enough-length-for-hs256"

UNIQUE = {
    'group_students': [('group_id', 'student_id')],
    'portfolio_evaluations': [('portfolio_id',)],
    'profiles': [('email',)],
}

CASCADES = {
    'subjects': [('groups', 'subject_id'), ('portfolios', 'subject_id')],
    'groups': [('group_students', 'group_id')],
    'portfolios': [('portfolio_evaluations', 'portfolio_id')],
    'portfolio_evaluations': [('evaluation_scores', 'evaluation_id')],
    'evaluation_templates': [('evaluation_criteria', 'template_id')],
}

NO_ID_TABLES = {'group_students'}
CREATED_AT_TABLES = {'profiles', 'subjects', 'groups', 'evaluation_templates', 'portfolio_evaluations'}

_clock = [0]


def _timestamp():
    # strictly increasing so "newest first" is deterministic
    _clock[0] += 1
    return datetime.fromtimestamp(1_700_000_000 + _clock[0], tz=timezone.utc).isoformat()


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.op = 'select'
        self.payload = None
        self.filters = []
        self.orders = []
        self.max_rows = None

    def select(self, *columns, **kwargs):
        self.op = 'select'
        return self

    def insert(self, data, **kwargs):
        self.op = 'insert'
        self.payload = data
        return self

    def update(self, data, **kwargs):
        self.op = 'update'
        self.payload = data
        return self

    def delete(self, **kwargs):
        self.op = 'delete'
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False, **kwargs):
        self.orders.append((column, desc))
        return self

    def limit(self, size, **kwargs):
        self.max_rows = size
        return self

    def _matching(self, rows):
        return [r for r in rows if all(f(r) for f in self.filters)]

    def execute(self):
        self.client.calls.append((self.table, self.op))
        if (self.table, self.op) in self.client.failures:
            raise APIError({"code": "XX000", "message": "simulated failure", "details": "", "hint": ""})

        rows = self.client.tables.setdefault(self.table, [])

        if self.op == 'select':
            result = [dict(r) for r in self._matching(rows)]
            for column, desc in reversed(self.orders):
                result.sort(key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else ''), reverse=desc)
            if self.max_rows is not None:
                result = result[:self.max_rows]
            return FakeResponse(result)

        if self.op == 'insert':
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for data in new_rows:
                row = self.client.with_defaults(self.table, dict(data))
                self.client.check_unique(self.table, row, rows + inserted)
                inserted.append(row)
            rows.extend(inserted)
            return FakeResponse([dict(r) for r in inserted])

        if self.op == 'update':
            updated = []
            for row in self._matching(rows):
                row.update(self.payload)
                updated.append(dict(row))
            return FakeResponse(updated)

        if self.op == 'delete':
            doomed = self._matching(rows)
            for row in doomed:
                rows.remove(row)
                self.client.cascade(self.table, row)
            return FakeResponse([dict(r) for r in doomed])

        raise AssertionError(f"unknown op {self.op}")


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name
        self.files = storage.files.setdefault(name, {})

    def upload(self, path, file, file_options=None):
        if self.storage.fail_upload:
            raise RuntimeError("simulated upload failure")
        upsert = (file_options or {}).get('upsert') == 'true'
        if path in self.files and not upsert:
            raise RuntimeError("The resource already exists")
        self.files[path] = bytes(file)
        return SimpleNamespace(path=path, full_path=f"{self.name}/{path}")

    def create_signed_url(self, path, expires_in, options=None):
        if path not in self.files:
            raise RuntimeError("Object not found")
        self.storage.signed += 1
        url = f"https://storage.test/{self.name}/{path}?token=t{self.storage.signed}&expires_in={expires_in}"
        return {"signedURL": url, "signedUrl": url}

    def remove(self, paths):
        if self.storage.fail_remove:
            raise RuntimeError("simulated remove failure")
        removed = []
        for p in paths:
            if self.files.pop(p, None) is not None:
                removed.append({"name": p})
        return removed


class FakeStorage:
    def __init__(self):
        self.files = {}
        self.signed = 0
        self.fail_upload = False
        self.fail_remove = False

    def from_(self, name):
        return FakeBucket(self, name)


class FakeAuthAdmin:
    def __init__(self, client):
        self.client = client
        self.users = {}
        self.fail_create = False

    def create_user(self, attributes):
        if self.fail_create:
            raise RuntimeError("simulated auth failure")
        user = SimpleNamespace(id=str(uuid.uuid4()), email=attributes['email'],
                               user_metadata=attributes.get('user_metadata', {}),
                               app_metadata=attributes.get('app_metadata', {}))
        self.users[user.id] = user
        return SimpleNamespace(user=user)

    def delete_user(self, user_id):
        self.users.pop(user_id, None)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = set()
        self.storage = FakeStorage()
        self.auth = SimpleNamespace(admin=FakeAuthAdmin(self))

    def table(self, name):
        return FakeQuery(self, name)

    def fail(self, table, op):
        self.failures.add((table, op))

    def rows(self, table):
        return self.tables.get(table, [])

    def with_defaults(self, table, row):
        if table not in NO_ID_TABLES:
            row.setdefault('id', str(uuid.uuid4()))
        if table in CREATED_AT_TABLES:
            row.setdefault('created_at', _timestamp())
        if table == 'portfolios':
            row.setdefault('status', 'pending')
            row.setdefault('submitted_at', _timestamp())
        return row

    def check_unique(self, table, row, existing):
        for columns in UNIQUE.get(table, []):
            key = tuple(row.get(c) for c in columns)
            if any(tuple(r.get(c) for c in columns) == key for r in existing):
                raise APIError({
                    "code": "23505",
                    "message": f"duplicate key value violates unique constraint on {table}",
                    "details": "", "hint": "",
                })

    def cascade(self, table, parent):
        for child_table, column in CASCADES.get(table, []):
            children = [r for r in self.rows(child_table) if r.get(column) == parent.get('id')]
            for child in children:
                self.tables[child_table].remove(child)
                self.cascade(child_table, child)


# ============ Fixtures ============

@pytest.fixture
def db(monkeypatch):
    """Install a fresh fake Supabase client for the test."""
    import portfolio_backend.db as db_module
    from portfolio_backend.auth import invalidate_session

    fake = FakeSupabase()
    monkeypatch.setattr(db_module, "supabase", fake)
    monkeypatch.setenv("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    invalidate_session()
    return fake


def add_profile(db, name, role, code, email=None):
    user_id = str(uuid.uuid4())
    db.table('profiles').insert({
        "id": user_id,
        "name": name,
        "email": email or f"{code.lower()}@school.test",
        "role": role,
        "student_id": code if role == 'student' else None,
        "teacher_id": code if role == 'teacher' else None,
    }).execute()
    return user_id


@pytest.fixture
def seeded(db):
    """A teacher owning one subject with one group holding one student."""
    teacher_id = add_profile(db, "Laura Méndez", "teacher", "T000456")
    student_id = add_profile(db, "Carlos Ruiz", "student", "A000123")
    outsider_id = add_profile(db, "Ana Torres", "student", "A000999")

    subject = db.table('subjects').insert({
        "name": "Programming I", "code": "PRG1", "semester": "3er Semestre",
        "career": "Software Engineering", "teacher_id": teacher_id, "school_year": "2025-2026",
    }).execute().data[0]
    group = db.table('groups').insert({
        "subject_id": subject['id'], "name": "Group A", "schedule": "Mon 08:00-10:00",
    }).execute().data[0]
    db.table('group_students').insert({"group_id": group['id'], "student_id": student_id}).execute()

    return SimpleNamespace(
        teacher_id=teacher_id,
        student_id=student_id,
        outsider_id=outsider_id,
        subject_id=subject['id'],
        group_id=group['id'],
    )


@pytest.fixture
def app(db):
    from portfolio_backend.app import create_app
    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()


def make_token(user_id, role=None, expires_in=3600, user_metadata=None):
    claims = {"sub": user_id, "aud": "authenticated", "exp": int(time.time()) + expires_in}
    if role:
        claims["app_metadata"] = {"role": role}
    if user_metadata:
        claims["user_metadata"] = user_metadata
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user id and role."""
    def _headers(user_id, role=None, user_metadata=None):
        return {"Authorization": f"Bearer {make_token(user_id, role, user_metadata=user_metadata)}"}
    return _headers


@pytest.fixture
def make_profile(db):
    """Insert a profile row and return its canonical id."""
    def _make(name, role, code, email=None):
        return add_profile(db, name, role, code, email)
    return _make
