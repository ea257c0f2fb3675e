import asyncio
import os
import threading
import time
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
import uuid

import pytest

# Required settings must exist before app.config is imported
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("SUPABASE_BUCKET", "pages")
os.environ.setdefault("REPLICATE_API_TOKEN", "r8_test_token")

from app.auth import supabase_auth  # noqa: E402
from app.db import supabase_client  # noqa: E402
from app.jobs.dispatcher import TaskQueue  # noqa: E402

FAKE_STORAGE_URL = "http://localhost:54321/storage/v1"


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest builder chain used by the app."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._payload: Any = None
        self._filters: List[tuple] = []
        self._order: Optional[tuple] = None

    def select(self, columns="*"):
        self._op = "select"
        self._columns = columns
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
        self._filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def execute(self):
        with self._db.lock:
            return self._execute()

    def _execute(self):
        error = self._db.failures.get((self._table, self._op))
        if error is not None:
            raise error
        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "insert":
            row = self._db.new_row(self._table, self._payload)
            return FakeResponse([dict(row)])

        matched = [
            r for r in rows if all(r.get(col) == val for col, val in self._filters)
        ]
        if self._op == "select":
            if self._order:
                column, desc = self._order
                matched = sorted(matched, key=lambda r: r.get(column), reverse=desc)
            if self._columns != "*":
                wanted = [c.strip() for c in self._columns.split(",")]
                return FakeResponse([{c: r.get(c) for c in wanted} for r in matched])
            return FakeResponse([dict(r) for r in matched])
        if self._op == "update":
            self._db.updates.append((self._table, dict(self._filters), dict(self._payload)))
            for r in matched:
                r.update(self._payload)
                if "status" in self._payload:
                    self._db.record_status(self._table, r["id"], self._payload["status"])
            return FakeResponse([dict(r) for r in matched])
        if self._op == "delete":
            for r in matched:
                rows.remove(r)
            return FakeResponse([dict(r) for r in matched])
        raise AssertionError(f"unsupported op {self._op}")


class FakeBucket:
    def __init__(self, db: "FakeSupabase", name: str):
        self._db = db
        self.name = name

    def upload(self, path, file, file_options=None):
        # Blocking like the real client's HTTP round trip
        if self._db.upload_delay:
            time.sleep(self._db.upload_delay)
        if path in self._db.failing_uploads:
            raise RuntimeError("The resource already exists")
        with self._db.lock:
            self._db.objects[(self.name, path)] = {
                "data": bytes(file),
                "content_type": (file_options or {}).get("content-type"),
            }
        return SimpleNamespace(path=path)

    def create_signed_url(self, path, expires_in):
        if path in self._db.failing_signs:
            raise RuntimeError("Object not found")
        with self._db.lock:
            self._db.signed.append((path, expires_in))
            url = f"{FAKE_STORAGE_URL}/object/sign/{self.name}/{path}?token=tok{len(self._db.signed)}"
        return {"signedURL": url, "signedUrl": url}

    def remove(self, paths):
        with self._db.lock:
            for path in paths:
                self._db.objects.pop((self.name, path), None)
        return [{"name": p} for p in paths]


class FakeAuth:
    def __init__(self):
        self.users: Dict[str, SimpleNamespace] = {}
        self.passwords: Dict[str, str] = {}
        self.outage: Optional[Exception] = None

    def add_user(self, token: str, user_id: str, email: str = "user@example.com"):
        self.users[token] = SimpleNamespace(id=user_id, email=email)

    def get_user(self, token):
        if self.outage is not None:
            raise self.outage
        if token not in self.users:
            raise RuntimeError("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=self.users[token])

    def _session(self, email):
        return SimpleNamespace(
            user=SimpleNamespace(id=f"id-{email}", email=email),
            session=SimpleNamespace(
                access_token=f"access-{email}", refresh_token="refresh", expires_in=3600
            ),
        )

    def sign_in_with_password(self, credentials):
        if self.passwords.get(credentials["email"]) != credentials["password"]:
            raise RuntimeError("Invalid login credentials")
        return self._session(credentials["email"])

    def sign_up(self, credentials):
        if credentials["email"] in self.passwords:
            raise RuntimeError("User already registered")
        self.passwords[credentials["email"]] = credentials["password"]
        return self._session(credentials["email"])


class FakeSupabase:
    """In-memory stand-in for the Supabase client: tables, storage, auth."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.objects: Dict[tuple, Dict[str, Any]] = {}
        self.signed: List[tuple] = []
        self.failing_uploads = set()
        self.failing_signs = set()
        self.failures: Dict[tuple, Exception] = {}
        self.upload_delay = 0.0
        # (sequence, table, row id, status) for every status write
        self.status_log: List[tuple] = []
        # (table, filters, payload) for every update statement
        self.updates: List[tuple] = []
        # Queries arrive from executor threads
        self.lock = threading.RLock()
        self.auth = FakeAuth()
        self.storage = SimpleNamespace(from_=lambda name: FakeBucket(self, name))
        self._clock = datetime(2024, 1, 1)

    def table(self, name):
        return FakeQuery(self, name)

    def new_row(self, table, payload):
        with self.lock:
            return self._new_row(table, payload)

    def _new_row(self, table, payload):
        self._clock += timedelta(seconds=1)
        row = {"id": str(uuid.uuid4()), "created_at": self._clock.isoformat(), **payload}
        if table == "downloads":
            row.setdefault("storage_path", None)
        if table == "ai_generations":
            row.setdefault("output_urls", None)
            row.setdefault("error", None)
        self.tables.setdefault(table, []).append(row)
        if "status" in row:
            self.record_status(table, row["id"], row["status"])
        return row

    def record_status(self, table, row_id, status):
        self.status_log.append((len(self.status_log), table, row_id, status))

    def statuses(self, table, row_id) -> List[str]:
        return [s for _, t, rid, s in self.status_log if t == table and rid == row_id]

    def row(self, table, row_id):
        for r in self.tables.get(table, []):
            if r["id"] == row_id:
                return r
        return None


class FakeFileOutput:
    def __init__(self, data: bytes):
        self._data = data

    async def aread(self) -> bytes:
        await asyncio.sleep(0)
        return self._data


class FakeReplicate:
    def __init__(self, outputs: Optional[List[bytes]] = None, error: Optional[Exception] = None):
        self.outputs = outputs if outputs is not None else [b"\x89PNG-one"]
        self.error = error
        self.calls: List[tuple] = []

    async def async_run(self, ref, input):
        self.calls.append((ref, input))
        if self.error is not None:
            raise self.error
        return [FakeFileOutput(data) for data in self.outputs]


class RecordingQueue(TaskQueue):
    """Queue that accepts tasks without running them."""

    def __init__(self):
        self.submitted: List[tuple] = []
        self.concurrency = 1
        self.active = 0

    @property
    def pending(self):
        return len(self.submitted)

    async def submit(self, task, key=None):
        future = asyncio.get_running_loop().create_future()
        self.submitted.append((key, task))
        return future

    def get_handle(self, key):
        return None

    async def start(self):
        pass

    async def stop(self):
        pass


@pytest.fixture
def fake_supabase(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(supabase_client, "_client", fake)
    monkeypatch.setattr(supabase_auth, "session_client", lambda: fake)
    return fake


@pytest.fixture
def user_id():
    return "user-123"


@pytest.fixture
def make_replicate():
    return FakeReplicate


@pytest.fixture
def recording_queue():
    return RecordingQueue()
