"""Shared fixtures: a scripted stand-in for the Supabase REST client."""

import pytest

from common.supabase import ApiError, StatementExecutionUnsupported


class FakeSupabase:
    """Records every call; rejects the statement at ``reject_at`` (1-based) and
    fails the probe when ``probe_ok`` is False."""

    def __init__(self, reject_at=None, probe_ok=True, reject_with=StatementExecutionUnsupported):
        self.reject_at = reject_at
        self.probe_ok = probe_ok
        self.reject_with = reject_with
        self.submitted = []
        self.probes = 0

    def rpc(self, fn, params):
        self.submitted.append((fn, params["sql"]))
        if self.reject_at is not None and len(self.submitted) == self.reject_at:
            raise self.reject_with("HTTP 404 POST rpc/exec_sql -> function not found")
        return None

    def probe(self):
        self.probes += 1
        if not self.probe_ok:
            raise ApiError("HTTP 401 GET  -> Invalid API key", status=401)


@pytest.fixture
def fake_client():
    return FakeSupabase


@pytest.fixture
def messages():
    return []


@pytest.fixture
def sql_file(tmp_path):
    p = tmp_path / "001_test.sql"
    p.write_text(
        "CREATE TABLE a (id int);\n"
        "CREATE INDEX idx_a ON a(id);\n"
        "ALTER TABLE a ENABLE ROW LEVEL SECURITY;\n",
        encoding="utf-8",
    )
    return p
