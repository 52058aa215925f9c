#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Enrollmate 排課表 migration -> Supabase
- 讀取同目錄的 001_create_scheduler_tables.sql，以分號切成多段 statement
- 逐段呼叫 RPC exec_sql；任何一段失敗就停止（不重試、不回滾）
- 最後做一次唯讀探測（select limit 0）；探測失敗 -> 印出手動執行步驟，正常結束
- 缺環境變數、找不到 SQL 檔或其他例外 -> 印出手動步驟，exit 1
"""
from __future__ import annotations
import enum
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Mapping, Optional

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from common.supabase import (
    ApiError, MissingConfiguration, SupabaseRest,
    dashboard_sql_url, load_config, load_env,
)
from common.utils import clip, log as _log

MIGRATION_FILE = "001_create_scheduler_tables.sql"
MIGRATION_PATH = Path(__file__).resolve().with_name(MIGRATION_FILE)

EXPECTED_OBJECTS = [
    "📚 Tables created:",
    "  - course_sections (with sample data)",
    "  - user_schedules",
    "  - schedule_preferences",
    "",
    "🔒 Row Level Security (RLS) policies applied",
    "📊 Indexes created for optimal performance",
]


class ResourceNotFound(FileNotFoundError):
    pass


class Outcome(enum.Enum):
    COMPLETED = "completed"
    PARTIAL_FALLBACK = "partial_fallback"
    MANUAL_FALLBACK = "manual_fallback"
    FAILED = "failed"


@dataclass
class RunResult:
    outcome: Outcome
    applied: int = 0
    total: int = 0
    messages: List[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome is Outcome.FAILED else 0


# ---------- statements ----------

def split_statements(sql: str) -> List[str]:
    """
    以 ';' 粗切 SQL。不理解引號字串、$$ 區塊或函式本體，
    內含 ';' 的 statement 會被切成多段（已知限制，migration 檔需避免）。
    """
    out = []
    for frag in sql.split(";"):
        s = frag.strip()
        if not s or s.startswith("--") or s == "\\n":
            continue
        out.append(s)
    return out

def load_statements(path) -> List[str]:
    p = Path(path)
    try:
        sql = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ResourceNotFound(f"Migration file not readable: {p} ({e})") from e
    return split_statements(sql)


# ---------- apply ----------

def _emit(res: RunResult, log: Callable[[str], None], *lines: str):
    for ln in lines:
        res.messages.append(ln)
        log(ln)

def manual_steps(sql_path, dashboard_url: str) -> List[str]:
    return [
        "📋 Manual steps needed:",
        f"1. Go to your Supabase dashboard: {dashboard_url}",
        f"2. Copy the contents of {sql_path}",
        "3. Paste and execute the SQL in the SQL Editor",
    ]

def apply_all(client, statements: List[str], sql_path=MIGRATION_PATH,
              dashboard_url: str = "", log: Callable[[str], None] = _log) -> RunResult:
    total = len(statements)
    res = RunResult(Outcome.COMPLETED, total=total)
    rejected = False

    _emit(res, log, f"🔄 Executing {total} SQL statements...")
    for i, stmt in enumerate(statements, 1):
        _emit(res, log, f"⚡ Executing statement {i}/{total}...")
        try:
            client.rpc("exec_sql", {"sql": stmt})
        except ApiError as e:
            _emit(res, log, f"⚠️  Statement {i}/{total} rejected: {e}",
                  f"⚠️  RPC exec_sql not available, stopping at: {clip(stmt, 80)}")
            rejected = True
            break
        res.applied += 1

    _emit(res, log, "🔄 Attempting direct SQL execution...")
    try:
        client.probe()
    except ApiError as e:
        res.outcome = (Outcome.PARTIAL_FALLBACK if rejected and res.applied > 0
                       else Outcome.MANUAL_FALLBACK)
        _emit(res, log, f"⚠️  Direct SQL execution not available with this key ({e})")
        if res.outcome is Outcome.PARTIAL_FALLBACK:
            _emit(res, log, f"⚠️  {res.applied} of {total} statements were applied before the stop")
        _emit(res, log,
              "📋 Please run the following SQL manually in your Supabase SQL Editor:",
              "",
              f"📎 --- Copy the contents of {sql_path} ---",
              f"🌐 Go to: {dashboard_url}",
              "📄 Paste the SQL and run it",
              "",
              f"✅ Migration file available at: {sql_path}")
        return res

    _emit(res, log, "✅ Migration completed successfully!", "",
          "🎉 Your Enrollmate scheduler database is ready!", *EXPECTED_OBJECTS)
    return res


# ---------- entry ----------

def run(client, sql_path=MIGRATION_PATH, dashboard_url: Optional[str] = None,
        log: Callable[[str], None] = _log) -> RunResult:
    dashboard_url = dashboard_url or dashboard_sql_url("")
    log("🚀 Starting Enrollmate scheduler migration...")
    try:
        statements = load_statements(sql_path)
        log("📄 Migration file loaded successfully")
        return apply_all(client, statements, sql_path, dashboard_url, log=log)
    except Exception as e:
        res = RunResult(Outcome.FAILED)
        _emit(res, log, f"❌ Migration failed: {e}", "", *manual_steps(sql_path, dashboard_url))
        return res

def main(environ: Optional[Mapping[str, str]] = None, client_factory=SupabaseRest,
         sql_path=MIGRATION_PATH, log: Callable[[str], None] = _log) -> int:
    if environ is None:
        load_env()
    try:
        url, key = load_config(environ)
    except MissingConfiguration as e:
        log(f"❌ {e}")
        return 1
    client = client_factory(url, key)
    return run(client, sql_path, dashboard_sql_url(url), log=log).exit_code


if __name__ == "__main__":
    raise SystemExit(main())
