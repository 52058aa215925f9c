# common/supabase.py
# -*- coding: utf-8 -*-
"""
Supabase REST（PostgREST）存取：
- 讀取 NEXT_PUBLIC_SUPABASE_API / NEXT_PUBLIC_PUBLIC_API_KEY（可放 .env）
- rpc(): POST /rest/v1/rpc/<fn>，用來呼叫 exec_sql
- select(): GET /rest/v1/<table>，limit=0 時只當作連線/權限探測
錯誤一律轉成 ApiError；函式不存在或金鑰權限不足 -> StatementExecutionUnsupported
"""
from __future__ import annotations
import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import requests
from dotenv import load_dotenv

from common.utils import clip

URL_ENV = "NEXT_PUBLIC_SUPABASE_API"
KEY_ENV = "NEXT_PUBLIC_PUBLIC_API_KEY"

HTTP_TIMEOUT = 60.0
USER_AGENT = "enrollmate-migrations/1.0"
DASHBOARD = "https://supabase.com/dashboard"

_REF_RE = re.compile(r"^https?://([a-z0-9]+)\.supabase\.(co|in)/?$", re.I)


class ApiError(RuntimeError):
    def __init__(self, msg: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(msg)
        self.status = status
        self.code = code


class StatementExecutionUnsupported(ApiError):
    """The key or project cannot run arbitrary SQL through RPC."""


class MissingConfiguration(RuntimeError):
    pass


# -------- .env --------
def load_env():
    # 先找目前工作目錄，再找 repo 根目錄
    load_dotenv() or load_dotenv(Path(__file__).resolve().parents[1].joinpath(".env"))

def getenv_any(names, default=None, environ: Optional[Mapping[str, str]] = None):
    env = os.environ if environ is None else environ
    for n in names:
        v = env.get(n)
        if v:
            return v
    return default

def load_config(environ: Optional[Mapping[str, str]] = None) -> tuple[str, str]:
    url = getenv_any([URL_ENV], environ=environ)
    key = getenv_any([KEY_ENV], environ=environ)
    if not url or not key:
        raise MissingConfiguration(
            f"Missing Supabase environment variables: please ensure {URL_ENV} and {KEY_ENV} are set in your .env file"
        )
    return url, key


def dashboard_sql_url(url: str) -> str:
    m = _REF_RE.match(url.strip())
    if not m:
        return DASHBOARD
    return f"{DASHBOARD}/project/{m.group(1).lower()}/sql"


# -------- HTTP --------
class SupabaseRest:
    def __init__(self, url: str, key: str, session: Optional[requests.Session] = None,
                 timeout: float = HTTP_TIMEOUT):
        self.base = url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        })

    def _send(self, method: str, path: str, **kw) -> Any:
        url = f"{self.base}/{path}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kw)
        except requests.RequestException as e:
            raise ApiError(f"NETWORK {method} {path} -> {e}")
        if r.status_code >= 300:
            raise self._error(method, path, r)
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            raise ApiError(f"NONJSON {method} {path} -> {clip(r.text)}", status=r.status_code)

    @staticmethod
    def _error(method: str, path: str, r: requests.Response) -> ApiError:
        code = msg = None
        try:
            body = r.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            msg = body.get("message") or body.get("msg") or body.get("error")
        msg = f"HTTP {r.status_code} {method} {path} -> {msg or clip(r.text)}"
        rpc = path.startswith("rpc/")
        if rpc and (r.status_code in (401, 403, 404) or code == "PGRST202"):
            return StatementExecutionUnsupported(msg, status=r.status_code, code=code)
        return ApiError(msg, status=r.status_code, code=code)

    def rpc(self, fn: str, params: Dict[str, Any]) -> Any:
        return self._send("POST", f"rpc/{fn}", json=params)

    def select(self, table: str, columns: str = "*", limit: Optional[int] = None) -> Any:
        params: Dict[str, Any] = {"select": columns}
        if limit is not None:
            params["limit"] = limit
        return self._send("GET", table, params=params)

    def probe(self) -> None:
        """Harmless read-only call; raises ApiError when the REST endpoint refuses it."""
        self.select("", limit=0)
