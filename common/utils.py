# common/utils.py
import datetime as dt

def log(msg: str):
    now = dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    print(f"[{now}] {msg}", flush=True)

def clip(text: str, n: int = 300) -> str:
    """Single-line preview of a response body or SQL statement."""
    s = " ".join(str(text).split())
    return s if len(s) <= n else s[: n - 1] + "…"
