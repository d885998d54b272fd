# db.py - Supabase persistence helpers for the kv_store table
#
# Table shape (one row per namespaced key):
#   kv_store(namespace text, key text, value text, updated_at timestamptz,
#            primary key (namespace, key))

from __future__ import annotations

from typing import Any, Optional
import datetime as dt
import logging

import time
import httpx

from supabase_client import get_supabase

logger = logging.getLogger(__name__)

KV_TABLE = "kv_store"


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _execute_with_retry(q, *, tries: int = 3, base_sleep: float = 0.2):
    """
    Retry wrapper for transient PostgREST/httpx read/connect hiccups (common on Streamlit Cloud).
    q must be a PostgREST query object that supports .execute().
    """
    last_err = None
    for attempt in range(tries):
        try:
            return q.execute()
        except (httpx.ReadError, httpx.ConnectError, httpx.TimeoutException) as e:
            last_err = e
            logger.warning("[db] transient error (attempt %d/%d): %r", attempt + 1, tries, e)
            time.sleep(base_sleep * (2 ** attempt))  # 0.2, 0.4, 0.8
    raise last_err  # bubble after retries


def kv_get(namespace: str, key: str, sb: Any = None) -> Optional[str]:
    sb = sb or get_supabase()
    res = _execute_with_retry(
        sb.table(KV_TABLE)
        .select("value")
        .eq("namespace", namespace)
        .eq("key", key)
        .maybe_single()
    )
    # newer supabase-py returns None (not an empty response) when no row matches
    row = getattr(res, "data", None) if res is not None else None
    if not row:
        return None
    value = row.get("value")
    return str(value) if value is not None else None


def kv_set(namespace: str, key: str, value: str, sb: Any = None) -> None:
    sb = sb or get_supabase()
    payload = {
        "namespace": namespace,
        "key": key,
        "value": value,
        "updated_at": _now_iso(),
    }
    _execute_with_retry(
        sb.table(KV_TABLE).upsert(payload, on_conflict="namespace,key")
    )


def kv_delete(namespace: str, key: str, sb: Any = None) -> None:
    sb = sb or get_supabase()
    _execute_with_retry(
        sb.table(KV_TABLE)
        .delete()
        .eq("namespace", namespace)
        .eq("key", key)
    )
