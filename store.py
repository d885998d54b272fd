# store.py - key-value stores behind SessionManager
#
# Every store speaks the same three calls on JSON text blobs:
#   get(key) -> str | None, set(key, blob), delete(key)
# Errors propagate; SessionManager decides what is best-effort.

from __future__ import annotations

from typing import Any, Dict, MutableMapping, Optional

import streamlit as st

import config
import db


class MemoryStore:
    """Plain dict. Used by tests and as the no-config fallback."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, blob: str) -> None:
        self._data[key] = blob

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class SessionStateStore:
    """
    Blobs kept in st.session_state under a "_store_" prefix, so they live as
    long as the browser session. Pass `state` to use any mutable mapping.
    """

    PREFIX = "_store_"

    def __init__(self, state: Optional[MutableMapping[str, Any]] = None):
        self._state = state if state is not None else st.session_state

    def _k(self, key: str) -> str:
        return f"{self.PREFIX}{key}"

    def get(self, key: str) -> Optional[str]:
        v = self._state.get(self._k(key))
        return str(v) if v is not None else None

    def set(self, key: str, blob: str) -> None:
        self._state[self._k(key)] = blob

    def delete(self, key: str) -> None:
        k = self._k(key)
        if k in self._state:
            del self._state[k]


class SupabaseStore:
    """Rows in the Supabase kv_store table, scoped by namespace."""

    def __init__(self, namespace: Optional[str] = None, client: Any = None):
        self.namespace = namespace or config.kv_namespace()
        self._client = client

    def get(self, key: str) -> Optional[str]:
        return db.kv_get(self.namespace, key, sb=self._client)

    def set(self, key: str, blob: str) -> None:
        db.kv_set(self.namespace, key, blob, sb=self._client)

    def delete(self, key: str) -> None:
        db.kv_delete(self.namespace, key, sb=self._client)


def make_store(backend: Optional[str] = None):
    """Build the store named by `backend` (default: STORE_BACKEND setting)."""
    backend = (backend or config.store_backend()).lower().strip()
    if backend == "memory":
        return MemoryStore()
    if backend == "session":
        return SessionStateStore()
    if backend == "supabase":
        return SupabaseStore()
    raise ValueError(f"Unknown store backend: {backend!r}")
