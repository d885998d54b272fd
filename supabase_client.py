# supabase_client.py - per-session Supabase client for the kv_store backend
from __future__ import annotations

import streamlit as st

from supabase import create_client, Client

from config import app_env, get_secret

# ---- client options import (version-proof) ----
try:
    # newer supabase-py versions
    from supabase.lib.client_options import ClientOptions as _ClientOptions
except ImportError:
    _ClientOptions = None  # type: ignore


class SupabaseConfigError(RuntimeError):
    pass


def _cfg():
    env = app_env()

    if env == "dev":
        url = get_secret("SUPABASE_URL_DEV")
        key = get_secret("SUPABASE_ANON_KEY_DEV")
    else:
        url = get_secret("SUPABASE_URL_PROD")
        key = get_secret("SUPABASE_ANON_KEY_PROD")

    if not url or not key:
        raise SupabaseConfigError(
            "Missing Supabase credentials. Need SUPABASE_URL_* and SUPABASE_ANON_KEY_* for active APP_ENV."
        )

    return env, url, key


def _make_client(url: str, key: str) -> Client:
    """No SDK auth persistence: the kv_store table is the only thing we touch."""
    if _ClientOptions is None:
        # Older supabase-py: no client options available
        return create_client(url, key)

    opts = _ClientOptions(
        persist_session=False,
        auto_refresh_token=False,
    )
    return create_client(url, key, options=opts)  # type: ignore[arg-type]


def get_supabase() -> Client:
    """Per-Streamlit-session client, created on first use."""
    if st.session_state.get("supabase_client") is not None:
        return st.session_state.supabase_client

    _, url, key = _cfg()
    st.session_state.supabase_client = _make_client(url, key)
    return st.session_state.supabase_client

