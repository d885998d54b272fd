# config.py - tunables + environment/secrets lookup for Poker Tallies
from __future__ import annotations

import os
from fractions import Fraction
from typing import Optional

# ----------------------------- Tunables -----------------------------

MIN_PLAYERS = 2
MAX_PLAYERS = 7

# Side-bet ("rowie") pot, per player, offered when configuring a new window
DEFAULT_POT_AMOUNT = 5

# Ranked settlement ("bubble"): paid to every player ranked strictly above you
BUBBLE_AMOUNT = 10

# Mercy: chips * 5% / 2 / 2
MERCY_RATIO = Fraction(5, 100) / 2 / 2

# In-progress session older than this is discarded on load
FRESHNESS_HOURS = 24

# ----------------------------- Storage keys -----------------------------

STORAGE_KEY = "poker-tallies-current-game"
HISTORY_KEY = "poker-tallies-history"

STORE_BACKENDS = ("memory", "session", "supabase")


def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """Environment first, then Streamlit secrets, then the default."""
    v = os.getenv(name)
    if v:
        return v
    try:
        import streamlit as st

        if name in st.secrets:
            v2 = st.secrets[name]
            if v2:
                return str(v2)
    except Exception:
        # st.secrets raises when no secrets.toml exists (tests, scripts)
        pass
    return default


def app_env() -> str:
    return (get_secret("APP_ENV", "prod") or "prod").lower().strip()


def store_backend() -> str:
    backend = (get_secret("STORE_BACKEND", "session") or "session").lower().strip()
    if backend not in STORE_BACKENDS:
        raise ValueError(f"STORE_BACKEND must be one of {STORE_BACKENDS}, got: {backend!r}")
    return backend


def kv_namespace() -> str:
    return (get_secret("KV_NAMESPACE", "default") or "default").strip()


def log_level() -> str:
    return (get_secret("LOG_LEVEL", "INFO") or "INFO").upper().strip()
