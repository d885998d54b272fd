# sidebar.py - shared manager bootstrap + navigation sidebar for every page

import logging

import streamlit as st

import config
from game_session import SessionStep
from session_manager import SessionManager
from store import make_store

STEP_LABELS = {
    SessionStep.SETTING_UP: "Choosing players",
    SessionStep.NAMING_PLAYERS: "Naming players",
    SessionStep.IN_GAME: "In game",
    SessionStep.SUMMARY_PRE_REDUCTION: "Summary",
    SessionStep.SUMMARY_POST_REDUCTION: "Summary (mercy applied)",
    SessionStep.VIEWING_HISTORY: "Viewing history",
}


def get_manager() -> SessionManager:
    """
    One SessionManager per browser session, hydrated from the store on
    first access only (reruns reuse it).
    """
    mgr = st.session_state.get("tallies_manager")
    if mgr is None:
        logging.basicConfig(
            level=config.log_level(),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        mgr = SessionManager(make_store())
        mgr.load()
        st.session_state.tallies_manager = mgr
    return mgr


def render_sidebar(mgr: SessionManager) -> None:
    """Game status, New Game (with confirmation) and history count."""
    session = mgr.session

    with st.sidebar:
        st.markdown("## 🃏 Poker Tallies")

        st.caption(STEP_LABELS.get(session.step, session.step.value))
        if session.has_named_players():
            st.markdown(f"**Players:** {', '.join(session.player_names)}")
            st.markdown(f"**Hands:** {len(session.hands)}")
            if session.window.is_open:
                st.markdown(f"**Rowie:** {session.window.remaining_hands} hands left")

        st.markdown("---")

        confirm = st.checkbox("All current progress will be lost", key="confirm_new_game")
        if st.button("+ New Game", use_container_width=True, disabled=not confirm):
            mgr.abandon()
            st.session_state.pop("confirm_new_game", None)
            st.rerun()

        st.markdown("---")
        st.caption(f"📋 {len(mgr.history)} saved game{'s' if len(mgr.history) != 1 else ''}")
