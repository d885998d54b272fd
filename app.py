# app.py - Poker Tallies: hand entry, rowie side-bets, bubble + mercy summary
#
# Thin display layer: collects input, calls SessionManager, renders results.
# All rules live in engine.py / game_session.py.

import streamlit as st

st.set_page_config(
    page_title="Poker Tallies",
    page_icon="🃏",
    layout="centered",
)

from config import DEFAULT_POT_AMOUNT, MAX_PLAYERS, MIN_PLAYERS
from display import (
    side_bet_payouts_frame,
    side_bets_frame,
    standings_frame,
    summary_post_frame,
    summary_pre_frame,
    ranking_bet_frame,
    totals_frame,
)
from errors import ValidationError
from game_session import SessionStep
from session_manager import SessionManager
from sidebar import get_manager, render_sidebar

MONEY = st.column_config.NumberColumn(format="$%d")


def _attempt(fn, *args, **kwargs):
    """Run a manager call; show the rejection reason instead of raising."""
    try:
        return True, fn(*args, **kwargs)
    except ValidationError as e:
        st.error(e.message)
        return False, None


def _money_table(df, money_cols):
    st.dataframe(
        df,
        hide_index=True,
        use_container_width=True,
        column_config={c: MONEY for c in money_cols},
    )


# =============================================================================
# STEP: player count
# =============================================================================

def render_player_count(mgr: SessionManager) -> None:
    st.title("How many players?")
    counts = list(range(MIN_PLAYERS, MAX_PLAYERS + 1))
    cols = st.columns(len(counts))
    for col, n in zip(cols, counts):
        with col:
            if st.button(str(n), use_container_width=True, key=f"count_{n}"):
                ok, _ = _attempt(mgr.select_count, n)
                if ok:
                    st.rerun()

    if mgr.history:
        st.markdown("---")
        st.caption("Past games are on the **Session History** page.")


# =============================================================================
# STEP: player names
# =============================================================================

def render_player_names(mgr: SessionManager) -> None:
    session = mgr.session
    st.title("Enter player names")
    with st.form("names_form"):
        names = [
            st.text_input(f"Player {i + 1}", value=session.player_names[i], key=f"name_{i}")
            for i in range(session.player_count)
        ]
        submitted = st.form_submit_button("Continue", type="primary", use_container_width=True)
    if submitted:
        ok, _ = _attempt(mgr.set_names, names)
        if ok:
            st.rerun()


# =============================================================================
# STEP: game play
# =============================================================================

def _render_hand_entry(mgr: SessionManager) -> None:
    session = mgr.session
    hand_no = len(session.hands) + 1
    with st.form(f"hand_form_{hand_no}", clear_on_submit=True):
        st.subheader(f"Hand {hand_no}")
        deltas = [
            st.number_input(name, value=0, step=1, format="%d", key=f"hand_{hand_no}_{i}")
            for i, name in enumerate(session.player_names)
        ]
        st.caption(f"Sum: {sum(int(d) for d in deltas)} (must be 0)")
        submitted = st.form_submit_button("Submit Hand", type="primary", use_container_width=True)
    if submitted:
        ok, completed = _attempt(mgr.submit_hand, [int(d) for d in deltas])
        if ok:
            if completed is not None:
                st.session_state.flash = completed.label()
            st.rerun()


def _render_navigation(mgr: SessionManager) -> None:
    session = mgr.session
    if not session.hands:
        return

    c1, c2, c3, c4 = st.columns([1, 2, 1, 1])
    with c1:
        if st.button("◀ Prev", disabled=session.current_hand_cursor <= 0, use_container_width=True):
            mgr.previous_hand()
            st.rerun()
    with c2:
        st.markdown(f"**Hand {session.current_hand_cursor + 1} of {len(session.hands)}**")
    with c3:
        if st.button("Next ▶", disabled=session.current_hand_cursor >= len(session.hands) - 1,
                     use_container_width=True):
            mgr.next_hand()
            st.rerun()
    with c4:
        if st.button("Current", disabled=session.current_hand_cursor == len(session.hands) - 1,
                     use_container_width=True):
            mgr.latest_hand()
            st.rerun()

    _money_table(totals_frame(session), ["Hand", "Total"])

    hand = session.hand_at_cursor()
    if hand is not None and session.current_hand_cursor < len(session.hands) - 1:
        idx = session.current_hand_cursor
        with st.expander(f"✏️ Correct hand {idx + 1}"):
            with st.form(f"correct_form_{idx}"):
                fixed = [
                    st.number_input(name, value=int(hand.deltas[i]), step=1, format="%d",
                                    key=f"fix_{idx}_{i}")
                    for i, name in enumerate(session.player_names)
                ]
                if st.form_submit_button("Save correction", use_container_width=True):
                    ok, _ = _attempt(mgr.correct_hand, idx, [int(d) for d in fixed])
                    if ok:
                        st.rerun()


def _render_rowie(mgr: SessionManager) -> None:
    session = mgr.session
    window = session.window

    if window.is_visible:
        title = "Rowie Complete" if window.is_complete else "Active Rowie"
        st.subheader(title)
        st.caption(f"{window.num_hands} hands total • ${window.pot_amount} per player")
        if window.is_open:
            if window.remaining_hands == 1:
                st.warning("Last Hand!")
            else:
                st.info(f"{window.remaining_hands} hands remaining")
        _money_table(standings_frame(session), ["Points", "Behind"])

    if not window.is_open:
        with st.expander("🎲 New Rowie"):
            with st.form("rowie_form"):
                st.caption(f"Starting at Hand {len(session.hands) + 1}")
                num_hands = st.number_input("Number of Hands", min_value=0, value=0, step=1, format="%d")
                pot = st.number_input("Value ($ per player)", min_value=0, value=DEFAULT_POT_AMOUNT,
                                      step=1, format="%d")
                if st.form_submit_button("Start Rowie", use_container_width=True):
                    ok, _ = _attempt(mgr.open_window, int(num_hands), int(pot))
                    if ok:
                        st.rerun()

    if session.completed_side_bets:
        st.subheader("Completed Rowies")
        st.dataframe(side_bets_frame(session.completed_side_bets), hide_index=True, use_container_width=True)


def _render_finish(mgr: SessionManager) -> None:
    session = mgr.session
    with st.expander("🏁 Finish Game"):
        use_ranking = st.checkbox("Add a separate end-of-session ranking bet")
        ranking = None
        if use_ranking:
            ranking = [
                int(st.number_input(f"{name} standing", value=0, step=1, format="%d", key=f"rank_{i}"))
                for i, name in enumerate(session.player_names)
            ]
        if st.button("Finish Game", type="primary", use_container_width=True):
            ok, _ = _attempt(mgr.end_session, ranking)
            if ok:
                st.rerun()


def render_game(mgr: SessionManager) -> None:
    flash = st.session_state.pop("flash", None)
    if flash:
        st.success(flash)

    _render_hand_entry(mgr)
    _render_navigation(mgr)
    _render_rowie(mgr)
    _render_finish(mgr)


# =============================================================================
# STEP: summary
# =============================================================================

def render_summary(mgr: SessionManager) -> None:
    session = mgr.session
    summary = session.build_summary()

    st.title("Game Summary")
    st.subheader("Pre-Mercy Totals")
    _money_table(summary_pre_frame(summary), ["Poker", "Bubble"])

    if session.step == SessionStep.SUMMARY_PRE_REDUCTION:
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Calculate Mercy", type="primary", use_container_width=True):
                ok, _ = _attempt(mgr.apply_mercy)
                if ok:
                    st.rerun()
        with c2:
            if st.button("Save without Mercy", use_container_width=True):
                ok, _ = _attempt(mgr.save)
                if ok:
                    st.rerun()
    else:
        st.subheader("Final Payouts (with Mercy)")
        _money_table(summary_post_frame(summary), ["Poker", "Bubble", "Total"])
        if st.button("Save to History", type="primary", use_container_width=True):
            ok, _ = _attempt(mgr.save)
            if ok:
                st.rerun()

    if summary.ranking_bet_payouts is not None:
        st.subheader("Ranking Bet")
        _money_table(ranking_bet_frame(summary), ["Payout"])

    st.subheader("Completed Rowies")
    if not summary.side_bets:
        st.caption("No rowies this game.")
    for sb in summary.side_bets:
        st.markdown(f"**{sb.label()}**")
        _money_table(side_bet_payouts_frame(sb, summary.player_names), ["Points", "Payout"])


# =============================================================================
# MAIN
# =============================================================================

mgr = get_manager()
render_sidebar(mgr)

step = mgr.session.step
if step == SessionStep.SETTING_UP:
    render_player_count(mgr)
elif step == SessionStep.NAMING_PLAYERS:
    render_player_names(mgr)
elif step == SessionStep.IN_GAME:
    render_game(mgr)
elif step in (SessionStep.SUMMARY_PRE_REDUCTION, SessionStep.SUMMARY_POST_REDUCTION):
    render_summary(mgr)
else:
    st.info("You are viewing a saved game on the Session History page.")
    if st.button("Back to setup", use_container_width=True):
        _attempt(mgr.exit_history)
        st.rerun()
