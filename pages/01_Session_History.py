# 01_Session_History.py - saved games: list, review, delete, export

from datetime import datetime

import streamlit as st

st.set_page_config(
    page_title="Session History | Poker Tallies",
    page_icon="📋",
    layout="centered",
)

from display import (
    hands_frame,
    history_frame,
    ranking_bet_frame,
    side_bet_payouts_frame,
    summary_post_frame,
    summary_pre_frame,
)
from errors import ValidationError
from game_session import SessionStep
from sidebar import get_manager, render_sidebar

MONEY = st.column_config.NumberColumn(format="$%d")

mgr = get_manager()
render_sidebar(mgr)


def render_export_button() -> None:
    if not mgr.history:
        return
    csv = history_frame(mgr.history).to_csv(index=False)
    st.download_button(
        label="📥 Export to CSV",
        data=csv,
        file_name=f"poker_tallies_{datetime.now().strftime('%Y%m%d')}.csv",
        mime="text/csv",
    )


def render_details(index: int) -> None:
    summary = mgr.selected_summary
    if summary is None:
        return

    st.subheader(f"{summary.date} - {', '.join(summary.player_names)}")

    st.markdown("**Pre-Mercy Totals**")
    st.dataframe(summary_pre_frame(summary), hide_index=True, use_container_width=True,
                 column_config={"Poker": MONEY, "Bubble": MONEY})

    if summary.mercy_applied:
        st.markdown("**Final Payouts (with Mercy)**")
        st.dataframe(summary_post_frame(summary), hide_index=True, use_container_width=True,
                     column_config={"Poker": MONEY, "Bubble": MONEY, "Total": MONEY})

    if summary.ranking_bet_payouts is not None:
        st.markdown("**Ranking Bet**")
        st.dataframe(ranking_bet_frame(summary), hide_index=True, use_container_width=True,
                     column_config={"Payout": MONEY})

    for sb in summary.side_bets:
        st.markdown(f"**{sb.label()}**")
        st.dataframe(side_bet_payouts_frame(sb, summary.player_names), hide_index=True,
                     use_container_width=True, column_config={"Payout": MONEY})

    with st.expander(f"All hands ({len(summary.hands)})"):
        st.dataframe(hands_frame(summary.hands, summary.player_names), hide_index=True,
                     use_container_width=True)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("← Back", use_container_width=True):
            mgr.exit_history()
            st.rerun()
    with c2:
        if st.button("🗑 Delete this game", use_container_width=True):
            mgr.delete_history(index)
            st.rerun()


st.title("📋 Session History")

if not mgr.history:
    st.info("No saved games yet. Finish a game and save it to see it here.")
    st.stop()

st.dataframe(history_frame(mgr.history), hide_index=True, use_container_width=True)
render_export_button()

st.markdown("---")

if mgr.selected_history is not None and mgr.session.step == SessionStep.VIEWING_HISTORY:
    render_details(mgr.selected_history)
elif mgr.session.step != SessionStep.SETTING_UP:
    st.caption("Finish or abandon the current game to review saved games.")
else:
    labels = [f"{s.date} - {', '.join(s.player_names)}" for s in mgr.history]
    choice = st.selectbox("Saved game", range(len(labels)), format_func=lambda i: labels[i])
    c1, c2 = st.columns(2)
    with c1:
        if st.button("View", type="primary", use_container_width=True):
            try:
                mgr.view_history(int(choice))
            except ValidationError as e:
                st.error(e.message)
            else:
                st.rerun()
    with c2:
        if st.button("🗑 Delete", use_container_width=True):
            mgr.delete_history(int(choice))
            st.rerun()
