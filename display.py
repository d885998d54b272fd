# display.py - pandas tables for the Streamlit layer
#
# Shapes engine/session outputs into DataFrames. Numbers stay numeric;
# currency formatting and colors are applied where the frames are rendered.

from __future__ import annotations

from typing import List, Sequence

import pandas as pd

from engine import CompletedSideBet, HandResult
from game_session import GameSession, SessionSummary


def totals_frame(session: GameSession) -> pd.DataFrame:
    """Per-player result of the hand under the cursor + running total through it."""
    hand = session.hand_at_cursor()
    running = session.running_totals_at()
    return pd.DataFrame(
        {
            "Player": list(session.player_names),
            "Hand": list(hand.deltas) if hand is not None else [0] * session.player_count,
            "Total": running,
        }
    )


def standings_frame(session: GameSession) -> pd.DataFrame:
    rows = session.window_standings()
    return pd.DataFrame(
        [
            {
                "#": r["rank"],
                "Player": r["name"] + (" (Winner)" if r["is_winner"] else ""),
                "Points": r["points"],
                "Behind": r["behind"],
            }
            for r in rows
        ],
        columns=["#", "Player", "Points", "Behind"],
    )


def side_bets_frame(side_bets: Sequence[CompletedSideBet]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Rowie": sb.number,
                "Hands": f"{sb.start_hand}-{sb.end_hand}",
                "Per Player": sb.pot_amount,
                "Winners": " & ".join(sb.winners),
            }
            for sb in side_bets
        ],
        columns=["Rowie", "Hands", "Per Player", "Winners"],
    )


def side_bet_payouts_frame(side_bet: CompletedSideBet, names: Sequence[str]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Player": list(names),
            "Points": list(side_bet.points),
            "Payout": list(side_bet.payouts),
        }
    )


def summary_pre_frame(summary: SessionSummary) -> pd.DataFrame:
    """Pre-mercy view: raw chip totals and the bubble settled on them."""
    return pd.DataFrame(
        {
            "Player": list(summary.player_names),
            "Poker": list(summary.totals_pre),
            "Bubble": list(summary.ranked_pre),
        }
    )


def summary_post_frame(summary: SessionSummary) -> pd.DataFrame:
    """
    Final view: mercy totals when mercy ran (raw totals otherwise), the
    bubble settled on those, and the combined amount.
    """
    return pd.DataFrame(
        {
            "Player": list(summary.player_names),
            "Poker": list(summary.final_totals),
            "Bubble": list(summary.final_ranked),
            "Total": list(summary.combined_totals),
        }
    )


def ranking_bet_frame(summary: SessionSummary) -> pd.DataFrame:
    if summary.ranking_bet_values is None or summary.ranking_bet_payouts is None:
        return pd.DataFrame(columns=["Player", "Standing", "Payout"])
    return pd.DataFrame(
        {
            "Player": list(summary.player_names),
            "Standing": list(summary.ranking_bet_values),
            "Payout": list(summary.ranking_bet_payouts),
        }
    )


def hands_frame(hands: Sequence[HandResult], names: Sequence[str]) -> pd.DataFrame:
    """One row per hand, one column per player."""
    columns = ["Hand"] + list(names)
    rows: List[list] = [[i + 1] + list(h.deltas) for i, h in enumerate(hands)]
    return pd.DataFrame(rows, columns=columns)


def history_frame(history: Sequence[SessionSummary]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": s.date,
                "Players": ", ".join(s.player_names),
                "Hands": len(s.hands),
                "Rowies": len(s.side_bets),
                "Mercy": "Yes" if s.mercy_applied else "No",
            }
            for s in history
        ],
        columns=["Date", "Players", "Hands", "Rowies", "Mercy"],
    )
