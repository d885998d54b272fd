# game_session.py - one poker-tallies session as an explicit state machine
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from config import DEFAULT_POT_AMOUNT, MAX_PLAYERS, MIN_PLAYERS, BUBBLE_AMOUNT, MERCY_RATIO
from engine import (
    CompletedSideBet,
    HandResult,
    apply_hand,
    apply_reduction,
    build_completed_side_bet,
    replay_totals,
    settle_ranked,
    side_bet_winners,
    strict_int,
    validate_deltas,
    window_points,
)
from errors import DataLoadError, ValidationError

logger = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SessionStep(str, Enum):
    SETTING_UP = "setting_up"
    NAMING_PLAYERS = "naming_players"
    IN_GAME = "in_game"
    SUMMARY_PRE_REDUCTION = "summary_pre_reduction"
    SUMMARY_POST_REDUCTION = "summary_post_reduction"
    VIEWING_HISTORY = "viewing_history"


SUMMARY_STEPS = (SessionStep.SUMMARY_PRE_REDUCTION, SessionStep.SUMMARY_POST_REDUCTION)


# ----------------------------- State -----------------------------


@dataclass(frozen=True)
class SideBetWindow:
    # start_hand is the 0-based index of the first hand counted by the window
    start_hand: int = 0
    num_hands: int = 0
    pot_amount: int = DEFAULT_POT_AMOUNT
    remaining_hands: int = 0
    # True from the closing hand until the next hand is submitted
    is_complete: bool = False

    @property
    def is_open(self) -> bool:
        return self.remaining_hands > 0

    @property
    def is_visible(self) -> bool:
        return self.is_open or self.is_complete

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_hand": self.start_hand,
            "num_hands": self.num_hands,
            "pot_amount": self.pot_amount,
            "remaining_hands": self.remaining_hands,
            "is_complete": self.is_complete,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SideBetWindow":
        return SideBetWindow(
            start_hand=strict_int(data.get("start_hand", 0)),
            num_hands=strict_int(data.get("num_hands", 0)),
            pot_amount=strict_int(data.get("pot_amount", DEFAULT_POT_AMOUNT)),
            remaining_hands=strict_int(data.get("remaining_hands", 0)),
            is_complete=bool(data.get("is_complete", False)),
        )


@dataclass(frozen=True)
class SessionSummary:
    """
    End-of-session snapshot appended to history. Never edited after append.

    totals_post / ranked_post stay None when mercy was skipped.
    ranking_bet_* are only set when a separate ranking bet was entered.
    """
    date: str
    player_names: Tuple[str, ...]
    totals_pre: Tuple[int, ...]
    ranked_pre: Tuple[int, ...]
    totals_post: Optional[Tuple[int, ...]] = None
    ranked_post: Optional[Tuple[int, ...]] = None
    ranking_bet_values: Optional[Tuple[int, ...]] = None
    ranking_bet_payouts: Optional[Tuple[int, ...]] = None
    side_bets: Tuple[CompletedSideBet, ...] = field(default_factory=tuple)
    hands: Tuple[HandResult, ...] = field(default_factory=tuple)

    @property
    def mercy_applied(self) -> bool:
        return self.totals_post is not None

    @property
    def final_totals(self) -> Tuple[int, ...]:
        return self.totals_post if self.totals_post is not None else self.totals_pre

    @property
    def final_ranked(self) -> Tuple[int, ...]:
        return self.ranked_post if self.ranked_post is not None else self.ranked_pre

    @property
    def combined_totals(self) -> Tuple[int, ...]:
        return tuple(t + b for t, b in zip(self.final_totals, self.final_ranked))

    def to_dict(self) -> Dict[str, Any]:
        def _opt(xs):
            return list(xs) if xs is not None else None

        return {
            "date": self.date,
            "player_names": list(self.player_names),
            "totals_pre": list(self.totals_pre),
            "ranked_pre": list(self.ranked_pre),
            "totals_post": _opt(self.totals_post),
            "ranked_post": _opt(self.ranked_post),
            "ranking_bet_values": _opt(self.ranking_bet_values),
            "ranking_bet_payouts": _opt(self.ranking_bet_payouts),
            "side_bets": [sb.to_dict() for sb in self.side_bets],
            "hands": [h.to_dict() for h in self.hands],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SessionSummary":
        def _ints(xs) -> Tuple[int, ...]:
            return tuple(strict_int(x) for x in xs)

        def _opt(key: str) -> Optional[Tuple[int, ...]]:
            xs = data.get(key)
            return _ints(xs) if xs is not None else None

        names = tuple(str(n) for n in data["player_names"])
        summary = SessionSummary(
            date=str(data.get("date") or ""),
            player_names=names,
            totals_pre=_ints(data["totals_pre"]),
            ranked_pre=_ints(data["ranked_pre"]),
            totals_post=_opt("totals_post"),
            ranked_post=_opt("ranked_post"),
            ranking_bet_values=_opt("ranking_bet_values"),
            ranking_bet_payouts=_opt("ranking_bet_payouts"),
            side_bets=tuple(CompletedSideBet.from_dict(sb) for sb in data.get("side_bets", [])),
            hands=tuple(HandResult.from_dict(h) for h in data.get("hands", [])),
        )
        for key in ("totals_pre", "ranked_pre", "totals_post", "ranked_post"):
            xs = getattr(summary, key)
            if xs is not None and len(xs) != len(names):
                raise ValueError(f"{key} has {len(xs)} entries for {len(names)} players")
        return summary


def _replay(
    hands: Sequence[HandResult],
    window: SideBetWindow,
    completed: Sequence[CompletedSideBet],
    names: Sequence[str],
) -> Tuple[List[int], List[int], List[CompletedSideBet]]:
    """Rebuild every derived aggregate from the full hand history."""
    n = len(names)
    totals = replay_totals(hands, n)
    if window.num_hands > 0:
        points = window_points(hands, window.start_hand, window.num_hands, n)
    else:
        points = [0] * n
    rebuilt = [
        build_completed_side_bet(
            number=sb.number,
            start_index=sb.start_index,
            num_hands=sb.num_hands,
            pot_amount=sb.pot_amount,
            hands=hands,
            names=names,
        )
        for sb in completed
    ]
    return totals, points, rebuilt


# ----------------------------- Session -----------------------------


class GameSession:
    """
    Single aggregate for one session: every per-player sequence lives here
    and is resized together, so seat i means the same player everywhere.

    This object is *pure logic* - no Streamlit, no store calls.
    Persistence goes through export_state()/import_state(); SessionManager
    decides when to save.

    Every transition validates first and only then assigns; a rejected
    call raises ValidationError and leaves the session exactly as it was.
    """

    def __init__(self, player_count: int = MIN_PLAYERS, now_fn: Optional[Clock] = None):
        self._now: Clock = now_fn or _utc_now
        self.step: SessionStep = SessionStep.SETTING_UP
        self._reset_players(player_count)

    def _reset_players(self, n: int) -> None:
        self.player_count: int = n
        self.player_names: List[str] = [""] * n
        self._reset_game()

    def _reset_game(self) -> None:
        n = self.player_count
        self.totals: List[int] = [0] * n
        self.side_bet_points: List[int] = [0] * n
        self.window: SideBetWindow = SideBetWindow()
        self.hands: List[HandResult] = []
        self.current_hand_cursor: int = -1
        self.completed_side_bets: List[CompletedSideBet] = []
        self.mercy_applied: bool = False
        self.reduced_totals: Optional[List[int]] = None
        self.ranking_values: Optional[List[int]] = None

    def _require_step(self, action: str, *allowed: SessionStep) -> None:
        if self.step not in allowed:
            raise ValidationError(
                f"Cannot {action} right now.",
                {"step": self.step.value, "allowed": "/".join(s.value for s in allowed)},
            )

    def _now_iso(self) -> str:
        return self._now().isoformat()

    # ============================================================
    # SETUP
    # ============================================================
    def select_count(self, n: int) -> None:
        """SettingUp → NamingPlayers with n blank seats."""
        self._require_step("choose the player count", SessionStep.SETTING_UP, SessionStep.NAMING_PLAYERS)
        try:
            n = strict_int(n)
        except (TypeError, ValueError):
            raise ValidationError("Player count must be a whole number.", {"value": n}) from None
        if not MIN_PLAYERS <= n <= MAX_PLAYERS:
            raise ValidationError(
                f"Choose between {MIN_PLAYERS} and {MAX_PLAYERS} players.",
                {"value": n},
            )

        self._reset_players(n)
        self.step = SessionStep.NAMING_PLAYERS

    def set_names(self, names: Sequence[str]) -> None:
        """NamingPlayers → InGame. Every name must be non-blank."""
        self._require_step("name players", SessionStep.NAMING_PLAYERS)
        if len(names) != self.player_count:
            raise ValidationError(
                "Enter one name per player.",
                {"expected": self.player_count, "got": len(names)},
            )
        clean = [str(n or "").strip() for n in names]
        blank = [i for i, n in enumerate(clean) if not n]
        if blank:
            raise ValidationError("Please enter all player names.", {"blank_seats": blank})

        self.player_names = clean
        self._reset_game()
        self.step = SessionStep.IN_GAME

    def has_named_players(self) -> bool:
        return any(n.strip() for n in self.player_names)

    # ============================================================
    # HANDS
    # ============================================================
    def submit_hand(self, deltas: Sequence[int]) -> Optional[CompletedSideBet]:
        """
        Record one zero-sum hand.

        Updates running totals; if a rowie window is open, adds to its points
        and counts it down. Returns the CompletedSideBet when this hand
        closes the window, else None.
        """
        self._require_step("submit a hand", SessionStep.IN_GAME)
        clean = validate_deltas(deltas, self.player_count)

        hand = HandResult(deltas=clean, timestamp=self._now_iso())
        hands = self.hands + [hand]
        totals = apply_hand(clean, self.totals)
        points = self.side_bet_points
        window = self.window
        completed: Optional[CompletedSideBet] = None

        if window.is_open:
            points = [p + d for p, d in zip(points, clean)]
            if window.remaining_hands == 1:
                completed = build_completed_side_bet(
                    number=len(self.completed_side_bets) + 1,
                    start_index=window.start_hand,
                    num_hands=window.num_hands,
                    pot_amount=window.pot_amount,
                    hands=hands,
                    names=self.player_names,
                )
                window = replace(window, remaining_hands=0, is_complete=True)
            else:
                window = replace(window, remaining_hands=window.remaining_hands - 1)
        elif window.is_complete:
            # the finished window stays on screen for one more hand
            window = replace(window, is_complete=False)

        self.hands = hands
        self.totals = totals
        self.side_bet_points = points
        self.window = window
        self.current_hand_cursor = len(hands) - 1
        if completed is not None:
            self.completed_side_bets = self.completed_side_bets + [completed]
            logger.info(
                "[game_session] rowie %d closed (hands %d-%d) winners=%s",
                completed.number, completed.start_hand, completed.end_hand, list(completed.winner_names),
            )
        return completed

    def correct_hand(self, index: int, deltas: Sequence[int]) -> None:
        """
        Replace hand `index` and replay everything from hand 0.

        Running totals, the current window's points and every completed
        rowie's points, winners and payouts are rebuilt from hand history.
        """
        self._require_step("correct a hand", SessionStep.IN_GAME)
        if not 0 <= index < len(self.hands):
            raise ValidationError("No such hand.", {"index": index, "hands": len(self.hands)})
        clean = validate_deltas(deltas, self.player_count)

        hands = list(self.hands)
        hands[index] = HandResult(deltas=clean, timestamp=self.hands[index].timestamp)
        totals, points, completed = _replay(hands, self.window, self.completed_side_bets, self.player_names)

        self.hands = hands
        self.totals = totals
        self.side_bet_points = points
        self.completed_side_bets = completed

    # ---- hand navigation ----

    def previous_hand(self) -> int:
        if self.current_hand_cursor > 0:
            self.current_hand_cursor -= 1
        return self.current_hand_cursor

    def next_hand(self) -> int:
        if self.current_hand_cursor < len(self.hands) - 1:
            self.current_hand_cursor += 1
        return self.current_hand_cursor

    def latest_hand(self) -> int:
        self.current_hand_cursor = len(self.hands) - 1
        return self.current_hand_cursor

    def hand_at_cursor(self) -> Optional[HandResult]:
        if 0 <= self.current_hand_cursor < len(self.hands):
            return self.hands[self.current_hand_cursor]
        return None

    def running_totals_at(self, cursor: Optional[int] = None) -> List[int]:
        """Totals after hands 0..cursor (inclusive); zeros when cursor is -1."""
        if cursor is None:
            cursor = self.current_hand_cursor
        return replay_totals(self.hands[: cursor + 1], self.player_count)

    # ============================================================
    # ROWIE WINDOW
    # ============================================================
    def open_window(self, num_hands: int, pot_amount: int = DEFAULT_POT_AMOUNT) -> SideBetWindow:
        """Start a rowie at the next hand. Only one window may be open at a time."""
        self._require_step("start a rowie", SessionStep.IN_GAME)
        if self.window.is_open:
            raise ValidationError(
                "Please complete the current Rowie before starting a new one.",
                {"remaining_hands": self.window.remaining_hands},
            )
        try:
            num_hands = strict_int(num_hands)
            pot_amount = strict_int(pot_amount)
        except (TypeError, ValueError):
            raise ValidationError(
                "Rowie settings must be whole numbers.",
                {"num_hands": num_hands, "pot_amount": pot_amount},
            ) from None
        if num_hands <= 0 or pot_amount <= 0:
            raise ValidationError(
                "Please fill in all Rowie settings.",
                {"num_hands": num_hands, "pot_amount": pot_amount},
            )

        self.window = SideBetWindow(
            start_hand=len(self.hands),
            num_hands=num_hands,
            pot_amount=pot_amount,
            remaining_hands=num_hands,
            is_complete=False,
        )
        self.side_bet_points = [0] * self.player_count
        logger.info(
            "[game_session] rowie opened at hand %d for %d hands, $%d per player",
            len(self.hands) + 1, num_hands, pot_amount,
        )
        return self.window

    def window_standings(self) -> List[Dict[str, Any]]:
        """
        Leaderboard for the visible window, best first (ties keep seat order).
        Empty when no window is open or just completed.
        """
        if not self.window.is_visible:
            return []
        points = self.side_bet_points
        top = max(points) if points else 0
        winners = set(side_bet_winners(points))
        order = sorted(range(self.player_count), key=lambda i: -points[i])
        return [
            {
                "rank": rank + 1,
                "seat": seat,
                "name": self.player_names[seat],
                "points": points[seat],
                "is_winner": seat in winners,
                "behind": top - points[seat],
            }
            for rank, seat in enumerate(order)
        ]

    # ============================================================
    # END OF SESSION
    # ============================================================
    def end_session(self, ranking_values: Optional[Sequence[int]] = None) -> None:
        """
        InGame → SummaryPreReduction. Rejected while a rowie is still open.

        ranking_values: optional standings for a separate end-of-session
        ranking bet, one per player, settled with the bubble rules.
        """
        self._require_step("end the game", SessionStep.IN_GAME)
        if self.window.is_open:
            raise ValidationError(
                "Please complete the current Rowie before ending the game.",
                {"remaining_hands": self.window.remaining_hands},
            )
        values: Optional[List[int]] = None
        if ranking_values is not None:
            if len(ranking_values) != self.player_count:
                raise ValidationError(
                    "Enter one ranking value per player.",
                    {"expected": self.player_count, "got": len(ranking_values)},
                )
            try:
                values = [strict_int(v) for v in ranking_values]
            except (TypeError, ValueError):
                raise ValidationError("Ranking values must be whole numbers.") from None

        self.ranking_values = values
        self.step = SessionStep.SUMMARY_PRE_REDUCTION

    def apply_mercy(self) -> List[int]:
        """SummaryPreReduction → SummaryPostReduction. Runs at most once per session."""
        self._require_step("calculate mercy", SessionStep.SUMMARY_PRE_REDUCTION)
        if self.mercy_applied:
            raise ValidationError("Mercy has already been applied.")

        self.reduced_totals = apply_reduction(self.totals, MERCY_RATIO)
        self.mercy_applied = True
        self.step = SessionStep.SUMMARY_POST_REDUCTION
        return list(self.reduced_totals)

    def build_summary(self) -> SessionSummary:
        self._require_step("summarize the game", *SUMMARY_STEPS)
        reduced = tuple(self.reduced_totals) if self.reduced_totals is not None else None
        ranking = tuple(self.ranking_values) if self.ranking_values is not None else None
        return SessionSummary(
            date=self._now_iso(),
            player_names=tuple(self.player_names),
            totals_pre=tuple(self.totals),
            ranked_pre=tuple(settle_ranked(self.totals, BUBBLE_AMOUNT)),
            totals_post=reduced,
            ranked_post=tuple(settle_ranked(reduced, BUBBLE_AMOUNT)) if reduced is not None else None,
            ranking_bet_values=ranking,
            ranking_bet_payouts=tuple(settle_ranked(ranking, BUBBLE_AMOUNT)) if ranking is not None else None,
            side_bets=tuple(self.completed_side_bets),
            hands=tuple(self.hands),
        )

    # ============================================================
    # RESET / HISTORY VIEW
    # ============================================================
    def abandon(self) -> None:
        """Any step → SettingUp, discarding everything."""
        self.step = SessionStep.SETTING_UP
        self._reset_players(MIN_PLAYERS)

    def enter_history(self) -> None:
        self._require_step("view history", SessionStep.SETTING_UP)
        self.step = SessionStep.VIEWING_HISTORY

    def exit_history(self) -> None:
        self._require_step("leave history", SessionStep.VIEWING_HISTORY)
        self.step = SessionStep.SETTING_UP

    # ============================================================
    # STATE PERSISTENCE
    # ============================================================
    def export_state(self) -> Dict[str, Any]:
        """In-progress session record, JSON-serializable."""
        return {
            "step": self.step.value,
            "player_count": self.player_count,
            "player_names": list(self.player_names),
            "totals": list(self.totals),
            "side_bet_points": list(self.side_bet_points),
            "side_bet_window": self.window.to_dict(),
            "hands": [h.to_dict() for h in self.hands],
            "current_hand_cursor": self.current_hand_cursor,
            "completed_side_bets": [sb.to_dict() for sb in self.completed_side_bets],
            "mercy_applied": self.mercy_applied,
            "reduced_totals": list(self.reduced_totals) if self.reduced_totals is not None else None,
            "ranking_values": list(self.ranking_values) if self.ranking_values is not None else None,
            "last_saved": self._now_iso(),
        }

    def import_state(self, data: Dict[str, Any]) -> None:
        """
        Restore from a dict shaped like export_state().

        Raises DataLoadError on any malformed field and leaves the session
        untouched. Totals are always rebuilt by replaying the hands; stored
        totals that disagree are logged and ignored.
        """
        if not isinstance(data, dict):
            raise DataLoadError("Saved game is not a JSON object.")

        try:
            step = SessionStep(data["step"])
            n = strict_int(data["player_count"])
            names = [str(x) for x in data["player_names"]]
            hands = [HandResult.from_dict(h) for h in data.get("hands", [])]
            window = SideBetWindow.from_dict(data.get("side_bet_window") or {})
            completed = [CompletedSideBet.from_dict(sb) for sb in data.get("completed_side_bets", [])]
            cursor = strict_int(data.get("current_hand_cursor", len(hands) - 1))
            mercy_applied = bool(data.get("mercy_applied", False))
            stored_totals = [strict_int(x) for x in data.get("totals", [])]
            raw_reduced = data.get("reduced_totals")
            reduced = [strict_int(x) for x in raw_reduced] if raw_reduced is not None else None
            raw_ranking = data.get("ranking_values")
            ranking = [strict_int(x) for x in raw_ranking] if raw_ranking is not None else None
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DataLoadError("Saved game is unreadable.", {"error": repr(e)}) from e

        if not MIN_PLAYERS <= n <= MAX_PLAYERS or len(names) != n:
            raise DataLoadError("Saved game has an invalid player list.", {"player_count": n})
        for i, hand in enumerate(hands):
            try:
                validate_deltas(hand.deltas, n)
            except ValidationError as e:
                raise DataLoadError("Saved game has an invalid hand.", {"hand": i, "reason": e.message}) from e
        if window.start_hand < 0 or window.start_hand > len(hands) or window.remaining_hands > window.num_hands:
            raise DataLoadError("Saved game has an invalid rowie window.", window.to_dict())
        if window.is_open and window.start_hand + window.num_hands - window.remaining_hands != len(hands):
            raise DataLoadError("Saved game rowie window does not match its hands.", window.to_dict())
        for sb in completed:
            if sb.start_hand < 1 or sb.end_hand > len(hands) or sb.num_hands < 1:
                raise DataLoadError("Saved game has an invalid completed rowie.", {"number": sb.number})
        if step == SessionStep.SUMMARY_POST_REDUCTION and (not mercy_applied or reduced is None):
            raise DataLoadError("Saved game is past mercy but has no reduced totals.")
        if step != SessionStep.SUMMARY_POST_REDUCTION and (mercy_applied or reduced is not None):
            raise DataLoadError("Saved game has mercy results before mercy was calculated.", {"step": step.value})
        if step in (SessionStep.IN_GAME,) + SUMMARY_STEPS and any(not name.strip() for name in names):
            raise DataLoadError("Saved game has a blank player name.", {"step": step.value})
        if step in SUMMARY_STEPS and window.is_open:
            raise DataLoadError("Saved game ended with a rowie still open.", window.to_dict())
        for xs in (reduced, ranking):
            if xs is not None and len(xs) != n:
                raise DataLoadError("Saved game has mismatched player sequences.")
        if not -1 <= cursor < len(hands):
            cursor = len(hands) - 1

        totals, points, rebuilt = _replay(hands, window, completed, names)

        if stored_totals and stored_totals != totals:
            logger.warning(
                "[game_session] stored totals %s disagree with replay %s; using replay",
                stored_totals, totals,
            )

        self.step = step
        self.player_count = n
        self.player_names = names
        self.totals = totals
        self.side_bet_points = points
        self.window = window
        self.hands = hands
        self.current_hand_cursor = cursor
        self.completed_side_bets = rebuilt
        self.mercy_applied = mercy_applied and reduced is not None
        self.reduced_totals = reduced if self.mercy_applied else None
        self.ranking_values = ranking

    @classmethod
    def from_state(cls, data: Dict[str, Any], now_fn: Optional[Clock] = None) -> "GameSession":
        session = cls(now_fn=now_fn)
        session.import_state(data)
        return session
