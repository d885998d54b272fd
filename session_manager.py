# session_manager.py - in-progress session + history orchestration with auto-persistence
from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Any, List, Optional, Sequence

from config import FRESHNESS_HOURS, HISTORY_KEY, STORAGE_KEY
from engine import CompletedSideBet
from errors import DataLoadError, StaleDataError, ValidationError
from game_session import Clock, GameSession, SessionSummary, SideBetWindow, _utc_now

logger = logging.getLogger(__name__)


def _parse_iso(value: Any) -> dt.datetime:
    ts = dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return ts


class SessionManager:
    """
    Owns the in-progress GameSession and the saved-session history, and is
    the only layer that talks to the key-value store.

    • load() restores the cached game (if fresh and readable) + history
    • every transition auto-saves the in-progress game once a name exists
    • store failures are logged and never block a transition

    The settlement functions in engine.py never see the store.
    """

    def __init__(
        self,
        store: Any,
        now_fn: Optional[Clock] = None,
        freshness_hours: float = FRESHNESS_HOURS,
    ):
        self.store = store
        self._now: Clock = now_fn or _utc_now
        self._freshness = dt.timedelta(hours=float(freshness_hours))
        self.session: GameSession = GameSession(now_fn=self._now)
        self.history: List[SessionSummary] = []
        self.selected_history: Optional[int] = None

    # ============================================================
    #  Loading
    # ============================================================
    def load(self) -> None:
        """Restore the cached in-progress game and the history. Never raises."""
        self.session = self._load_current()
        self.history = self._load_history()
        self.selected_history = None

    def _fresh_session(self) -> GameSession:
        return GameSession(now_fn=self._now)

    def _load_current(self) -> GameSession:
        try:
            blob = self.store.get(STORAGE_KEY)
        except Exception as e:
            logger.warning("[session_manager] could not read saved game: %r", e)
            return self._fresh_session()

        if blob is None:
            return self._fresh_session()

        try:
            return self.decode_current(blob)
        except StaleDataError as e:
            logger.info("[session_manager] discarding stale saved game: %s", e)
        except DataLoadError as e:
            logger.warning("[session_manager] discarding unreadable saved game: %s", e)

        self._safe_delete(STORAGE_KEY)
        return self._fresh_session()

    def decode_current(self, blob: str) -> GameSession:
        """
        Decode an in-progress record.

        Raises DataLoadError when the blob is not a readable session and
        StaleDataError when it was saved FRESHNESS_HOURS or more ago.
        """
        try:
            data = json.loads(blob)
        except (TypeError, ValueError) as e:
            raise DataLoadError("Saved game is not valid JSON.", {"error": repr(e)}) from e
        if not isinstance(data, dict):
            raise DataLoadError("Saved game is not a JSON object.")

        try:
            last_saved = _parse_iso(data["last_saved"])
        except (KeyError, TypeError, ValueError) as e:
            raise DataLoadError("Saved game has no usable timestamp.", {"error": repr(e)}) from e

        age = self._now() - last_saved
        if age >= self._freshness:
            raise StaleDataError(
                "Saved game is too old to resume.",
                {"age_hours": round(age.total_seconds() / 3600, 1)},
            )

        return GameSession.from_state(data, now_fn=self._now)

    def _load_history(self) -> List[SessionSummary]:
        try:
            blob = self.store.get(HISTORY_KEY)
        except Exception as e:
            logger.warning("[session_manager] could not read history: %r", e)
            return []

        if blob is None:
            return []

        try:
            rows = json.loads(blob)
            if not isinstance(rows, list):
                raise DataLoadError("History is not a JSON list.")
        except (TypeError, ValueError, DataLoadError) as e:
            logger.warning("[session_manager] discarding unreadable history: %r", e)
            self._safe_delete(HISTORY_KEY)
            return []

        history: List[SessionSummary] = []
        for i, row in enumerate(rows):
            try:
                history.append(SessionSummary.from_dict(row))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                # skip one corrupt round instead of losing the whole history
                logger.warning("[session_manager] dropping unreadable history record %d: %r", i, e)
        return history

    # ============================================================
    #  Persistence (best-effort)
    # ============================================================
    def _autosave(self) -> None:
        if not self.session.has_named_players():
            return
        try:
            self.store.set(STORAGE_KEY, json.dumps(self.session.export_state()))
        except Exception as e:
            logger.warning("[session_manager] autosave failed: %r", e)

    def _persist_history(self) -> bool:
        try:
            self.store.set(HISTORY_KEY, json.dumps([s.to_dict() for s in self.history]))
        except Exception as e:
            logger.warning("[session_manager] history save failed: %r", e)
            return False
        return True

    def _safe_delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except Exception as e:
            logger.warning("[session_manager] delete of %s failed: %r", key, e)

    # ============================================================
    #  Session transitions (each auto-saves)
    # ============================================================
    def select_count(self, n: int) -> None:
        self.session.select_count(n)
        self._autosave()

    def set_names(self, names: Sequence[str]) -> None:
        self.session.set_names(names)
        self._autosave()

    def submit_hand(self, deltas: Sequence[int]) -> Optional[CompletedSideBet]:
        completed = self.session.submit_hand(deltas)
        self._autosave()
        return completed

    def correct_hand(self, index: int, deltas: Sequence[int]) -> None:
        self.session.correct_hand(index, deltas)
        self._autosave()

    def open_window(self, num_hands: int, pot_amount: int) -> SideBetWindow:
        window = self.session.open_window(num_hands, pot_amount)
        self._autosave()
        return window

    def previous_hand(self) -> int:
        cursor = self.session.previous_hand()
        self._autosave()
        return cursor

    def next_hand(self) -> int:
        cursor = self.session.next_hand()
        self._autosave()
        return cursor

    def latest_hand(self) -> int:
        cursor = self.session.latest_hand()
        self._autosave()
        return cursor

    def end_session(self, ranking_values: Optional[Sequence[int]] = None) -> None:
        self.session.end_session(ranking_values)
        self._autosave()

    def apply_mercy(self) -> List[int]:
        reduced = self.session.apply_mercy()
        self._autosave()
        return reduced

    def save(self) -> SessionSummary:
        """
        Summary → SettingUp: append the summary to history (newest first)
        and clear the in-progress game.
        """
        summary = self.session.build_summary()
        self.history = [summary] + self.history
        if self._persist_history():
            self._safe_delete(STORAGE_KEY)
        else:
            logger.warning("[session_manager] keeping saved game until history can be written")
        self.session = self._fresh_session()
        self.selected_history = None
        logger.info(
            "[session_manager] saved session for %s (%d hands, mercy=%s)",
            ", ".join(summary.player_names), len(summary.hands), summary.mercy_applied,
        )
        return summary

    def abandon(self) -> None:
        """Any step → SettingUp. Drops the in-progress game; history is kept."""
        self.session.abandon()
        self.selected_history = None
        self._safe_delete(STORAGE_KEY)

    # ============================================================
    #  History
    # ============================================================
    def _check_history_index(self, index: int) -> None:
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(self.history):
            raise ValidationError("No such saved game.", {"index": index, "saved": len(self.history)})

    def view_history(self, index: int) -> SessionSummary:
        self._check_history_index(index)
        self.session.enter_history()
        self.selected_history = index
        return self.history[index]

    def exit_history(self) -> None:
        self.session.exit_history()
        self.selected_history = None

    @property
    def selected_summary(self) -> Optional[SessionSummary]:
        if self.selected_history is None:
            return None
        return self.history[self.selected_history]

    def delete_history(self, index: int) -> SessionSummary:
        """Remove one whole saved game. Records are never edited in place."""
        self._check_history_index(index)
        removed = self.history[index]
        self.history = self.history[:index] + self.history[index + 1:]

        if self.selected_history is not None:
            if self.selected_history == index:
                self.exit_history()
            elif self.selected_history > index:
                self.selected_history -= 1

        self._persist_history()
        return removed
