# engine.py - Poker Tallies settlement engine
#
# Pure calculations over explicit inputs:
# - Ledger: zero-sum hand deltas -> running chip totals
# - Rowie: proportional pot for a closed side-bet window
# - Bubble: pairwise ranked settlement, ties are neutral toward each other
# - Mercy: fixed-ratio shrinkage of final totals
#
# No timers, no I/O, no randomness. Every function returns new lists and
# never mutates the sequences it is given.

from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import math

from config import BUBBLE_AMOUNT, MERCY_RATIO
from errors import ValidationError

Ratio = Union[Fraction, int, float, str]


# ============================================================
# ROUNDING
# ============================================================
def round_half_away(value: Fraction) -> int:
    """
    Round to the nearest whole unit, halves away from zero.

    round_half_away(Fraction(5, 2)) == 3
    round_half_away(Fraction(-5, 2)) == -3
    """
    value = Fraction(value)
    whole = math.floor(abs(value) + Fraction(1, 2))
    return whole if value >= 0 else -whole


def _as_fraction(ratio: Ratio) -> Fraction:
    if isinstance(ratio, Fraction):
        return ratio
    if isinstance(ratio, float):
        # 0.0125 is not exact in binary; go through its decimal text
        return Fraction(str(ratio))
    return Fraction(ratio)


# ============================================================
# RECORDS
# ============================================================
@dataclass(frozen=True)
class HandResult:
    """One submitted hand: per-seat signed chip deltas that sum to zero."""
    deltas: Tuple[int, ...]
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"deltas": list(self.deltas), "timestamp": self.timestamp}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "HandResult":
        raw = data["deltas"]
        if not isinstance(raw, list):
            raise TypeError(f"hand deltas must be a list, got {type(raw).__name__}")
        return HandResult(
            deltas=tuple(strict_int(x) for x in raw),
            timestamp=str(data.get("timestamp") or ""),
        )


@dataclass(frozen=True)
class CompletedSideBet:
    """
    A closed rowie window. Immutable once built.

    start_hand / end_hand are 1-based and inclusive (display numbering).
    winners holds the upper-cased initial of each winner, in seat order;
    everyone tied for the max window points wins, no tiebreak.
    """
    number: int
    start_hand: int
    end_hand: int
    pot_amount: int
    points: Tuple[int, ...]
    payouts: Tuple[int, ...]
    winner_seats: Tuple[int, ...]
    winner_names: Tuple[str, ...]
    winners: Tuple[str, ...]

    @property
    def start_index(self) -> int:
        return self.start_hand - 1

    @property
    def num_hands(self) -> int:
        return self.end_hand - self.start_hand + 1

    def label(self) -> str:
        plural = "s" if len(self.winners) > 1 else ""
        return (
            f"Rowie {self.number} (Hands {self.start_hand}-{self.end_hand}) • "
            f"${self.pot_amount} per player • Winner{plural}: {' & '.join(self.winners)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "start_hand": self.start_hand,
            "end_hand": self.end_hand,
            "pot_amount": self.pot_amount,
            "points": list(self.points),
            "payouts": list(self.payouts),
            "winner_seats": list(self.winner_seats),
            "winner_names": list(self.winner_names),
            "winners": list(self.winners),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "CompletedSideBet":
        return CompletedSideBet(
            number=strict_int(data["number"]),
            start_hand=strict_int(data["start_hand"]),
            end_hand=strict_int(data["end_hand"]),
            pot_amount=strict_int(data["pot_amount"]),
            points=tuple(strict_int(x) for x in data.get("points", [])),
            payouts=tuple(strict_int(x) for x in data.get("payouts", [])),
            winner_seats=tuple(strict_int(x) for x in data.get("winner_seats", [])),
            winner_names=tuple(str(x) for x in data.get("winner_names", [])),
            winners=tuple(str(x) for x in data.get("winners", [])),
        )


def strict_int(x: Any) -> int:
    """int() that refuses bools, fractional floats and non-numeric text."""
    if isinstance(x, bool):
        raise TypeError(f"expected an integer, got bool {x!r}")
    if isinstance(x, int):
        return x
    if isinstance(x, float) and x.is_integer():
        return int(x)
    if isinstance(x, str):
        return int(x.strip())
    raise TypeError(f"expected an integer, got {x!r}")


# ============================================================
# LEDGER
# ============================================================
def validate_deltas(deltas: Sequence[Any], player_count: int) -> Tuple[int, ...]:
    """
    Check a hand before anything is mutated.

    Raises ValidationError when the vector has the wrong length, holds a
    non-integer, or does not sum to exactly zero.
    """
    if len(deltas) != player_count:
        raise ValidationError(
            "Hand must have one result per player.",
            {"expected": player_count, "got": len(deltas)},
        )

    clean: List[int] = []
    for seat, d in enumerate(deltas):
        try:
            clean.append(strict_int(d))
        except (TypeError, ValueError):
            raise ValidationError("Hand results must be whole numbers.", {"seat": seat, "value": d}) from None

    total = sum(clean)
    if total != 0:
        raise ValidationError("Hand results must sum to zero.", {"sum": total})

    return tuple(clean)


def apply_hand(deltas: Sequence[int], prior_totals: Sequence[int]) -> List[int]:
    """Elementwise add a validated zero-sum hand to the prior running totals."""
    clean = validate_deltas(deltas, len(prior_totals))
    return [int(t) + d for t, d in zip(prior_totals, clean)]


def replay_totals(hands: Sequence[HandResult], player_count: int) -> List[int]:
    """Running totals recomputed from scratch: total[p] = sum of every hand's delta[p]."""
    totals = [0] * player_count
    for hand in hands:
        totals = apply_hand(hand.deltas, totals)
    return totals


def window_points(
    hands: Sequence[HandResult],
    start: int,
    length: Optional[int],
    player_count: int,
) -> List[int]:
    """
    Sum of deltas for hands in [start, start + length).

    length=None sums through the last hand (an open window mid-flight).
    """
    stop = len(hands) if length is None else start + length
    points = [0] * player_count
    for hand in hands[start:stop]:
        for seat, d in enumerate(hand.deltas):
            points[seat] += d
    return points


# ============================================================
# ROWIE (proportional pot)
# ============================================================
def settle_side_bet(points: Sequence[int], pot_unit_amount: int, player_count: Optional[int] = None) -> List[int]:
    """
    Share a pot of player_count * pot_unit_amount among positive-point seats,
    proportional to their points.

    Seats at zero or below take nothing. Each payout is rounded on its own,
    so the payouts need not add back up to the pot exactly.
    """
    n = len(points) if player_count is None else int(player_count)
    pot = n * int(pot_unit_amount)
    total_positive = sum(p for p in points if p > 0)

    if total_positive == 0:
        return [0] * len(points)

    return [
        round_half_away(Fraction(p, total_positive) * pot) if p > 0 else 0
        for p in points
    ]


def side_bet_winners(points: Sequence[int]) -> List[int]:
    """Every seat tied at the max window points, regardless of sign."""
    if not points:
        return []
    top = max(points)
    return [seat for seat, p in enumerate(points) if p == top]


def initial(name: str) -> str:
    return (name or "").strip()[:1].upper()


def build_completed_side_bet(
    number: int,
    start_index: int,
    num_hands: int,
    pot_amount: int,
    hands: Sequence[HandResult],
    names: Sequence[str],
) -> CompletedSideBet:
    """Summarize a closed window from hand history into an immutable record."""
    points = window_points(hands, start_index, num_hands, len(names))
    seats = side_bet_winners(points)
    return CompletedSideBet(
        number=number,
        start_hand=start_index + 1,
        end_hand=start_index + num_hands,
        pot_amount=int(pot_amount),
        points=tuple(points),
        payouts=tuple(settle_side_bet(points, pot_amount, len(names))),
        winner_seats=tuple(seats),
        winner_names=tuple(names[s] for s in seats),
        winners=tuple(initial(names[s]) for s in seats),
    )


# ============================================================
# BUBBLE (ranked settlement)
# ============================================================
def settle_ranked(final_values: Sequence[int], unit_amount: int = BUBBLE_AMOUNT) -> List[int]:
    """
    Every seat pays unit_amount to each seat strictly ahead of it and
    collects unit_amount from each seat strictly behind it.

    Seats with equal values form one group and exchange nothing with each
    other. Integer-exact: the payouts always sum to zero.
    """
    groups: Dict[Any, List[int]] = {}
    for seat, value in enumerate(final_values):
        groups.setdefault(value, []).append(seat)

    payouts = [0] * len(final_values)
    above = 0
    below = len(final_values)

    for value in sorted(groups, reverse=True):
        seats = groups[value]
        below -= len(seats)
        for seat in seats:
            payouts[seat] = int(unit_amount) * (below - above)
        above += len(seats)

    return payouts


# ============================================================
# MERCY (reduction transform)
# ============================================================
def apply_reduction(totals: Sequence[int], ratio: Ratio = MERCY_RATIO) -> List[int]:
    """
    Replace each total with round(total * ratio), independently per seat.

    Not idempotent: a second application shrinks again. The caller must
    guard against running it twice.
    """
    r = _as_fraction(ratio)
    return [round_half_away(Fraction(int(t)) * r) for t in totals]
