# test_engine.py - settlement engine: ledger, rowie, bubble, mercy
# Run with: python run_tests.py   (or: python -m pytest tests/)

import itertools
from fractions import Fraction

import pytest

from config import MERCY_RATIO
from engine import (
    CompletedSideBet,
    HandResult,
    apply_hand,
    apply_reduction,
    build_completed_side_bet,
    initial,
    replay_totals,
    round_half_away,
    settle_ranked,
    settle_side_bet,
    side_bet_winners,
    strict_int,
    validate_deltas,
    window_points,
)
from errors import ValidationError


def _hands(*rows):
    return [HandResult(deltas=tuple(r)) for r in rows]


# ============================================================
# ROUNDING
# ============================================================
class TestRounding:
    """Halves round away from zero, everything else to nearest."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (Fraction(5, 2), 3),
            (Fraction(-5, 2), -3),
            (Fraction(1, 2), 1),
            (Fraction(-1, 2), -1),
            (Fraction(7, 3), 2),
            (Fraction(-7, 3), -2),
            (Fraction(0), 0),
            (4, 4),
        ],
    )
    def test_round_half_away(self, value, expected):
        assert round_half_away(value) == expected

    def test_mercy_ratio_is_exact(self):
        assert MERCY_RATIO == Fraction(1, 80)


# ============================================================
# LEDGER
# ============================================================
class TestLedger:
    """Zero-sum hands and running totals."""

    def test_apply_hand_adds_elementwise(self):
        assert apply_hand([50, -20, -30], [0, 0, 0]) == [50, -20, -30]
        assert apply_hand([-10, 5, 5], [50, -20, -30]) == [40, -15, -25]

    def test_apply_hand_does_not_mutate_inputs(self):
        prior = [1, 2, -3]
        deltas = [3, -1, -2]
        apply_hand(deltas, prior)
        assert prior == [1, 2, -3]
        assert deltas == [3, -1, -2]

    @pytest.mark.parametrize("n", range(2, 8))
    def test_nonzero_sum_rejected_for_every_table_size(self, n):
        deltas = [0] * n
        deltas[0] = 1
        with pytest.raises(ValidationError) as exc:
            apply_hand(deltas, [0] * n)
        assert exc.value.details["sum"] == 1

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValidationError):
            apply_hand([5, -5], [0, 0, 0])

    @pytest.mark.parametrize("bad", [[1.5, -1.5], [True, -1], ["x", 0], [None, 0]])
    def test_non_integer_rejected(self, bad):
        with pytest.raises(ValidationError):
            validate_deltas(bad, 2)

    def test_integral_values_are_normalized(self):
        assert validate_deltas([3.0, "-3"], 2) == (3, -3)

    @pytest.mark.parametrize("value, expected", [(7, 7), (7.0, 7), (" -7 ", -7)])
    def test_strict_int_accepts_whole_numbers(self, value, expected):
        assert strict_int(value) == expected

    @pytest.mark.parametrize("value", [True, 7.5, None, [7]])
    def test_strict_int_rejects_everything_else(self, value):
        with pytest.raises(TypeError):
            strict_int(value)

    def test_replay_equals_incremental(self):
        rows = [
            [50, -20, -30],
            [-5, 10, -5],
            [0, 0, 0],
            [12, -24, 12],
            [-100, 60, 40],
        ]
        incremental = [0, 0, 0]
        for r in rows:
            incremental = apply_hand(r, incremental)
        assert replay_totals(_hands(*rows), 3) == incremental
        assert incremental == [-43, 26, 17]

    def test_window_points_slices_hands(self):
        hands = _hands([1, -1], [2, -2], [4, -4], [8, -8])
        assert window_points(hands, 1, 2, 2) == [6, -6]
        # open-ended: through the last hand
        assert window_points(hands, 2, None, 2) == [12, -12]
        # a window longer than history only counts what exists
        assert window_points(hands, 3, 5, 2) == [8, -8]


# ============================================================
# ROWIE
# ============================================================
class TestSideBet:
    """Proportional pot for positive-point seats."""

    def test_single_positive_takes_whole_pot(self):
        assert settle_side_bet([15, -15, 0, 0], 5) == [20, 0, 0, 0]

    def test_even_split(self):
        assert settle_side_bet([1, 1, 1], 5) == [5, 5, 5]

    def test_halves_round_away_from_zero(self):
        # pot 2: 1/4 * 2 = 0.5 -> 1, 3/4 * 2 = 1.5 -> 2
        assert settle_side_bet([1, 3], 1) == [1, 2]

    def test_pot_is_not_conserved_under_rounding(self):
        under = settle_side_bet([1, 1, 1, 0], 1)
        assert under == [1, 1, 1, 0]
        assert sum(under) == 3  # pot was 4

        over = settle_side_bet([1, 1, 2], 1)
        assert over == [1, 1, 2]
        assert sum(over) == 4  # pot was 3

    @pytest.mark.parametrize("points", [[0, 0, 0], [-3, -2, 0], [-1, -1], [0, 0, 0, 0, 0, 0, 0]])
    @pytest.mark.parametrize("unit", [1, 5, 100])
    def test_no_positive_points_pays_nothing(self, points, unit):
        assert settle_side_bet(points, unit) == [0] * len(points)

    def test_explicit_player_count_sets_pot(self):
        # pot is player_count * unit, not len(points) * unit
        assert settle_side_bet([3, 1], 10, player_count=4) == [30, 10]

    def test_winners_include_every_tied_max(self):
        assert side_bet_winners([5, 5, -10]) == [0, 1]
        assert side_bet_winners([-3, -3, -5]) == [0, 1]
        assert side_bet_winners([0, 0, 0]) == [0, 1, 2]
        assert side_bet_winners([]) == []

    def test_initial(self):
        assert initial("alice") == "A"
        assert initial("  bob ") == "B"
        assert initial("") == ""

    def test_build_completed_side_bet(self):
        hands = _hands([1, -1, 0, 0], [10, -10, 0, 0], [5, -5, 0, 0])
        sb = build_completed_side_bet(1, 1, 2, 5, hands, ["Alice", "Bob", "Carol", "Dave"])
        assert sb.start_hand == 2
        assert sb.end_hand == 3
        assert sb.num_hands == 2
        assert sb.start_index == 1
        assert sb.points == (15, -15, 0, 0)
        assert sb.payouts == (20, 0, 0, 0)
        assert sb.winner_seats == (0,)
        assert sb.winner_names == ("Alice",)
        assert sb.winners == ("A",)
        assert "Winner: A" in sb.label()

    def test_completed_side_bet_dict_round_trip(self):
        hands = _hands([2, -2], [-1, 1])
        sb = build_completed_side_bet(3, 0, 2, 5, hands, ["Ann", "Ben"])
        assert CompletedSideBet.from_dict(sb.to_dict()) == sb

    def test_tied_label_is_plural(self):
        hands = _hands([5, 5, -10])
        sb = build_completed_side_bet(1, 0, 1, 5, hands, ["Ann", "Ben", "Cat"])
        assert sb.winners == ("A", "B")
        assert "Winners: A & B" in sb.label()


# ============================================================
# BUBBLE
# ============================================================
class TestRanked:
    """Pairwise ranked settlement."""

    def test_distinct_values(self):
        # alone at the top: below=2 above=0; middle: 1-1; bottom: 0-2
        assert settle_ranked([50, -20, -30], 10) == [20, 0, -20]

    def test_tie_below_leader(self):
        assert settle_ranked([50, -25, -25], 10) == [20, -10, -10]

    def test_all_tied_is_neutral(self):
        assert settle_ranked([7, 7, 7, 7], 10) == [0, 0, 0, 0]

    def test_tied_group_matches_group_count_formula(self):
        values = [30, 10, 10, -50]
        payouts = settle_ranked(values, 10)
        assert payouts[1] == payouts[2]
        # the tied pair sits below one seat and above one seat
        assert payouts[1] == 10 * (1 - 1)
        assert payouts == [30, 0, 0, -30]

    def test_seat_order_does_not_matter(self):
        assert settle_ranked([-30, 50, -20], 10) == [-20, 20, 0]

    def test_default_unit_is_bubble_amount(self):
        assert settle_ranked([1, 0]) == [10, -10]

    def test_sum_is_always_zero(self):
        for n in range(2, 6):
            for values in itertools.product([-2, 0, 1, 3], repeat=n):
                assert sum(settle_ranked(values, 10)) == 0, values

    def test_equal_values_get_equal_payouts(self):
        for values in itertools.product([-1, 0, 2], repeat=4):
            payouts = settle_ranked(values, 7)
            for i, j in itertools.combinations(range(4), 2):
                if values[i] == values[j]:
                    assert payouts[i] == payouts[j], values


# ============================================================
# MERCY
# ============================================================
class TestReduction:
    """Fixed-ratio shrinkage of totals."""

    def test_replaces_each_total(self):
        assert apply_reduction([400, -240, -160]) == [5, -3, -2]

    def test_halves_round_away_from_zero(self):
        assert apply_reduction([40, -40, 120, -120]) == [1, -1, 2, -2]

    def test_float_ratio_matches_exact_ratio(self):
        totals = [40, -40, 1000, -1000, 3]
        assert apply_reduction(totals, 0.0125) == apply_reduction(totals, MERCY_RATIO)

    def test_not_idempotent(self):
        totals = [4000, -2400, -1600]
        once = apply_reduction(totals)
        twice = apply_reduction(once)
        assert once == [50, -30, -20]
        assert twice == [1, 0, 0]
        assert once != twice

    def test_does_not_mutate_input(self):
        totals = [800, -800]
        apply_reduction(totals)
        assert totals == [800, -800]


# ============================================================
# END-TO-END
# ============================================================
class TestScenarios:
    """Whole flows through the engine functions."""

    def test_three_players_one_hand_then_bubble(self):
        totals = apply_hand([50, -20, -30], [0, 0, 0])
        assert totals == [50, -20, -30]
        payouts = settle_ranked(totals, 10)
        assert payouts[0] == 20
        assert sum(payouts) == 0

    def test_four_player_rowie(self):
        hands = _hands([10, -10, 0, 0], [5, -5, 0, 0])
        points = window_points(hands, 0, 2, 4)
        assert points == [15, -15, 0, 0]
        assert settle_side_bet(points, 5, 4) == [20, 0, 0, 0]
        sb = build_completed_side_bet(1, 0, 2, 5, hands, ["Pat", "Quinn", "Ray", "Sam"])
        assert sb.winners == ("P",)

    def test_rejected_hand_leaves_totals(self):
        totals = [50, -20, -30]
        with pytest.raises(ValidationError) as exc:
            apply_hand([10, -5, -4], totals)
        assert "sum to zero" in exc.value.message
        assert totals == [50, -20, -30]
