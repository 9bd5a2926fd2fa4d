"""Tests for the penalty rules and the scorer.

Tests cover:
- each penalty rule on hand-built key windows
- rules returning zero for keystrokes the window does not have
- PenaltyScorer totals: base cost formula, modifiers, zero-weight rules
- purity of scoring (same layout, same result)
"""

from collections import Counter

import numpy as np
import pytest

from conftest import key_info
from layout import SHIFT, Finger, Hand, HomePosition, Layout, Side
from quartads import Quartad, make_quartad, prepare_quartads
from scorer import (
    PENALTY_RULES,
    PenaltyScorer,
    diagonal_modifier_penalty,
    double_tap_thumbs_penalty,
    hand_alternation_penalty,
    hand_repetition_penalty,
    inward_roll_penalty,
    is_roll_in,
    is_roll_out,
    lateral_stretch_penalty,
    long_sfb_penalty,
    modifier_stretch_penalty,
    outward_roll_penalty,
    pinky_ring_stretch_penalty,
    roll_reversal_penalty,
    row_change_in_roll_penalty,
    same_finger_modifier_penalty,
    scissor_motion_penalty,
    sfb_penalty,
    vertical_finger_travel_penalty,
)
from user_profile import FingerCost, HandCosts, Locale, PenaltyWeights

BASE_ONLY = PenaltyWeights(base=1.0, base_modifier=0.0)
R = Hand.RIGHT


def window(curr=None, old1=None, old2=None, old3=None, mod_curr=None):
    return curr, old1, old2, old3, mod_curr, None, None, None


def unigrams(counts):
    return Counter({Quartad(c, ("",)): n for c, n in counts.items()})


class TestRollDirection:
    def test_roll_out(self):
        assert is_roll_out(Finger.MIDDLE, Finger.INDEX)
        assert is_roll_out(Finger.PINKIE, Finger.RING)
        assert not is_roll_out(Finger.INDEX, Finger.MIDDLE)

    def test_roll_in(self):
        assert is_roll_in(Finger.MIDDLE, Finger.RING)
        assert is_roll_in(Finger.THUMB, Finger.PINKIE)
        assert not is_roll_in(Finger.PINKIE, Finger.RING)


class TestRules:
    @pytest.mark.parametrize("rule", PENALTY_RULES, ids=lambda r: r.weight_name)
    def test_empty_window_is_free(self, rule):
        assert rule.function(*window()) == 0.0

    def test_sfb(self):
        a = key_info(0, finger=Finger.INDEX)
        b = key_info(1, finger=Finger.INDEX, row=0)
        assert sfb_penalty(*window(b, a)) == 1.0
        assert sfb_penalty(*window(a, a)) == 0.0
        assert sfb_penalty(*window(key_info(2, hand=R), a)) == 0.0

    def test_vertical_travel_and_long_sfb(self):
        top = key_info(0, finger=Finger.MIDDLE, row=0, vert=-1)
        bottom = key_info(1, finger=Finger.MIDDLE, row=2, vert=1)
        other = key_info(2, finger=Finger.RING, row=2, vert=1)
        assert vertical_finger_travel_penalty(*window(bottom, top)) == 1.0
        assert long_sfb_penalty(*window(bottom, top)) == 1.0
        assert vertical_finger_travel_penalty(*window(other, top)) == 1.0
        assert long_sfb_penalty(*window(other, top)) == 0.0

    def test_lateral_stretch(self):
        pinkie_low = key_info(0, finger=Finger.PINKIE, row=2, vert=1)
        ring_high = key_info(1, finger=Finger.RING, row=0, vert=-1)
        ring_home = key_info(2, finger=Finger.RING, row=1)
        assert lateral_stretch_penalty(*window(ring_high, pinkie_low)) == 1.0
        assert lateral_stretch_penalty(*window(ring_home, pinkie_low)) == 0.0

    def test_index_up_after_middle_down(self):
        middle_low = key_info(0, finger=Finger.MIDDLE, row=2, vert=1)
        index_high = key_info(1, finger=Finger.INDEX, row=0, vert=-1)
        assert lateral_stretch_penalty(*window(index_high, middle_low)) == 1.0
        assert lateral_stretch_penalty(*window(middle_low, index_high)) == 0.0

    def test_pinky_ring_stretch(self):
        ring_home = key_info(0, finger=Finger.RING, row=1)
        pinkie_top = key_info(1, finger=Finger.PINKIE, row=0, vert=-1)
        assert pinky_ring_stretch_penalty(*window(pinkie_top, ring_home)) == 1.0
        assert pinky_ring_stretch_penalty(*window(ring_home, pinkie_top)) == 0.0

    def test_roll_reversal(self):
        ring = key_info(0, finger=Finger.RING)
        pinkie = key_info(1, finger=Finger.PINKIE)
        middle = key_info(2, finger=Finger.MIDDLE)
        assert roll_reversal_penalty(*window(middle, pinkie, ring)) == 1.0
        assert roll_reversal_penalty(*window(ring, pinkie, middle)) == 1.0
        assert roll_reversal_penalty(*window(pinkie, middle, ring)) == 0.0

    def test_hand_repetition_needs_four_keys(self):
        a = key_info(0)
        assert hand_repetition_penalty(*window(a, a, a, a)) == 1.0
        assert hand_repetition_penalty(*window(a, a, a)) == 0.0
        assert hand_repetition_penalty(*window(a, a, a, key_info(1, hand=R))) == 0.0

    def test_hand_alternation(self):
        left, right = key_info(0), key_info(1, hand=R)
        assert hand_alternation_penalty(*window(left, right, left, right)) == 1.0
        assert hand_alternation_penalty(*window(left, right, right, left)) == 0.0

    def test_rolls(self):
        index = key_info(0, finger=Finger.INDEX)
        middle = key_info(1, finger=Finger.MIDDLE)
        ring = key_info(2, finger=Finger.RING)
        assert outward_roll_penalty(*window(middle, index)) == 1.0
        assert inward_roll_penalty(*window(middle, ring)) == 1.0
        assert outward_roll_penalty(*window(middle, ring)) == 0.0
        assert inward_roll_penalty(*window(key_info(3, hand=R, finger=Finger.MIDDLE), ring)) == 0.0

    def test_scissor_motion(self):
        index_low = key_info(0, finger=Finger.INDEX, row=2, vert=1)
        ring_home = key_info(1, finger=Finger.RING, row=1)
        assert scissor_motion_penalty(*window(index_low, ring_home)) == 1.0
        assert scissor_motion_penalty(*window(key_info(2, finger=Finger.INDEX), ring_home)) == 0.0

    def test_row_change_in_roll(self):
        index_low = key_info(0, finger=Finger.INDEX, row=2, vert=1)
        middle_home = key_info(1, finger=Finger.MIDDLE, row=1)
        ring_high = key_info(2, finger=Finger.RING, row=0, vert=-1)
        assert row_change_in_roll_penalty(*window(ring_high, middle_home, index_low)) == 1.0
        ring_home = key_info(3, finger=Finger.RING, row=1)
        assert row_change_in_roll_penalty(*window(ring_home, middle_home, index_low)) == 0.0

    def test_modifier_rules(self):
        shift = key_info(0, finger=Finger.PINKIE, row=2, col=0, vert=1, cost=2.5)
        index_top = key_info(1, finger=Finger.INDEX, row=0, col=4, vert=-1, horz=1)
        pinkie_top = key_info(2, finger=Finger.PINKIE, row=0, vert=-1)
        assert modifier_stretch_penalty(*window(index_top, mod_curr=shift)) == 1.0
        assert same_finger_modifier_penalty(*window(pinkie_top, mod_curr=shift)) == 1.0
        assert same_finger_modifier_penalty(*window(index_top, mod_curr=shift)) == 0.0
        assert diagonal_modifier_penalty(*window(index_top, mod_curr=shift)) == 0.0
        thumb_shift = key_info(3, finger=Finger.THUMB, row=3)
        assert diagonal_modifier_penalty(*window(index_top, mod_curr=thumb_shift)) == 1.0

    def test_double_tap_thumbs(self):
        left_thumb = key_info(0, finger=Finger.THUMB, row=3)
        other_thumb = key_info(1, finger=Finger.THUMB, row=3, col=1)
        assert double_tap_thumbs_penalty(*window(other_thumb, left_thumb)) == 1.0
        assert double_tap_thumbs_penalty(*window(key_info(2, hand=R, finger=Finger.THUMB), left_thumb)) == 0.0


class TestPenaltyScorer:
    def test_unigram_table_scores_key_costs(self, line_layout):
        prepare_quartads("aabb", line_layout, Locale())
        scorer = PenaltyScorer(unigrams({"a": 2, "b": 2}), BASE_ONLY)
        # 'a' on the index key (1), 'b' on the middle key (2).
        assert scorer.get_fitness(line_layout) == pytest.approx(2 * 1 + 2 * 2)

    def test_swap_delta(self, line_layout):
        prepare_quartads("aabb", line_layout, Locale())
        scorer = PenaltyScorer(unigrams({"a": 2, "b": 2}), BASE_ONLY)
        before = scorer.get_fitness(line_layout)
        swapped = line_layout.clone()
        swapped.swap(3, 1)
        assert scorer.get_fitness(swapped) - before == pytest.approx(2 * (3 - 1))

    def test_base_counts_every_window_ending_on_a_key(self, line_layout):
        info = prepare_quartads("aabb", line_layout, Locale())
        scorer = PenaltyScorer(info.quartads, BASE_ONLY)
        # Windows ending in 'a': a, a, aa. Ending in 'b': the other seven.
        assert scorer.get_fitness(line_layout) == pytest.approx(3 * 1 + 7 * 2)

    def test_scoring_is_pure(self, split_layout, corpus, locale):
        info = prepare_quartads(corpus, split_layout, locale)
        scorer = PenaltyScorer(info.quartads, PenaltyWeights(sfb=3, hand_alternation=-1, outward_roll=0.5))
        snapshot = [(k.unshifted, k.shifted) for k in split_layout.keys]
        first = scorer.calculate_penalty(split_layout)
        second = scorer.calculate_penalty(split_layout)
        assert first == second
        assert [(k.unshifted, k.shifted) for k in split_layout.keys] == snapshot

    def test_totals_match_breakdown(self, split_layout, corpus, locale):
        info = prepare_quartads(corpus, split_layout, locale)
        scorer = PenaltyScorer(info.quartads, PenaltyWeights(sfb=3, hand_repetition=1, hand_alternation=-1))
        penalty, results = scorer.calculate_penalty(split_layout)
        assert penalty == pytest.approx(sum(r.total for r in results))
        assert {r.name for r in results} == {"Base", "SFB", "Hand repetition", "Hand alternation", "Base modifier"}

    def test_zero_weights_disable_everything(self, line_layout):
        prepare_quartads("ab", line_layout, Locale())
        scorer = PenaltyScorer(unigrams({"a": 1}), PenaltyWeights(base=0, base_modifier=0))
        assert scorer.calculate_penalty(line_layout) == (0.0, [])

    def test_characters_without_a_key_contribute_nothing(self, line_layout):
        prepare_quartads("a", line_layout, Locale())
        scorer = PenaltyScorer(unigrams({"a": 1, "x": 100}), BASE_ONLY)
        assert scorer.get_fitness(line_layout) == pytest.approx(1.0)

    def test_modifier_is_looked_up_for_each_character(self):
        side = Side(rows=[["*I", "\\SP"]], homes={Finger.INDEX: HomePosition(0, 0), Finger.PINKIE: HomePosition(0, 1)})
        costs = HandCosts(index=FingerCost(cost=1.0), pinkie=FingerCost(cost=2.0))
        layout = Layout(side, Side(rows=[], homes={}), left_costs=costs)
        info = prepare_quartads("aA", layout, Locale())
        assert info.quartads[make_quartad("A", {"A"})] == 1
        assert info.quartads[Quartad("aA", ("", SHIFT))] == 1

        scorer = PenaltyScorer(info.quartads, PenaltyWeights(base=0.0, base_modifier=1.0))
        # Shift (cost 2) is held for 'A' alone and for the 'A' ending 'aA'.
        assert scorer.get_fitness(layout) == pytest.approx(4.0)

    def test_rule_matrix_shape(self, line_layout):
        prepare_quartads("abab", line_layout, Locale())
        scorer = PenaltyScorer(unigrams({"a": 2, "b": 2}), PenaltyWeights(sfb=1))
        matrix = scorer.rule_matrix(line_layout)
        assert matrix.shape == (3, 2)
        np.testing.assert_array_equal(matrix[1], [0.0, 0.0])

    def test_high_quartads(self, line_layout):
        prepare_quartads("aabb", line_layout, Locale())
        scorer = PenaltyScorer(unigrams({"a": 2, "b": 2}), BASE_ONLY)
        high = scorer.high_quartads(line_layout, "Base", 1)
        assert [(str(q), v) for q, v in high] == [("b", 4.0)]
        assert scorer.high_quartads(line_layout, "SFB") == []
