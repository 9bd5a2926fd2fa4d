"""
scorer.py – Ergonomic penalty engine.

Each penalty rule looks at a window of up to four consecutive keystrokes
(the current key and the three before it) plus the modifier key held for
each of them, and returns an unweighted cost. The scorer multiplies each
rule by its weight and by how often the quartad occurs in the corpus.
Lower totals are better.
"""

from abc import ABC
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from layout import Finger, KeyInfo, Layout
from quartads import QUARTAD_LENGTH, Quartad
from user_profile import PenaltyWeights

logger = logging.getLogger(__name__)

K = Optional[KeyInfo]
PenaltyFunc = Callable[[K, K, K, K, K, K, K, K], float]


def is_roll_out(curr: Finger, prev: Finger) -> bool:
    """Moving from prev to curr heads away from the thumb."""
    if curr == Finger.INDEX:
        return prev == Finger.THUMB
    if curr == Finger.MIDDLE:
        return prev in (Finger.THUMB, Finger.INDEX)
    if curr == Finger.RING:
        return prev in (Finger.MIDDLE, Finger.INDEX)
    if curr == Finger.PINKIE:
        return prev in (Finger.RING, Finger.MIDDLE)
    return False


def is_roll_in(curr: Finger, prev: Finger) -> bool:
    """Moving from prev to curr heads toward the thumb."""
    if curr == Finger.THUMB:
        return prev != Finger.THUMB
    if curr == Finger.INDEX:
        return prev in (Finger.THUMB, Finger.INDEX)
    if curr == Finger.MIDDLE:
        return prev in (Finger.PINKIE, Finger.RING)
    if curr == Finger.RING:
        return prev == Finger.PINKIE
    return False


def base_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None:
        return 0.0
    return curr.cost


def sfb_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None:
        return 0.0
    if curr.hand == old1.hand and curr.finger == old1.finger and curr.index != old1.index:
        return 1.0
    return 0.0


def vertical_finger_travel_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None:
        return 0.0
    if curr.hand == old1.hand and abs(curr.row - old1.row) >= 2:
        return 1.0
    return 0.0


def long_sfb_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None:
        return 0.0
    if curr.hand == old1.hand and curr.finger == old1.finger and abs(curr.row - old1.row) >= 2:
        return 1.0
    return 0.0


def lateral_stretch_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or curr.hand != old1.hand:
        return 0.0
    # Jump between the rows above and below home.
    if not ((curr.vert_delta < 0 < old1.vert_delta) or (curr.vert_delta > 0 > old1.vert_delta)):
        return 0.0
    pair = {curr.finger, old1.finger}
    if pair == {Finger.RING, Finger.PINKIE} or pair == {Finger.MIDDLE, Finger.RING}:
        return 1.0
    if (
        curr.finger == Finger.INDEX
        and old1.finger in (Finger.MIDDLE, Finger.RING)
        and curr.vert_delta < 0 < old1.vert_delta
    ):
        return 1.0
    return 0.0


def pinky_ring_stretch_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or curr.hand != old1.hand:
        return 0.0
    if {curr.finger, old1.finger} == {Finger.PINKIE, Finger.RING} and curr.row < old1.row:
        return 1.0
    return 0.0


def roll_reversal_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or old2 is None:
        return 0.0
    if not (curr.hand == old1.hand == old2.hand):
        return 0.0
    fingers = (old2.finger, old1.finger, curr.finger)
    if fingers in ((Finger.RING, Finger.PINKIE, Finger.MIDDLE), (Finger.MIDDLE, Finger.PINKIE, Finger.RING)):
        return 1.0
    return 0.0


def hand_repetition_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or old2 is None or old3 is None:
        return 0.0
    return 1.0 if curr.hand == old1.hand == old2.hand == old3.hand else 0.0


def hand_alternation_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or old2 is None or old3 is None:
        return 0.0
    if curr.hand != old1.hand and old1.hand != old2.hand and old2.hand != old3.hand:
        return 1.0
    return 0.0


def outward_roll_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None:
        return 0.0
    return 1.0 if curr.hand == old1.hand and is_roll_out(curr.finger, old1.finger) else 0.0


def inward_roll_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None:
        return 0.0
    return 1.0 if curr.hand == old1.hand and is_roll_in(curr.finger, old1.finger) else 0.0


def scissor_motion_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or curr.hand != old1.hand:
        return 0.0
    if {curr.finger, old1.finger} == {Finger.RING, Finger.INDEX} and curr.row != old1.row:
        return 1.0
    return 0.0


def row_change_in_roll_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None or old2 is None:
        return 0.0
    if not (curr.hand == old1.hand == old2.hand):
        return 0.0
    # Top -> home -> bottom or bottom -> home -> top.
    spans_rows = (curr.vert_delta < 0 and old1.vert_delta == 0 and old2.vert_delta > 0) or (
        curr.vert_delta > 0 and old1.vert_delta == 0 and old2.vert_delta < 0
    )
    if not spans_rows:
        return 0.0
    rolling_out = is_roll_out(curr.finger, old1.finger) and is_roll_out(old1.finger, old2.finger)
    rolling_in = is_roll_in(curr.finger, old1.finger) and is_roll_in(old1.finger, old2.finger)
    return 1.0 if rolling_out or rolling_in else 0.0


def base_modifier_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if mod_curr is None:
        return 0.0
    return mod_curr.cost


def same_finger_modifier_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or mod_curr is None:
        return 0.0
    return 1.0 if curr.hand == mod_curr.hand and curr.finger == mod_curr.finger else 0.0


def diagonal_modifier_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or mod_curr is None:
        return 0.0
    return 1.0 if curr.hand == mod_curr.hand and abs(mod_curr.row - curr.row) > 2 else 0.0


def modifier_stretch_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or mod_curr is None or curr.hand != mod_curr.hand:
        return 0.0
    if {curr.finger, mod_curr.finger} != {Finger.PINKIE, Finger.INDEX}:
        return 0.0
    curr_away = curr.horz_delta != 0 or curr.vert_delta != 0
    mod_away = mod_curr.horz_delta != 0 or mod_curr.vert_delta != 0
    return 1.0 if curr_away and mod_away else 0.0


def double_tap_thumbs_penalty(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) -> float:
    if curr is None or old1 is None:
        return 0.0
    if curr.hand == old1.hand and curr.finger == Finger.THUMB and old1.finger == Finger.THUMB:
        return 1.0
    return 0.0


@dataclass(frozen=True)
class PenaltyRule:
    name: str
    weight_name: str
    function: PenaltyFunc


PENALTY_RULES: List[PenaltyRule] = [
    PenaltyRule("Base", "base", base_penalty),
    PenaltyRule("SFB", "sfb", sfb_penalty),
    PenaltyRule("Vertical finger travel", "vertical_finger_travel", vertical_finger_travel_penalty),
    PenaltyRule("Long SFB", "long_sfb", long_sfb_penalty),
    PenaltyRule("Lateral Stretch", "lateral_stretch", lateral_stretch_penalty),
    PenaltyRule("Pinky/Ring Stretch", "pinky_ring_stretch", pinky_ring_stretch_penalty),
    PenaltyRule("Roll reversal", "roll_reversal", roll_reversal_penalty),
    PenaltyRule("Hand repetition", "hand_repetition", hand_repetition_penalty),
    PenaltyRule("Hand alternation", "hand_alternation", hand_alternation_penalty),
    PenaltyRule("Outward roll", "outward_roll", outward_roll_penalty),
    PenaltyRule("Inward roll", "inward_roll", inward_roll_penalty),
    PenaltyRule("Scissor motion", "scissor_motion", scissor_motion_penalty),
    PenaltyRule("Row change in roll", "row_change_in_roll", row_change_in_roll_penalty),
    PenaltyRule("Base modifier", "base_modifier", base_modifier_penalty),
    PenaltyRule("Same finger modifier", "same_finger_modifier", same_finger_modifier_penalty),
    PenaltyRule("Diagonal modifier", "diagonal_modifier", diagonal_modifier_penalty),
    PenaltyRule("Modifier stretch", "modifier_stretch", modifier_stretch_penalty),
    PenaltyRule("Double tap thumbs", "double_tap_thumbs", double_tap_thumbs_penalty),
]


@dataclass(frozen=True)
class PenaltyResult:
    name: str
    weight: float
    total: float


class IScorer(ABC):
    def get_fitness(self, layout) -> float:
        ...


class PenaltyScorer(IScorer):
    """
    Scores a layout against a quartad table with a set of weighted rules.

    The quartad table and the weights are read-only after construction, so a
    single scorer can be shared by worker threads. Scoring a layout touches
    no state on the scorer itself.
    """

    def __init__(self, quartads: Mapping[Quartad, int], weights: PenaltyWeights) -> None:
        self.quartads: List[Quartad] = list(quartads)
        self.counts = np.array([quartads[q] for q in self.quartads], dtype=float)
        self.weights = weights
        self.rules: List[PenaltyRule] = [r for r in PENALTY_RULES if weights.get(r.weight_name) != 0]
        self.rule_weights = np.array([weights.get(r.weight_name) for r in self.rules], dtype=float)
        logger.debug(
            "Scorer with %d quartads and %d enabled rules: %s",
            len(self.quartads), len(self.rules), ", ".join(r.name for r in self.rules),
        )

    def window(self, quartad: Quartad, key_map: Dict[str, KeyInfo]) -> Tuple[K, ...]:
        """(curr, old1, old2, old3, mod_curr, mod1, mod2, mod3) for a quartad."""
        keys = []
        for i in range(QUARTAD_LENGTH):
            c = quartad.char_at(i)
            keys.append(key_map.get(c) if c is not None else None)
        for i in range(QUARTAD_LENGTH):
            m = quartad.modifier_at(i)
            keys.append(key_map.get(m) if m is not None else None)
        return tuple(keys)

    def rule_matrix(self, layout: Layout) -> np.ndarray:
        """Unweighted cost of every enabled rule (rows) for every quartad (columns)."""
        key_map = layout.char_to_info()
        matrix = np.zeros((len(self.rules), len(self.quartads)))
        for j, quartad in enumerate(self.quartads):
            window = self.window(quartad, key_map)
            for r, rule in enumerate(self.rules):
                matrix[r, j] = rule.function(*window)
        return matrix

    def calculate_penalty(self, layout: Layout) -> Tuple[float, List[PenaltyResult]]:
        """Total weighted penalty of layout and the per-rule breakdown."""
        if not self.rules:
            return 0.0, []
        totals = self.rule_weights * (self.rule_matrix(layout) @ self.counts)
        results = [PenaltyResult(rule.name, w, float(t)) for rule, w, t in zip(self.rules, self.rule_weights, totals)]
        return float(np.sum(totals)), results

    def get_fitness(self, layout: Layout) -> float:
        return self.calculate_penalty(layout)[0]

    def high_quartads(self, layout: Layout, rule_name: str, n: int = 10) -> List[Tuple[Quartad, float]]:
        """The quartads contributing the most to one rule's total."""
        names = [r.name for r in self.rules]
        if rule_name not in names:
            return []
        r = names.index(rule_name)
        contrib = self.rule_weights[r] * self.rule_matrix(layout)[r] * self.counts
        ranked = [(q, float(v)) for q, v in zip(self.quartads, contrib) if v != 0]
        ranked.sort(key=lambda qv: -abs(qv[1]))
        return ranked[:n]
