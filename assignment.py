"""
assignment.py – Greedy initial placement of characters onto keys.

The most frequent characters go onto the cheapest keys. The result is only a
seed for the annealer: it is deterministic for a given frequency table and
key cost order, and it never binds a character twice.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

from layout import MODIFIERS, Key, Layout, display_char
from user_profile import Locale

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    assigned: Dict[str, int] = field(default_factory=dict)  # char -> corpus count
    shifted: Set[str] = field(default_factory=set)
    unplaced: List[str] = field(default_factory=list)


def order_by_frequency(counts: Dict[str, int]) -> List[str]:
    """Most frequent first; ties broken by character so the order is stable."""
    return sorted(counts, key=lambda c: (-counts[c], c))


def _bind(key: Key, unshifted: str = None, shifted: str = None) -> None:
    if unshifted is not None:
        key.unshifted = unshifted
        key.unshifted_free = False
    if shifted is not None:
        key.shifted = shifted
        key.shifted_free = False


def assign_characters(layout: Layout, counts: Dict[str, int], locale: Locale) -> AssignmentResult:
    """
    Bind characters from counts onto the free slots of layout, in place.

    Characters are walked by descending frequency and keys by ascending cost.
    A letter takes both layers of a key (lower and upper case). A symbol with
    a locale counterpart takes both layers as a pair. Any other symbol takes
    both layers of a key on keyboards without overrides. On keyboards with
    overrides it takes the unshifted layer, or the shifted one when the
    unshifted layer is taken. Keyboards without overrides skip keys whose
    unshifted layer is already in use. Characters left over
    when the keys run out stay unplaced.
    """
    result = AssignmentResult()
    chars = order_by_frequency(counts)
    order = layout.keys_by_cost()

    bound: Set[str] = set()
    for key in layout.keys:
        if not key.unshifted_free:
            bound.add(key.unshifted)
        if not key.shifted_free:
            bound.add(key.shifted)
            if key.unshifted_free or key.shifted != key.unshifted:
                result.shifted.add(key.shifted)

    i = k = 0
    while i < len(chars) and k < len(order):
        key = layout.keys[order[k]]
        if key.fully_bound:
            k += 1
            continue

        c = chars[i]
        if c in bound:
            i += 1
            continue

        if c.isalpha():
            if not (key.unshifted_free and key.shifted_free):
                logger.debug("Skipping key %d which has '%s' already", order[k], display_char(key.unshifted))
                k += 1
                continue
            lower, upper = c.lower(), c.upper()
            logger.debug("Handling '%s' & '%s' as letter", upper, lower)
            _bind(key, lower, upper)
            bound.update((lower, upper))
            result.shifted.add(upper)
        else:
            pair = locale.pair_for(c)
            if pair is not None and not (set(pair) & bound):
                unshifted, shifted = pair
            else:
                unshifted, shifted = c, None

            if shifted is not None and key.unshifted_free and key.shifted_free:
                logger.debug("Handling '%s' & '%s' as shifted pair", unshifted, shifted)
                _bind(key, unshifted, shifted)
                bound.update(pair)
                result.shifted.add(shifted)
            elif key.unshifted_free and not layout.supports_overrides:
                # Nothing may be placed on the shifted layer, so it repeats the character.
                logger.debug("Handling '%s' as unshifted on both layers", display_char(c))
                _bind(key, c, c)
                bound.add(c)
            elif key.unshifted_free:
                logger.debug("Handling '%s' as unshifted", display_char(c))
                _bind(key, unshifted=c)
                bound.add(c)
            elif layout.supports_overrides:
                logger.debug("Handling '%s' as shifted override", display_char(c))
                _bind(key, shifted=c)
                bound.add(c)
                result.shifted.add(c)
            else:
                logger.debug("Skipping key %d which has '%s' already", order[k], display_char(key.unshifted))
                k += 1
                continue

        i += 1
        if not key.unshifted_free:
            k += 1

    result.assigned = {c: counts.get(c, 0) for c in sorted(bound) if c not in MODIFIERS}
    result.unplaced = [c for c in chars if c not in bound]
    for c in result.unplaced:
        logger.debug("No key left for '%s' (used %d times)", display_char(c), counts[c])
    logger.info("Assigned %d characters to keys, %d left unplaced", len(result.assigned), len(result.unplaced))
    return result
