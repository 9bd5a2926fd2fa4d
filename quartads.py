"""
quartads.py – Corpus analysis: character counts and quartad extraction.

A quartad is a run of 1-4 consecutive characters seen in the corpus, each
tagged with the modifier that is held while typing it. Quartads are the unit
the penalty rules are evaluated on.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Set, Tuple

from assignment import assign_characters
from layout import NO_MODIFIER, SHIFT, Layout, display_char
from user_profile import ConfigError, Locale

logger = logging.getLogger(__name__)

QUARTAD_LENGTH = 4


class Quartad(NamedTuple):
    chars: str
    modifiers: Tuple[str, ...]

    def __str__(self) -> str:
        return "".join(display_char(c) for c in self.chars)

    def char_at(self, reverse_index: int):
        """Character reverse_index places before the last one, or None."""
        i = len(self.chars) - 1 - reverse_index
        return self.chars[i] if i >= 0 else None

    def modifier_at(self, reverse_index: int):
        """Modifier held for the same character as char_at, or None."""
        i = len(self.chars) - 1 - reverse_index
        if i < 0 or self.modifiers[i] == NO_MODIFIER:
            return None
        return self.modifiers[i]


def make_quartad(s: str, shifted: Set[str]) -> Quartad:
    return Quartad(s, tuple(SHIFT if c in shifted else NO_MODIFIER for c in s))


@dataclass
class QuartadInfo:
    quartads: Counter = field(default_factory=Counter)
    chars_on_keyboard: List[str] = field(default_factory=list)
    char_counts: Dict[str, int] = field(default_factory=dict)


def is_typeable(c: str) -> bool:
    """Low-range printable characters plus tab and newline."""
    return ord(c) < 128 and (c.isprintable() or c in "\t\n")


def count_characters(text: str, essential: Iterable[str] = (), required: Iterable[str] = ()) -> Dict[str, int]:
    """
    Tally typeable characters. Essential and required characters are seeded
    with a zero count so they get a key even when the corpus never uses them.
    """
    counts: Dict[str, int] = {}
    for c in list(essential) + list(required):
        if c.isalpha():
            counts.setdefault(c.upper(), 0)
            counts.setdefault(c.lower(), 0)
        else:
            counts.setdefault(c, 0)

    for c in text:
        if is_typeable(c):
            if c not in counts:
                logger.debug("Found character '%s'", display_char(c))
            counts[c] = counts.get(c, 0) + 1
    return counts


def extract_quartads(text: str, placed: Set[str], shifted: Set[str]) -> Counter:
    """
    Count every window of 1-4 placed characters.

    From each start position the window grows until it would include a
    character that is not on the keyboard; the scan then moves on to the
    next start position.
    """
    quartads: Counter = Counter()
    n = len(text)
    for j in range(n):
        for k in range(1, min(QUARTAD_LENGTH, n - j) + 1):
            if text[j + k - 1] not in placed:
                break
            quartads[make_quartad(text[j : j + k], shifted)] += 1
    return quartads


def top_quartads(quartads: Counter, n: int = 50) -> List[Tuple[Quartad, int]]:
    """Most frequent quartads first; ties ordered by length then characters."""
    ranked = sorted(quartads.items(), key=lambda kv: (-kv[1], len(kv[0].chars), kv[0]))
    return ranked[:n]


def trim_to_coverage(quartads: Counter, coverage: int = 100) -> Counter:
    """
    Keep the most frequent quartads that together make up `coverage` percent
    of all quartad occurrences.
    """
    if coverage >= 100:
        return Counter(quartads)
    total_count = sum(quartads.values())
    kept: Counter = Counter()
    elapsed = 0
    for q, freq in top_quartads(quartads, len(quartads)):
        if total_count and 100 * elapsed / total_count >= coverage:
            break
        kept[q] = freq
        elapsed += freq
    logger.info("Kept %d of %d quartads for %d%% coverage", len(kept), len(quartads), coverage)
    return kept


def prepare_quartads(text: str, layout: Layout, locale: Locale, required: Iterable[str] = ()) -> QuartadInfo:
    """
    Count the corpus, place its characters on the layout (in place) and
    extract the quartads made only of characters that ended up on keys.
    """
    counts = count_characters(text, sorted(layout.essential), required)
    assignment = assign_characters(layout, counts, locale)
    placed = layout.bound_chars()
    shifted = layout.shifted_chars()

    quartads = extract_quartads(text, placed, shifted)
    logger.info("Using %d unique characters, %d unique quartads", len(placed), len(quartads))
    for q, freq in top_quartads(quartads):
        logger.debug("%r: %d", str(q), freq)
    return QuartadInfo(quartads=quartads, chars_on_keyboard=sorted(assignment.assigned), char_counts=counts)


def load_corpus(paths: Iterable[str]) -> str:
    """Read and concatenate the reference text files."""
    parts = []
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                parts.append(f.read())
        except OSError as e:
            raise ConfigError(path, f"error reading file: {e}") from e
        logger.info("Read corpus file %s", path)
    return "".join(parts)
