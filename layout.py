"""
layout.py – Physical keyboard layout model.

This module defines:
  - Finger / Hand: enumerations of the finger and hand that press a key.
  - Key: the (mutable) character bindings of one physical key.
  - KeyInfo: read-only physical facts about a key (hand, finger, row/col,
    ergonomic cost and offsets from the finger's home position).
  - Layout: both hands of a keyboard as flat, indexed arrays of keys, with
    helpers for cloning, swapping and looking up the key behind a character.

Keys are referred to by their flat index, so cloning a layout only has to
copy the Key bindings; the KeyInfo records are immutable and shared.
"""

import copy
import logging
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Set, Tuple

from user_profile import ConfigError, HandCosts, Locale, UserProfile, read_json

logger = logging.getLogger(__name__)

# Modifier pseudo-characters. They are bound to physical keys like any
# other character so that penalty rules can look them up.
NO_MODIFIER = ""
SHIFT = "\ue001"
CTRL = "\ue002"
ALT = "\ue003"
MODIFIERS = (SHIFT, CTRL, ALT)

CONTROL_TOKENS: Dict[str, str] = {
    "\\n": "\n",
    "\\t": "\t",
    "\\b": "\b",
    "\n": "\n",
    "\t": "\t",
    "\b": "\b",
    " ": " ",
}
MODIFIER_TOKENS: Dict[str, str] = {"\\S": SHIFT, "\\C": CTRL, "\\A": ALT}

DISPLAY_CHARS: Dict[str, str] = {
    "\t": "⇥",
    "\b": "⌫",
    "\r": "↵",
    "\n": "↵",
    " ": "␣",
    SHIFT: "⇧",
    CTRL: "^",
    ALT: "⌥",
    "": " ",
}


def display_char(c: str) -> str:
    """Return a printable stand-in for control and modifier characters."""
    return DISPLAY_CHARS.get(c, c)


class Finger(IntEnum):
    THUMB = 0
    INDEX = 1
    MIDDLE = 2
    RING = 3
    PINKIE = 4


FINGER_CODES: Dict[str, Finger] = {
    "T": Finger.THUMB,
    "I": Finger.INDEX,
    "M": Finger.MIDDLE,
    "R": Finger.RING,
    "P": Finger.PINKIE,
}


class Hand(IntEnum):
    LEFT = 0
    RIGHT = 1


class LayoutError(ValueError):
    """A key specification that cannot be turned into a physical key."""

    def __init__(self, hand: Hand, row: int, col: int, message: str) -> None:
        super().__init__(f"error parsing key at {hand.name.lower()} row {row}, col {col}: {message}")
        self.hand = hand
        self.row = row
        self.col = col


@dataclass(frozen=True)
class HomePosition:
    row: int
    col: int


@dataclass
class Side:
    """The raw definition of one hand: key tokens per row plus finger home positions."""

    rows: List[List[str]]
    homes: Dict[Finger, HomePosition]

    @classmethod
    def from_dict(cls, data: Dict) -> "Side":
        homes = {}
        for finger in Finger:
            home = data.get(f"{finger.name.lower()}_home")
            if home is not None:
                homes[finger] = HomePosition(int(home["row"]), int(home["col"]))
        return cls(rows=[list(row) for row in data.get("rows", [])], homes=homes)


@dataclass
class Key:
    unshifted: str = ""
    shifted: str = ""
    unshifted_free: bool = True
    shifted_free: bool = True

    @property
    def fully_bound(self) -> bool:
        return not (self.unshifted_free or self.shifted_free)

    def swap(self, other: "Key") -> None:
        """Exchange every binding (characters and free flags) with another key."""
        for f in fields(self):
            a, b = getattr(self, f.name), getattr(other, f.name)
            setattr(self, f.name, b)
            setattr(other, f.name, a)


@dataclass(frozen=True)
class KeyInfo:
    index: int
    hand: Hand
    finger: Finger
    row: int
    col: int
    cost: float
    vert_delta: int  # negative when above the finger's home row
    horz_delta: int
    swappable: bool = False


def finger_cost(row: int, col: int, finger: Finger, side: Side, costs: HandCosts) -> Tuple[float, int, int]:
    """
    Return (cost, row offset, col offset) of a key pressed by finger.

    cost = base + |dcol| * h_cost + |drow| * (up_cost if above home else down_cost)
    """
    home = side.homes[finger]
    delta_row = row - home.row
    delta_col = col - home.col
    fc = costs.for_finger(finger.name.lower())
    cost = fc.cost + abs(delta_col) * fc.h_cost
    if delta_row < 0:
        cost += abs(delta_row) * fc.up_cost
    elif delta_row > 0:
        cost += abs(delta_row) * fc.down_cost
    return cost, delta_row, delta_col


class Layout:
    """
    A keyboard layout made of a left and a right hand.

    Every physical key gets a flat index; ``keys[i]`` holds its current
    character bindings and ``infos[i]`` its physical facts. Keys written as
    ``*`` in the definition are swappable and free on both layers. Letters,
    digits, control keys and any other character in the definition are fixed
    and their characters become "essential" (they must stay on the keyboard).
    """

    def __init__(
        self,
        left: Side,
        right: Side,
        left_costs: Optional[HandCosts] = None,
        right_costs: Optional[HandCosts] = None,
        locale: Optional[Locale] = None,
        supports_overrides: bool = False,
        name: str = "",
    ) -> None:
        self.name = name
        self.supports_overrides = supports_overrides
        self.sides: Dict[Hand, Side] = {Hand.LEFT: left, Hand.RIGHT: right}
        self.keys: List[Key] = []
        self.infos: List[KeyInfo] = []
        self.grid: Dict[Hand, List[List[int]]] = {}
        self.essential: Set[str] = set()

        locale = locale or Locale()
        self.hand_costs: Dict[Hand, HandCosts] = {
            Hand.LEFT: left_costs or HandCosts(),
            Hand.RIGHT: right_costs or HandCosts(),
        }
        for hand, side in self.sides.items():
            self.grid[hand] = []
            for r, row in enumerate(side.rows):
                indices = []
                for c, token in enumerate(row):
                    key, finger, swappable = self._parse_token(hand, r, c, token, locale)
                    if finger not in side.homes:
                        raise LayoutError(hand, r, c, f"no home position for the {finger.name.lower()} finger")
                    cost, vert, horz = finger_cost(r, c, finger, side, self.hand_costs[hand])
                    info = KeyInfo(len(self.keys), hand, finger, r, c, cost, vert, horz, swappable)
                    indices.append(info.index)
                    self.keys.append(key)
                    self.infos.append(info)
                self.grid[hand].append(indices)

        self.swappable: List[int] = [info.index for info in self.infos if info.swappable]
        logger.debug(
            "Layout '%s': %d keys, %d swappable, %d free slots",
            name, len(self.keys), len(self.swappable), self.free_slot_count(),
        )

    def _parse_token(self, hand: Hand, r: int, c: int, token: str, locale: Locale) -> Tuple[Key, Finger, bool]:
        if len(token) < 2:
            raise LayoutError(hand, r, c, f"invalid key string: {token!r}")
        finger = FINGER_CODES.get(token[-1])
        if finger is None:
            raise LayoutError(hand, r, c, f"invalid finger character: {token[-1]!r}")

        content = token[:-1]
        key = Key()
        if content == "*":
            return key, finger, True

        if content in CONTROL_TOKENS:
            ch = CONTROL_TOKENS[content]
            key.unshifted = key.shifted = ch
            key.unshifted_free = key.shifted_free = False
            self.essential.add(ch)
        elif content in MODIFIER_TOKENS:
            key.unshifted = key.shifted = MODIFIER_TOKENS[content]
            key.unshifted_free = key.shifted_free = False
        elif len(content) != 1:
            raise LayoutError(hand, r, c, f"unknown key content: {content!r}")
        elif content.isalpha():
            key.unshifted, key.shifted = content.lower(), content.upper()
            key.unshifted_free = key.shifted_free = False
            self.essential.update((key.unshifted, key.shifted))
        else:
            # Digits and symbols: the shifted layer stays free unless the
            # keyboard forces the locale's counterpart onto it.
            key.unshifted = content
            key.unshifted_free = False
            self.essential.add(content)
            shifted = locale.shifted(content)
            if not self.supports_overrides and shifted is not None:
                key.shifted = shifted
                key.shifted_free = False
                self.essential.add(shifted)
        return key, finger, False

    def __len__(self) -> int:
        return len(self.keys)

    def __repr__(self) -> str:
        return self.render()

    def clone(self) -> "Layout":
        """Return a copy whose key bindings are independent of this layout."""
        other = copy.copy(self)
        other.keys = [copy.copy(k) for k in self.keys]
        other.essential = set(self.essential)
        return other

    def set_home(self, hand: Hand, finger: Finger, home: HomePosition) -> None:
        """Move a finger's home position and recompute the keys it presses."""
        side = self.sides[hand]
        homes = dict(side.homes)
        homes[finger] = home
        self.sides = dict(self.sides)
        self.sides[hand] = Side(rows=side.rows, homes=homes)
        # Rebuild rather than mutate: clones share the old list.
        infos = list(self.infos)
        for i, info in enumerate(infos):
            if info.hand == hand and info.finger == finger:
                cost, vert, horz = finger_cost(info.row, info.col, finger, self.sides[hand], self.hand_costs[hand])
                infos[i] = replace(info, cost=cost, vert_delta=vert, horz_delta=horz)
        self.infos = infos

    def iter_keys(self) -> Iterator[Tuple[KeyInfo, Key]]:
        return zip(self.infos, self.keys)

    def swappable_keys(self) -> List[Key]:
        return [self.keys[i] for i in self.swappable]

    def swap(self, i: int, j: int) -> None:
        """Swap the full bindings of the keys at flat indices i and j."""
        self.keys[i].swap(self.keys[j])

    def keys_by_cost(self) -> List[int]:
        """All key indices, cheapest first. Ties keep layout order."""
        return sorted(range(len(self.infos)), key=lambda i: self.infos[i].cost)

    def free_slot_count(self) -> int:
        return sum(k.unshifted_free + k.shifted_free for k in self.keys)

    def char_to_info(self) -> Dict[str, KeyInfo]:
        """Map every bound character (and modifier) to the key that types it."""
        key_map: Dict[str, KeyInfo] = {}
        for info, key in self.iter_keys():
            if not key.unshifted_free:
                key_map[key.unshifted] = info
            if not key.shifted_free:
                key_map[key.shifted] = info
        return key_map

    def bound_chars(self) -> Set[str]:
        return {c for c in self.char_to_info() if c not in MODIFIERS}

    def shifted_chars(self) -> Set[str]:
        """Characters that need Shift held: bound on a shifted layer, distinct from the unshifted one."""
        return {
            key.shifted
            for key in self.keys
            if not key.shifted_free and (key.unshifted_free or key.shifted != key.unshifted)
        }

    def duplicate_bindings(self) -> List[Tuple[str, bool]]:
        """Return (char, shifted) for every character bound twice on the same layer. Modifier keys may repeat."""
        seen: Set[Tuple[str, bool]] = set()
        dupes = []
        for key in self.keys:
            for ch, free, shifted in ((key.unshifted, key.unshifted_free, False), (key.shifted, key.shifted_free, True)):
                if free or ch in MODIFIERS:
                    continue
                if (ch, shifted) in seen:
                    dupes.append((ch, shifted))
                seen.add((ch, shifted))
        return dupes

    def render(self, costs: bool = False) -> str:
        """Both hands side by side, one line per row."""
        lines = [f"Layout: {self.name}", ""]
        width = 42 if costs else 25
        rows = max(len(self.grid[Hand.LEFT]), len(self.grid[Hand.RIGHT]))
        for r in range(rows):
            halves = []
            for hand in Hand:
                grid = self.grid[hand]
                cells = []
                if r < len(grid):
                    for i in grid[r]:
                        if costs:
                            cells.append(f"[{self.infos[i].cost:1.2f}]")
                        else:
                            key = self.keys[i]
                            shown = key.unshifted if not key.unshifted_free else ""
                            cells.append(f"[{display_char(shown.upper())}]")
                halves.append(" ".join(cells))
            lines.append(f"{halves[0]:>{width}}  |  {halves[1]}")
        return "\n".join(lines)


def load_layout(filename: str, user: UserProfile, locale: Locale) -> Layout:
    """Build a Layout from a keyboards/<name>.json definition and the user's cost tables."""
    data = read_json(filename)
    try:
        layout = Layout(
            left=Side.from_dict(data.get("left", {})),
            right=Side.from_dict(data.get("right", {})),
            left_costs=user.left,
            right_costs=user.right,
            locale=locale,
            supports_overrides=bool(data.get("supports_overrides", False)),
            name=data.get("name", ""),
        )
    except LayoutError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ConfigError(filename, f"malformed layout definition: {e}") from e
    logger.info("Loaded layout '%s' with %d keys (%d swappable)", layout.name, len(layout), len(layout.swappable))
    return layout
