"""
user_profile.py – User profile, locale and penalty weight configuration.

This module defines:
  - FingerCost / HandCosts: the per-finger ergonomic cost table of one hand.
  - PenaltyWeights: the weight of every penalty rule (zero disables a rule).
  - Locale: the one-to-one unshifted <-> shifted character table.
  - UserProfile: everything read from a user's JSON file.
  - Loaders for the JSON files (users/, locale/).
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration or corpus file cannot be used."""

    def __init__(self, filename: str, message: str) -> None:
        super().__init__(f"{filename}: {message}")
        self.filename = filename


@dataclass(frozen=True)
class FingerCost:
    cost: float = 0.0
    up_cost: float = 0.0
    down_cost: float = 0.0
    h_cost: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FingerCost":
        return cls(**{f.name: float(data.get(f.name, 0.0)) for f in fields(cls)})


@dataclass(frozen=True)
class HandCosts:
    thumb: FingerCost = FingerCost()
    index: FingerCost = FingerCost()
    middle: FingerCost = FingerCost()
    ring: FingerCost = FingerCost()
    pinkie: FingerCost = FingerCost()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HandCosts":
        return cls(**{f.name: FingerCost.from_dict(data.get(f.name, {})) for f in fields(cls)})

    def for_finger(self, finger_name: str) -> FingerCost:
        return getattr(self, finger_name)


@dataclass(frozen=True)
class PenaltyWeights:
    """
    Weight of each penalty rule. A weight of zero switches the rule off.

    The base costs default to 1.0 so that a profile with no penalty section
    still scores layouts on key effort alone.
    """

    base: float = 1.0
    sfb: float = 0.0
    vertical_finger_travel: float = 0.0
    long_sfb: float = 0.0
    lateral_stretch: float = 0.0
    pinky_ring_stretch: float = 0.0
    roll_reversal: float = 0.0
    hand_repetition: float = 0.0
    hand_alternation: float = 0.0
    outward_roll: float = 0.0
    inward_roll: float = 0.0
    scissor_motion: float = 0.0
    row_change_in_roll: float = 0.0
    base_modifier: float = 1.0
    same_finger_modifier: float = 0.0
    diagonal_modifier: float = 0.0
    modifier_stretch: float = 0.0
    double_tap_thumbs: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PenaltyWeights":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown penalty weights: {sorted(unknown)}")
        return cls(**{k: float(v) for k, v in data.items()})

    def get(self, name: str) -> float:
        return getattr(self, name)


class Locale:
    """
    One-to-one mapping between unshifted and shifted characters (e.g. '1' <-> '!').
    """

    def __init__(self, unshifted_to_shifted: Optional[Dict[str, str]] = None) -> None:
        self.unshifted_to_shifted: Dict[str, str] = {}
        self.shifted_to_unshifted: Dict[str, str] = {}
        for k, v in (unshifted_to_shifted or {}).items():
            if len(k) != 1 or len(v) != 1:
                raise ValueError(
                    f"invalid key-value pair: {k!r}: {v!r} (must be single characters)"
                )
            self.unshifted_to_shifted[k] = v
            self.shifted_to_unshifted[v] = k

    def __len__(self) -> int:
        return len(self.unshifted_to_shifted)

    def shifted(self, c: str) -> Optional[str]:
        return self.unshifted_to_shifted.get(c)

    def unshifted(self, c: str) -> Optional[str]:
        return self.shifted_to_unshifted.get(c)

    def pair_for(self, c: str) -> Optional[tuple]:
        """Return the (unshifted, shifted) pair containing c, if any."""
        if c in self.unshifted_to_shifted:
            return c, self.unshifted_to_shifted[c]
        if c in self.shifted_to_unshifted:
            return self.shifted_to_unshifted[c], c
        return None


@dataclass
class UserProfile:
    name: str = ""
    keyboard: str = ""
    locale: str = ""
    corpus: List[str] = field(default_factory=list)
    required: List[str] = field(default_factory=list)
    left: HandCosts = HandCosts()
    right: HandCosts = HandCosts()
    penalties: PenaltyWeights = PenaltyWeights()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            name=data.get("name", ""),
            keyboard=data.get("keyboard", ""),
            locale=data.get("locale", ""),
            corpus=list(data.get("corpus", [])),
            required=list(data.get("required", "")),
            left=HandCosts.from_dict(data.get("left", {})),
            right=HandCosts.from_dict(data.get("right", {})),
            penalties=PenaltyWeights.from_dict(data.get("penalties", {})),
        )


def read_json(filename: str) -> Any:
    try:
        with open(filename, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ConfigError(filename, f"error reading file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(filename, f"error parsing JSON: {e}") from e


def load_locale(filename: str) -> Locale:
    data = read_json(filename)
    try:
        locale = Locale(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise ConfigError(filename, str(e)) from e
    logger.debug("Loaded locale %s with %d shift pairs", filename, len(locale))
    return locale


def load_user(filename: str) -> UserProfile:
    data = read_json(filename)
    try:
        profile = UserProfile.from_dict(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise ConfigError(filename, str(e)) from e
    logger.info("Loaded user profile '%s' (keyboard=%s, locale=%s)", profile.name, profile.keyboard, profile.locale)
    return profile


def locale_path(config_dir: str, name: str) -> str:
    return os.path.join(config_dir, "locale", f"{name}.json")


def keyboard_path(config_dir: str, name: str) -> str:
    return os.path.join(config_dir, "keyboards", f"{name}.json")
