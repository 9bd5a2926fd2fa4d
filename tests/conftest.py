"""
Shared pytest fixtures: small hand-built layouts and cost tables.
"""
import random

import pytest

from layout import Finger, Hand, HomePosition, KeyInfo, Layout, Side
from user_profile import FingerCost, HandCosts, Locale


def key_info(index=0, hand=Hand.LEFT, finger=Finger.INDEX, row=1, col=0, cost=1.0, vert=0, horz=0):
    """Build a KeyInfo directly, for exercising penalty rules in isolation."""
    return KeyInfo(index, hand, finger, row, col, cost, vert, horz)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def line_costs():
    """Flat per-finger costs, no movement costs: pinkie 4, ring 3, middle 2, index 1."""
    return HandCosts(
        index=FingerCost(cost=1.0),
        middle=FingerCost(cost=2.0),
        ring=FingerCost(cost=3.0),
        pinkie=FingerCost(cost=4.0),
    )


@pytest.fixture
def line_layout(line_costs):
    """Four swappable keys on one row of the left hand, each on its finger's home."""
    left = Side(
        rows=[["*P", "*R", "*M", "*I"]],
        homes={
            Finger.PINKIE: HomePosition(0, 0),
            Finger.RING: HomePosition(0, 1),
            Finger.MIDDLE: HomePosition(0, 2),
            Finger.INDEX: HomePosition(0, 3),
        },
    )
    return Layout(left, Side(rows=[], homes={}), left_costs=line_costs, name="line")


@pytest.fixture
def hand_costs():
    return HandCosts(
        thumb=FingerCost(cost=0.5, up_cost=1.0, down_cost=1.0, h_cost=1.0),
        index=FingerCost(cost=1.0, up_cost=0.5, down_cost=0.7, h_cost=0.6),
        middle=FingerCost(cost=1.2, up_cost=0.5, down_cost=0.7, h_cost=0.8),
        ring=FingerCost(cost=1.5, up_cost=0.6, down_cost=0.8, h_cost=0.8),
        pinkie=FingerCost(cost=2.0, up_cost=0.8, down_cost=1.0, h_cost=1.0),
    )


@pytest.fixture
def locale():
    return Locale({"1": "!", "2": "@", ",": "<", ".": ">", "'": '"'})


def split_sides():
    left = Side(
        rows=[
            ["*P", "*R", "*M", "*I", "*I"],
            ["*P", "*R", "*M", "*I", "*I"],
            ["\\SP", "*R", "*M", "*I", "*I"],
            [" T"],
        ],
        homes={
            Finger.PINKIE: HomePosition(1, 0),
            Finger.RING: HomePosition(1, 1),
            Finger.MIDDLE: HomePosition(1, 2),
            Finger.INDEX: HomePosition(1, 3),
            Finger.THUMB: HomePosition(3, 0),
        },
    )
    right = Side(
        rows=[
            ["*I", "*I", "*M", "*R", "*P"],
            ["*I", "*I", "*M", "*R", "*P"],
            ["*I", "*I", "*M", "*R", "\\SP"],
            ["\\nT"],
        ],
        homes={
            Finger.INDEX: HomePosition(1, 1),
            Finger.MIDDLE: HomePosition(1, 2),
            Finger.RING: HomePosition(1, 3),
            Finger.PINKIE: HomePosition(1, 4),
            Finger.THUMB: HomePosition(3, 0),
        },
    )
    return left, right


@pytest.fixture
def split_layout(hand_costs, locale):
    """A 3x5 split keyboard with shift on both outer bottom corners and space/enter on the thumbs."""
    left, right = split_sides()
    return Layout(left, right, left_costs=hand_costs, right_costs=hand_costs, locale=locale, name="split")


@pytest.fixture
def corpus():
    return (
        "The quick brown fox jumps over the lazy dog.\n"
        "Pack my box with five dozen liquor jugs, said Alice.\n"
        "How vexingly quick daft zebras jump!\n"
    )
