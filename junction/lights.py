#!/usr/bin/env python3
"""
junction/lights.py
==================
Traffic lights, the pairwise conflict model and the table of safe signal
configurations the controller chooses from.

A configuration is an 8-tuple of booleans in :data:`junction.lanes.LANE_IDS`
order (``True`` = green).  The table is built once and every entry is
checked against :func:`lanes_conflict`; an unsafe entry raises
:class:`ConfigurationTableError` at construction, never mid-run.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from junction.lanes import LANE_IDS, arm_of, axis_of, is_left_lane

SignalConfiguration = Tuple[bool, ...]


class ConfigurationTableError(ValueError):
    """Raised when a configuration table contains a conflicting green pair."""


@dataclass
class TrafficLight:
    """Green/red state of one lane approach.

    Only :class:`junction.controller.SignalController` flips ``is_green``;
    vehicles and the stats layer read it.
    """

    lane_id: str
    is_green: bool = False

    def set_green(self, green: bool) -> None:
        self.is_green = bool(green)


def make_lights() -> Dict[str, TrafficLight]:
    """One red light per lane, keyed by lane id."""
    return {lane: TrafficLight(lane) for lane in LANE_IDS}


def lanes_conflict(a: str, b: str) -> bool:
    """True when lanes *a* and *b* must never be green together.

    * two through lanes conflict when they sit on perpendicular axes;
    * a left turn conflicts with every through lane except its own arm's
      (it crosses the opposing flow and cuts across both perpendicular ones);
    * any two left turns conflict (they all sweep the core).
    """
    if a == b:
        return False
    left_a, left_b = is_left_lane(a), is_left_lane(b)
    if left_a and left_b:
        return True
    if left_a or left_b:
        left, through = (a, b) if left_a else (b, a)
        return arm_of(left) != arm_of(through)
    return axis_of(a) != axis_of(b)


def green_lanes(config: SignalConfiguration) -> List[str]:
    return [lane for lane, green in zip(LANE_IDS, config) if green]


def conflicting_pairs(config: SignalConfiguration) -> List[Tuple[str, str]]:
    """Every green pair in *config* that :func:`lanes_conflict` forbids."""
    return [
        (a, b) for a, b in combinations(green_lanes(config), 2)
        if lanes_conflict(a, b)
    ]


def is_safe(config: SignalConfiguration) -> bool:
    return len(config) == len(LANE_IDS) and not conflicting_pairs(config)


def config_from_lanes(greens: Iterable[str]) -> SignalConfiguration:
    """Build a configuration with exactly *greens* set green."""
    wanted = set(greens)
    unknown = wanted.difference(LANE_IDS)
    if unknown:
        raise ValueError("unknown lane ids: %s" % sorted(unknown))
    return tuple(lane in wanted for lane in LANE_IDS)


def describe(config: SignalConfiguration) -> str:
    """Short human label, e.g. ``"N+S"`` or ``"ALL_RED"``."""
    greens = green_lanes(config)
    return "+".join(greens) if greens else "ALL_RED"


# ── Default table (index = controller action) ────────────────────────────────
DEFAULT_GREEN_SETS: Tuple[Tuple[str, ...], ...] = (
    (),
    ("N", "S"),
    ("E", "W"),
    ("N", "N_LEFT"),
    ("S", "S_LEFT"),
    ("E", "E_LEFT"),
    ("W", "W_LEFT"),
)

ALL_RED_INDEX = 0


def build_configuration_table(
    green_sets: Optional[Sequence[Iterable[str]]] = None,
) -> Tuple[SignalConfiguration, ...]:
    """Build and validate the configuration table.

    Parameters
    ----------
    green_sets : sequence of lane-id iterables, optional
        Green lanes of each entry.  Defaults to :data:`DEFAULT_GREEN_SETS`.
        Entry 0 must be all-red: it is the fallback for invalid actions.

    Raises
    ------
    ConfigurationTableError
        If the table is empty, entry 0 is not all-red, or any entry greens
        a conflicting pair.
    """
    sets = DEFAULT_GREEN_SETS if green_sets is None else green_sets
    table = tuple(config_from_lanes(greens) for greens in sets)
    if not table:
        raise ConfigurationTableError("configuration table is empty")
    if any(table[ALL_RED_INDEX]):
        raise ConfigurationTableError(
            "entry %d must be all-red, got %s"
            % (ALL_RED_INDEX, describe(table[ALL_RED_INDEX]))
        )
    for idx, config in enumerate(table):
        bad = conflicting_pairs(config)
        if bad:
            raise ConfigurationTableError(
                "entry %d (%s) greens conflicting lanes %s"
                % (idx, describe(config), bad)
            )
    return table


def lights_to_config(lights: Mapping[str, TrafficLight]) -> SignalConfiguration:
    """Read the current state of *lights* as a configuration tuple."""
    return tuple(
        bool(lights[lane].is_green) if lane in lights else False
        for lane in LANE_IDS
    )


def match_configuration(
    table: Sequence[SignalConfiguration], config: SignalConfiguration,
) -> int:
    """Index of *config* in *table*, or the all-red index if absent."""
    for idx, entry in enumerate(table):
        if tuple(entry) == tuple(config):
            return idx
    return ALL_RED_INDEX
