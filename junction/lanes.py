#!/usr/bin/env python3
"""
junction/lanes.py
=================
Lane topology of the four-way intersection.

Defines the eight approach lanes (four compass arms × {through, left-turn}),
their world-space geometry, the fixed turn pivots and the incoming →
outgoing lane table used when a car finishes a turn.

Coordinates are metres with the intersection centre at the origin and
right-hand traffic: a car entering from the west drives east on the
southern half of the road.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from junction.physics import Vec, add, dot, right_of, scale
from junction.tuning import SimTuning

# Fixed order of every per-lane vector in the system.
LANE_IDS: Tuple[str, ...] = (
    "N", "S", "E", "W",
    "N_LEFT", "S_LEFT", "E_LEFT", "W_LEFT",
)

# Arm → unit heading of cars entering from that arm.
_HEADINGS: Dict[str, Vec] = {
    "W": (1.0, 0.0),
    "E": (-1.0, 0.0),
    "N": (0.0, -1.0),
    "S": (0.0, 1.0),
}

_AXIS: Dict[str, str] = {"N": "NS", "S": "NS", "E": "EW", "W": "EW"}


class TurnDirection(Enum):
    """Manoeuvre a car performs inside the intersection."""
    RIGHT = -1   # clockwise
    LEFT = 1     # counter-clockwise


# (incoming lane, turn) → lane whose geometry the car travels on afterwards.
TURN_TABLE: Dict[Tuple[str, TurnDirection], str] = {
    ("N", TurnDirection.RIGHT): "E",
    ("S", TurnDirection.RIGHT): "W",
    ("E", TurnDirection.RIGHT): "S",
    ("W", TurnDirection.RIGHT): "N",
    ("N", TurnDirection.LEFT): "W",
    ("S", TurnDirection.LEFT): "E",
    ("E", TurnDirection.LEFT): "N",
    ("W", TurnDirection.LEFT): "S",
    # Dedicated left-turn lanes leave on their target's base lane.
    ("N_LEFT", TurnDirection.LEFT): "W",
    ("S_LEFT", TurnDirection.LEFT): "E",
    ("E_LEFT", TurnDirection.LEFT): "N",
    ("W_LEFT", TurnDirection.LEFT): "S",
}


def arm_of(lane_id: str) -> str:
    """``"N_LEFT"`` → ``"N"``; through lanes map to themselves."""
    return lane_id.split("_", 1)[0]


def is_left_lane(lane_id: str) -> bool:
    return lane_id.endswith("_LEFT")


def axis_of(lane_id: str) -> str:
    """``"NS"`` or ``"EW"`` for the road axis a lane approaches on."""
    return _AXIS[arm_of(lane_id)]


def lane_index(lane_id: str) -> int:
    return LANE_IDS.index(lane_id)


def outgoing_lane(lane_id: str, turn: TurnDirection) -> Optional[str]:
    """Table lookup; ``None`` for a combination the table does not define."""
    return TURN_TABLE.get((lane_id, turn))


@dataclass(frozen=True)
class LaneGeometry:
    """World-space description of one approach lane.

    Parameters
    ----------
    lane_id : str
        One of :data:`LANE_IDS`.
    heading : Vec
        Unit travel direction while approaching.
    offset : float
        Perpendicular distance of the lane centre to the right of the road axis.
    """

    lane_id: str
    heading: Vec
    offset: float

    def point_before_centre(self, distance: float) -> Vec:
        """Lane-centre point *distance* metres before the intersection centre."""
        return add(scale(self.heading, -distance), scale(right_of(self.heading), self.offset))

    def lateral(self, point: Vec) -> float:
        """Signed offset of *point* to the right of the road axis."""
        return dot(point, right_of(self.heading))


def lane_geometry(lane_id: str, tuning: SimTuning) -> LaneGeometry:
    offset = tuning.left_lane_offset_m if is_left_lane(lane_id) else tuning.lane_offset_m
    return LaneGeometry(lane_id=lane_id, heading=_HEADINGS[arm_of(lane_id)], offset=offset)


def spawn_point(lane_id: str, tuning: SimTuning) -> Vec:
    return lane_geometry(lane_id, tuning).point_before_centre(tuning.spawn_distance_m)


def light_position(lane_id: str, tuning: SimTuning) -> Vec:
    return lane_geometry(lane_id, tuning).point_before_centre(tuning.light_offset_m)


def turn_radius(lane_id: str, turn: TurnDirection, tuning: SimTuning) -> float:
    """Nominal arc radius from the box-edge trigger point to the pivot.

    A right turn hugs the near corner (``box − offset_out``); a left turn
    sweeps across the core to the far side (``box + offset_out``).
    """
    if turn is TurnDirection.RIGHT:
        return tuning.box_half_m - tuning.lane_offset_m
    return tuning.box_half_m + tuning.lane_offset_m


def turn_pivot(lane_id: str, turn: TurnDirection, tuning: SimTuning) -> Vec:
    """Fixed pivot of the arc a car on *lane_id* follows for *turn*.

    The pivot sits to the right (right turn) or left (left turn) of the
    lane's box-edge point so the finished arc lands on the outgoing
    lane's centre line.
    """
    geom = lane_geometry(lane_id, tuning)
    trigger = geom.point_before_centre(tuning.box_half_m)
    side = right_of(geom.heading)
    r = turn_radius(lane_id, turn, tuning)
    if turn is TurnDirection.RIGHT:
        return add(trigger, scale(side, r))
    return add(trigger, scale(side, -r))
