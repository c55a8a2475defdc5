#!/usr/bin/env python3
"""
junction/physics.py
===================
Low-level kinematics and vector helpers used by :mod:`junction.vehicle`,
:mod:`junction.lanes` and :mod:`junction.context`.

Vectors are plain ``(x, y)`` tuples in metres; angles are in degrees.
"""

from __future__ import annotations

import math
from typing import Tuple

Vec = Tuple[float, float]


def clamp(value: float, lo: float, hi: float) -> float:
    return lo if value < lo else hi if value > hi else value


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def ramp_factor(distance: float, start: float, stop: float) -> float:
    """Linear brake factor between *start* (0.0) and *stop* (1.0).

    Parameters
    ----------
    distance : float
        Current distance to the obstacle.
    start : float
        Distance at which braking begins (factor 0).
    stop : float
        Distance at which braking saturates (factor 1).
    """
    if distance >= start:
        return 0.0
    span = start - stop
    if span <= 0.0 or distance <= stop:
        return 1.0
    return clamp((start - distance) / span, 0.0, 1.0)


def move_toward(current: float, target: float, up: float, down: float) -> float:
    """Step *current* toward *target* by at most *up* (rising) or *down* (falling)."""
    if current > target:
        return max(target, current - down)
    return min(target, current + up)


def dot(a: Vec, b: Vec) -> float:
    return a[0] * b[0] + a[1] * b[1]


def sub(a: Vec, b: Vec) -> Vec:
    return (a[0] - b[0], a[1] - b[1])


def add(a: Vec, b: Vec) -> Vec:
    return (a[0] + b[0], a[1] + b[1])


def scale(a: Vec, s: float) -> Vec:
    return (a[0] * s, a[1] * s)


def norm(a: Vec) -> float:
    return math.hypot(a[0], a[1])


def unit(a: Vec) -> Vec:
    """Normalized copy of *a*; the zero vector stays zero."""
    n = norm(a)
    if n < 1e-9:
        return (0.0, 0.0)
    return (a[0] / n, a[1] / n)


def right_of(heading: Vec) -> Vec:
    """Unit vector pointing to the right of *heading* (clockwise 90°)."""
    return (heading[1], -heading[0])


def rotate(v: Vec, degrees: float) -> Vec:
    """Rotate *v* counter-clockwise by *degrees*."""
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    return (v[0] * c - v[1] * s, v[0] * s + v[1] * c)


def snap_cardinal(v: Vec) -> Vec:
    """Snap *v* to the nearest of the four axis-aligned unit vectors."""
    if abs(v[0]) >= abs(v[1]):
        return (1.0 if v[0] > 0 else -1.0, 0.0)
    return (0.0, 1.0 if v[1] > 0 else -1.0)
