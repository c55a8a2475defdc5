#!/usr/bin/env python3
"""
junction/context.py
===================
Explicit per-simulation environment shared by every component.

:class:`SimulationContext` owns the simulated clock, the single seeded
``random.Random``, the live vehicle registry, the stats aggregator slot
and the delayed-destruction queue.  Vehicles and the spawner query the
scene geometry only through it.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, List, Optional, Tuple

from junction.physics import Vec, dot, norm, right_of, sub
from junction.stats import StatsAggregator
from junction.tuning import SimTuning

if TYPE_CHECKING:
    from junction.vehicle import Vehicle

log = logging.getLogger("world")

# Minimum heading alignment for another car to count as a same-direction leader.
_SAME_DIRECTION_DOT = 0.5


class SimulationContext:
    """Clock, RNG, vehicle registry and geometry queries of one simulation.

    Parameters
    ----------
    sim_id : str
        Identifier used in log lines and vehicle ids.
    tuning : SimTuning, optional
        Parameter set; defaults to ``SimTuning()``.
    seed : int, optional
        Seed for the shared RNG.  ``None`` seeds from system entropy.
    """

    def __init__(
        self,
        sim_id: str = "sim",
        tuning: Optional[SimTuning] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.sim_id = sim_id
        self.tuning = tuning or SimTuning()
        self.rng = random.Random(seed)
        self.now: float = 0.0
        self.vehicles: List["Vehicle"] = []
        self.stats: Optional[StatsAggregator] = None
        self._pending: List[Tuple[float, "Vehicle"]] = []
        self._vehicle_counter = 0

    # ── Clock ─────────────────────────────────────────────────────────────
    def clock(self) -> float:
        return self.now

    def advance(self, dt: float) -> None:
        self.now += dt

    # ── Stats slot ────────────────────────────────────────────────────────
    def attach_stats(self, stats: StatsAggregator) -> StatsAggregator:
        """Install *stats* as this simulation's aggregator.

        Only the first aggregator is kept; a second one is discarded with
        a warning and the already-attached instance is returned.
        """
        if self.stats is not None and self.stats is not stats:
            log.warning(
                "[%s] duplicate stats aggregator %r discarded; keeping %r",
                self.sim_id, stats.sim_id, self.stats.sim_id,
            )
            return self.stats
        self.stats = stats
        return stats

    # ── Registry ──────────────────────────────────────────────────────────
    def next_vehicle_id(self) -> str:
        vid = "CAR_%04d" % self._vehicle_counter
        self._vehicle_counter += 1
        return vid

    def add_vehicle(self, vehicle: "Vehicle") -> None:
        self.vehicles.append(vehicle)

    def live_vehicles(self) -> List["Vehicle"]:
        return [v for v in self.vehicles if not v.destroyed]

    def clear_vehicles(self) -> None:
        """Remove every vehicle and drop all pending destructions."""
        for v in self.vehicles:
            v.destroyed = True
        self.vehicles = []
        self._pending = []

    # ── Destruction scheduler ─────────────────────────────────────────────
    def schedule_destruction(self, vehicle: "Vehicle", delay: float) -> None:
        self._pending.append((self.now + max(0.0, delay), vehicle))

    def flush_destroyed(self) -> List["Vehicle"]:
        """Remove vehicles whose destruction time has come; return them."""
        due = [v for t, v in self._pending if t <= self.now]
        if not due:
            return []
        self._pending = [(t, v) for t, v in self._pending if t > self.now]
        gone = set(id(v) for v in due)
        for v in due:
            v.destroyed = True
        self.vehicles = [v for v in self.vehicles if id(v) not in gone]
        return due

    @property
    def pending_destructions(self) -> int:
        return len(self._pending)

    # ── Geometry queries ──────────────────────────────────────────────────
    def query_obstacle(
        self, vehicle: "Vehicle", max_range: float,
    ) -> Optional[Tuple["Vehicle", float]]:
        """Nearest same-direction vehicle ahead of *vehicle* within *max_range*.

        A candidate must lie in front (``0 < along ≤ max_range``), inside
        the probe corridor (``|lateral| ≤ probe_half_width_m``) and face
        roughly the same way.  Returns ``(leader, distance)`` or ``None``.
        """
        best: Optional[Tuple["Vehicle", float]] = None
        side = right_of(vehicle.heading)
        half = self.tuning.probe_half_width_m
        for other in self.vehicles:
            if other is vehicle or other.destroyed:
                continue
            if dot(other.heading, vehicle.heading) <= _SAME_DIRECTION_DOT:
                continue
            rel = sub(other.position, vehicle.position)
            along = dot(rel, vehicle.heading)
            if along <= 0.0 or along > max_range:
                continue
            if abs(dot(rel, side)) > half:
                continue
            if best is None or along < best[1]:
                best = (other, along)
        return best

    def is_clear(self, point: Vec, radius: float) -> bool:
        """True when no live vehicle sits within *radius* of *point*."""
        for v in self.vehicles:
            if v.destroyed:
                continue
            if norm(sub(v.position, point)) < radius:
                return False
        return True
