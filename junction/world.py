#!/usr/bin/env python3
"""
junction/world.py
=================
Top-level simulation loop for one signalized intersection.

:class:`IntersectionWorld` wires a :class:`SimulationContext`, the eight
lights, the stats aggregator, the spawner and the signal controller
together, and advances them in a fixed order on every tick::

    clock → vehicles → collision pass → spawner → controller → destructions
"""

from __future__ import annotations

import logging
from typing import List, Optional

from junction.context import SimulationContext
from junction.controller import EpisodeSummary, SignalController
from junction.lights import describe, make_lights
from junction.metrics import MetricsSnapshot
from junction.physics import norm, sub
from junction.spawner import Spawner
from junction.stats import StatsAggregator
from junction.tuning import SimTuning
from junction.vehicle import VehicleState

log = logging.getLogger("world")


class IntersectionWorld:
    """Owns every component of one simulation and the tick order.

    Parameters
    ----------
    tuning : SimTuning, optional
        Parameter set shared by every component.
    seed : int, optional
        Seed of the context RNG (spawn phases, lanes, turns, initial lights).
    policy : object, optional
        Signal policy handed to the controller.
    sim_id : str
        Identifier used in log lines.
    time_scale : float
        Multiplier applied to every ``tick(dt)``.
    spawning : bool
        ``False`` builds the world without a spawner (scripted scenarios).
    """

    def __init__(
        self,
        tuning: Optional[SimTuning] = None,
        seed: Optional[int] = None,
        policy=None,
        sim_id: str = "sim",
        time_scale: float = 1.0,
        spawning: bool = True,
        residential_lane: Optional[int] = None,
        green_sets=None,
    ) -> None:
        self.context = SimulationContext(sim_id=sim_id, tuning=tuning, seed=seed)
        self.tuning = self.context.tuning
        self.stats = self.context.attach_stats(
            StatsAggregator(sim_id, self.context.clock, self.tuning.recent_window)
        )
        self.lights = make_lights()
        self.spawner: Optional[Spawner] = (
            Spawner(self.context, self.lights, residential_lane) if spawning else None
        )
        self.controller = SignalController(
            self.context, self.lights, self.spawner, policy, green_sets,
        )
        self.time_scale = time_scale
        self.ticks = 0
        self.collisions = 0
        self.controller.on_episode_begin()
        log.info(
            "[%s] world ready (seed=%s, spawning=%s, time_scale=%.2f)",
            sim_id, seed, spawning, time_scale,
        )

    # ── Accessors ─────────────────────────────────────────────────────────
    @property
    def now(self) -> float:
        return self.context.now

    @property
    def vehicles(self):
        return self.context.vehicles

    @property
    def policy(self):
        return self.controller.policy

    @policy.setter
    def policy(self, value) -> None:
        self.controller.policy = value

    @property
    def summaries(self) -> List[EpisodeSummary]:
        return self.controller.summaries

    def set_time_scale(self, scale: float) -> None:
        self.time_scale = max(0.0, float(scale))

    # ── Loop ──────────────────────────────────────────────────────────────
    def tick(self, dt: float) -> Optional[EpisodeSummary]:
        """Advance the whole simulation by *dt* (scaled by ``time_scale``).

        Returns the :class:`EpisodeSummary` of an episode that ended during
        this tick, otherwise ``None``.
        """
        step = dt * self.time_scale
        if step <= 0.0:
            return None
        self.ticks += 1
        self.context.advance(step)

        for vehicle in list(self.context.vehicles):
            vehicle.tick(step)
        self._collision_pass()

        if self.spawner is not None:
            self.spawner.tick(step)
        summary = self.controller.tick(step)
        self.context.flush_destroyed()
        return summary

    def _collision_pass(self) -> int:
        """Crash every pair of overlapping cars on different lanes.

        Wrecks still on the road take part; ``crash()`` refuses a second
        report from them, so only the newcomer is counted.
        """
        limit = self.tuning.collision_distance_m
        present = [
            v for v in self.context.vehicles
            if not v.destroyed and v.state is not VehicleState.EXITED
        ]
        crashed = 0
        for i, a in enumerate(present):
            for b in present[i + 1:]:
                if a.lane_id == b.lane_id:
                    continue
                if norm(sub(a.position, b.position)) >= limit:
                    continue
                hit_a = a.crash()
                hit_b = b.crash()
                if hit_a or hit_b:
                    crashed += 1
                    log.info(
                        "[%s] collision %s (%s) × %s (%s) at t=%.2f",
                        self.context.sim_id, a.id, a.lane_id, b.id, b.lane_id,
                        self.context.now,
                    )
        self.collisions += crashed
        return crashed

    def run(self, seconds: float, dt: float = 0.05) -> List[EpisodeSummary]:
        """Tick for *seconds* of unscaled time; return episodes that ended."""
        ended: List[EpisodeSummary] = []
        steps = int(round(seconds / dt))
        for _ in range(steps):
            summary = self.tick(dt)
            if summary is not None:
                ended.append(summary)
        return ended

    def run_episodes(self, count: int, dt: float = 0.05) -> List[EpisodeSummary]:
        """Tick until *count* more episodes have finished."""
        if dt <= 0.0 or self.time_scale <= 0.0:
            raise ValueError("run_episodes needs a positive dt and time scale")
        ended: List[EpisodeSummary] = []
        while len(ended) < count:
            summary = self.tick(dt)
            if summary is not None:
                ended.append(summary)
        return ended

    def reset(self) -> None:
        """Start a fresh episode immediately (no summary is recorded)."""
        self.controller.on_episode_begin()

    def metrics(self) -> MetricsSnapshot:
        idx = self.controller.current_index
        return MetricsSnapshot(
            self.stats,
            time_scale=self.time_scale,
            config_index=idx,
            config_label=describe(self.controller.table[idx]),
            episode=self.controller.episode,
            sim_time=self.context.now,
        )
