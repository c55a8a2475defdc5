#!/usr/bin/env python3
"""
junction/spawner.py
===================
Time-varying demand: which lane gets the next car, and when.

The episode is mapped onto a normalized "day" (0 → 1) split into five
traffic periods.  Rush periods spawn faster and, when enabled, in waves of
cars from a single lane; one randomly chosen through lane plays the
residential arm that dominates morning traffic and is avoided in the
afternoon.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional

from junction.context import SimulationContext
from junction.lanes import LANE_IDS, TurnDirection, is_left_lane, lane_geometry, spawn_point
from junction.lights import TrafficLight
from junction.physics import Vec, add, clamp, scale
from junction.tuning import SimTuning
from junction.vehicle import Vehicle

log = logging.getLogger("spawner")


class TrafficPeriod(Enum):
    EARLY_MORNING = "early_morning"
    MORNING_RUSH = "morning_rush"
    MIDDAY = "midday"
    AFTERNOON_RUSH = "afternoon_rush"
    EVENING = "evening"


RUSH_PERIODS = (TrafficPeriod.MORNING_RUSH, TrafficPeriod.AFTERNOON_RUSH)


class DemandSchedule:
    """Piecewise demand model over normalized episode time."""

    def __init__(self, tuning: SimTuning) -> None:
        self.tuning = tuning

    def period_at(self, normalized: float) -> TrafficPeriod:
        t = self.tuning
        if t.morning_rush_start <= normalized <= t.morning_rush_end:
            return TrafficPeriod.MORNING_RUSH
        if t.afternoon_rush_start <= normalized <= t.afternoon_rush_end:
            return TrafficPeriod.AFTERNOON_RUSH
        if normalized < t.morning_rush_start:
            return TrafficPeriod.EARLY_MORNING
        if normalized < t.afternoon_rush_start:
            return TrafficPeriod.MIDDAY
        return TrafficPeriod.EVENING

    def spawn_interval(self, period: TrafficPeriod) -> float:
        t = self.tuning
        if period in RUSH_PERIODS:
            base = t.base_spawn_interval_s / t.rush_multiplier
        elif period is TrafficPeriod.MIDDAY:
            base = t.base_spawn_interval_s
        else:
            base = t.base_spawn_interval_s * t.off_peak_factor
        return clamp(base, t.min_spawn_interval_s, t.max_spawn_interval_s)

    def lane_weights(self, period: TrafficPeriod, residential: int) -> List[float]:
        """Relative spawn weight of each lane in :data:`LANE_IDS` order."""
        t = self.tuning
        weights = [1.0] * len(LANE_IDS)
        residential_left = residential + 4
        if period is TrafficPeriod.MORNING_RUSH:
            weights[residential] *= t.morning_residential_bias
            weights[residential_left] *= t.morning_residential_bias * 0.5
        elif period is TrafficPeriod.AFTERNOON_RUSH:
            for i in range(len(weights)):
                if i not in (residential, residential_left):
                    weights[i] *= t.afternoon_residential_bias
        return weights


class Spawner:
    """Creates vehicles according to the :class:`DemandSchedule`.

    Parameters
    ----------
    context : SimulationContext
        Shared environment; new vehicles are registered here.
    lights : dict
        Lane id → :class:`TrafficLight` handed to each new vehicle.
    residential_lane : int, optional
        Index (0-3) of the residential through lane; drawn from the
        context RNG when omitted.
    """

    def __init__(
        self,
        context: SimulationContext,
        lights: Optional[Dict[str, TrafficLight]] = None,
        residential_lane: Optional[int] = None,
    ) -> None:
        self.context = context
        self.tuning = context.tuning
        self.lights = lights or {}
        self.schedule = DemandSchedule(self.tuning)
        if residential_lane is None:
            residential_lane = context.rng.randrange(4)
        self.residential_lane = int(residential_lane)
        self.total_spawned = 0
        self.total_skipped = 0
        self.reset()

    def reset(self) -> None:
        """Restart the demand clock for a new episode."""
        self.episode_time = 0.0
        self.normalized_time = 0.0
        self.period = TrafficPeriod.EARLY_MORNING
        self.in_wave = False
        self.wave_timer = 0.0
        self.wave_lane = 0
        self.wave_spawned = 0
        self.wave_car_timer = 0.0
        self.spawn_interval = self.schedule.spawn_interval(self.period)
        self.spawn_timer = self.context.rng.uniform(0.0, self.spawn_interval)

    # ── Tick ──────────────────────────────────────────────────────────────
    def tick(self, dt: float) -> None:
        t = self.tuning
        self.episode_time += dt * t.time_multiplier
        self.normalized_time = clamp(self.episode_time / t.day_length_s, 0.0, 1.0)
        self._update_period()

        if self.wave_active:
            self._update_wave(dt)
            return

        self.spawn_timer += dt
        if self.spawn_timer >= self.spawn_interval:
            self.spawn_timer = 0.0
            lane = self._pick_weighted_lane()
            self.spawn_at(lane)

    @property
    def wave_active(self) -> bool:
        return self.tuning.enable_wave_spawning and self.period in RUSH_PERIODS

    def _update_period(self) -> None:
        period = self.schedule.period_at(self.normalized_time)
        if period is not self.period:
            log.info(
                "[%s] traffic period → %s at %.1fs (%.0f%%)",
                self.context.sim_id, period.value, self.episode_time,
                self.normalized_time * 100.0,
            )
            self.period = period
            if not self.wave_active:
                self.in_wave = False
        if not (self.in_wave and self.wave_active):
            self.spawn_interval = self.schedule.spawn_interval(self.period)

    # ── Waves ─────────────────────────────────────────────────────────────
    def _update_wave(self, dt: float) -> None:
        t = self.tuning
        if not self.in_wave:
            self.wave_timer += dt
            if self.wave_timer >= t.wave_gap_s:
                self._start_wave()
            return

        self.wave_car_timer += dt
        if self.wave_car_timer >= t.wave_car_delay_s and self.wave_spawned < t.cars_per_wave:
            if self.spawn_at(self.wave_lane) is not None:
                self.wave_spawned += 1
            # A failed attempt waits a full delay before retrying.
            self.wave_car_timer = 0.0
        if self.wave_spawned >= t.cars_per_wave:
            log.debug(
                "[%s] wave from %s done (%d cars)",
                self.context.sim_id, LANE_IDS[self.wave_lane], self.wave_spawned,
            )
            self.in_wave = False
            self.wave_timer = 0.0

    def _start_wave(self) -> None:
        self.in_wave = True
        self.wave_timer = 0.0
        self.wave_spawned = 0
        self.wave_car_timer = 0.0
        self.wave_lane = self.choose_wave_lane()
        log.debug(
            "[%s] wave started from %s during %s",
            self.context.sim_id, LANE_IDS[self.wave_lane], self.period.value,
        )

    def choose_wave_lane(self) -> int:
        rng = self.context.rng
        share = self.tuning.wave_residential_share
        if self.period is TrafficPeriod.MORNING_RUSH:
            if rng.random() < share:
                return self.residential_lane
            return rng.randrange(len(LANE_IDS))
        if self.period is TrafficPeriod.AFTERNOON_RUSH:
            if rng.random() < share:
                others = [i for i in range(len(LANE_IDS)) if i != self.residential_lane]
                return rng.choice(others)
            return self.residential_lane
        return rng.randrange(len(LANE_IDS))

    def _pick_weighted_lane(self) -> int:
        weights = self.schedule.lane_weights(self.period, self.residential_lane)
        return self.context.rng.choices(range(len(LANE_IDS)), weights=weights)[0]

    # ── Placement ─────────────────────────────────────────────────────────
    def live_count(self) -> int:
        stats = self.context.stats
        if stats is not None:
            return stats.current_car_count
        return sum(1 for v in self.context.vehicles if v.is_active)

    def find_spawn_position(self, lane_id: str) -> Optional[Vec]:
        """First clear slot at or behind the lane's spawn point, or ``None``."""
        t = self.tuning
        origin = spawn_point(lane_id, t)
        if self.context.is_clear(origin, t.clearance_radius_m):
            return origin
        back = scale(lane_geometry(lane_id, t).heading, -1.0)
        for i in range(1, t.max_queue_length + 1):
            candidate = add(origin, scale(back, i * t.queue_spacing_m))
            if self.context.is_clear(candidate, t.clearance_radius_m):
                return candidate
        return None

    def _pick_turn(self, lane_id: str) -> Optional[TurnDirection]:
        if is_left_lane(lane_id):
            return TurnDirection.LEFT
        if self.context.rng.random() < self.tuning.right_turn_chance:
            return TurnDirection.RIGHT
        return None

    def spawn_at(self, lane_index: int) -> Optional[Vehicle]:
        """Spawn one car on lane *lane_index*; ``None`` if capped or blocked."""
        if self.live_count() >= self.tuning.max_cars:
            return None
        lane_id = LANE_IDS[lane_index]
        position = self.find_spawn_position(lane_id)
        if position is None:
            self.total_skipped += 1
            log.debug("[%s] no free spawn slot on %s; skipped", self.context.sim_id, lane_id)
            return None

        vehicle = Vehicle(
            self.context,
            lane_id,
            position=position,
            light=self.lights.get(lane_id),
            turn=self._pick_turn(lane_id),
        )
        self.context.add_vehicle(vehicle)
        if self.context.stats is not None:
            self.context.stats.report_spawn(lane_id)
        self.total_spawned += 1
        return vehicle
