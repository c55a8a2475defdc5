#!/usr/bin/env python3
"""
junction/vehicle.py
===================
Per-vehicle behaviour: approach, braking, waiting with escalating anger,
turning along a fixed arc, exit and collision.

Each :class:`Vehicle` ticks on its own.  The two expensive checks (light
state and leader detection) run on throttled timers whose initial phase is
drawn from the context RNG so their cost spreads across ticks; between
checks the cached results are reused.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional

from junction.context import SimulationContext
from junction.lanes import (
    TurnDirection,
    lane_geometry,
    light_position,
    outgoing_lane,
    spawn_point,
    turn_pivot,
    turn_radius,
)
from junction.lights import TrafficLight
from junction.physics import (
    Vec,
    add,
    clamp,
    dot,
    lerp,
    move_toward,
    norm,
    ramp_factor,
    rotate,
    scale,
    snap_cardinal,
    sub,
    unit,
)

log = logging.getLogger("vehicle")


class VehicleState(Enum):
    CRUISING = "CRUISING"
    BRAKING = "BRAKING"
    HARD_STOPPED = "HARD_STOPPED"
    TURNING = "TURNING"
    EXITED = "EXITED"
    CRASHED = "CRASHED"


TERMINAL_STATES = (VehicleState.EXITED, VehicleState.CRASHED)


class Vehicle:
    """A single car driving one approach lane.

    Parameters
    ----------
    context : SimulationContext
        Shared clock, RNG, registry and stats slot.
    lane_id : str
        Spawn lane; becomes ``origin_lane`` for every lane-count report.
    position : Vec, optional
        Start position; defaults to the lane's spawn point.
    light : TrafficLight, optional
        Light governing this lane.  Without one the car never brakes for
        a signal and never reports intersection entry.
    turn : TurnDirection, optional
        Manoeuvre inside the intersection; ``None`` drives straight through.
    """

    def __init__(
        self,
        context: SimulationContext,
        lane_id: str,
        position: Optional[Vec] = None,
        light: Optional[TrafficLight] = None,
        turn: Optional[TurnDirection] = None,
        vehicle_id: Optional[str] = None,
    ) -> None:
        t = context.tuning
        geom = lane_geometry(lane_id, t)
        if turn is not None and outgoing_lane(lane_id, turn) is None:
            raise ValueError("lane %s cannot turn %s" % (lane_id, turn.name))

        self.context = context
        self.id = vehicle_id or context.next_vehicle_id()
        self.lane_id = lane_id
        self.origin_lane = lane_id
        self.position: Vec = position if position is not None else spawn_point(lane_id, t)
        self.heading: Vec = geom.heading
        self.speed = 0.0
        self.light = light
        self.turn = turn
        self.state = VehicleState.CRUISING
        self.spawn_time = context.now

        self.pivot: Optional[Vec] = turn_pivot(lane_id, turn, t) if turn is not None else None
        self.turn_radius = turn_radius(lane_id, turn, t) if turn is not None else 0.0
        self.turned_degrees = 0.0
        self.turn_completed = False
        self._turn_start_angle = 0.0
        self._turn_heading: Vec = self.heading

        self.anger = 0.0
        self.is_waiting = False
        self.wait_start = 0.0
        self.total_wait_time = 0.0
        self._spell_base = 0.0

        self.has_passed_light = False
        self.has_entered_intersection = False
        self.accident_reported = False
        self.completion_reported = False
        self.destroyed = False
        self._enter_reported = False
        self._cleared_light = False

        light_pos = light_position(light.lane_id if light is not None else lane_id, t)
        self._light_pos: Vec = light_pos
        self.spawn_to_light_m = norm(sub(light_pos, self.position))

        rng = context.rng
        self._light_timer = rng.uniform(0.0, t.light_check_interval_s)
        self._car_timer = rng.uniform(0.0, t.car_detection_interval_s)
        self._anger_timer = rng.uniform(0.0, t.anger_log_interval_s)
        self._light_factor = 0.0
        self._light_hard_stop = False
        self._car_distance = math.inf
        self._car_factor = 0.0

    # ── Derived state ─────────────────────────────────────────────────────
    @property
    def is_active(self) -> bool:
        return not self.destroyed and self.state not in TERMINAL_STATES

    @property
    def current_wait(self) -> float:
        return self.context.now - self.wait_start if self.is_waiting else 0.0

    @property
    def cumulative_wait(self) -> float:
        return self.total_wait_time + self.current_wait

    def _light_check_enabled(self) -> bool:
        return (
            self.light is not None
            and not self._cleared_light
            and self.state is not VehicleState.TURNING
            and not self.turn_completed
        )

    # ── Tick ──────────────────────────────────────────────────────────────
    def tick(self, dt: float) -> None:
        """Advance this vehicle by *dt* simulated seconds."""
        if self.destroyed or dt <= 0.0:
            return
        if self.state is VehicleState.CRASHED:
            self.speed = 0.0
            return
        if self.state is VehicleState.EXITED:
            self.position = add(self.position, scale(self.heading, self.speed * dt))
            return

        t = self.context.tuning

        if self._light_check_enabled():
            self._light_timer -= dt
            if self._light_timer <= 0.0:
                self._light_timer = t.light_check_interval_s
                self._check_light()
        else:
            self._light_factor = 0.0
            self._light_hard_stop = False

        self._car_timer -= dt
        if self._car_timer <= 0.0:
            self._car_timer = t.car_detection_interval_s
            self._detect_leader()

        factor = self._light_factor
        hard_stop = self._light_hard_stop
        if self._car_distance <= t.stop_distance_to_car:
            hard_stop = True
        else:
            factor = max(factor, self._car_factor)

        if self.light is None and not self.has_entered_intersection:
            if dot(self.position, self.heading) >= -t.box_half_m:
                self.has_entered_intersection = True

        self._update_anger(hard_stop or self.speed < t.floor_speed, dt)
        self._update_speed(factor, hard_stop, dt)

        if self.state is VehicleState.TURNING:
            self._advance_turn(dt)
        elif (
            self.turn is not None
            and not self.turn_completed
            and self.has_entered_intersection
            and not hard_stop
        ):
            self._begin_turn()
            self._advance_turn(dt)
        else:
            self.position = add(self.position, scale(self.heading, self.speed * dt))

        if self.state is not VehicleState.TURNING:
            if hard_stop:
                self.state = VehicleState.HARD_STOPPED
            elif factor > 0.0:
                self.state = VehicleState.BRAKING
            else:
                self.state = VehicleState.CRUISING
            if dot(self.position, self.heading) >= t.exit_distance_m:
                self._exit()

    # ── Sensing ───────────────────────────────────────────────────────────
    def _check_light(self) -> None:
        t = self.context.tuning
        self._light_factor = 0.0
        self._light_hard_stop = False

        to_light = sub(self._light_pos, self.position)
        distance = norm(to_light)
        ahead = dot(unit(to_light), self.heading) > t.approach_alignment

        if not ahead:
            # Already past the light without having been seen at the line.
            self.has_passed_light = True
            self._cleared_light = True
            self._mark_entered()
            return

        if distance <= t.stop_distance_to_light:
            # Held at red counts as entered; the check keeps running until green.
            self._mark_entered()
            if self.light.is_green:
                self._cleared_light = True
            else:
                self._light_hard_stop = True
        elif not self.light.is_green and distance <= t.deceleration_distance:
            self._light_factor = ramp_factor(
                distance, t.deceleration_distance, t.stop_distance_to_light,
            )

    def _detect_leader(self) -> None:
        t = self.context.tuning
        hit = self.context.query_obstacle(self, t.deceleration_distance)
        if hit is None:
            self._car_distance = math.inf
            self._car_factor = 0.0
            return
        self._car_distance = hit[1]
        if self._car_distance > t.stop_distance_to_car:
            self._car_factor = ramp_factor(
                self._car_distance, t.deceleration_distance, t.stop_distance_to_car,
            )
        else:
            self._car_factor = 0.0

    def _mark_entered(self) -> None:
        if self.has_entered_intersection:
            return
        self.has_entered_intersection = True
        stats = self.context.stats
        if stats is not None:
            stats.report_enter_intersection(self.origin_lane)
            self._enter_reported = True

    # ── Anger ─────────────────────────────────────────────────────────────
    def _update_anger(self, waiting: bool, dt: float) -> None:
        t = self.context.tuning
        now = self.context.now

        if waiting and not self.is_waiting:
            self.is_waiting = True
            self.wait_start = now
            self._spell_base = self.anger
        elif not waiting and self.is_waiting:
            self.total_wait_time += now - self.wait_start
            self.is_waiting = False

        if self.is_waiting:
            over = (now - self.wait_start) - t.wait_time_threshold_s
            if over > 0.0:
                exponent = min(t.anger_growth_rate * over, math.log1p(t.max_anger))
                spell = min(math.expm1(exponent), t.max_anger)
                self.anger = max(self.anger, self._spell_base + spell)

        self._anger_timer -= dt
        if self._anger_timer <= 0.0:
            self._anger_timer = t.anger_log_interval_s
            self._report_anger()

    def _report_anger(self) -> None:
        stats = self.context.stats
        if stats is not None:
            stats.report_anger(self.origin_lane, self.anger, self.cumulative_wait)

    # ── Motion ────────────────────────────────────────────────────────────
    def _update_speed(self, factor: float, hard_stop: bool, dt: float) -> None:
        t = self.context.tuning
        if hard_stop:
            self.speed = 0.0
            return
        desired = t.max_speed
        if factor > 0.0:
            desired = lerp(t.max_speed, t.floor_speed, min(factor, 1.0))
        self.speed = clamp(
            move_toward(self.speed, desired, t.acceleration * dt, t.braking * dt),
            0.0, t.max_speed,
        )

    def _begin_turn(self) -> None:
        rel = sub(self.position, self.pivot)
        # The arc starts where the car actually is when the turn triggers.
        self.turn_radius = max(norm(rel), 1e-6)
        self._turn_start_angle = math.atan2(rel[1], rel[0])
        self._turn_heading = self.heading
        self.turned_degrees = 0.0
        self.state = VehicleState.TURNING
        log.debug("%s begins %s turn from lane %s", self.id, self.turn.name, self.lane_id)

    def _advance_turn(self, dt: float) -> None:
        t = self.context.tuning
        r = self.turn_radius
        if self.speed > 0.0:
            rate = clamp(
                math.degrees(self.speed / r), t.min_turn_rate_deg_s, t.max_turn_rate_deg_s,
            )
            self.turned_degrees = min(t.turn_angle_deg, self.turned_degrees + rate * dt)

        sign = self.turn.value
        angle = self._turn_start_angle + sign * math.radians(self.turned_degrees)
        self.position = add(self.pivot, (r * math.cos(angle), r * math.sin(angle)))
        self.heading = rotate(self._turn_heading, sign * self.turned_degrees)

        if self.turned_degrees >= t.turn_angle_deg - t.turn_epsilon_deg:
            self._finish_turn()

    def _finish_turn(self) -> None:
        t = self.context.tuning
        out_lane = outgoing_lane(self.lane_id, self.turn)
        geom = lane_geometry(out_lane, t)
        self.heading = snap_cardinal(rotate(self._turn_heading, self.turn.value * t.turn_angle_deg))
        along = dot(self.position, geom.heading)
        self.position = geom.point_before_centre(-along)
        self.turned_degrees = t.turn_angle_deg
        self.turn_completed = True
        self.lane_id = out_lane
        self.state = VehicleState.CRUISING
        log.debug("%s finished turn onto lane %s", self.id, out_lane)

    # ── Terminal events ───────────────────────────────────────────────────
    def _exit(self) -> None:
        t = self.context.tuning
        self.state = VehicleState.EXITED
        transit = max(self.context.now - self.spawn_time, 1e-6)
        avg_speed = self.spawn_to_light_m / transit
        self._report_anger()
        stats = self.context.stats
        if stats is not None:
            stats.report_completed(transit, self.origin_lane, avg_speed)
            stats.report_destroyed(self.origin_lane)
            if self._enter_reported:
                stats.report_exit_intersection(self.origin_lane)
        self.completion_reported = True
        self.context.schedule_destruction(self, t.exit_grace_s)

    def crash(self) -> bool:
        """Mark this vehicle as crashed; return False if already terminal."""
        if self.accident_reported or not self.is_active:
            return False
        t = self.context.tuning
        self.accident_reported = True
        self.state = VehicleState.CRASHED
        self.speed = 0.0
        self._report_anger()
        stats = self.context.stats
        if stats is not None:
            stats.report_accident(self.origin_lane)
            stats.report_destroyed(self.origin_lane)
            if self._enter_reported:
                stats.report_exit_intersection(self.origin_lane)
        self.context.schedule_destruction(self, t.crash_grace_s)
        return True

    def force_report(self) -> bool:
        """Report an in-flight vehicle as completed at episode end.

        Uses the time since spawn as its wait and its current speed.
        """
        if not self.is_active or self.completion_reported:
            return False
        stats = self.context.stats
        if stats is not None:
            stats.report_completed(
                self.context.now - self.spawn_time, self.origin_lane, self.speed,
            )
        self._report_anger()
        self.completion_reported = True
        return True

    def __repr__(self) -> str:
        return "Vehicle(%s, lane=%s, state=%s, pos=(%.1f, %.1f), v=%.2f)" % (
            self.id, self.lane_id, self.state.name,
            self.position[0], self.position[1], self.speed,
        )
