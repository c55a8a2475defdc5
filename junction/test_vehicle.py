#!/usr/bin/env python3
"""
Behaviour tests for the vehicle state machine: light braking, anger,
turn geometry and terminal reports.
"""

from __future__ import annotations

import unittest
from dataclasses import replace

from junction.context import SimulationContext
from junction.lanes import TURN_TABLE, TurnDirection, lane_geometry, light_position
from junction.lights import TrafficLight
from junction.physics import norm, ramp_factor, sub
from junction.stats import StatsAggregator
from junction.tuning import SimTuning
from junction.vehicle import Vehicle, VehicleState


def _context(with_stats: bool = True, **overrides) -> SimulationContext:
    tuning = replace(SimTuning(), **overrides)
    ctx = SimulationContext("test", tuning, seed=3)
    if with_stats:
        ctx.attach_stats(StatsAggregator("test", ctx.clock, tuning.recent_window))
    return ctx


def _step(ctx: SimulationContext, dt: float) -> None:
    ctx.advance(dt)
    for v in list(ctx.vehicles):
        v.tick(dt)
    ctx.flush_destroyed()


def _place(ctx: SimulationContext, lane: str, before_centre: float, light=None, turn=None) -> Vehicle:
    pos = lane_geometry(lane, ctx.tuning).point_before_centre(before_centre)
    v = Vehicle(ctx, lane, position=pos, light=light, turn=turn)
    ctx.add_vehicle(v)
    return v


class RampFactorTests(unittest.TestCase):
    def test_ramp_is_linear_between_start_and_stop(self) -> None:
        self.assertEqual(ramp_factor(12.0, 12.0, 5.0), 0.0)
        self.assertEqual(ramp_factor(20.0, 12.0, 5.0), 0.0)
        self.assertEqual(ramp_factor(5.0, 12.0, 5.0), 1.0)
        self.assertAlmostEqual(ramp_factor(8.5, 12.0, 5.0), 0.5)


class RedLightApproachTests(unittest.TestCase):
    def test_brakes_inside_deceleration_distance_and_stops_at_line(self) -> None:
        ctx = _context(
            deceleration_distance=10.0,
            stop_distance_to_light=5.0,
            light_check_interval_s=0.02,
            car_detection_interval_s=0.02,
        )
        t = ctx.tuning
        light = TrafficLight("W", is_green=False)
        v = _place(ctx, "W", t.light_offset_m + 40.0, light=light)
        v.speed = t.max_speed
        light_pos = light_position("W", t)

        first_brake_distance = None
        for _ in range(500):
            _step(ctx, 0.02)
            self.assertGreaterEqual(v.speed, 0.0)
            self.assertLessEqual(v.speed, t.max_speed)
            if first_brake_distance is None and v.speed < t.max_speed:
                first_brake_distance = norm(sub(light_pos, v.position))

        distance = norm(sub(light_pos, v.position))
        self.assertIsNotNone(first_brake_distance)
        self.assertLessEqual(first_brake_distance, 10.0)
        self.assertIs(v.state, VehicleState.HARD_STOPPED)
        self.assertEqual(v.speed, 0.0)
        self.assertLessEqual(distance, 5.0)
        self.assertGreaterEqual(distance, 5.0 - 0.5)
        self.assertTrue(v.has_entered_intersection)
        self.assertEqual(ctx.stats.cars_in_intersection(), 1)

    def test_car_held_at_red_counts_once_and_leaves_on_green(self) -> None:
        ctx = _context()
        t = ctx.tuning
        light = TrafficLight("W", is_green=False)
        v = _place(ctx, "W", t.light_offset_m + 30.0, light=light)
        v.speed = t.max_speed
        ctx.stats.report_spawn("W")

        peak = 0
        for _ in range(160):  # 8 s at red
            _step(ctx, 0.05)
            peak = max(peak, ctx.stats.cars_in_intersection())
        self.assertIs(v.state, VehicleState.HARD_STOPPED)
        self.assertTrue(v.has_entered_intersection)
        self.assertEqual(ctx.stats.cars_in_intersection(), 1)

        light.set_green(True)
        for _ in range(160):
            _step(ctx, 0.05)
            peak = max(peak, ctx.stats.cars_in_intersection())
        self.assertIs(v.state, VehicleState.EXITED)
        self.assertEqual(peak, 1)
        self.assertEqual(ctx.stats.cars_in_intersection(), 0)
        self.assertEqual(ctx.stats.cars_reported, 1)

    def test_green_light_passes_and_reports_once(self) -> None:
        ctx = _context()
        light = TrafficLight("W", is_green=True)
        v = _place(ctx, "W", ctx.tuning.spawn_distance_m, light=light)
        ctx.stats.report_spawn("W")

        entered_seen = 0
        for _ in range(400):
            before = ctx.stats.cars_in_intersection()
            _step(ctx, 0.05)
            if ctx.stats.cars_in_intersection() > before:
                entered_seen += 1

        self.assertEqual(entered_seen, 1)
        self.assertIs(v.state, VehicleState.EXITED)
        self.assertTrue(v.destroyed)
        self.assertEqual(ctx.stats.cars_reported, 1)
        self.assertEqual(ctx.stats.cars_on_lane("W"), 0)
        self.assertEqual(ctx.stats.cars_in_intersection(), 0)
        self.assertEqual(ctx.vehicles, [])

    def test_missing_light_and_stats_degrade_quietly(self) -> None:
        ctx = _context(with_stats=False)
        v = _place(ctx, "N", ctx.tuning.spawn_distance_m)
        for _ in range(400):
            _step(ctx, 0.05)
        self.assertIs(v.state, VehicleState.EXITED)


class AngerTests(unittest.TestCase):
    def test_anger_is_gated_monotonic_and_frozen_after_release(self) -> None:
        ctx = _context()
        t = ctx.tuning
        light = TrafficLight("E", is_green=False)
        v = _place(ctx, "E", t.light_offset_m + 6.0, light=light)

        previous = 0.0
        for _ in range(200):  # 10 s held at red
            _step(ctx, 0.05)
            self.assertGreaterEqual(v.anger, previous)
            previous = v.anger
            if v.is_waiting and v.current_wait <= t.wait_time_threshold_s:
                self.assertEqual(v.anger, 0.0)

        self.assertIs(v.state, VehicleState.HARD_STOPPED)
        self.assertGreater(v.anger, 0.0)
        self.assertLessEqual(v.anger, t.max_anger)

        light.set_green(True)
        released_anger = None
        for _ in range(60):
            _step(ctx, 0.05)
            if released_anger is None and not v.is_waiting:
                released_anger = v.anger
        self.assertIsNotNone(released_anger)
        self.assertEqual(v.anger, released_anger)
        self.assertGreater(v.total_wait_time, 8.0)


class TurnTests(unittest.TestCase):
    def _drive_until_turned(self, lane: str, turn: TurnDirection) -> Vehicle:
        ctx = _context()
        light = TrafficLight(lane, is_green=True)
        v = _place(ctx, lane, ctx.tuning.box_half_m + 20.0, light=light, turn=turn)
        for _ in range(600):
            _step(ctx, 0.02)
            if v.turn_completed:
                break
        return v

    def test_every_turn_table_entry_lands_on_its_outgoing_lane(self) -> None:
        t = SimTuning()
        for (lane, turn), out_lane in TURN_TABLE.items():
            with self.subTest(lane=lane, turn=turn.name):
                v = self._drive_until_turned(lane, turn)
                geom = lane_geometry(out_lane, t)
                self.assertTrue(v.turn_completed)
                self.assertEqual(v.lane_id, out_lane)
                self.assertEqual(v.origin_lane, lane)
                self.assertEqual(v.heading, geom.heading)
                self.assertAlmostEqual(geom.lateral(v.position), geom.offset, places=6)
                self.assertAlmostEqual(v.turned_degrees, t.turn_angle_deg)
                self.assertIs(v.state, VehicleState.CRUISING)

    def test_turn_starts_from_the_current_position(self) -> None:
        for turn, lane in ((TurnDirection.RIGHT, "W"), (TurnDirection.LEFT, "W_LEFT")):
            with self.subTest(turn=turn.name):
                ctx = _context(light_check_interval_s=0.4)
                t = ctx.tuning
                light = TrafficLight(lane, is_green=True)
                v = _place(ctx, lane, t.box_half_m + 20.0, light=light, turn=turn)
                v.speed = t.max_speed

                jump = None
                for _ in range(600):
                    before = v.position
                    _step(ctx, 0.02)
                    if v.state is VehicleState.TURNING:
                        jump = norm(sub(v.position, before))
                        break
                self.assertIsNotNone(jump)
                self.assertLess(jump, 0.5)
                self.assertAlmostEqual(
                    norm(sub(v.position, v.pivot)), v.turn_radius, places=6,
                )

    def test_turned_vehicle_exits_along_new_heading(self) -> None:
        ctx = _context()
        light = TrafficLight("W", is_green=True)
        v = _place(ctx, "W", 20.0, light=light, turn=TurnDirection.RIGHT)
        for _ in range(800):
            _step(ctx, 0.02)
        self.assertIs(v.state, VehicleState.EXITED)
        self.assertEqual(v.heading, (0.0, -1.0))
        self.assertEqual(ctx.stats.cars_reported, 1)

    def test_left_lane_cannot_turn_right(self) -> None:
        ctx = _context()
        with self.assertRaises(ValueError):
            Vehicle(ctx, "N_LEFT", turn=TurnDirection.RIGHT)


class TerminalEventTests(unittest.TestCase):
    def test_crash_reports_once_and_schedules_removal(self) -> None:
        ctx = _context()
        v = _place(ctx, "S", 30.0)
        ctx.stats.report_spawn("S")
        self.assertTrue(v.crash())
        self.assertFalse(v.crash())
        self.assertIs(v.state, VehicleState.CRASHED)
        self.assertEqual(ctx.stats.accident_count, 1)
        self.assertEqual(ctx.stats.cars_on_lane("S"), 0)

        for _ in range(int(ctx.tuning.crash_grace_s / 0.05) + 2):
            _step(ctx, 0.05)
        self.assertTrue(v.destroyed)
        self.assertEqual(ctx.vehicles, [])

    def test_force_report_counts_in_flight_vehicle(self) -> None:
        ctx = _context()
        v = _place(ctx, "N", 50.0)
        _step(ctx, 0.5)
        self.assertTrue(v.force_report())
        self.assertFalse(v.force_report())
        self.assertEqual(ctx.stats.cars_reported, 1)
        self.assertAlmostEqual(ctx.stats.total_wait, 0.5)


if __name__ == "__main__":
    unittest.main()
