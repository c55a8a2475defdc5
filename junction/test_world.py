#!/usr/bin/env python3
"""
End-to-end scenarios on the full world loop: inactivity early stop,
crossing-lane crash, reset round-trip, timeout episodes and invariants
that must hold on every tick.
"""

from __future__ import annotations

import unittest
from dataclasses import replace

from junction.lanes import LANE_IDS, lane_geometry
from junction.tuning import SimTuning
from junction.vehicle import Vehicle, VehicleState
from junction.world import IntersectionWorld


class _CyclePolicy:
    def __init__(self) -> None:
        self.next_index = 0

    def choose(self, observation):
        self.next_index = self.next_index % 6 + 1
        return self.next_index


def _add_car(
    world: IntersectionWorld, lane: str, before_centre: float, speed: float, light=None,
) -> Vehicle:
    pos = lane_geometry(lane, world.tuning).point_before_centre(before_centre)
    v = Vehicle(world.context, lane, position=pos, light=light)
    v.speed = speed
    world.context.add_vehicle(v)
    world.stats.report_spawn(lane)
    return v


class EpisodeEndTests(unittest.TestCase):
    def test_inactivity_ends_the_episode_exactly_once(self) -> None:
        tuning = replace(SimTuning(), max_inactivity_s=35.0, max_cars=0)
        world = IntersectionWorld(tuning=tuning, seed=1)
        world.run(40.0, dt=0.1)

        self.assertEqual(len(world.summaries), 1)
        summary = world.summaries[0]
        self.assertTrue(summary.early_stop)
        self.assertEqual(summary.completions, 0)
        self.assertEqual(summary.unfinished, 0)
        self.assertAlmostEqual(
            summary.cumulative_reward,
            tuning.no_accident_bonus - tuning.inactivity_penalty,
        )
        self.assertEqual(world.controller.episode, 2)

    def test_timeout_episodes_restart_automatically(self) -> None:
        tuning = replace(SimTuning(), max_episode_time_s=20.0, max_inactivity_s=1000.0)
        world = IntersectionWorld(tuning=tuning, seed=4, policy=_CyclePolicy())
        ended = world.run(45.0, dt=0.05)

        self.assertEqual(len(ended), 2)
        self.assertTrue(all(not s.early_stop for s in ended))
        self.assertEqual([s.episode for s in ended], [1, 2])
        for s in ended:
            self.assertGreaterEqual(s.unfinished, 0)
            self.assertAlmostEqual(s.duration_s, 20.0, delta=0.1)


class CollisionTests(unittest.TestCase):
    def test_crossing_lanes_crash_and_are_removed(self) -> None:
        tuning = replace(SimTuning(), randomize_initial_lights=False)
        world = IntersectionWorld(tuning=tuning, seed=2, spawning=False)
        west = _add_car(world, "W", 27.0, tuning.max_speed)
        north = _add_car(world, "N", 13.0, tuning.max_speed)

        world.run(3.0, dt=0.02)

        self.assertIs(west.state, VehicleState.CRASHED)
        self.assertIs(north.state, VehicleState.CRASHED)
        self.assertEqual(west.speed, 0.0)
        self.assertEqual(north.speed, 0.0)
        self.assertEqual(world.collisions, 1)
        self.assertEqual(world.stats.accident_count, 2)
        self.assertEqual(world.stats.cars_on_lane("W"), 0)
        self.assertEqual(world.stats.cars_on_lane("N"), 0)

        world.run(tuning.crash_grace_s + 0.5, dt=0.02)
        self.assertEqual(world.vehicles, [])

    def test_crossing_car_hits_a_standing_wreck(self) -> None:
        tuning = replace(SimTuning(), randomize_initial_lights=False)
        world = IntersectionWorld(tuning=tuning, seed=8, spawning=False)
        wreck = _add_car(world, "W", tuning.lane_offset_m, 0.0)
        self.assertTrue(wreck.crash())
        newcomer = _add_car(world, "N", 20.0, tuning.max_speed)

        world.run(3.0, dt=0.02)

        self.assertIs(newcomer.state, VehicleState.CRASHED)
        self.assertIs(wreck.state, VehicleState.CRASHED)
        self.assertEqual(world.collisions, 1)
        self.assertEqual(world.stats.accident_count, 2)
        self.assertEqual(world.stats.cars_on_lane("N"), 0)

    def test_same_lane_followers_do_not_crash(self) -> None:
        tuning = replace(SimTuning(), randomize_initial_lights=False)
        world = IntersectionWorld(tuning=tuning, seed=3, spawning=False)
        red = world.lights["E"]
        leader = _add_car(world, "E", 40.0, 0.0, light=red)
        follower = _add_car(world, "E", 60.0, tuning.max_speed, light=red)
        world.run(10.0, dt=0.02)
        self.assertFalse(red.is_green)
        self.assertEqual(world.collisions, 0)
        self.assertIs(leader.state, VehicleState.HARD_STOPPED)
        self.assertIs(follower.state, VehicleState.HARD_STOPPED)


class InvariantTests(unittest.TestCase):
    def test_speeds_and_counts_stay_in_bounds(self) -> None:
        world = IntersectionWorld(seed=11, policy=_CyclePolicy())
        max_speed = world.tuning.max_speed
        for _ in range(2400):  # two simulated minutes
            world.tick(0.05)
            for v in world.vehicles:
                self.assertGreaterEqual(v.speed, 0.0)
                self.assertLessEqual(v.speed, max_speed)
                self.assertGreaterEqual(v.anger, 0.0)
            for lane in LANE_IDS:
                self.assertGreaterEqual(world.stats.cars_on_lane(lane), 0)
            self.assertGreaterEqual(world.stats.cars_in_intersection(), 0)
        self.assertGreater(world.spawner.total_spawned, 0)

    def test_reset_round_trip(self) -> None:
        world = IntersectionWorld(seed=7)
        world.run(25.0, dt=0.05)
        self.assertGreater(len(world.vehicles), 0)

        world.reset()

        self.assertEqual(world.vehicles, [])
        self.assertEqual(world.context.pending_destructions, 0)
        for lane in LANE_IDS:
            self.assertEqual(world.stats.cars_on_lane(lane), 0)
            self.assertEqual(world.stats.lane_anger_stats(lane).reports, 0)
        self.assertEqual(world.stats.cars_in_intersection(), 0)
        self.assertEqual(world.stats.overall_anger_stats().reports, 0)
        self.assertEqual(world.stats.current_car_count, 0)


class MetricsTests(unittest.TestCase):
    def test_metrics_report_and_time_scale(self) -> None:
        world = IntersectionWorld(seed=5)
        world.set_time_scale(2.0)
        world.tick(0.1)
        self.assertAlmostEqual(world.now, 0.2)

        report = world.metrics().report()
        self.assertEqual(report["time_scale"], 2.0)
        self.assertEqual(set(report["lane_queue"]), set(LANE_IDS))
        self.assertIn(report["configuration"]["index"], range(len(world.controller.table)))
        self.assertEqual(report["episode"], 1)
        for key in ("wait", "speed", "anger", "in_intersection", "completions", "accidents"):
            self.assertIn(key, report)


if __name__ == "__main__":
    unittest.main()
