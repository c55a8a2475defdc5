#!/usr/bin/env python3
"""
Tests for the stats aggregator: counters, rolling windows, anger
aggregation, the inactivity clock and the one-aggregator rule.
"""

from __future__ import annotations

import unittest

from junction.context import SimulationContext
from junction.lanes import LANE_IDS
from junction.stats import RollingWindow, StatsAggregator


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class RollingWindowTests(unittest.TestCase):
    def test_keeps_only_the_most_recent_samples(self) -> None:
        window = RollingWindow(5)
        self.assertEqual(window.mean, 0.0)
        for value in range(1, 8):
            window.add(value)
        self.assertEqual(len(window), 5)
        self.assertAlmostEqual(window.mean, (3 + 4 + 5 + 6 + 7) / 5)


class StatsAggregatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.stats = StatsAggregator("test", self.clock)

    def test_counts_never_go_negative(self) -> None:
        self.stats.report_destroyed("N")
        self.stats.report_exit_intersection("N")
        self.assertEqual(self.stats.cars_on_lane("N"), 0)
        self.assertEqual(self.stats.current_car_count, 0)
        self.assertEqual(self.stats.cars_in_intersection(), 0)

        self.stats.report_spawn("N")
        self.stats.report_destroyed("N")
        self.stats.report_destroyed("N")
        self.assertEqual(self.stats.cars_on_lane("N"), 0)

    def test_spawn_and_intersection_counters(self) -> None:
        for lane in ("N", "N", "E_LEFT"):
            self.stats.report_spawn(lane)
        self.stats.report_enter_intersection("N")
        self.assertEqual(self.stats.cars_on_lane("N"), 2)
        self.assertEqual(self.stats.cars_on_lane("E_LEFT"), 1)
        self.assertEqual(self.stats.current_car_count, 3)
        self.assertEqual(self.stats.cars_in_intersection(), 1)

    def test_completion_updates_recent_averages(self) -> None:
        for i in range(6):
            self.stats.report_completed(wait_time=float(i), lane_id="S", avg_speed=10.0 - i)
        self.assertEqual(self.stats.cars_reported, 6)
        self.assertAlmostEqual(self.stats.average_wait, 2.5)
        self.assertAlmostEqual(self.stats.recent_avg_wait, 3.0)
        self.assertAlmostEqual(self.stats.recent_avg_speed, 7.0)
        self.assertEqual(self.stats.lanes["S"].completions, 6)

    def test_anger_stats_overall_and_per_lane(self) -> None:
        self.stats.report_anger("W", 2.0, 3.0)
        self.stats.report_anger("W", 6.0, 5.0)
        self.stats.report_anger("N", 1.0, 1.0)

        overall = self.stats.overall_anger_stats()
        self.assertAlmostEqual(overall.average, 3.0)
        self.assertEqual(overall.peak, 6.0)
        self.assertEqual(overall.reports, 3)

        lane = self.stats.lane_anger_stats("W")
        self.assertAlmostEqual(lane.average, 4.0)
        self.assertEqual(lane.peak, 6.0)
        self.assertEqual(lane.reports, 2)
        self.assertIsNone(self.stats.lane_anger_stats("NOWHERE"))

    def test_unknown_lane_only_touches_global_counters(self) -> None:
        self.stats.report_spawn("V")
        self.assertEqual(self.stats.current_car_count, 1)
        self.assertEqual(self.stats.cars_on_lane("V"), 0)

    def test_time_since_last_completion_follows_clock(self) -> None:
        self.clock.now = 12.0
        self.assertAlmostEqual(self.stats.time_since_last_completion(), 12.0)
        self.stats.report_completed(1.0, "N", 5.0)
        self.clock.now = 15.0
        self.assertAlmostEqual(self.stats.time_since_last_completion(), 3.0)

    def test_reset_round_trip(self) -> None:
        self.stats.report_spawn("N")
        self.stats.report_enter_intersection("N")
        self.stats.report_completed(4.0, "N", 3.0)
        self.stats.report_anger("N", 9.0, 4.0)
        self.stats.report_accident("E")
        self.clock.now = 40.0

        self.stats.reset()

        for lane in LANE_IDS:
            self.assertEqual(self.stats.cars_on_lane(lane), 0)
            self.assertEqual(self.stats.lane_anger_stats(lane).reports, 0)
        self.assertEqual(self.stats.cars_in_intersection(), 0)
        self.assertEqual(self.stats.cars_reported, 0)
        self.assertEqual(self.stats.accident_count, 0)
        self.assertEqual(tuple(self.stats.overall_anger_stats()), (0.0, 0.0, 0.0, 0))
        self.assertEqual(self.stats.recent_avg_wait, 0.0)
        self.assertEqual(self.stats.time_since_last_completion(), 0.0)


class AttachStatsTests(unittest.TestCase):
    def test_second_aggregator_is_discarded_with_warning(self) -> None:
        ctx = SimulationContext("dup", seed=0)
        first = ctx.attach_stats(StatsAggregator("first", ctx.clock))
        with self.assertLogs("world", level="WARNING"):
            kept = ctx.attach_stats(StatsAggregator("second", ctx.clock))
        self.assertIs(kept, first)
        self.assertIs(ctx.stats, first)


if __name__ == "__main__":
    unittest.main()
