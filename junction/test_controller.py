#!/usr/bin/env python3
"""
Tests for the signal controller: reward terms, action validation and the
policy hooks.
"""

from __future__ import annotations

import unittest
from dataclasses import replace

from junction.context import SimulationContext
from junction.controller import Observation, SignalController, compute_reward
from junction.lights import ALL_RED_INDEX, build_configuration_table, make_lights
from junction.stats import StatsAggregator
from junction.tuning import SimTuning

_TABLE = build_configuration_table()


def _obs(**overrides) -> Observation:
    base = dict(
        lane_counts=(0,) * 8,
        lane_anger=(0.0,) * 8,
        cars_in_intersection=0,
        recent_avg_wait=0.0,
        recent_avg_speed=0.0,
        overall_anger=0.0,
        peak_anger=0.0,
        recent_anger=0.0,
        completions=0,
        accidents=0,
        time_since_last_completion=0.0,
        lights=_TABLE[0],
        config_index=0,
        episode_progress=0.0,
    )
    base.update(overrides)
    return Observation(**base)


class _ScriptedPolicy:
    def __init__(self, *answers) -> None:
        self.answers = list(answers)
        self.seen = []
        self.rewards = []

    def choose(self, observation):
        self.seen.append(observation)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def observe(self, reward, done):
        self.rewards.append((reward, done))


class RewardTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tuning = SimTuning()

    def test_reward_is_a_pure_function(self) -> None:
        prev = _obs(recent_anger=6.0, completions=2)
        cur = _obs(recent_avg_speed=5.0, recent_avg_wait=15.0, recent_anger=4.0, completions=5)
        first = compute_reward(prev, _TABLE[1], cur, 2, self.tuning)
        second = compute_reward(prev, _TABLE[1], cur, 2, self.tuning)
        self.assertEqual(first, second)
        self.assertAlmostEqual(first.speed, 0.5)
        self.assertAlmostEqual(first.wait, -0.25)
        self.assertAlmostEqual(first.anger, -0.12)
        self.assertAlmostEqual(first.anger_reduction, 0.04)
        self.assertAlmostEqual(first.completions, 0.15)
        self.assertEqual(first.stability, 0.0)

    def test_congestion_is_linear_in_excess(self) -> None:
        cur = _obs(lane_counts=(8, 0, 0, 0, 6, 0, 0, 0))
        r = compute_reward(None, _TABLE[1], cur, 0, self.tuning)
        self.assertAlmostEqual(r.congestion, -0.1 * (3 + 1))

    def test_high_anger_lane_green_versus_red(self) -> None:
        angry_north = _obs(lane_anger=(9.0, 0, 0, 0, 0, 0, 0, 0))
        greened = compute_reward(None, _TABLE[1], angry_north, 0, self.tuning)
        left_red = compute_reward(None, _TABLE[2], angry_north, 0, self.tuning)
        self.assertAlmostEqual(greened.high_anger, 0.1)
        self.assertAlmostEqual(left_red.high_anger, -0.1)

    def test_all_red_only_penalized_with_queue(self) -> None:
        empty = compute_reward(None, _TABLE[0], _obs(), 0, self.tuning)
        queued = compute_reward(None, _TABLE[0], _obs(lane_counts=(1,) + (0,) * 7), 0, self.tuning)
        self.assertEqual(empty.all_red, 0.0)
        self.assertAlmostEqual(queued.all_red, -0.1)

    def test_stability_penalty_and_toggle(self) -> None:
        r = compute_reward(None, _TABLE[1], _obs(), 4, self.tuning)
        self.assertAlmostEqual(r.stability, -0.2)
        off = replace(self.tuning, stability_penalty_enabled=False)
        self.assertEqual(compute_reward(None, _TABLE[1], _obs(), 4, off).stability, 0.0)

    def test_total_is_clipped(self) -> None:
        prev = _obs(accidents=0)
        cur = _obs(accidents=20)
        r = compute_reward(prev, _TABLE[1], cur, 0, self.tuning)
        self.assertAlmostEqual(r.accidents, -20.0)
        self.assertEqual(r.total, -self.tuning.reward_clip)


class ControllerDecisionTests(unittest.TestCase):
    def _controller(self, policy=None) -> SignalController:
        tuning = replace(SimTuning(), randomize_initial_lights=False)
        ctx = SimulationContext("ctl", tuning, seed=2)
        ctx.attach_stats(StatsAggregator("ctl", ctx.clock))
        controller = SignalController(ctx, make_lights(), policy=policy)
        controller.on_episode_begin()
        return controller

    def test_valid_index_is_applied_verbatim(self) -> None:
        policy = _ScriptedPolicy(3)
        controller = self._controller(policy)
        self.assertEqual(controller.decide(), 3)
        self.assertEqual(controller.current_lights(), _TABLE[3])
        self.assertTrue(controller.lights["N"].is_green)
        self.assertTrue(controller.lights["N_LEFT"].is_green)
        self.assertEqual(len(policy.rewards), 1)
        self.assertFalse(policy.rewards[0][1])

    def test_invalid_index_falls_back_to_all_red(self) -> None:
        for bad in (7, -1, 2.0, "1", True, None):
            with self.subTest(bad=bad):
                controller = self._controller(_ScriptedPolicy(1, bad))
                controller.decide()
                with self.assertLogs("controller", level="WARNING"):
                    self.assertEqual(controller.decide(), ALL_RED_INDEX)
                self.assertFalse(any(controller.current_lights()))

    def test_raising_policy_falls_back_to_all_red(self) -> None:
        controller = self._controller(_ScriptedPolicy(2, RuntimeError("boom")))
        controller.decide()
        with self.assertLogs("controller", level="WARNING"):
            self.assertEqual(controller.decide(), ALL_RED_INDEX)

    def test_missing_policy_keeps_current_configuration(self) -> None:
        controller = self._controller(None)
        controller.apply_configuration(4)
        self.assertEqual(controller.decide(), 4)
        self.assertEqual(controller.current_lights(), _TABLE[4])

    def test_decision_happens_on_interval(self) -> None:
        policy = _ScriptedPolicy(1, 2, 1, 2)
        controller = self._controller(policy)
        for _ in range(int(2 * controller.tuning.decision_interval_s / 0.1) + 5):
            controller.context.advance(0.1)
            controller.tick(0.1)
        self.assertEqual(len(policy.seen), 2)
        self.assertEqual(controller.decisions, 2)

    def test_apply_reports_flips(self) -> None:
        controller = self._controller()
        self.assertEqual(controller.apply_configuration(1), 2)
        self.assertEqual(controller.apply_configuration(3), 2)
        self.assertEqual(controller.apply_configuration(3), 0)


if __name__ == "__main__":
    unittest.main()
