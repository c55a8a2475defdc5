#!/usr/bin/env python3
"""
junction/controller.py
======================
Signal controller: the scheduler that lets a policy drive the lights.

Every ``decision_interval_s`` the controller snapshots the stats into an
:class:`Observation`, asks the policy for a configuration index, applies
the chosen table entry verbatim to all eight lights and scores the
transition with :func:`compute_reward`.  It also owns the episode
lifecycle (begin, timeout, inactivity early stop, summary, restart).
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from junction.context import SimulationContext
from junction.lanes import LANE_IDS
from junction.lights import (
    ALL_RED_INDEX,
    SignalConfiguration,
    TrafficLight,
    build_configuration_table,
    describe,
    lights_to_config,
)
from junction.physics import clamp
from junction.tuning import SimTuning

log = logging.getLogger("controller")


@dataclass(frozen=True)
class Observation:
    """Snapshot presented to the policy at a decision point.

    All per-lane tuples follow :data:`junction.lanes.LANE_IDS` order.
    """

    lane_counts: Tuple[int, ...]
    lane_anger: Tuple[float, ...]
    cars_in_intersection: int
    recent_avg_wait: float
    recent_avg_speed: float
    overall_anger: float
    peak_anger: float
    recent_anger: float
    completions: int
    accidents: int
    time_since_last_completion: float
    lights: SignalConfiguration
    config_index: int
    episode_progress: float

    @property
    def total_queued(self) -> int:
        return sum(self.lane_counts)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RewardBreakdown:
    """Individual reward terms of one decision; ``total`` is clipped."""

    speed: float = 0.0
    wait: float = 0.0
    congestion: float = 0.0
    anger: float = 0.0
    anger_reduction: float = 0.0
    high_anger: float = 0.0
    stability: float = 0.0
    all_red: float = 0.0
    completions: float = 0.0
    accidents: float = 0.0
    total: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class EpisodeSummary:
    episode: int
    duration_s: float
    early_stop: bool
    cumulative_reward: float
    decisions: int
    completions: int
    accidents: int
    average_wait: float
    average_speed: float
    average_anger: float
    peak_anger: float
    unfinished: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_reward(
    previous: Optional[Observation],
    action: SignalConfiguration,
    current: Observation,
    flips: int,
    tuning: SimTuning,
) -> RewardBreakdown:
    """Score one decision from the previous snapshot, the applied lights and
    the current snapshot.  Pure: no state is read or written.

    Parameters
    ----------
    previous : Observation or None
        Snapshot at the previous decision (``None`` on the first one).
    action : SignalConfiguration
        Lights applied at this decision.
    current : Observation
        Snapshot taken at this decision.
    flips : int
        Number of lights whose state changed when *action* was applied.
    """
    t = tuning
    speed = t.speed_reward_weight * clamp(current.recent_avg_speed / t.max_speed, 0.0, 1.0)
    wait = -t.wait_penalty_weight * clamp(current.recent_avg_wait / t.wait_norm_s, 0.0, 1.0)
    congestion = -t.congestion_penalty_weight * sum(
        max(0, n - t.congestion_threshold) for n in current.lane_counts
    )
    anger = -t.anger_penalty_weight * clamp(current.recent_anger / t.anger_norm, 0.0, 1.0)

    anger_reduction = 0.0
    if previous is not None and current.recent_anger < previous.recent_anger:
        drop = (previous.recent_anger - current.recent_anger) / t.anger_norm
        anger_reduction = t.anger_reduction_reward_weight * clamp(drop, 0.0, 1.0)

    high_anger = 0.0
    for lane_anger, green in zip(current.lane_anger, action):
        if lane_anger >= t.high_anger_threshold:
            high_anger += t.high_anger_lane_weight if green else -t.high_anger_lane_weight

    stability = 0.0
    if t.stability_penalty_enabled and flips > t.max_stable_flips:
        stability = -t.stability_penalty_weight * (flips - t.max_stable_flips)

    all_red = 0.0
    if not any(action) and current.total_queued > 0:
        all_red = -t.all_red_penalty

    prev_completions = previous.completions if previous is not None else 0
    prev_accidents = previous.accidents if previous is not None else 0
    completions = t.car_passed_reward_weight * max(0, current.completions - prev_completions)
    accidents = -t.accident_penalty * max(0, current.accidents - prev_accidents)

    raw = (
        speed + wait + congestion + anger + anger_reduction + high_anger
        + stability + all_red + completions + accidents
    )
    return RewardBreakdown(
        speed=speed,
        wait=wait,
        congestion=congestion,
        anger=anger,
        anger_reduction=anger_reduction,
        high_anger=high_anger,
        stability=stability,
        all_red=all_red,
        completions=completions,
        accidents=accidents,
        total=clamp(raw, -t.reward_clip, t.reward_clip),
    )


class SignalController:
    """Applies policy decisions to the lights and runs the episode loop.

    Parameters
    ----------
    context : SimulationContext
        Shared environment (clock, RNG, vehicles, stats).
    lights : dict
        Lane id → :class:`TrafficLight`.  Only this class flips them.
    spawner : Spawner, optional
        Reset on every episode begin.
    policy : object, optional
        Anything with ``choose(observation) -> int``; an ``observe(reward,
        done)`` method is called when present.  Without a policy the
        current configuration is kept.
    green_sets : sequence, optional
        Custom configuration table (validated at construction).
    """

    def __init__(
        self,
        context: SimulationContext,
        lights: Dict[str, TrafficLight],
        spawner=None,
        policy=None,
        green_sets: Optional[Sequence[Iterable[str]]] = None,
    ) -> None:
        self.context = context
        self.tuning = context.tuning
        self.lights = lights
        self.spawner = spawner
        self.policy = policy
        self.table: Tuple[SignalConfiguration, ...] = build_configuration_table(green_sets)

        self.current_index = ALL_RED_INDEX
        self.episode = 0
        self.episode_start = context.now
        self.episode_timer = 0.0
        self.decision_timer = 0.0
        self.episode_reward = 0.0
        self.decisions = 0
        self.previous_observation: Optional[Observation] = None
        self.last_reward: Optional[RewardBreakdown] = None
        self.summaries: List[EpisodeSummary] = []
        self._terminal_reward = 0.0

    # ── Lights ────────────────────────────────────────────────────────────
    def current_lights(self) -> SignalConfiguration:
        return lights_to_config(self.lights)

    def apply_configuration(self, index: int) -> int:
        """Set every light from table entry *index*; return the number flipped."""
        config = self.table[index]
        before = self.current_lights()
        for lane, green in zip(LANE_IDS, config):
            light = self.lights.get(lane)
            if light is not None:
                light.set_green(green)
        self.current_index = index
        return sum(1 for a, b in zip(before, config) if a != b)

    def validate_index(self, raw: Any) -> int:
        """Return *raw* as a table index, or all-red (with a warning)."""
        if (
            isinstance(raw, numbers.Integral)
            and not isinstance(raw, bool)
            and 0 <= int(raw) < len(self.table)
        ):
            return int(raw)
        log.warning(
            "[%s] invalid configuration index %r; using all-red", self.context.sim_id, raw,
        )
        return ALL_RED_INDEX

    # ── Observation ───────────────────────────────────────────────────────
    def observe(self) -> Observation:
        stats = self.context.stats
        lights = self.current_lights()
        progress = clamp(self.episode_timer / self.tuning.max_episode_time_s, 0.0, 1.0)
        if stats is None:
            zeros = (0,) * len(LANE_IDS)
            return Observation(
                lane_counts=zeros,
                lane_anger=(0.0,) * len(LANE_IDS),
                cars_in_intersection=0,
                recent_avg_wait=0.0,
                recent_avg_speed=0.0,
                overall_anger=0.0,
                peak_anger=0.0,
                recent_anger=0.0,
                completions=0,
                accidents=0,
                time_since_last_completion=0.0,
                lights=lights,
                config_index=self.current_index,
                episode_progress=progress,
            )
        overall = stats.overall_anger_stats()
        return Observation(
            lane_counts=tuple(stats.cars_on_lane(lane) for lane in LANE_IDS),
            lane_anger=tuple(stats.lanes[lane].recent_anger.mean for lane in LANE_IDS),
            cars_in_intersection=stats.cars_in_intersection(),
            recent_avg_wait=stats.recent_avg_wait,
            recent_avg_speed=stats.recent_avg_speed,
            overall_anger=overall.average,
            peak_anger=overall.peak,
            recent_anger=overall.recent_average,
            completions=stats.cars_reported,
            accidents=stats.accident_count,
            time_since_last_completion=stats.time_since_last_completion(),
            lights=lights,
            config_index=self.current_index,
            episode_progress=progress,
        )

    # ── Decisions ─────────────────────────────────────────────────────────
    def _choose(self, observation: Observation) -> int:
        if self.policy is None:
            return self.current_index
        try:
            raw = self.policy.choose(observation)
        except Exception:
            log.warning(
                "[%s] policy %s raised; using all-red",
                self.context.sim_id, type(self.policy).__name__, exc_info=True,
            )
            return ALL_RED_INDEX
        return self.validate_index(raw)

    def _notify_policy(self, reward: float, done: bool) -> None:
        hook = getattr(self.policy, "observe", None)
        if hook is None:
            return
        try:
            hook(reward, done)
        except Exception:
            log.warning(
                "[%s] policy observe hook raised", self.context.sim_id, exc_info=True,
            )

    def decide(self) -> int:
        """Run one decision cycle; return the applied configuration index."""
        observation = self.observe()
        index = self._choose(observation)
        flips = self.apply_configuration(index)
        breakdown = compute_reward(
            self.previous_observation, self.table[index], observation, flips, self.tuning,
        )
        self.episode_reward += breakdown.total
        self.last_reward = breakdown
        self.previous_observation = observation
        self.decisions += 1
        log.debug(
            "[%s] ep=%d decision=%d config=%d (%s) flips=%d reward=%.3f cumulative=%.3f",
            self.context.sim_id, self.episode, self.decisions, index,
            describe(self.table[index]), flips, breakdown.total, self.episode_reward,
        )
        self._notify_policy(breakdown.total, False)
        return index

    def add_reward(self, value: float) -> None:
        """Add an episode-level term (bonus or penalty) outside a decision."""
        self.episode_reward += value
        self._terminal_reward += value

    # ── Episode lifecycle ─────────────────────────────────────────────────
    def on_episode_begin(self) -> None:
        """Reset stats, vehicles, demand and lights for a fresh episode."""
        stats = self.context.stats
        if stats is not None:
            stats.reset()
        self.context.clear_vehicles()
        if self.spawner is not None:
            self.spawner.reset()

        if self.tuning.randomize_initial_lights:
            index = self.context.rng.randrange(len(self.table))
        else:
            index = ALL_RED_INDEX
        self.apply_configuration(index)

        self.episode += 1
        self.episode_start = self.context.now
        self.episode_timer = 0.0
        self.decision_timer = 0.0
        self.episode_reward = 0.0
        self.decisions = 0
        self.previous_observation = None
        self.last_reward = None
        self._terminal_reward = 0.0
        log.info(
            "[%s] episode %d begins with %s",
            self.context.sim_id, self.episode, describe(self.table[index]),
        )

    def on_episode_end(self, early_stop: bool = False) -> EpisodeSummary:
        """Force-report in-flight cars, score and log the episode, restart."""
        unfinished = sum(1 for v in self.context.live_vehicles() if v.force_report())

        stats = self.context.stats
        accidents = stats.accident_count if stats is not None else 0
        if accidents == 0:
            self.add_reward(self.tuning.no_accident_bonus)

        if stats is not None:
            anger = stats.overall_anger_stats()
            summary = EpisodeSummary(
                episode=self.episode,
                duration_s=self.context.now - self.episode_start,
                early_stop=early_stop,
                cumulative_reward=self.episode_reward,
                decisions=self.decisions,
                completions=stats.cars_reported,
                accidents=accidents,
                average_wait=stats.average_wait,
                average_speed=stats.average_speed,
                average_anger=anger.average,
                peak_anger=anger.peak,
                unfinished=unfinished,
            )
        else:
            summary = EpisodeSummary(
                episode=self.episode,
                duration_s=self.context.now - self.episode_start,
                early_stop=early_stop,
                cumulative_reward=self.episode_reward,
                decisions=self.decisions,
                completions=0,
                accidents=0,
                average_wait=0.0,
                average_speed=0.0,
                average_anger=0.0,
                peak_anger=0.0,
                unfinished=unfinished,
            )
        self.summaries.append(summary)
        log.info(
            "[%s] episode %d ended%s after %.1fs: reward=%.3f completions=%d "
            "accidents=%d avg_wait=%.2fs unfinished=%d",
            self.context.sim_id, summary.episode, " early" if early_stop else "",
            summary.duration_s, summary.cumulative_reward, summary.completions,
            summary.accidents, summary.average_wait, summary.unfinished,
        )
        self._notify_policy(self._terminal_reward, True)
        self.on_episode_begin()
        return summary

    def tick(self, dt: float) -> Optional[EpisodeSummary]:
        """Advance the decision and episode timers; return a summary if an
        episode ended during this tick."""
        self.decision_timer += dt
        self.episode_timer += dt
        if self.decision_timer >= self.tuning.decision_interval_s:
            self.decision_timer = 0.0
            self.decide()

        if self.episode_timer >= self.tuning.max_episode_time_s:
            self.add_reward(self.tuning.timeout_bonus)
            return self.on_episode_end(early_stop=False)

        stats = self.context.stats
        if stats is not None and stats.time_since_last_completion() > self.tuning.max_inactivity_s:
            self.add_reward(-self.tuning.inactivity_penalty)
            return self.on_episode_end(early_stop=True)
        return None
