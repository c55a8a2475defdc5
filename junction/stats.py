#!/usr/bin/env python3
"""
junction/stats.py
=================
Event-driven statistics for one simulation instance.

Vehicles push events (spawn, completion, anger, intersection entry/exit,
accident, destruction) through the ``report_*`` methods; the controller
and the metrics layer pull aggregates back out.  Counts are floored at
zero so a stray extra report can never drive a lane negative.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, NamedTuple, Optional

from junction.lanes import LANE_IDS

log = logging.getLogger("stats")


class RollingWindow:
    """Mean over the most recent *size* samples."""

    def __init__(self, size: int = 5) -> None:
        self._values: Deque[float] = deque(maxlen=max(1, int(size)))

    def add(self, value: float) -> None:
        self._values.append(float(value))

    def clear(self) -> None:
        self._values.clear()

    @property
    def mean(self) -> float:
        return sum(self._values) / len(self._values) if self._values else 0.0

    def __len__(self) -> int:
        return len(self._values)


class AngerStats(NamedTuple):
    average: float
    peak: float
    recent_average: float
    reports: int


@dataclass
class LaneStats:
    """Per-lane counters.

    Attributes
    ----------
    car_count : int
        Live vehicles that spawned on this lane (never negative).
    completions : int
        Vehicles from this lane that reached the exit boundary (or were
        force-reported at episode end).
    """

    lane_id: str
    recent_window: int = 5
    car_count: int = 0
    completions: int = 0
    total_wait: float = 0.0
    total_speed: float = 0.0
    total_anger: float = 0.0
    peak_anger: float = 0.0
    anger_reports: int = 0
    recent_wait: RollingWindow = field(init=False)
    recent_speed: RollingWindow = field(init=False)
    recent_anger: RollingWindow = field(init=False)

    def __post_init__(self) -> None:
        self.recent_wait = RollingWindow(self.recent_window)
        self.recent_speed = RollingWindow(self.recent_window)
        self.recent_anger = RollingWindow(self.recent_window)

    @property
    def average_wait(self) -> float:
        return self.total_wait / self.completions if self.completions else 0.0

    @property
    def average_speed(self) -> float:
        return self.total_speed / self.completions if self.completions else 0.0

    @property
    def average_anger(self) -> float:
        return self.total_anger / self.anger_reports if self.anger_reports else 0.0

    def anger_stats(self) -> AngerStats:
        return AngerStats(
            self.average_anger, self.peak_anger,
            self.recent_anger.mean, self.anger_reports,
        )

    def reset(self) -> None:
        self.car_count = 0
        self.completions = 0
        self.total_wait = 0.0
        self.total_speed = 0.0
        self.total_anger = 0.0
        self.peak_anger = 0.0
        self.anger_reports = 0
        self.recent_wait.clear()
        self.recent_speed.clear()
        self.recent_anger.clear()


class StatsAggregator:
    """Single writer-side sink for every vehicle event of one simulation.

    Parameters
    ----------
    sim_id : str
        Identifier of the owning simulation (used in log lines).
    clock : callable, optional
        Returns the current simulated time in seconds.  Defaults to a
        clock frozen at 0.
    recent_window : int
        Size of the rolling windows behind the ``recent_*`` averages.
    """

    def __init__(
        self,
        sim_id: str = "sim",
        clock: Optional[Callable[[], float]] = None,
        recent_window: int = 5,
    ) -> None:
        self.sim_id = sim_id
        self._clock: Callable[[], float] = clock or (lambda: 0.0)
        self.recent_window = recent_window
        self.lanes: Dict[str, LaneStats] = {
            lane: LaneStats(lane, recent_window) for lane in LANE_IDS
        }
        self._recent_wait = RollingWindow(recent_window)
        self._recent_speed = RollingWindow(recent_window)
        self._recent_anger = RollingWindow(recent_window)
        self.reset()

    # ── Lifecycle ─────────────────────────────────────────────────────────
    def reset(self) -> None:
        """Zero every counter and restart the inactivity clock."""
        for lane in self.lanes.values():
            lane.reset()
        self.current_car_count = 0
        self.cars_in_intersection_count = 0
        self.cars_reported = 0
        self.total_wait = 0.0
        self.total_speed = 0.0
        self.total_anger = 0.0
        self.peak_anger = 0.0
        self.anger_reports = 0
        self.accident_count = 0
        self._recent_wait.clear()
        self._recent_speed.clear()
        self._recent_anger.clear()
        self.last_completion_time = self._clock()

    # ── Reports ───────────────────────────────────────────────────────────
    def _lane(self, lane_id: str) -> Optional[LaneStats]:
        lane = self.lanes.get(lane_id)
        if lane is None:
            log.debug("[%s] report for unknown lane %r ignored", self.sim_id, lane_id)
        return lane

    def report_spawn(self, lane_id: str) -> None:
        lane = self._lane(lane_id)
        if lane is not None:
            lane.car_count += 1
        self.current_car_count += 1

    def report_destroyed(self, lane_id: str) -> None:
        lane = self._lane(lane_id)
        if lane is not None:
            lane.car_count = max(0, lane.car_count - 1)
        self.current_car_count = max(0, self.current_car_count - 1)

    def report_completed(self, wait_time: float, lane_id: str, avg_speed: float) -> None:
        """A vehicle finished its transit (or was force-reported)."""
        self.cars_reported += 1
        self.total_wait += wait_time
        self.total_speed += avg_speed
        self._recent_wait.add(wait_time)
        self._recent_speed.add(avg_speed)
        self.last_completion_time = self._clock()
        lane = self._lane(lane_id)
        if lane is not None:
            lane.completions += 1
            lane.total_wait += wait_time
            lane.total_speed += avg_speed
            lane.recent_wait.add(wait_time)
            lane.recent_speed.add(avg_speed)

    def report_anger(self, lane_id: str, score: float, cumulative_wait: float) -> None:
        self.total_anger += score
        self.anger_reports += 1
        self.peak_anger = max(self.peak_anger, score)
        self._recent_anger.add(score)
        lane = self._lane(lane_id)
        if lane is not None:
            lane.total_anger += score
            lane.anger_reports += 1
            lane.peak_anger = max(lane.peak_anger, score)
            lane.recent_anger.add(score)
        log.debug(
            "[%s] anger lane=%s score=%.2f wait=%.2fs",
            self.sim_id, lane_id, score, cumulative_wait,
        )

    def report_enter_intersection(self, lane_id: str) -> None:
        self.cars_in_intersection_count += 1

    def report_exit_intersection(self, lane_id: str) -> None:
        self.cars_in_intersection_count = max(0, self.cars_in_intersection_count - 1)

    def report_accident(self, lane_id: str) -> None:
        self.accident_count += 1
        log.info("[%s] accident on lane %s", self.sim_id, lane_id)

    # ── Queries ───────────────────────────────────────────────────────────
    def cars_on_lane(self, lane_id: str) -> int:
        lane = self.lanes.get(lane_id)
        return lane.car_count if lane is not None else 0

    def cars_in_intersection(self) -> int:
        return self.cars_in_intersection_count

    def overall_anger_stats(self) -> AngerStats:
        avg = self.total_anger / self.anger_reports if self.anger_reports else 0.0
        return AngerStats(avg, self.peak_anger, self._recent_anger.mean, self.anger_reports)

    def lane_anger_stats(self, lane_id: str) -> Optional[AngerStats]:
        lane = self.lanes.get(lane_id)
        return lane.anger_stats() if lane is not None else None

    def time_since_last_completion(self) -> float:
        return self._clock() - self.last_completion_time

    @property
    def average_wait(self) -> float:
        return self.total_wait / self.cars_reported if self.cars_reported else 0.0

    @property
    def average_speed(self) -> float:
        return self.total_speed / self.cars_reported if self.cars_reported else 0.0

    @property
    def recent_avg_wait(self) -> float:
        return self._recent_wait.mean

    @property
    def recent_avg_speed(self) -> float:
        return self._recent_speed.mean

    @property
    def recent_avg_anger(self) -> float:
        return self._recent_anger.mean
