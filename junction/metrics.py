"""
MetricsSnapshot: read-only view of one simulation's aggregate state.
"""

from typing import Dict, Optional

from junction.lanes import LANE_IDS
from junction.stats import StatsAggregator


class MetricsSnapshot:
    """
    Point-in-time copy of the metrics a dashboard or API would show.

    Attributes:
        sim_time (float): Simulated seconds since the world was created.
        episode (int): Current episode number.
        time_scale (float): Multiplier applied to every tick's dt.
        config_index (int): Active signal configuration index.
        config_label (str): Human label of the active configuration.
        lane_queue (dict): Live vehicle count per lane id.
        in_intersection (int): Vehicles currently inside the intersection.
    """

    def __init__(
        self,
        stats: Optional[StatsAggregator],
        time_scale: float = 1.0,
        config_index: int = 0,
        config_label: str = "ALL_RED",
        episode: int = 0,
        sim_time: float = 0.0,
    ):
        """Copy every value out of *stats* so later ticks do not alter it."""
        self.sim_time = sim_time
        self.episode = episode
        self.time_scale = time_scale
        self.config_index = config_index
        self.config_label = config_label
        if stats is None:
            self.lane_queue = {lane: 0 for lane in LANE_IDS}
            self.in_intersection = 0
            self.average_wait = 0.0
            self.recent_wait = 0.0
            self.average_speed = 0.0
            self.recent_speed = 0.0
            self.completions = 0
            self.accidents = 0
            self.live_cars = 0
            self.anger = {"average": 0.0, "peak": 0.0, "recent": 0.0, "reports": 0}
            return
        anger = stats.overall_anger_stats()
        self.lane_queue = {lane: stats.cars_on_lane(lane) for lane in LANE_IDS}
        self.in_intersection = stats.cars_in_intersection()
        self.average_wait = stats.average_wait
        self.recent_wait = stats.recent_avg_wait
        self.average_speed = stats.average_speed
        self.recent_speed = stats.recent_avg_speed
        self.completions = stats.cars_reported
        self.accidents = stats.accident_count
        self.live_cars = stats.current_car_count
        self.anger = {
            "average": anger.average,
            "peak": anger.peak,
            "recent": anger.recent_average,
            "reports": anger.reports,
        }

    def report(self) -> Dict[str, object]:
        """
        Return the snapshot as a plain dictionary.

        Returns:
            dict: JSON-serialisable metrics keyed by name.
        """
        return {
            "sim_time": self.sim_time,
            "episode": self.episode,
            "time_scale": self.time_scale,
            "configuration": {"index": self.config_index, "label": self.config_label},
            "wait": {"average": self.average_wait, "recent": self.recent_wait},
            "speed": {"average": self.average_speed, "recent": self.recent_speed},
            "anger": dict(self.anger),
            "lane_queue": dict(self.lane_queue),
            "in_intersection": self.in_intersection,
            "live_cars": self.live_cars,
            "completions": self.completions,
            "accidents": self.accidents,
        }
