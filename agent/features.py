"""
agent/features.py
=================
Feature extraction for the learned signal policy.

:func:`observation_to_features` converts a controller
:class:`~junction.controller.Observation` into a fixed-length numeric
vector consumed by the Random Forest classifier.  The column order is
given by :data:`FEATURE_NAMES` and never depends on the observation.
"""

from typing import List

import numpy as np

from junction.controller import Observation
from junction.lanes import LANE_IDS

# Scalars appended after the three per-lane blocks.
_SCALARS = (
    "cars_in_intersection",
    "recent_avg_wait",
    "recent_avg_speed",
    "recent_anger",
    "peak_anger",
    "time_since_last_completion",
    "config_index",
    "episode_progress",
)

FEATURE_NAMES: List[str] = (
    ["count_%s" % lane for lane in LANE_IDS]
    + ["anger_%s" % lane for lane in LANE_IDS]
    + ["green_%s" % lane for lane in LANE_IDS]
    + list(_SCALARS)
)

TOTAL_FEATURES = len(FEATURE_NAMES)


def observation_to_features(obs: Observation) -> np.ndarray:
    """Return the 1-D float vector for *obs* (length :data:`TOTAL_FEATURES`)."""
    values = (
        [float(n) for n in obs.lane_counts]
        + [float(a) for a in obs.lane_anger]
        + [1.0 if g else 0.0 for g in obs.lights]
        + [float(getattr(obs, name)) for name in _SCALARS]
    )
    return np.asarray(values, dtype=float)
