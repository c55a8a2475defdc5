"""
agent/learn/generate_data.py
============================
Imitation dataset generator for the learned signal policy.

A baseline ("expert") policy drives a full simulation; at every decision
the observation's feature vector (see :mod:`agent.features`) is written
together with the configuration index the baseline picked.

Usage::

    python -m agent.learn.generate_data
"""

import csv
import os
from typing import List, Optional

from agent.features import TOTAL_FEATURES, observation_to_features
from agent.policies import Policy, make_policy
from junction.controller import Observation
from junction.tuning import SimTuning
from junction.world import IntersectionWorld

_AGENT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class RecordingPolicy:
    """Wraps a policy and records one ``features + [label]`` row per decision."""

    def __init__(self, inner: Policy) -> None:
        self.inner = inner
        self.rows: List[list] = []

    def choose(self, observation: Observation) -> int:
        index = self.inner.choose(observation)
        self.rows.append(observation_to_features(observation).tolist() + [int(index)])
        return index

    def observe(self, reward: float, done: bool) -> None:
        self.inner.observe(reward, done)


class PolicyDataGenerator:
    """Generate labelled CSV datasets by rolling out a baseline policy.

    Parameters
    ----------
    expert : str
        Name of the baseline policy (see :func:`agent.policies.make_policy`).
    tuning : SimTuning, optional
        Simulation parameters for the rollouts.
    dt : float
        Simulation step in seconds.
    """

    def __init__(
        self,
        expert: str = "pressure",
        tuning: Optional[SimTuning] = None,
        dt: float = 0.1,
    ) -> None:
        self.expert = expert
        self.tuning = tuning
        self.dt = dt

    def generate(self, file_path: str, episodes: int, seed: Optional[int] = None) -> int:
        """Write the decisions of *episodes* full episodes to *file_path*.

        Returns the number of rows written.
        """
        print(f"[Data] Rolling out {episodes} episodes with the '{self.expert}' policy …")
        folder = os.path.dirname(file_path)
        if folder:
            os.makedirs(folder, exist_ok=True)

        recorder = RecordingPolicy(make_policy(self.expert))
        world = IntersectionWorld(
            tuning=self.tuning, seed=seed, policy=recorder, sim_id="datagen",
        )
        world.run_episodes(episodes, dt=self.dt)

        with open(file_path, mode="w", newline="") as fh:
            writer = csv.writer(fh)
            header = [f"feature_{i + 1}" for i in range(TOTAL_FEATURES)] + ["label"]
            writer.writerow(header)
            writer.writerows(recorder.rows)

        print(f"  → {len(recorder.rows)} rows saved to '{os.path.basename(file_path)}'\n")
        return len(recorder.rows)


if __name__ == "__main__":
    generator = PolicyDataGenerator()
    folder_generated = os.path.join(_AGENT_ROOT, "generated")
    generator.generate(os.path.join(folder_generated, "train_dataset.csv"), 40, seed=1)
    generator.generate(os.path.join(folder_generated, "val_dataset.csv"), 8, seed=2)
