#!/usr/bin/env python3
"""
main.py
=======
Headless entry point: build a world, pick a signal policy and run a
number of episodes, logging each summary.

Environment overrides
---------------------
``SIGNAL_TICK_HZ``      simulation steps per simulated second
``SIGNAL_EPISODES``     episodes to run
``SIGNAL_SEED``         RNG seed
``SIGNAL_POLICY``       hold | cycle | pressure | random | model
``SIGNAL_MODEL_PATH``   ``.pkl`` file used by the ``model`` policy
``SIGNAL_LOG_LEVEL``    DEBUG | INFO | WARNING …
"""

import logging
import os

import config
from agent.policies import make_policy
from junction.world import IntersectionWorld
from logging_setup import setup_logging

project_root = os.path.abspath(os.path.dirname(__file__))


def main() -> None:
    level_name = os.environ.get("SIGNAL_LOG_LEVEL", config.DEFAULT_LOG_LEVEL).upper()
    setup_logging(getattr(logging, level_name, logging.INFO))
    log = logging.getLogger("main")

    tick_hz = float(os.environ.get("SIGNAL_TICK_HZ", config.DEFAULT_TICK_RATE_HZ))
    episodes = int(os.environ.get("SIGNAL_EPISODES", config.DEFAULT_EPISODES))
    seed = int(os.environ.get("SIGNAL_SEED", config.DEFAULT_SEED))
    policy_name = os.environ.get("SIGNAL_POLICY", config.DEFAULT_POLICY)
    model_path = os.environ.get(
        "SIGNAL_MODEL_PATH", os.path.join(project_root, config.ML_MODEL_REL_PATH),
    )

    kwargs = {"model_path": model_path} if policy_name.lower() == "model" else {}
    policy = make_policy(policy_name, **kwargs)
    world = IntersectionWorld(
        seed=seed, policy=policy, time_scale=config.DEFAULT_TIME_SCALE,
    )
    log.info(
        "Running %d episodes at %.1f Hz with policy '%s' (seed %d)",
        episodes, tick_hz, policy_name, seed,
    )

    try:
        summaries = world.run_episodes(episodes, dt=1.0 / tick_hz)
    except KeyboardInterrupt:
        log.info("Shutting down...")
        return

    for s in summaries:
        log.info(
            "episode %d: reward=%.3f completions=%d accidents=%d "
            "avg_wait=%.2fs avg_anger=%.2f%s",
            s.episode, s.cumulative_reward, s.completions, s.accidents,
            s.average_wait, s.average_anger, " (early stop)" if s.early_stop else "",
        )
    total = sum(s.cumulative_reward for s in summaries)
    log.info("Mean reward over %d episodes: %.3f", len(summaries), total / max(1, len(summaries)))


if __name__ == "__main__":
    main()
