"""
agent/policies.py
=================
Signal policies that can drive :class:`~junction.controller.SignalController`.

A policy receives an :class:`~junction.controller.Observation` every
decision interval and returns an index into the configuration table.  The
controller validates the index, so a policy never has to guard against
its own mistakes.

Baselines
---------
HoldPolicy
    Keeps whatever the lights currently show (the manual baseline).
FixedCyclePolicy
    Steps through the non-all-red entries in a fixed order.
QueuePressurePolicy
    Greens the entry serving the most queued and angry vehicles.
RandomPolicy
    Uniform over the table (exploration / sanity baseline).
ExternalPolicy
    Returns the last index pushed from outside, e.g. by the HTTP API.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, Dict, List, Optional, Sequence

from junction.controller import Observation
from junction.lights import (
    ALL_RED_INDEX,
    SignalConfiguration,
    build_configuration_table,
    match_configuration,
)

log = logging.getLogger("policy")


class Policy:
    """Common base: table access, the heuristic fallback and reward tracking.

    Parameters
    ----------
    table : sequence of SignalConfiguration, optional
        Must be the controller's table.  Defaults to the standard one.
    """

    name = "base"

    def __init__(self, table: Optional[Sequence[SignalConfiguration]] = None) -> None:
        self.table = tuple(table) if table is not None else build_configuration_table()
        self.last_reward = 0.0
        self.episode_reward = 0.0
        self.episode_rewards: List[float] = []

    def choose(self, observation: Observation) -> int:
        raise NotImplementedError

    def heuristic(self, current_lights: SignalConfiguration) -> int:
        """Index of the entry matching *current_lights* (all-red if none)."""
        return match_configuration(self.table, tuple(current_lights))

    def observe(self, reward: float, done: bool) -> None:
        self.last_reward = reward
        self.episode_reward += reward
        if done:
            self.episode_rewards.append(self.episode_reward)
            log.debug("%s finished an episode with reward %.3f", self.name, self.episode_reward)
            self.episode_reward = 0.0

    def __repr__(self) -> str:
        return "<%s entries=%d>" % (type(self).__name__, len(self.table))


class HoldPolicy(Policy):
    """Never changes the lights."""

    name = "hold"

    def choose(self, observation: Observation) -> int:
        return self.heuristic(observation.lights)


class FixedCyclePolicy(Policy):
    """Cycle through *phases*, keeping each for *hold* decisions."""

    name = "cycle"

    def __init__(
        self,
        table: Optional[Sequence[SignalConfiguration]] = None,
        phases: Optional[Sequence[int]] = None,
        hold: int = 1,
    ) -> None:
        super().__init__(table)
        if phases is None:
            phases = [i for i in range(len(self.table)) if i != ALL_RED_INDEX]
        if not phases:
            raise ValueError("FixedCyclePolicy needs at least one phase")
        if hold < 1:
            raise ValueError("hold must be >= 1, got %r" % (hold,))
        self.phases = list(phases)
        self.hold = hold
        self._step = 0

    def choose(self, observation: Observation) -> int:
        index = self.phases[(self._step // self.hold) % len(self.phases)]
        self._step += 1
        return index


class QueuePressurePolicy(Policy):
    """Pick the entry with the highest queue pressure.

    The pressure of an entry is the sum, over the lanes it greens, of the
    queued car count plus ``anger_weight`` times the lane's recent anger.
    A configuration that still has pressure is kept for at least
    ``min_hold`` decisions before the policy may switch away.
    """

    name = "pressure"

    def __init__(
        self,
        table: Optional[Sequence[SignalConfiguration]] = None,
        anger_weight: float = 0.5,
        min_hold: int = 2,
    ) -> None:
        super().__init__(table)
        self.anger_weight = anger_weight
        self.min_hold = min_hold
        self.held = 0
        self._last: Optional[int] = None

    def pressure(self, observation: Observation, index: int) -> float:
        config = self.table[index]
        return sum(
            count + self.anger_weight * anger
            for count, anger, green in zip(
                observation.lane_counts, observation.lane_anger, config,
            )
            if green
        )

    def choose(self, observation: Observation) -> int:
        current = self.heuristic(observation.lights)
        if current != self._last:
            self.held = 0

        pressures = [self.pressure(observation, i) for i in range(len(self.table))]
        best = max(range(len(self.table)), key=lambda i: (pressures[i], -i))

        if pressures[best] <= 0.0:
            choice = current
        elif (
            current != ALL_RED_INDEX
            and self.held < self.min_hold
            and pressures[current] > 0.0
        ):
            choice = current
        else:
            choice = best

        self.held = self.held + 1 if choice == current else 1
        self._last = choice
        return choice


class RandomPolicy(Policy):
    """Uniformly random table index."""

    name = "random"

    def __init__(
        self,
        table: Optional[Sequence[SignalConfiguration]] = None,
        seed: Optional[int] = None,
    ) -> None:
        super().__init__(table)
        self.rng = random.Random(seed)

    def choose(self, observation: Observation) -> int:
        return self.rng.randrange(len(self.table))


class ExternalPolicy(Policy):
    """Returns whatever index was last pushed with :meth:`push`.

    Until the first push it behaves like :class:`HoldPolicy`.
    """

    name = "external"

    def __init__(self, table: Optional[Sequence[SignalConfiguration]] = None) -> None:
        super().__init__(table)
        self.pending: Optional[int] = None

    def push(self, index: int) -> None:
        self.pending = index

    def choose(self, observation: Observation) -> int:
        if self.pending is None:
            return self.heuristic(observation.lights)
        return self.pending


def _model_policy(table=None, model_path: Optional[str] = None, **kwargs):
    # Imported here: inference depends on this module.
    from agent.inference import ModelPolicy

    return ModelPolicy(model_path=model_path, table=table, **kwargs)


_FACTORIES: Dict[str, Callable[..., Policy]] = {
    HoldPolicy.name: HoldPolicy,
    FixedCyclePolicy.name: FixedCyclePolicy,
    QueuePressurePolicy.name: QueuePressurePolicy,
    RandomPolicy.name: RandomPolicy,
    ExternalPolicy.name: ExternalPolicy,
    "model": _model_policy,
}

POLICY_NAMES = tuple(_FACTORIES)


def make_policy(name: str, table=None, **kwargs) -> Policy:
    """Build a policy by name (see :data:`POLICY_NAMES`).

    Extra keyword arguments go to the policy constructor, e.g.
    ``make_policy("random", seed=3)`` or
    ``make_policy("model", model_path="agent/generated/signal_model.pkl")``.

    Raises
    ------
    ValueError
        If *name* is not a known policy.
    """
    try:
        factory = _FACTORIES[name.lower()]
    except KeyError:
        raise ValueError(
            "unknown policy %r (choose from %s)" % (name, ", ".join(POLICY_NAMES))
        ) from None
    policy = factory(table=table, **kwargs)
    log.info("using policy %r", policy)
    return policy
