"""
agent/inference.py
==================
Learned signal policy.

:class:`ModelPolicy` feeds the :mod:`agent.features` vector of each
observation to a pre-trained scikit-learn classifier and returns the
predicted configuration index.  When the model file is missing it falls
back to the heuristic (keep the current lights) and says so once.
"""

import logging
import os
from typing import Any, Dict, Optional, Sequence

import joblib
import numpy as np

from agent.features import observation_to_features
from agent.policies import Policy
from junction.controller import Observation
from junction.lights import SignalConfiguration, describe

log = logging.getLogger("policy")

_AGENT_ROOT = os.path.abspath(os.path.dirname(__file__))
DEFAULT_MODEL_PATH = os.path.join(_AGENT_ROOT, "generated", "signal_model.pkl")

# ── model cache (one load per path per process) ──────────────────────────────
_MODEL_CACHE: Dict[str, Any] = {}


def get_model(model_path: str):
    """Load (and cache) the scikit-learn model from *model_path*.

    Raises
    ------
    FileNotFoundError
        If nothing exists at *model_path*.
    """
    key = os.path.abspath(model_path)
    if key not in _MODEL_CACHE:
        _MODEL_CACHE[key] = joblib.load(key)
    return _MODEL_CACHE[key]


def clear_model_cache() -> None:
    _MODEL_CACHE.clear()


class ModelPolicy(Policy):
    """Policy backed by a classifier trained with :mod:`agent.learn.train`.

    Parameters
    ----------
    model_path : str, optional
        ``.pkl`` file written by :class:`~agent.learn.train.PolicyModelTrainer`.
    table : sequence of SignalConfiguration, optional
        Configuration table the model's labels index into.
    """

    name = "model"

    def __init__(
        self,
        model_path: Optional[str] = None,
        table: Optional[Sequence[SignalConfiguration]] = None,
    ) -> None:
        super().__init__(table)
        self.model_path = model_path or DEFAULT_MODEL_PATH
        self.fallbacks = 0
        self._warned = False

    def _load(self):
        try:
            return get_model(self.model_path)
        except FileNotFoundError:
            if not self._warned:
                log.warning(
                    "model %s not found; falling back to the heuristic", self.model_path,
                )
                self._warned = True
            return None

    @property
    def available(self) -> bool:
        return self._load() is not None

    def infer(self, observation: Observation) -> dict:
        """Run the model on *observation*.

        Returns
        -------
        dict
            ``{status, index, label, confidence}`` on success, or
            ``{error: …}`` when the model cannot be loaded.
        """
        model = self._load()
        if model is None:
            return {"error": "Model not found"}

        features = observation_to_features(observation).reshape(1, -1)
        probabilities = model.predict_proba(features)[0]
        best = int(np.argmax(probabilities))
        index = int(model.classes_[best])
        label = describe(self.table[index]) if 0 <= index < len(self.table) else "?"
        return {
            "status": "success",
            "index": index,
            "label": label,
            "confidence": float(probabilities[best]),
        }

    def choose(self, observation: Observation) -> int:
        result = self.infer(observation)
        if "error" in result:
            self.fallbacks += 1
            return self.heuristic(observation.lights)
        log.debug(
            "model picked %d (%s) with confidence %.2f",
            result["index"], result["label"], result["confidence"],
        )
        return result["index"]
