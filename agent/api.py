"""
agent/api.py
============
FastAPI surface over a running :class:`~junction.world.IntersectionWorld`.

Start the server::

    python -m agent.api          # → http://localhost:8000/metrics

Endpoints
---------
``GET  /metrics``         aggregate metrics snapshot
``GET  /configurations``  the signal configuration table
``GET  /observation``     the observation a policy would see right now
``POST /action``          apply a configuration index (``{"index": 2}``)
``POST /step``            advance the simulation (``{"seconds": 5}``)
``POST /reset``           start a fresh episode

By default the app installs an :class:`~agent.policies.ExternalPolicy`,
so an outside process acts as the signal policy: the last index posted
to ``/action`` is also what the controller applies at its own decision
points.
"""

import logging
import threading
from typing import List

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from agent.policies import ExternalPolicy
from junction.lights import describe, green_lanes
from junction.world import IntersectionWorld

log = logging.getLogger("api")

# ── Pydantic request schemas ─────────────────────────────────────────────────


class ActionRequest(BaseModel):
    """Configuration index submitted to ``/action``."""
    index: int


class StepRequest(BaseModel):
    """Simulated time to advance in ``/step``."""
    seconds: float = Field(gt=0.0, le=3600.0)
    dt: float = Field(default=0.05, gt=0.0, le=1.0)


class ConfigurationEntry(BaseModel):
    index: int
    label: str
    greens: List[str]


# ── FastAPI application factory ──────────────────────────────────────────────


def create_app(world: IntersectionWorld, external: bool = True) -> FastAPI:
    """Build the API around *world*.

    Parameters
    ----------
    world : IntersectionWorld
        Simulation to expose.  Requests are serialised with a lock.
    external : bool
        Install an :class:`ExternalPolicy` (replacing the world's policy)
        so ``/action`` steers the controller.  With ``False`` the world
        keeps its policy and ``/action`` answers 409.
    """
    lock = threading.Lock()
    if external and not isinstance(world.policy, ExternalPolicy):
        world.policy = ExternalPolicy(world.controller.table)

    app = FastAPI(
        title="Signal Controller API",
        description="Observe and drive a simulated signalized intersection.",
        version="1.0",
    )
    app.state.world = world

    @app.get("/metrics")
    def get_metrics():
        with lock:
            return world.metrics().report()

    @app.get("/configurations", response_model=List[ConfigurationEntry])
    def get_configurations():
        return [
            ConfigurationEntry(index=i, label=describe(config), greens=green_lanes(config))
            for i, config in enumerate(world.controller.table)
        ]

    @app.get("/observation")
    def get_observation():
        with lock:
            return world.controller.observe().as_dict()

    @app.post("/action")
    def post_action(request: ActionRequest):
        policy = world.policy
        if not isinstance(policy, ExternalPolicy):
            raise HTTPException(
                status_code=409, detail="the world is driven by its own policy",
            )
        table = world.controller.table
        if not 0 <= request.index < len(table):
            raise HTTPException(
                status_code=422,
                detail="index must be in [0, %d), got %d" % (len(table), request.index),
            )
        with lock:
            policy.push(request.index)
            applied = world.controller.decide()
            reward = world.controller.last_reward
        log.info("external action %d (%s)", applied, describe(table[applied]))
        return {
            "index": applied,
            "label": describe(table[applied]),
            "reward": reward.as_dict() if reward is not None else None,
        }

    @app.post("/step")
    def post_step(request: StepRequest):
        with lock:
            ended = world.run(request.seconds, dt=request.dt)
            report = world.metrics().report()
        return {
            "sim_time": world.now,
            "episodes_ended": [s.as_dict() for s in ended],
            "metrics": report,
        }

    @app.post("/reset")
    def post_reset():
        with lock:
            world.reset()
            log.info("world reset through the API (episode %d)", world.controller.episode)
            return world.metrics().report()

    return app


# ── Standalone entry point ───────────────────────────────────────────────────

if __name__ == "__main__":
    import config

    print(f"Starting signal API on http://{config.API_HOST}:{config.API_PORT} …")
    uvicorn.run(
        create_app(IntersectionWorld(seed=config.DEFAULT_SEED, sim_id="api")),
        host=config.API_HOST,
        port=config.API_PORT,
    )
