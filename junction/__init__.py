"""
junction — Simulation core
==========================

Modules
-------
world
    :class:`IntersectionWorld` component wiring and fixed tick order.
vehicle
    :class:`Vehicle` approach / brake / wait / turn / exit state machine.
controller
    :class:`SignalController` decisions, reward and episode lifecycle.
spawner
    :class:`Spawner` and :class:`DemandSchedule` time-varying demand.
stats
    :class:`StatsAggregator` event sink and rolling averages.
lights
    :class:`TrafficLight`, conflict model and configuration table.
context
    :class:`SimulationContext` clock, RNG, registry and geometry queries.
lanes
    Lane ids, geometry, turn pivots and the turn table.
tuning
    :class:`SimTuning` tunable constants.
metrics
    :class:`MetricsSnapshot` read-only aggregate view.
physics
    Low-level kinematics and vector helpers.
"""
