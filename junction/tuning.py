#!/usr/bin/env python3
"""
junction/tuning.py
==================
Tunable geometry, vehicle, demand and controller parameters for the
signalized intersection.  Every constant lives in the frozen
:class:`SimTuning` dataclass so that experiments can swap tunings
(``dataclasses.replace``) without touching code.

Distances are metres, times seconds, speeds metres per second.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SimTuning:
    """Immutable bag of every tunable simulation parameter.

    Groups: geometry, longitudinal control, anger, turning, demand,
    controller timing, reward shaping.
    """

    # ── Geometry ──────────────────────────────────────────────────────────
    lane_offset_m: float = 7.0
    """Perpendicular offset of a through lane's centre from the road axis."""

    left_lane_offset_m: float = 3.0
    """Perpendicular offset of a dedicated left-turn lane's centre."""

    box_half_m: float = 14.0
    """Half-width of the intersection core (distance from centre to box edge)."""

    light_offset_m: float = 9.0
    """Distance from the centre to a lane's traffic light.

    Must equal ``box_half_m - stop_distance_to_light`` so cars held by a
    red light stop on the box edge.
    """

    spawn_distance_m: float = 80.0
    """Distance from the centre to each lane's spawn point."""

    exit_distance_m: float = 40.0
    """Distance past the centre (along heading) of the exit boundary."""

    collision_distance_m: float = 3.0
    """Centre-to-centre distance below which two cars overlap."""

    probe_half_width_m: float = 1.5
    """Lateral half-width of the forward obstacle probe."""

    # ── Longitudinal control ──────────────────────────────────────────────
    max_speed: float = 10.0
    acceleration: float = 5.0
    """Acceleration rate (m/s²)."""

    braking: float = 5.0
    """Deceleration rate (m/s²) when above the desired speed."""

    floor_speed_fraction: float = 0.1
    """Slowest allowed rolling speed, as a fraction of ``max_speed``."""

    deceleration_distance: float = 12.0
    """Distance at which braking for a red light or leader begins."""

    stop_distance_to_light: float = 5.0
    """Distance to a red light inside which the car hard-stops."""

    stop_distance_to_car: float = 5.0
    """Minimum following distance; closer leaders force a hard stop."""

    approach_alignment: float = 0.1
    """Minimum dot(to_light, heading) for the light to count as ahead."""

    light_check_interval_s: float = 0.1
    car_detection_interval_s: float = 0.05

    # ── Anger ─────────────────────────────────────────────────────────────
    anger_growth_rate: float = 0.5
    """Exponent rate *k* in ``anger = e^(k·Δt) − 1``."""

    wait_time_threshold_s: float = 1.0
    """Minimum continuous wait before anger starts growing."""

    max_anger: float = 100.0
    """Upper clamp on the anger one waiting spell can add."""

    anger_log_interval_s: float = 2.0

    # ── Turning ───────────────────────────────────────────────────────────
    min_turn_rate_deg_s: float = 20.0
    max_turn_rate_deg_s: float = 90.0
    turn_angle_deg: float = 90.0
    turn_epsilon_deg: float = 1e-6

    # ── Lifecycle ─────────────────────────────────────────────────────────
    exit_grace_s: float = 5.0
    """Delay between crossing the exit boundary and removal."""

    crash_grace_s: float = 5.0
    """Delay between a collision and removal (keeps the overlap visible)."""

    # ── Demand model ──────────────────────────────────────────────────────
    base_spawn_interval_s: float = 3.0
    min_spawn_interval_s: float = 0.5
    max_spawn_interval_s: float = 8.0
    off_peak_factor: float = 1.5
    rush_multiplier: float = 3.0

    day_length_s: float = 120.0
    """Simulated seconds that map onto one normalized day (0 → 1)."""

    time_multiplier: float = 1.0

    morning_rush_start: float = 0.15
    morning_rush_end: float = 0.35
    afternoon_rush_start: float = 0.65
    afternoon_rush_end: float = 0.85

    enable_wave_spawning: bool = True
    cars_per_wave: int = 8
    wave_car_delay_s: float = 0.3
    wave_gap_s: float = 5.0
    wave_residential_share: float = 0.7

    morning_residential_bias: float = 3.0
    afternoon_residential_bias: float = 2.5

    clearance_radius_m: float = 5.0
    """No existing car may sit within this radius of a new spawn point."""

    queue_spacing_m: float = 6.0
    """Step used when searching backward for a free spawn slot."""

    max_queue_length: int = 8
    max_cars: int = 100
    right_turn_chance: float = 0.3

    # ── Controller timing ─────────────────────────────────────────────────
    decision_interval_s: float = 5.0
    max_episode_time_s: float = 120.0
    max_inactivity_s: float = 30.0
    randomize_initial_lights: bool = True
    recent_window: int = 5

    # ── Reward shaping ────────────────────────────────────────────────────
    speed_reward_weight: float = 1.0
    wait_penalty_weight: float = 0.5
    wait_norm_s: float = 30.0
    congestion_penalty_weight: float = 0.1
    congestion_threshold: int = 5
    anger_penalty_weight: float = 0.3
    anger_norm: float = 10.0
    anger_reduction_reward_weight: float = 0.2
    high_anger_threshold: float = 8.0
    high_anger_lane_weight: float = 0.1
    car_passed_reward_weight: float = 0.05
    accident_penalty: float = 1.0
    stability_penalty_enabled: bool = True
    stability_penalty_weight: float = 0.1
    max_stable_flips: int = 2
    all_red_penalty: float = 0.1
    reward_clip: float = 5.0

    timeout_bonus: float = 0.1
    inactivity_penalty: float = 0.2
    no_accident_bonus: float = 1.0

    @property
    def floor_speed(self) -> float:
        return self.max_speed * self.floor_speed_fraction
