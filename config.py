#!/usr/bin/env python3
"""
config.py
=========
Application-wide configuration constants.

Values can be overridden via environment variables (see :mod:`main`).
This module is a thin, import-safe leaf: it never imports from
other project packages.
"""

# ── Simulation defaults ──────────────────────────────────────────────────────
DEFAULT_TICK_RATE_HZ: float = 20.0
DEFAULT_EPISODES: int = 3
DEFAULT_SEED: int = 42
DEFAULT_TIME_SCALE: float = 1.0

# ── Policy defaults ──────────────────────────────────────────────────────────
DEFAULT_POLICY: str = "pressure"

# ── ML model path (relative to project root) ─────────────────────────────────
ML_MODEL_REL_PATH: str = "agent/generated/signal_model.pkl"

# ── HTTP API defaults ────────────────────────────────────────────────────────
API_HOST: str = "0.0.0.0"
API_PORT: int = 8000

# ── Logging ──────────────────────────────────────────────────────────────────
DEFAULT_LOG_LEVEL: str = "INFO"
