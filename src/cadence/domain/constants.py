"""Centralized constants for the cadence engine.

All magic numbers and scheduling defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Grades ----------
MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_GRADE = 3  # q < 3 is a lapse

# ---------- SM-2 ----------
INITIAL_EASE = 2.5
MIN_EASE = 1.3
LAPSE_PENALTY = 0.20
LAPSE_INTERVAL_DAYS = 1
LEARNING_STEPS_DAYS = (1, 6)

# ---------- Statistics ----------
MASTERED_MIN_REPETITIONS = 5
MASTERED_MIN_EASE = 2.5
EASE_BANDS = {
    "hard": (1.3, 1.8),
    "medium": (1.8, 2.3),
    "easy": (2.3, 2.8),
    "perfect": (2.8, float("inf")),
}

# ---------- Identifiers ----------
CARD_ID_PREFIX = "card_"
RECORD_ID_PREFIX = "rev_"
