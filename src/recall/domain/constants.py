"""Centralized constants for the recall engine.

All magic numbers and defaults live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 ----------
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
PASSING_QUALITY = 3
MIN_QUALITY = 0
MAX_QUALITY = 5

# ---------- Undo ----------
DEFAULT_UNDO_WINDOW_SECONDS = 5.0

# ---------- Streaks ----------
STREAK_MILESTONES = (7, 14, 30, 60, 100, 180, 365)

# ---------- Mastery ----------
MASTERY_MIN_INTERVAL = 21  # interval must exceed this many days
MASTERY_MIN_REPETITIONS = 2  # repetitions must exceed this count

# ---------- Review history ----------
MAX_HISTORY_DAYS = 90
ROLLING_RETENTION_RADIUS = 3  # days on each side of the centre day
TARGET_RETENTION_RATE = 0.85

# ---------- Insights ----------
DEFAULT_INSIGHT_LIMIT = 5
FORECAST_DAYS = 7

# ---------- Packs ----------
PACK_NAME_MAX = 50
PACK_DESCRIPTION_MAX = 200
ALL_CARDS_PACK = "All Cards"
RECENTLY_ADDED_PACK = "Recently Added"
PACK_COLORS = (
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#6B7280",  # gray
)

# ---------- Export ----------
EXPORT_VERSION = 1
