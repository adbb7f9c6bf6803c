# ABOUTME: Shared app configuration and constants used across tracker, planner and CLI (core package).
# ABOUTME: Values come from the environment (.env supported) so every entry point stays in sync.

import os

from dotenv import load_dotenv

load_dotenv()

GOALS_DB_PATH = os.environ.get("GOALS_DB_PATH", "goals.db")

DEFAULT_GOALS_PAGE_SIZE = 20
MAX_GOALS_PAGE_SIZE = 100

_DEFAULT_MAX_SAVE_RETRIES = 3
_DEFAULT_WEEKLY_TARGET_HOURS = 10


def _parse_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Optimistic-concurrency retries for one goal mutation before giving up.
MAX_SAVE_RETRIES = max(1, _parse_int_env("MAX_SAVE_RETRIES", _DEFAULT_MAX_SAVE_RETRIES))
DEFAULT_WEEKLY_TARGET_HOURS = _parse_int_env(
    "DEFAULT_WEEKLY_TARGET_HOURS", _DEFAULT_WEEKLY_TARGET_HOURS
)

# Planner: the LLM call-through is optional; without it milestones come from key skills.
PLANNER_ENABLED = _parse_bool_env("PLANNER_ENABLED", False)
PLANNER_MODEL = os.environ.get("PLANNER_MODEL", "gemini-2.5-flash")
MIN_PLANNED_MILESTONES = 6
MAX_PLANNED_MILESTONES = 10

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
