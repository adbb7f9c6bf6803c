# ABOUTME: Milestone dependency and progress engine plus the GoalTracker service built on it.
# ABOUTME: Import GoalTracker for id-based operations; tracker.progress / tracker.dependencies are pure.

from tracker.dependencies import is_blocked, set_dependencies, validate_graph
from tracker.progress import complete_milestone, recompute_progress
from tracker.service import GoalTracker

__all__ = [
    "GoalTracker",
    "complete_milestone",
    "is_blocked",
    "recompute_progress",
    "set_dependencies",
    "validate_graph",
]
