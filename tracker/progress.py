# ABOUTME: Milestone completion state machine and goal progress/status recomputation.
# ABOUTME: Synchronous, no I/O; callers must hold exclusive access to the GoalModel they pass in.

from datetime import datetime

from core.exceptions import AlreadyCompletedError, DependenciesUnmetError
from core.schemas import GoalModel, GoalStatus, MilestoneModel, utcnow
from tracker.dependencies import is_blocked, require_milestone, unmet_dependencies


def progress_percentage(completed: int, total: int) -> int:
    """round(100 * completed / total) with halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    # Integer form of floor(100 * completed / total + 0.5), exact for every input.
    return (200 * completed + total) // (2 * total)


def recompute_progress(goal: GoalModel, now: datetime | None = None) -> GoalModel:
    """Derive progress, completed_milestones and status from milestone state.

    Promotes planning -> active once progress is above 0 and sets completed
    (stamping completed_at) at 100. A completed goal is never moved back out of
    completed here. Calling it again without milestone changes is a no-op.
    """
    total = len(goal.milestones)
    completed = sum(1 for m in goal.milestones if m.is_completed)
    goal.completed_milestones = completed
    goal.progress = progress_percentage(completed, total)

    if goal.progress == 100 and total > 0 and goal.status != GoalStatus.COMPLETED:
        goal.status = GoalStatus.COMPLETED
        goal.completed_at = now or utcnow()
    elif goal.progress > 0 and goal.status == GoalStatus.PLANNING:
        goal.status = GoalStatus.ACTIVE
    return goal


def complete_milestone(
    goal: GoalModel, milestone_id: str, now: datetime | None = None
) -> GoalModel:
    """Mark one milestone completed and recompute the goal.

    Raises NotFoundError, AlreadyCompletedError or DependenciesUnmetError
    (carrying only the directly unmet prerequisites); the goal is unchanged
    when an error is raised.
    """
    milestone = require_milestone(goal, milestone_id)
    if milestone.is_completed:
        raise AlreadyCompletedError(milestone_id)
    unmet = unmet_dependencies(goal, milestone)
    if unmet:
        raise DependenciesUnmetError(milestone_id, unmet)

    now = now or utcnow()
    milestone.is_completed = True
    milestone.completed_at = now
    return recompute_progress(goal, now=now)


def next_milestones(goal: GoalModel) -> list[MilestoneModel]:
    """Incomplete milestones whose dependencies are all met, in display order."""
    return [
        m
        for m in goal.ordered_milestones()
        if not m.is_completed and not is_blocked(goal, m.id)
    ]
