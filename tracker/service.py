# ABOUTME: GoalTracker: id-based goal/milestone operations over a GoalStore and optional ProgressLedger.
# ABOUTME: Each mutation is load -> engine op -> version-checked save, retried on concurrent updates.

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel

from core.config import DEFAULT_GOALS_PAGE_SIZE, MAX_SAVE_RETRIES
from core.exceptions import (
    ConcurrentUpdateError,
    CycleDetectedError,
    TrackerError,
    UnknownDependencyError,
)
from core.schemas import (
    EntryType,
    EntryUnit,
    EstimatedDuration,
    GoalModel,
    GoalStatus,
    LedgerEntry,
    MilestoneModel,
    utcnow,
)
from tracker import dependencies, progress
from tracker.ledger import (
    LedgerMetrics,
    ProgressLedger,
    milestone_completed_entry,
    summarize,
)
from tracker.store import GoalStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Completion state only changes through complete_milestone.
_MILESTONE_COMPLETION_KEYS = ("is_completed", "isCompleted", "completed_at", "completedAt")
# Derived by recompute_progress or owned by the store.
_DERIVED_GOAL_KEYS = (
    "progress",
    "completed_milestones",
    "completedMilestones",
    "completed_at",
    "completedAt",
    "version",
)
EDITABLE_GOAL_FIELDS = (
    "title",
    "description",
    "category",
    "difficulty",
    "estimated_duration",
    "tags",
)


def _as_record(item: Any) -> dict:
    if isinstance(item, BaseModel):
        return item.model_dump()
    return dict(item)


def _new_milestone(item: Any, order: int) -> MilestoneModel:
    """Build a not-yet-completed milestone from a caller record."""
    record = _as_record(item)
    for key in _MILESTONE_COMPLETION_KEYS:
        record.pop(key, None)
    record["order"] = order
    return MilestoneModel.model_validate(record)


def _check_graph(goal: GoalModel) -> None:
    report = dependencies.validate_graph(goal)
    if report.has_missing:
        raise UnknownDependencyError(report.missing_ids)
    if report.has_cycles:
        raise CycleDetectedError(report.cycles[0])


class GoalTracker:
    """Caller-facing API for goal tracking. Errors from core.exceptions propagate unchanged."""

    def __init__(
        self,
        store: GoalStore,
        ledger: ProgressLedger | None = None,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int = MAX_SAVE_RETRIES,
    ):
        self.store = store
        self.ledger = ledger
        self._clock = clock
        self._max_retries = max_retries

    def _mutate(self, goal_id: UUID, operation: Callable[[GoalModel], T]) -> tuple[GoalModel, T]:
        """Apply operation to a freshly loaded goal and save it, retrying on version conflicts."""
        attempt = 1
        while True:
            goal = self.store.load_goal(goal_id)
            result = operation(goal)
            try:
                self.store.save_goal(goal)
            except ConcurrentUpdateError:
                if attempt >= self._max_retries:
                    raise
                logger.warning(
                    "Goal %s changed while saving (attempt %d/%d); retrying",
                    goal_id,
                    attempt,
                    self._max_retries,
                )
                attempt += 1
                continue
            return goal, result

    def create_goal(
        self,
        *,
        title: str,
        estimated_duration: EstimatedDuration | dict,
        milestones: Iterable[Any] = (),
        chain_dependencies: bool = False,
        **fields: Any,
    ) -> GoalModel:
        """Create and save a goal from loosely-typed milestone records.

        Milestone orders follow the given sequence. With chain_dependencies each
        milestone without explicit dependencies depends on its predecessor.
        Raises UnknownDependencyError or CycleDetectedError for invalid graphs.
        Milestones always start incomplete and derived goal fields are ignored;
        asking for a completed status raises ValueError.
        """
        for key in _DERIVED_GOAL_KEYS:
            fields.pop(key, None)
        if GoalStatus(fields.get("status", GoalStatus.PLANNING)) == GoalStatus.COMPLETED:
            raise ValueError("A goal is completed only by completing its milestones")

        records = []
        previous_id: str | None = None
        for index, item in enumerate(milestones):
            order = _as_record(item).get("order", index)
            milestone = _new_milestone(item, order=order)
            if chain_dependencies and previous_id is not None and not milestone.dependencies:
                milestone.dependencies = [previous_id]
            records.append(milestone)
            previous_id = milestone.id

        goal = GoalModel.model_validate(
            {
                **fields,
                "title": title,
                "estimated_duration": estimated_duration,
                "milestones": records,
                "version": 0,
            }
        )
        _check_graph(goal)
        progress.recompute_progress(goal, now=self._clock())
        self.store.save_goal(goal)
        logger.info("Created goal %s with %d milestones", goal.id, goal.total_milestones)
        return goal

    def get_goal(self, goal_id: UUID) -> GoalModel:
        return self.store.load_goal(goal_id)

    def list_goals(
        self,
        status: GoalStatus | None = None,
        limit: int = DEFAULT_GOALS_PAGE_SIZE,
        offset: int = 0,
    ) -> tuple[list[GoalModel], int]:
        return self.store.list_goals(status=status, limit=limit, offset=offset)

    def update_goal(self, goal_id: UUID, **changes: Any) -> GoalModel:
        """Edit descriptive goal fields; progress, status and milestones are untouched."""
        rejected = sorted(set(changes) - set(EDITABLE_GOAL_FIELDS))
        if rejected:
            raise ValueError(f"Fields cannot be updated: {', '.join(rejected)}")
        if not changes:
            return self.get_goal(goal_id)

        def _update(goal: GoalModel) -> None:
            updated = GoalModel.model_validate({**goal.model_dump(), **changes})
            for name in changes:
                setattr(goal, name, getattr(updated, name))

        goal, _ = self._mutate(goal_id, _update)
        logger.info("Updated goal %s fields: %s", goal_id, ", ".join(sorted(changes)))
        return goal

    def add_milestone(self, goal_id: UUID, data: Any) -> GoalModel:
        """Append a milestone after the current last order and recompute progress."""

        def _add(goal: GoalModel) -> MilestoneModel:
            record = _as_record(data)
            requested = record.pop("dependencies", None) or []
            milestone = _new_milestone(
                record, order=max((m.order for m in goal.milestones), default=-1) + 1
            )
            if goal.get_milestone(milestone.id) is not None:
                raise ValueError(f"Duplicate milestone id: {milestone.id}")
            goal.milestones.append(milestone)
            # Errors here discard the loaded copy, so nothing is saved.
            dependencies.set_dependencies(goal, milestone.id, requested)
            progress.recompute_progress(goal, now=self._clock())
            return milestone

        goal, milestone = self._mutate(goal_id, _add)
        logger.info("Added milestone %s to goal %s", milestone.id, goal_id)
        return goal

    def complete_milestone(self, goal_id: UUID, milestone_id: str) -> GoalModel:
        goal, _ = self._mutate(
            goal_id,
            lambda g: progress.complete_milestone(g, milestone_id, now=self._clock()),
        )
        logger.info(
            "Completed milestone %s of goal %s (progress %d%%, status %s)",
            milestone_id,
            goal_id,
            goal.progress,
            goal.status.value,
        )
        self._notify_completion(goal, milestone_id)
        return goal

    def _notify_completion(self, goal: GoalModel, milestone_id: str) -> None:
        # Best-effort: the completion is already saved and is never rolled back.
        if self.ledger is None:
            return
        milestone = goal.get_milestone(milestone_id)
        try:
            self.ledger.append(milestone_completed_entry(goal, milestone))
        except Exception:
            logger.exception(
                "Progress ledger notification failed for goal %s milestone %s",
                goal.id,
                milestone_id,
            )

    def set_dependencies(
        self, goal_id: UUID, milestone_id: str, dependency_ids: Iterable[str]
    ) -> MilestoneModel:
        requested = list(dependency_ids)
        _, milestone = self._mutate(
            goal_id,
            lambda g: dependencies.set_dependencies(g, milestone_id, requested),
        )
        return milestone

    def is_blocked(self, goal_id: UUID, milestone_id: str) -> bool:
        return dependencies.is_blocked(self.store.load_goal(goal_id), milestone_id)

    def recompute_progress(self, goal_id: UUID) -> GoalModel:
        goal, _ = self._mutate(
            goal_id, lambda g: progress.recompute_progress(g, now=self._clock())
        )
        return goal

    def record_entry(
        self,
        goal_id: UUID,
        type: EntryType | str,
        value: float,
        unit: EntryUnit | str,
        description: str = "",
        metadata: dict[str, str] | None = None,
    ) -> LedgerEntry:
        """Append a study, practice, check-in or tutor entry to the goal's ledger.

        Milestone entries are written only by complete_milestone.
        """
        self.store.load_goal(goal_id)
        if self.ledger is None:
            raise TrackerError("No progress ledger configured")
        entry = LedgerEntry(
            goal_id=goal_id,
            type=type,
            value=value,
            unit=unit,
            description=description,
            metadata=metadata or {},
            date=self._clock(),
        )
        if entry.type == EntryType.MILESTONE:
            raise ValueError("Milestone entries are recorded by completing a milestone")
        self.ledger.append(entry)
        logger.info(
            "Recorded %s entry for goal %s: %s %s",
            entry.type.value,
            goal_id,
            entry.value,
            entry.unit.value,
        )
        return entry

    def metrics(self, goal_id: UUID) -> LedgerMetrics:
        """Ledger metrics for the goal; empty metrics when no ledger is configured."""
        self.store.load_goal(goal_id)
        if self.ledger is None:
            return summarize([], today=self._clock().date())
        return summarize(self.ledger.entries(goal_id), today=self._clock().date())
