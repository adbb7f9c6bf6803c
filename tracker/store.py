# ABOUTME: Goal store contract plus in-memory and SQLModel implementations.
# ABOUTME: save_goal is a version-checked write so concurrent mutations of one goal cannot lose updates.

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, update
from sqlmodel import select

from core.config import DEFAULT_GOALS_PAGE_SIZE
from core.database import Goal, get_session
from core.exceptions import ConcurrentUpdateError, NotFoundError
from core.schemas import GoalModel, GoalStatus, utcnow


class GoalStore(ABC):
    @abstractmethod
    def load_goal(self, goal_id: UUID) -> GoalModel:
        """Return an independent copy of the goal or raise NotFoundError."""

    @abstractmethod
    def save_goal(self, goal: GoalModel) -> None:
        """Insert (version 0) or update the goal; bumps goal.version on success.

        Raises ConcurrentUpdateError when the stored version differs from goal.version.
        """

    @abstractmethod
    def list_goals(
        self,
        status: GoalStatus | None = None,
        limit: int = DEFAULT_GOALS_PAGE_SIZE,
        offset: int = 0,
    ) -> tuple[list[GoalModel], int]:
        """Goals newest first, plus the total count matching status."""


class InMemoryGoalStore(GoalStore):
    """Process-local store holding JSON snapshots; useful for tests and scripts."""

    def __init__(self):
        self._lock = threading.Lock()
        self._goals: dict[UUID, str] = {}

    def load_goal(self, goal_id: UUID) -> GoalModel:
        with self._lock:
            snapshot = self._goals.get(goal_id)
        if snapshot is None:
            raise NotFoundError("goal", goal_id)
        return GoalModel.model_validate_json(snapshot)

    def save_goal(self, goal: GoalModel) -> None:
        with self._lock:
            snapshot = self._goals.get(goal.id)
            stored_version = 0 if snapshot is None else GoalModel.model_validate_json(snapshot).version
            if stored_version != goal.version:
                raise ConcurrentUpdateError(goal.id, goal.version)
            goal.version += 1
            goal.updated_at = utcnow()
            self._goals[goal.id] = goal.model_dump_json()

    def list_goals(self, status=None, limit=DEFAULT_GOALS_PAGE_SIZE, offset=0):
        with self._lock:
            goals = [GoalModel.model_validate_json(s) for s in self._goals.values()]
        if status is not None:
            goals = [g for g in goals if g.status == status]
        goals.sort(key=lambda g: g.created_at, reverse=True)
        return goals[offset : offset + limit], len(goals)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def goal_from_row(row: Goal) -> GoalModel:
    """Build a GoalModel from a stored row."""
    return GoalModel.model_validate(
        {
            "id": row.id,
            "title": row.title,
            "description": row.description,
            "category": row.category,
            "difficulty": row.difficulty,
            "estimated_duration": {"value": row.duration_value, "unit": row.duration_unit},
            "status": row.status,
            "progress": row.progress,
            "completed_milestones": row.completed_milestones,
            "milestones": json.loads(row.milestones) if row.milestones else [],
            "tags": json.loads(row.tags) if row.tags else [],
            "started_at": _as_utc(row.started_at),
            "completed_at": _as_utc(row.completed_at),
            "version": row.version,
            "created_at": _as_utc(row.created_at),
            "updated_at": _as_utc(row.updated_at),
        }
    )


def _row_values(goal: GoalModel) -> dict:
    return {
        "title": goal.title,
        "description": goal.description,
        "category": goal.category.value,
        "difficulty": goal.difficulty.value,
        "duration_value": goal.estimated_duration.value,
        "duration_unit": goal.estimated_duration.unit.value,
        "status": goal.status.value,
        "progress": goal.progress,
        "completed_milestones": goal.completed_milestones,
        "milestones": json.dumps([m.model_dump(mode="json") for m in goal.milestones]),
        "tags": json.dumps(goal.tags),
        "started_at": goal.started_at,
        "completed_at": goal.completed_at,
        "created_at": goal.created_at,
        "updated_at": goal.updated_at,
    }


class SqlGoalStore(GoalStore):
    """Goals persisted in the SQLModel goals table."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def load_goal(self, goal_id: UUID) -> GoalModel:
        with self._session_factory() as session:
            row = session.get(Goal, goal_id)
            if row is None:
                raise NotFoundError("goal", goal_id)
            return goal_from_row(row)

    def save_goal(self, goal: GoalModel) -> None:
        updated_at = utcnow()
        values = _row_values(goal) | {"updated_at": updated_at}
        with self._session_factory() as session:
            if goal.version == 0:
                if session.get(Goal, goal.id) is not None:
                    raise ConcurrentUpdateError(goal.id, goal.version)
                session.add(Goal(id=goal.id, version=1, **values))
            else:
                stmt = (
                    update(Goal)
                    .where(Goal.id == goal.id, Goal.version == goal.version)
                    .values(version=goal.version + 1, **values)
                )
                result = session.exec(stmt)
                if result.rowcount != 1:
                    session.rollback()
                    raise ConcurrentUpdateError(goal.id, goal.version)
            session.commit()
        goal.version += 1
        goal.updated_at = updated_at

    def list_goals(self, status=None, limit=DEFAULT_GOALS_PAGE_SIZE, offset=0):
        with self._session_factory() as session:
            total_stmt = select(func.count()).select_from(Goal)
            stmt = select(Goal)
            if status is not None:
                total_stmt = total_stmt.where(Goal.status == status.value)
                stmt = stmt.where(Goal.status == status.value)
            total = session.exec(total_stmt).one()
            stmt = stmt.order_by(Goal.created_at.desc()).limit(limit).offset(offset)
            goals = [goal_from_row(row) for row in session.exec(stmt)]
        return goals, total
