# ABOUTME: Tests for the pydantic normalization boundary in core.schemas.
# ABOUTME: Legacy camelCase records, id/dependency cleanup, validation failures and derived dates.

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from core.schemas import (
    EstimatedDuration,
    GoalModel,
    GoalStatus,
    LedgerEntry,
    MilestoneModel,
    MilestonePlan,
    MilestoneType,
)


def test_milestone_accepts_legacy_camel_case_record():
    """Raw records from the old client shape normalize into snake_case fields."""
    milestone = MilestoneModel.model_validate(
        {
            "_id": 42,
            "title": "  Closures ",
            "description": "Learn closures",
            "type": "practice",
            "estimatedDuration": 12,
            "order": 3,
            "dependencies": [7, "7", "8"],
            "isCompleted": True,
            "completedAt": "2026-01-05T10:00:00+00:00",
            "learningObjectives": ["Capture variables"],
            "assessmentCriteria": ["Write a counter"],
        }
    )
    assert milestone.id == "42"
    assert milestone.title == "Closures"
    assert milestone.type == MilestoneType.PRACTICE
    assert milestone.estimated_hours == 12
    assert milestone.dependencies == ["7", "8"]
    assert milestone.is_completed is True
    assert milestone.completed_at == datetime(2026, 1, 5, 10, tzinfo=timezone.utc)
    assert milestone.learning_objectives == ["Capture variables"]


def test_milestone_defaults():
    milestone = MilestoneModel(title="Intro")
    assert milestone.id
    assert milestone.type == MilestoneType.THEORY
    assert milestone.dependencies == []
    assert milestone.is_completed is False
    assert milestone.completed_at is None


def test_milestone_rejects_unknown_type():
    with pytest.raises(ValidationError):
        MilestoneModel(title="Intro", type="lecture")


def test_goal_rejects_duplicate_milestone_ids(make_goal):
    with pytest.raises(ValidationError) as exc:
        make_goal({"id": "a"}, {"id": "a"})
    assert "Duplicate milestone id" in str(exc.value)


def test_goal_rejects_self_dependency(make_goal):
    with pytest.raises(ValidationError):
        make_goal({"id": "a", "dependencies": ["a"]})


def test_goal_validates_title_and_duration():
    with pytest.raises(ValidationError):
        GoalModel(title="", estimated_duration={"value": 4, "unit": "weeks"})
    with pytest.raises(ValidationError):
        GoalModel(title="Rust", estimated_duration={"value": 0, "unit": "weeks"})
    with pytest.raises(ValidationError):
        GoalModel(title="Rust", estimated_duration={"value": 4, "unit": "days"})


def test_goal_defaults(make_goal):
    goal = make_goal()
    assert goal.status == GoalStatus.PLANNING
    assert goal.progress == 0
    assert goal.version == 0
    assert goal.total_milestones == 0


def test_ordered_milestones_uses_order_field(make_goal):
    goal = make_goal({"id": "x", "order": 3}, {"id": "y", "order": 1}, {"id": "z", "order": 2})
    assert [m.id for m in goal.milestones] == ["x", "y", "z"]
    assert [m.id for m in goal.ordered_milestones()] == ["y", "z", "x"]


def test_estimated_completion_date_weeks_and_months(make_goal):
    started = datetime(2026, 1, 1, tzinfo=timezone.utc)
    weeks = make_goal(started_at=started, estimated_duration=EstimatedDuration(value=2, unit="weeks"))
    months = make_goal(started_at=started, estimated_duration=EstimatedDuration(value=2, unit="months"))
    assert weeks.estimated_completion_date() == started + timedelta(days=14)
    assert months.estimated_completion_date() == started + timedelta(days=60)


def test_days_remaining(make_goal):
    started = datetime(2026, 1, 1, tzinfo=timezone.utc)
    goal = make_goal(started_at=started, estimated_duration=EstimatedDuration(value=1, unit="weeks"))
    assert goal.days_remaining(now=started + timedelta(days=2, hours=12)) == 5
    assert goal.days_remaining(now=started + timedelta(days=30)) == 0

    goal.status = GoalStatus.COMPLETED
    assert goal.days_remaining(now=started) == 0


def test_goal_json_round_trip_preserves_milestones(chain_goal):
    restored = GoalModel.model_validate_json(chain_goal.model_dump_json())
    assert restored == chain_goal


def test_ledger_entry_minutes():
    goal_id = GoalModel(title="x", estimated_duration={"value": 1, "unit": "weeks"}).id
    assert LedgerEntry(goal_id=goal_id, type="study", value=90, unit="minutes").minutes == 90
    assert LedgerEntry(goal_id=goal_id, type="study", value=1.5, unit="hours").minutes == 90
    assert LedgerEntry(goal_id=goal_id, type="milestone", value=1, unit="count").minutes == 0


def test_milestone_plan_enforces_size():
    item = {
        "title": "Step",
        "description": "Do it",
        "type": "theory",
        "estimated_hours": 4,
        "order": 0,
    }
    with pytest.raises(ValidationError):
        MilestonePlan.model_validate({"milestones": [item] * 3})
    plan = MilestonePlan.model_validate({"milestones": [item] * 6})
    assert len(plan.milestones) == 6
