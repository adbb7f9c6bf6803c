# ABOUTME: Pytest hooks and shared fixtures: goal factories and an in-memory SQLite engine/session factory.
# ABOUTME: Points GOALS_DB_PATH at an in-memory database before core.config loads.

import os
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

# Required before any test imports core.database, so no goals.db file is created.
os.environ.setdefault("GOALS_DB_PATH", ":memory:")
os.environ.setdefault("PLANNER_ENABLED", "false")

from sqlmodel import Session, SQLModel, create_engine  # noqa: E402
from sqlmodel.pool import StaticPool  # noqa: E402

from core import database  # noqa: E402,F401  registers the tables on SQLModel.metadata
from core.schemas import EstimatedDuration, GoalModel, MilestoneModel  # noqa: E402

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def make_goal():
    """Factory: make_goal({"id": "a", "title": "A"}, ..., **goal_fields) -> GoalModel."""

    def _make(*milestones: dict, **fields) -> GoalModel:
        records = []
        for index, data in enumerate(milestones):
            record = {"title": data.get("id", f"m{index}").upper(), "order": index + 1}
            record.update(data)
            records.append(MilestoneModel(**record))
        fields.setdefault("title", "Learn Rust")
        fields.setdefault("estimated_duration", EstimatedDuration(value=8, unit="weeks"))
        return GoalModel(milestones=records, **fields)

    return _make


@pytest.fixture
def chain_goal(make_goal):
    """A (no deps) <- B <- C, orders 1..3."""
    return make_goal(
        {"id": "a", "title": "Syntax basics"},
        {"id": "b", "title": "Ownership", "dependencies": ["a"]},
        {"id": "c", "title": "CLI project", "dependencies": ["b"]},
    )


@pytest.fixture
def in_memory_engine():
    """Engine for in-memory SQLite; one DB per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def fake_get_session(in_memory_engine):
    """Context manager yielding a session on the in-memory engine, shaped like core.database.get_session."""

    @contextmanager
    def _fake():
        with Session(in_memory_engine) as s:
            yield s

    return _fake
