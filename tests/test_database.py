# ABOUTME: Pytest tests for the Goal and ProgressEntry SQLModel tables on in-memory SQLite.
# ABOUTME: Verifies create, save and read of rows plus the JSON milestone column.

import json
from uuid import uuid4

import pytest
from sqlmodel import Session, select

from core.database import Goal, ProgressEntry


@pytest.fixture
def session(in_memory_engine):
    """Yield a session that uses the in-memory engine."""
    with Session(in_memory_engine) as session:
        yield session


def test_goal_create_save_and_retrieve(session):
    """Create a Goal row, save it, and read it back from the DB."""
    goal_id = uuid4()
    milestones = [{"id": "a", "title": "Basics", "dependencies": []}]
    goal = Goal(
        id=goal_id,
        title="Learn Rust",
        description="Systems programming",
        category="programming",
        duration_value=8,
        duration_unit="weeks",
        milestones=json.dumps(milestones),
    )
    session.add(goal)
    session.commit()
    session.refresh(goal)

    read = session.get(Goal, goal_id)
    assert read is not None
    assert read.title == "Learn Rust"
    assert read.status == "planning"
    assert read.progress == 0
    assert read.version == 1
    assert json.loads(read.milestones) == milestones


def test_progress_entries_for_goal(session):
    goal_id = uuid4()
    session.add(Goal(id=goal_id, title="Learn Go", duration_value=2, duration_unit="months"))
    session.add(
        ProgressEntry(
            goal_id=goal_id,
            type="milestone",
            value=1,
            unit="count",
            entry_metadata=json.dumps({"milestone_id": "a"}),
        )
    )
    session.commit()

    rows = list(session.exec(select(ProgressEntry).where(ProgressEntry.goal_id == goal_id)))
    assert len(rows) == 1
    assert rows[0].id is not None
    assert json.loads(rows[0].entry_metadata) == {"milestone_id": "a"}
