# ABOUTME: SQLModel Goal and ProgressEntry tables and SQLite session factory.
# ABOUTME: get_session yields a session; init_db creates the schema on first use.

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Session, SQLModel, create_engine

from core.config import GOALS_DB_PATH


class Goal(SQLModel, table=True):
    """Persisted goal aggregate; milestones are owned by the row and stored inline."""

    __tablename__ = "goals"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    description: str = ""
    category: str = "other"
    difficulty: str = "beginner"
    duration_value: int
    duration_unit: str
    status: str = Field(default="planning", index=True)
    progress: int = 0
    completed_milestones: int = 0
    milestones: str = "[]"  # JSON array of milestone objects
    tags: str = "[]"  # JSON array of strings
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    version: int = 1
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProgressEntry(SQLModel, table=True):
    """Append-only progress ledger row (study time, milestone completions, ...)."""

    __tablename__ = "progress_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    goal_id: UUID = Field(foreign_key="goals.id", index=True)
    type: str
    value: float
    unit: str
    description: str = ""
    entry_metadata: str = "{}"  # JSON object, e.g. {"milestone_id": "..."}
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


_engine = create_engine(
    f"sqlite:///{GOALS_DB_PATH}",
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    """Create all tables if they do not exist."""
    SQLModel.metadata.create_all(_engine)


@contextmanager
def get_session():
    """Yield an SQLite session for the default engine."""
    init_db()
    with Session(_engine) as session:
        yield session
