# ABOUTME: Append-only progress ledger (study time, milestone completions) and its metric aggregation.
# ABOUTME: The tracker feeds it best-effort; streaks, velocity and weekly progress are derived from entries.

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

from sqlmodel import select

from core.config import DEFAULT_WEEKLY_TARGET_HOURS
from core.database import ProgressEntry, get_session
from core.schemas import (
    EntryType,
    EntryUnit,
    GoalModel,
    LedgerEntry,
    MilestoneModel,
    utcnow,
)

STREAK_ACHIEVEMENT_DAYS = 7
WEEKLY_WARNING_PERCENT = 50
SHORT_SESSION_MINUTES = 30
VELOCITY_WINDOW_DAYS = 7


class ProgressLedger(ABC):
    @abstractmethod
    def append(self, entry: LedgerEntry) -> None:
        """Record one entry. Entries are never updated or deleted."""

    @abstractmethod
    def entries(self, goal_id: UUID) -> list[LedgerEntry]:
        """All entries for the goal, oldest first."""


class InMemoryProgressLedger(ProgressLedger):
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: list[LedgerEntry] = []

    def append(self, entry: LedgerEntry) -> None:
        with self._lock:
            self._entries.append(entry.model_copy(deep=True))

    def entries(self, goal_id: UUID) -> list[LedgerEntry]:
        with self._lock:
            found = [e.model_copy(deep=True) for e in self._entries if e.goal_id == goal_id]
        return sorted(found, key=lambda e: e.date)


class SqlProgressLedger(ProgressLedger):
    """Ledger persisted in the progress_entries table."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def append(self, entry: LedgerEntry) -> None:
        with self._session_factory() as session:
            session.add(
                ProgressEntry(
                    goal_id=entry.goal_id,
                    type=entry.type.value,
                    value=entry.value,
                    unit=entry.unit.value,
                    description=entry.description,
                    entry_metadata=json.dumps(entry.metadata),
                    date=entry.date,
                )
            )
            session.commit()

    def entries(self, goal_id: UUID) -> list[LedgerEntry]:
        with self._session_factory() as session:
            stmt = (
                select(ProgressEntry)
                .where(ProgressEntry.goal_id == goal_id)
                .order_by(ProgressEntry.date, ProgressEntry.id)
            )
            rows = list(session.exec(stmt))
        return [
            LedgerEntry(
                goal_id=row.goal_id,
                type=row.type,
                value=row.value,
                unit=row.unit,
                description=row.description,
                metadata=json.loads(row.entry_metadata) if row.entry_metadata else {},
                date=row.date if row.date.tzinfo else row.date.replace(tzinfo=timezone.utc),
            )
            for row in rows
        ]


def milestone_completed_entry(
    goal: GoalModel, milestone: MilestoneModel, now: datetime | None = None
) -> LedgerEntry:
    """The ledger event emitted after a successful milestone completion."""
    return LedgerEntry(
        goal_id=goal.id,
        type=EntryType.MILESTONE,
        value=1,
        unit=EntryUnit.COUNT,
        description=f"Milestone completed: {milestone.title}",
        metadata={"milestone_id": milestone.id},
        date=now or milestone.completed_at or utcnow(),
    )


@dataclass
class LedgerMetrics:
    total_study_minutes: float = 0.0
    average_session_minutes: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    last_activity: date | None = None
    learning_velocity: float = 0.0
    week: str = ""
    weekly_hours: float = 0.0
    weekly_target_hours: float = DEFAULT_WEEKLY_TARGET_HOURS
    weekly_progress_percentage: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_activity"] = self.last_activity.isoformat() if self.last_activity else None
        return data


@dataclass
class Insight:
    type: str  # achievement, warning, suggestion
    title: str
    description: str
    data: dict


def iso_week(day: date) -> str:
    """YYYY-Www label for the ISO week containing day."""
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def _streaks(study_days: set[date], today: date) -> tuple[int, int]:
    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(study_days):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day

    # The current streak stays alive until a full day is missed.
    cursor = today if today in study_days else today - timedelta(days=1)
    current = 0
    while cursor in study_days:
        current += 1
        cursor -= timedelta(days=1)
    return current, longest


def summarize(
    entries: list[LedgerEntry],
    today: date | None = None,
    weekly_target_hours: float = DEFAULT_WEEKLY_TARGET_HOURS,
) -> LedgerMetrics:
    """Aggregate ledger entries into study, streak, velocity and weekly metrics."""
    today = today or utcnow().date()
    study = [e for e in entries if e.type == EntryType.STUDY and e.minutes > 0]
    total_minutes = sum(e.minutes for e in study)
    study_days = {e.date.date() for e in study}
    current, longest = _streaks(study_days, today)

    window_start = today - timedelta(days=VELOCITY_WINDOW_DAYS)
    recent_minutes = sum(e.minutes for e in study if e.date.date() >= window_start)
    recent_milestones = sum(
        e.value
        for e in entries
        if e.type == EntryType.MILESTONE and e.date.date() >= window_start
    )
    velocity = (recent_milestones / recent_minutes) * 60 if recent_minutes > 0 else 0.0

    week = iso_week(today)
    weekly_hours = sum(e.minutes for e in study if iso_week(e.date.date()) == week) / 60
    weekly_pct = (
        min(100, round(weekly_hours / weekly_target_hours * 100))
        if weekly_target_hours > 0
        else 0
    )

    return LedgerMetrics(
        total_study_minutes=total_minutes,
        average_session_minutes=total_minutes / len(study) if study else 0.0,
        current_streak=current,
        longest_streak=longest,
        last_activity=max(study_days) if study_days else None,
        learning_velocity=round(velocity, 4),
        week=week,
        weekly_hours=round(weekly_hours, 2),
        weekly_target_hours=weekly_target_hours,
        weekly_progress_percentage=weekly_pct,
    )


def generate_insights(metrics: LedgerMetrics) -> list[Insight]:
    insights = []
    if metrics.current_streak >= STREAK_ACHIEVEMENT_DAYS:
        insights.append(
            Insight(
                type="achievement",
                title=f"{STREAK_ACHIEVEMENT_DAYS}-Day Learning Streak!",
                description=f"You've been consistent for {metrics.current_streak} days. Keep it up!",
                data={"streak": metrics.current_streak},
            )
        )
    if metrics.weekly_progress_percentage < WEEKLY_WARNING_PERCENT:
        insights.append(
            Insight(
                type="warning",
                title="Behind on Weekly Goal",
                description=(
                    f"You're at {metrics.weekly_progress_percentage}% of your weekly target. "
                    "Consider adjusting your schedule."
                ),
                data={"percentage": metrics.weekly_progress_percentage},
            )
        )
    if metrics.average_session_minutes < SHORT_SESSION_MINUTES:
        insights.append(
            Insight(
                type="suggestion",
                title="Consider Longer Sessions",
                description=(
                    "Your average session is quite short. "
                    "Longer sessions might help with deeper learning."
                ),
                data={"average_duration": metrics.average_session_minutes},
            )
        )
    return insights
