# ABOUTME: Pydantic models for goals, milestones, ledger entries and the planner output contract.
# ABOUTME: Raw records (including camelCase legacy shapes) are normalized here once, at parse time.

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from core.config import MAX_PLANNED_MILESTONES, MIN_PLANNED_MILESTONES


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_milestone_id() -> str:
    return uuid4().hex


class GoalStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneType(str, Enum):
    THEORY = "theory"
    PRACTICE = "practice"
    PROJECT = "project"
    ASSESSMENT = "assessment"


class DurationUnit(str, Enum):
    WEEKS = "weeks"
    MONTHS = "months"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class GoalCategory(str, Enum):
    TECHNOLOGY = "technology"
    BUSINESS = "business"
    DESIGN = "design"
    MARKETING = "marketing"
    DATA_SCIENCE = "data-science"
    PROGRAMMING = "programming"
    LANGUAGE = "language"
    HEALTH = "health"
    FINANCE = "finance"
    CREATIVE = "creative"
    EDUCATION = "education"
    CAREER = "career"
    PERSONAL_DEVELOPMENT = "personal-development"
    OTHER = "other"


class ResourceType(str, Enum):
    VIDEO = "video"
    ARTICLE = "article"
    BOOK = "book"
    COURSE = "course"
    TOOL = "tool"


class EstimatedDuration(BaseModel):
    value: int = Field(ge=1, le=52)
    unit: DurationUnit

    @property
    def days(self) -> int:
        return self.value * (7 if self.unit == DurationUnit.WEEKS else 30)


class Resource(BaseModel):
    title: str
    url: str = ""
    type: ResourceType = ResourceType.ARTICLE


class MilestoneModel(BaseModel):
    """One ordered step of a goal. isBlocked is derived by the engine, never stored."""

    id: str = Field(
        default_factory=new_milestone_id,
        validation_alias=AliasChoices("id", "_id"),
    )
    title: str = Field(min_length=1)
    description: str = ""
    type: MilestoneType = MilestoneType.THEORY
    estimated_hours: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("estimated_hours", "estimatedDuration"),
    )
    order: int = 0
    dependencies: list[str] = Field(default_factory=list)
    is_completed: bool = Field(
        default=False, validation_alias=AliasChoices("is_completed", "isCompleted")
    )
    completed_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("completed_at", "completedAt")
    )
    resources: list[Resource] = Field(default_factory=list)
    learning_objectives: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("learning_objectives", "learningObjectives"),
    )
    assessment_criteria: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assessment_criteria", "assessmentCriteria"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        if value is None or value == "":
            return new_milestone_id()
        return str(value)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _normalize_dependencies(cls, value):
        if value is None:
            return []
        seen: list[str] = []
        for dep in value:
            dep_id = str(dep)
            if dep_id not in seen:
                seen.append(dep_id)
        return seen


class GoalModel(BaseModel):
    """A learning goal and the milestones it exclusively owns.

    progress, completed_milestones and the completed status are derived by
    tracker.progress.recompute_progress; callers should not set them.
    version is the storage concurrency token (0 means never saved).
    """

    id: UUID = Field(default_factory=uuid4, validation_alias=AliasChoices("id", "_id"))
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    category: GoalCategory = GoalCategory.OTHER
    difficulty: Difficulty = Difficulty.BEGINNER
    estimated_duration: EstimatedDuration = Field(
        validation_alias=AliasChoices("estimated_duration", "estimatedDuration"),
    )
    status: GoalStatus = GoalStatus.PLANNING
    progress: int = Field(default=0, ge=0, le=100)
    completed_milestones: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("completed_milestones", "completedMilestones"),
    )
    milestones: list[MilestoneModel] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    started_at: datetime = Field(
        default_factory=utcnow, validation_alias=AliasChoices("started_at", "startedAt")
    )
    completed_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("completed_at", "completedAt")
    )
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(
        default_factory=utcnow, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: datetime = Field(
        default_factory=utcnow, validation_alias=AliasChoices("updated_at", "updatedAt")
    )

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_milestone_ids(self):
        seen: set[str] = set()
        for milestone in self.milestones:
            if milestone.id in seen:
                raise ValueError(f"Duplicate milestone id: {milestone.id}")
            seen.add(milestone.id)
            if milestone.id in milestone.dependencies:
                raise ValueError(f"Milestone cannot depend on itself: {milestone.id}")
        return self

    @property
    def total_milestones(self) -> int:
        return len(self.milestones)

    def get_milestone(self, milestone_id: str) -> MilestoneModel | None:
        for milestone in self.milestones:
            if milestone.id == milestone_id:
                return milestone
        return None

    def ordered_milestones(self) -> list[MilestoneModel]:
        return sorted(self.milestones, key=lambda m: m.order)

    def estimated_completion_date(self) -> datetime:
        """completed_at once completed, else started_at plus the estimated duration."""
        if self.status == GoalStatus.COMPLETED and self.completed_at is not None:
            return self.completed_at
        return self.started_at + timedelta(days=self.estimated_duration.days)

    def days_remaining(self, now: datetime | None = None) -> int:
        if self.status == GoalStatus.COMPLETED:
            return 0
        now = now or utcnow()
        remaining = self.estimated_completion_date() - now
        return max(0, math.ceil(remaining.total_seconds() / 86400))


class EntryType(str, Enum):
    STUDY = "study"
    PRACTICE = "practice"
    CHECKIN = "checkin"
    TUTOR = "tutor"
    MILESTONE = "milestone"


class EntryUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    PERCENT = "percent"
    COUNT = "count"


class LedgerEntry(BaseModel):
    """One append-only progress ledger event."""

    goal_id: UUID
    type: EntryType
    value: float = Field(ge=0)
    unit: EntryUnit
    description: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    date: datetime = Field(default_factory=utcnow)

    @property
    def minutes(self) -> float:
        """Study time in minutes, 0 for non-time units."""
        if self.unit == EntryUnit.MINUTES:
            return self.value
        if self.unit == EntryUnit.HOURS:
            return self.value * 60
        return 0.0


class PlannedMilestone(BaseModel):
    """One milestone as produced by the planner agent."""

    title: str = Field(description="Short milestone title.")
    description: str = Field(description="What the learner does in this milestone.")
    type: MilestoneType = Field(
        description="One of theory, practice, project, assessment."
    )
    estimated_hours: int = Field(description="Estimated effort in hours.", ge=1, le=168)
    order: int = Field(description="Position in the plan, starting at 0.", ge=0)
    learning_objectives: list[str] = Field(default_factory=list)
    assessment_criteria: list[str] = Field(default_factory=list)


class MilestonePlan(BaseModel):
    """Structured output from the milestone planner agent."""

    milestones: list[PlannedMilestone] = Field(
        description=f"{MIN_PLANNED_MILESTONES} to {MAX_PLANNED_MILESTONES} milestones in learning order.",
        min_length=MIN_PLANNED_MILESTONES,
        max_length=MAX_PLANNED_MILESTONES,
    )
