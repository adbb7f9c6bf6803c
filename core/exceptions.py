# ABOUTME: Typed exceptions raised by the milestone engine, goal store and tracker service.
# ABOUTME: Callers catch these by kind; the engine never swallows or retries them.

from dataclasses import dataclass


class TrackerError(Exception):
    """Base class for all goal-tracker errors."""


class MilestoneError(TrackerError):
    """A milestone operation was refused."""


class NotFoundError(MilestoneError):
    """A referenced goal or milestone id does not exist."""

    def __init__(self, kind: str, item_id: object):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind.capitalize()} not found: {item_id}")


class AlreadyCompletedError(MilestoneError):
    """The milestone was already completed; nothing changed."""

    def __init__(self, milestone_id: str):
        self.milestone_id = milestone_id
        super().__init__(f"Milestone is already completed: {milestone_id}")


@dataclass(frozen=True)
class UnmetDependency:
    """A direct prerequisite that is not completed. title is None for a dangling id."""

    id: str
    title: str | None = None

    @property
    def label(self) -> str:
        return self.title or self.id


class DependenciesUnmetError(MilestoneError):
    """Completion is blocked by incomplete prerequisites."""

    def __init__(self, milestone_id: str, unmet: list[UnmetDependency]):
        self.milestone_id = milestone_id
        self.unmet = list(unmet)
        labels = ", ".join(dep.label for dep in self.unmet)
        super().__init__(f"Cannot complete milestone. Unmet dependencies: {labels}")

    @property
    def unmet_ids(self) -> list[str]:
        return [dep.id for dep in self.unmet]


class DependencyValidationError(TrackerError, ValueError):
    """A dependency edit was rejected; the milestone is left unchanged."""


class SelfReferenceError(DependencyValidationError):
    def __init__(self, milestone_id: str):
        self.milestone_id = milestone_id
        super().__init__(f"Milestone cannot depend on itself: {milestone_id}")


class UnknownDependencyError(DependencyValidationError):
    def __init__(self, ids: list[str]):
        self.ids = list(ids)
        super().__init__(f"Unknown dependency ids: {', '.join(self.ids)}")


class CycleDetectedError(DependencyValidationError):
    def __init__(self, ids: list[str]):
        self.ids = list(ids)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.ids)}")


class ConcurrentUpdateError(TrackerError):
    """The stored goal changed since it was loaded (version mismatch)."""

    def __init__(self, goal_id: object, expected_version: int):
        self.goal_id = goal_id
        self.expected_version = expected_version
        super().__init__(
            f"Goal {goal_id} was modified concurrently (expected version {expected_version})"
        )
