# ABOUTME: Planner run telemetry: token usage, per-model cost and plan shape, one JSON line per run on stderr.
# ABOUTME: Covers both agent runs and skill-based fallback plans so fallback rates show up next to agent cost.

import sys
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field, field_serializer

from core.schemas import PlannedMilestone, utcnow

# USD per 1M tokens (input, output).
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gemini-2.5-flash": (0.30, 2.50),
    "gemini-2.5-flash-lite": (0.10, 0.40),
    "gemini-2.5-pro": (1.25, 10.00),
}


def estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int) -> float | None:
    """Cost of one run, or None for a model without a price entry."""
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        return None
    input_per_1m, output_per_1m = pricing
    return (prompt_tokens * input_per_1m + completion_tokens * output_per_1m) / 1_000_000


class PlanSource(str, Enum):
    AGENT = "agent"
    FALLBACK = "fallback"


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def add(self, usage_metadata) -> None:
        """Accumulate counts from a google.genai usage metadata object."""
        if usage_metadata is None:
            return
        self.prompt_tokens += getattr(usage_metadata, "prompt_token_count", 0) or 0
        self.completion_tokens += getattr(usage_metadata, "candidates_token_count", 0) or 0


class PlannerRun(BaseModel):
    """One milestone planning attempt."""

    timestamp: datetime = Field(default_factory=utcnow)
    source: PlanSource
    model: str | None = None
    latency_ms: float = 0.0
    usage: TokenUsage = Field(default_factory=TokenUsage)
    milestone_count: int = 0
    planned_hours: int = 0
    error: str | None = None
    fallback_reason: str | None = None

    @field_serializer("latency_ms")
    def _round_latency(self, value: float) -> float:
        return round(value, 2)

    @computed_field
    @property
    def estimated_cost_usd(self) -> float | None:
        if self.model is None:
            return None
        return estimate_cost_usd(
            self.model, self.usage.prompt_tokens, self.usage.completion_tokens
        )

    @computed_field
    @property
    def success(self) -> bool:
        return self.error is None

    def with_milestones(self, milestones: list[PlannedMilestone]) -> "PlannerRun":
        """Copy with the plan shape filled in."""
        return self.model_copy(
            update={
                "milestone_count": len(milestones),
                "planned_hours": sum(m.estimated_hours for m in milestones),
            }
        )


def log_planner_run(run: PlannerRun) -> None:
    """Print the run as a single JSON line to stderr; stdout carries command output."""
    print(run.model_dump_json(), file=sys.stderr, flush=True)
