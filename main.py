# ABOUTME: Command-line entry point: create and edit goals, complete milestones, edit dependencies, log study time.
# ABOUTME: Uses the SQLite store and ledger from core.database; prints JSON, exits 1 on domain errors.

import argparse
import json
import logging
import sys
from uuid import UUID

from core.config import DEFAULT_GOALS_PAGE_SIZE, LOG_LEVEL, MAX_GOALS_PAGE_SIZE
from core.exceptions import DependenciesUnmetError, TrackerError
from core.schemas import (
    Difficulty,
    DurationUnit,
    EntryType,
    EntryUnit,
    GoalCategory,
    GoalModel,
    GoalStatus,
    MilestoneType,
)
from planner.agent import plan_milestones
from tracker.dependencies import is_blocked
from tracker.ledger import SqlProgressLedger, generate_insights
from tracker.service import GoalTracker
from tracker.store import SqlGoalStore


def _goal_to_json(goal: GoalModel) -> dict:
    """Serialize a goal with each milestone's derived blocked flag, in display order."""
    data = goal.model_dump(mode="json")
    data["milestones"] = [
        {**m.model_dump(mode="json"), "is_blocked": is_blocked(goal, m.id)}
        for m in goal.ordered_milestones()
    ]
    data["days_remaining"] = goal.days_remaining()
    data["estimated_completion_date"] = goal.estimated_completion_date().isoformat()
    return data


def build_tracker() -> GoalTracker:
    return GoalTracker(SqlGoalStore(), SqlProgressLedger())


def _page_size(raw: str) -> int:
    value = int(raw)
    if not 0 <= value <= MAX_GOALS_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f"limit must be between 0 and {MAX_GOALS_PAGE_SIZE}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track learning goals and their milestones")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a goal with generated milestones")
    create.add_argument("--title", required=True)
    create.add_argument("--description", default="")
    create.add_argument(
        "--category", choices=[c.value for c in GoalCategory], default=GoalCategory.OTHER.value
    )
    create.add_argument("--duration", type=int, required=True, help="Estimated duration value")
    create.add_argument(
        "--unit", choices=[u.value for u in DurationUnit], default=DurationUnit.WEEKS.value
    )
    create.add_argument("--skill", action="append", default=[], help="Key skill (repeatable)")
    create.add_argument("--timeline", default="")
    create.add_argument("--learning-path", default="")
    create.add_argument(
        "--plan",
        action="store_true",
        help="Ask the planner agent for milestones (falls back to skills on failure)",
    )
    create.add_argument(
        "--chain",
        action="store_true",
        help="Make each milestone depend on the previous one",
    )

    show = sub.add_parser("show", help="Show one goal")
    show.add_argument("goal_id", type=UUID)

    list_cmd = sub.add_parser("list", help="List goals, newest first")
    list_cmd.add_argument("--status", choices=[s.value for s in GoalStatus])
    list_cmd.add_argument("--limit", type=_page_size, default=DEFAULT_GOALS_PAGE_SIZE)
    list_cmd.add_argument("--offset", type=int, default=0)

    update = sub.add_parser("update", help="Edit a goal's descriptive fields")
    update.add_argument("goal_id", type=UUID)
    update.add_argument("--title")
    update.add_argument("--description")
    update.add_argument("--category", choices=[c.value for c in GoalCategory])
    update.add_argument("--difficulty", choices=[d.value for d in Difficulty])
    update.add_argument("--duration", type=int, help="Estimated duration value")
    update.add_argument("--unit", choices=[u.value for u in DurationUnit])
    update.add_argument("--tag", action="append", help="Replace tags (repeatable)")

    log = sub.add_parser("log", help="Record study time or another progress entry")
    log.add_argument("goal_id", type=UUID)
    log.add_argument(
        "--type",
        choices=[t.value for t in EntryType if t != EntryType.MILESTONE],
        default=EntryType.STUDY.value,
    )
    log.add_argument("--value", type=float, required=True)
    log.add_argument("--unit", choices=[u.value for u in EntryUnit], default=EntryUnit.MINUTES.value)
    log.add_argument("--description", default="")

    add = sub.add_parser("add", help="Append a milestone to a goal")
    add.add_argument("goal_id", type=UUID)
    add.add_argument("--title", required=True)
    add.add_argument("--description", default="")
    add.add_argument(
        "--type", choices=[t.value for t in MilestoneType], default=MilestoneType.THEORY.value
    )
    add.add_argument("--hours", type=int, default=1)
    add.add_argument("--depends-on", action="append", default=[])

    complete = sub.add_parser("complete", help="Complete a milestone")
    complete.add_argument("goal_id", type=UUID)
    complete.add_argument("milestone_id")

    deps = sub.add_parser("deps", help="Replace a milestone's dependencies")
    deps.add_argument("goal_id", type=UUID)
    deps.add_argument("milestone_id")
    deps.add_argument("dependency_ids", nargs="*")

    blocked = sub.add_parser("blocked", help="Check whether a milestone is blocked")
    blocked.add_argument("goal_id", type=UUID)
    blocked.add_argument("milestone_id")

    recompute = sub.add_parser("recompute", help="Recompute goal progress and status")
    recompute.add_argument("goal_id", type=UUID)

    metrics = sub.add_parser("metrics", help="Show study streaks, velocity and insights")
    metrics.add_argument("goal_id", type=UUID)
    return parser


def _goal_changes(args: argparse.Namespace, tracker: GoalTracker) -> dict:
    changes = {
        name: getattr(args, name)
        for name in ("title", "description", "category", "difficulty")
        if getattr(args, name) is not None
    }
    if args.tag is not None:
        changes["tags"] = args.tag
    if args.unit is not None and args.duration is None:
        raise ValueError("--unit needs --duration")
    if args.duration is not None:
        unit = args.unit or tracker.get_goal(args.goal_id).estimated_duration.unit.value
        changes["estimated_duration"] = {"value": args.duration, "unit": unit}
    return changes


def run(args: argparse.Namespace, tracker: GoalTracker) -> dict:
    """Execute one parsed command and return its JSON-serializable result."""
    if args.command == "create":
        milestones = plan_milestones(
            args.title,
            timeline=args.timeline,
            learning_path=args.learning_path,
            key_skills=args.skill,
            use_agent=True if args.plan else None,
        )
        goal = tracker.create_goal(
            title=args.title,
            description=args.description,
            category=args.category,
            estimated_duration={"value": args.duration, "unit": args.unit},
            milestones=milestones,
            chain_dependencies=args.chain,
        )
        return _goal_to_json(goal)
    if args.command == "show":
        return _goal_to_json(tracker.get_goal(args.goal_id))
    if args.command == "list":
        status = GoalStatus(args.status) if args.status else None
        goals, total = tracker.list_goals(status=status, limit=args.limit, offset=args.offset)
        return {"goals": [_goal_to_json(g) for g in goals], "total": total}
    if args.command == "update":
        return _goal_to_json(tracker.update_goal(args.goal_id, **_goal_changes(args, tracker)))
    if args.command == "log":
        entry = tracker.record_entry(
            args.goal_id,
            type=args.type,
            value=args.value,
            unit=args.unit,
            description=args.description,
        )
        return entry.model_dump(mode="json")
    if args.command == "add":
        goal = tracker.add_milestone(
            args.goal_id,
            {
                "title": args.title,
                "description": args.description,
                "type": args.type,
                "estimated_hours": args.hours,
                "dependencies": args.depends_on,
            },
        )
        return _goal_to_json(goal)
    if args.command == "complete":
        return _goal_to_json(tracker.complete_milestone(args.goal_id, args.milestone_id))
    if args.command == "deps":
        milestone = tracker.set_dependencies(args.goal_id, args.milestone_id, args.dependency_ids)
        return milestone.model_dump(mode="json")
    if args.command == "blocked":
        return {
            "milestone_id": args.milestone_id,
            "is_blocked": tracker.is_blocked(args.goal_id, args.milestone_id),
        }
    if args.command == "recompute":
        return _goal_to_json(tracker.recompute_progress(args.goal_id))
    if args.command == "metrics":
        metrics = tracker.metrics(args.goal_id)
        return {
            "metrics": metrics.to_dict(),
            "insights": [vars(i) for i in generate_insights(metrics)],
        }
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None, tracker: GoalTracker | None = None) -> int:
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    try:
        result = run(args, tracker or build_tracker())
    except DependenciesUnmetError as e:
        print(
            json.dumps({"message": str(e), "unmet": [vars(d) for d in e.unmet]}),
            file=sys.stderr,
        )
        return 1
    except (TrackerError, ValueError) as e:
        print(json.dumps({"message": str(e)}), file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
