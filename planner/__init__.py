# ABOUTME: Milestone planner package; exposes root_agent for adk web/run.
# ABOUTME: Use plan_milestones() from planner.agent to build the milestone list of a new goal.

from planner.agent import generate_milestone_plan, plan_milestones, root_agent

__all__ = ["generate_milestone_plan", "plan_milestones", "root_agent"]
