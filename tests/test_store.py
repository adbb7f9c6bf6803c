# ABOUTME: Tests for InMemoryGoalStore and SqlGoalStore (in-memory SQLite via StaticPool).
# ABOUTME: Verifies load/save, copy isolation, optimistic version checks and listing.

from uuid import uuid4

import pytest

from core.exceptions import ConcurrentUpdateError, NotFoundError
from core.schemas import GoalStatus
from tracker.store import InMemoryGoalStore, SqlGoalStore


@pytest.fixture(params=["memory", "sql"])
def store(request, fake_get_session):
    if request.param == "memory":
        return InMemoryGoalStore()
    return SqlGoalStore(session_factory=fake_get_session)


def test_save_then_load_round_trip(store, chain_goal):
    store.save_goal(chain_goal)
    assert chain_goal.version == 1

    loaded = store.load_goal(chain_goal.id)
    assert loaded.id == chain_goal.id
    assert loaded.title == chain_goal.title
    assert loaded.version == 1
    assert [m.id for m in loaded.milestones] == ["a", "b", "c"]
    assert loaded.get_milestone("c").dependencies == ["b"]
    assert loaded.started_at == chain_goal.started_at


def test_load_missing_goal_raises(store):
    with pytest.raises(NotFoundError) as exc:
        store.load_goal(uuid4())
    assert exc.value.kind == "goal"


def test_loads_are_independent_copies(store, chain_goal):
    store.save_goal(chain_goal)
    first = store.load_goal(chain_goal.id)
    first.get_milestone("a").is_completed = True
    second = store.load_goal(chain_goal.id)
    assert second.get_milestone("a").is_completed is False


def test_update_persists_changes_and_bumps_version(store, chain_goal, fixed_now):
    store.save_goal(chain_goal)
    goal = store.load_goal(chain_goal.id)
    milestone = goal.get_milestone("a")
    milestone.is_completed = True
    milestone.completed_at = fixed_now
    goal.progress = 33
    store.save_goal(goal)
    assert goal.version == 2

    reloaded = store.load_goal(chain_goal.id)
    assert reloaded.version == 2
    assert reloaded.progress == 33
    assert reloaded.get_milestone("a").completed_at == fixed_now


def test_stale_save_raises_concurrent_update(store, chain_goal):
    """Two writers load version 1; the second save loses and nothing is overwritten."""
    store.save_goal(chain_goal)
    writer_one = store.load_goal(chain_goal.id)
    writer_two = store.load_goal(chain_goal.id)

    writer_one.progress = 33
    store.save_goal(writer_one)

    writer_two.progress = 67
    with pytest.raises(ConcurrentUpdateError):
        store.save_goal(writer_two)
    assert writer_two.version == 1
    assert store.load_goal(chain_goal.id).progress == 33


def test_inserting_existing_goal_again_conflicts(store, chain_goal):
    store.save_goal(chain_goal)
    duplicate = chain_goal.model_copy(update={"version": 0})
    with pytest.raises(ConcurrentUpdateError):
        store.save_goal(duplicate)


def test_list_goals_filters_and_paginates(store, make_goal):
    for index in range(3):
        store.save_goal(make_goal(title=f"Goal {index}"))
    store.save_goal(make_goal(title="Done", status=GoalStatus.COMPLETED))

    goals, total = store.list_goals(limit=2)
    assert total == 4
    assert len(goals) == 2

    completed, total_completed = store.list_goals(status=GoalStatus.COMPLETED)
    assert total_completed == 1
    assert completed[0].title == "Done"

    rest, _ = store.list_goals(limit=10, offset=3)
    assert len(rest) == 1
