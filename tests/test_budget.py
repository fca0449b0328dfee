from feedsync.logic.budget import SAFETY_MARGIN_SECONDS, ExecutionBudget, remaining

from conftest import Clock


def test_remaining_respects_margin():
    assert remaining(0, 300, now=290)
    assert not remaining(0, 300, now=291)
    assert remaining(0, 300, margin=0, now=300)


def test_budget_tracks_elapsed_time():
    clock = Clock(1000.0)
    budget = ExecutionBudget(60, clock=clock)
    budget.start()

    clock.advance(30)
    assert budget.elapsed() == 30
    assert budget.remaining()

    clock.advance(60 - SAFETY_MARGIN_SECONDS - 30 + 1)
    assert not budget.remaining()


def test_budget_starts_lazily():
    clock = Clock(50.0)
    budget = ExecutionBudget(10, margin=0, clock=clock)
    assert budget.elapsed() == 0.0
    assert budget.remaining()
    assert budget.start_time == 50.0
