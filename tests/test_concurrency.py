import pytest

from skipguard.decision.concurrency import detect_concurrent_run
from skipguard.decision.types import Reason
from skipguard.model import ConcurrentSkipping

from fakes import actions_run, make_registry


def _running(id, **kwargs):
    return actions_run(id, status="in_progress", **kwargs)


def test_never_does_not_look():
    registry = make_registry(_running(2, minutes=2), [_running(1, minutes=1)])
    assert not detect_concurrent_run(registry, ConcurrentSkipping.never).conclusive


def test_always_skips_for_any_running_run():
    registry = make_registry(
        _running(2, minutes=2),
        [_running(1, minutes=1, tree="tree-other"), actions_run(0)],
    )
    outcome = detect_concurrent_run(registry, ConcurrentSkipping.always)
    assert outcome.decision.should_skip
    assert outcome.decision.reason == Reason.concurrent_skipping
    assert outcome.decision.skipped_by.id == 1


@pytest.mark.parametrize("policy", list(ConcurrentSkipping))
def test_completed_runs_are_not_concurrent(policy):
    registry = make_registry(_running(2, minutes=2), [actions_run(1, minutes=1)])
    assert not detect_concurrent_run(registry, policy).conclusive


def test_outdated_runs():
    older = make_registry(_running(2, minutes=2), [_running(1, minutes=1)])
    assert not detect_concurrent_run(older, ConcurrentSkipping.outdated_runs).conclusive

    newer = make_registry(_running(2, minutes=2), [_running(3, minutes=3)])
    outcome = detect_concurrent_run(newer, ConcurrentSkipping.outdated_runs)
    assert outcome.decision.skipped_by.id == 3


def test_same_content():
    registry = make_registry(
        _running(2, minutes=2),
        [_running(1, minutes=1, tree="tree-other"), _running(3, minutes=3)],
    )
    outcome = detect_concurrent_run(registry, ConcurrentSkipping.same_content)
    assert outcome.decision.skipped_by.id == 3

    registry = make_registry(
        _running(2, minutes=2), [_running(1, minutes=1, tree="tree-other")]
    )
    assert not detect_concurrent_run(registry, ConcurrentSkipping.same_content).conclusive


def test_same_content_newer_lets_the_lower_run_number_proceed():
    first = _running(100, run_number=7, minutes=1)
    second = _running(101, run_number=8, minutes=1)

    registry_first = make_registry(first, [second])
    registry_second = make_registry(second, [first])

    policy = ConcurrentSkipping.same_content_newer
    assert not detect_concurrent_run(registry_first, policy).conclusive
    outcome = detect_concurrent_run(registry_second, policy)
    assert outcome.decision.should_skip
    assert outcome.decision.skipped_by.id == 100

    # plain same_content lets both skip
    assert detect_concurrent_run(registry_first, ConcurrentSkipping.same_content).conclusive
    assert detect_concurrent_run(registry_second, ConcurrentSkipping.same_content).conclusive


def test_same_content_newer_ignores_other_content():
    registry = make_registry(
        _running(2, minutes=2), [_running(1, minutes=1, tree="tree-other")]
    )
    policy = ConcurrentSkipping.same_content_newer
    assert not detect_concurrent_run(registry, policy).conclusive
