import asyncio

import pytest

from ghclone.core.dispatcher import Dispatcher
from ghclone.core.errors import CancellationError, PreconditionError
from ghclone.core.events import EventKind
from ghclone.core.types import Outcome, OutcomeKind

from conftest import FakeGit, record, settle


def _names(events, kind):
    return [e.payload["name"] for e in events if e.kind == kind]


class InvariantSink:
    """Event sink that checks the run accounting every time the dispatcher reports."""

    def __init__(self):
        self.events = []
        self.dispatcher = None
        self.max_active = 0

    def __call__(self, event):
        self.events.append(event)
        state = self.dispatcher.state if self.dispatcher else None
        if state is None:
            return
        assert 0 <= state.active <= state.max_parallel
        assert len(state.results) + len(state.pending) + state.active == state.total
        self.max_active = max(self.max_active, state.active)


def _dispatcher(git, sink):
    d = Dispatcher(git.clone, git.has_checkout, sink)
    if isinstance(sink, InvariantSink):
        sink.dispatcher = d
    return d


def test_two_slots_three_repos():
    git = FakeGit()
    sink = InvariantSink()

    async def go():
        d = _dispatcher(git, sink)
        handle = d.start([record("a"), record("b"), record("c")], 2, "/dest")
        assert _names(sink.events, EventKind.job_started) == ["a", "b"]
        assert handle.state.active == 2
        assert [r.name for r in handle.state.pending] == ["c"]

        await settle()
        assert git.started == ["a", "b"]
        git.finish("b", Outcome.failed("fatal: nope"))
        await settle()
        assert _names(sink.events, EventKind.job_started) == ["a", "b", "c"]
        assert handle.state.active == 2
        assert not handle.state.pending

        git.finish("a")
        git.finish("c")
        return await handle.wait()

    summary = asyncio.run(go())
    assert summary.total == 3
    assert (summary.cloned, summary.skipped, summary.failed) == (2, 0, 1)
    assert summary.failures == [("b", "fatal: nope")]
    assert sink.max_active == 2
    assert sink.events[-1].kind == EventKind.run_completed


def test_launch_order_is_listing_order_and_parallelism_is_bounded():
    names = [f"r{i}" for i in range(12)]
    outcomes = {n: Outcome.failed("x") for n in names[::3]}
    git = FakeGit(auto=outcomes)
    sink = InvariantSink()

    async def go():
        d = _dispatcher(git, sink)
        return await d.start([record(n) for n in names], 3, "/dest").wait()

    summary = asyncio.run(go())
    assert _names(sink.events, EventKind.job_started) == names
    assert summary.cloned + summary.skipped + summary.failed == summary.total == 12
    assert summary.failed == 4
    assert sink.max_active == 3


def test_existing_checkout_is_skipped_without_a_process():
    git = FakeGit(existing={"d"})
    sink = InvariantSink()

    async def go():
        d = _dispatcher(git, sink)
        handle = d.start([record("d"), record("e")], 1, "/dest")
        # d never took the single slot, so e launched right away
        assert handle.state.results == {"d": Outcome.skipped()}
        assert handle.state.active == 1
        await settle()
        git.finish("e")
        return await handle.wait()

    summary = asyncio.run(go())
    assert "d" not in git.started
    assert _names(sink.events, EventKind.job_skipped) == ["d"]
    assert _names(sink.events, EventKind.job_started) == ["e"]
    assert (summary.cloned, summary.skipped, summary.failed) == (1, 1, 0)


def test_all_skipped_completes_without_launching():
    git = FakeGit(existing={"a", "b"})

    async def go():
        d = Dispatcher(git.clone, git.has_checkout, lambda e: None)
        return await d.start([record("a"), record("b")], 4, "/dest").wait()

    summary = asyncio.run(go())
    assert summary.skipped == 2
    assert git.started == []


def test_empty_run_completes_immediately(events):
    async def go():
        d = Dispatcher(FakeGit().clone, lambda p: False, events.append)
        return await d.start([], 2, "/dest").wait()

    summary = asyncio.run(go())
    assert summary.total == 0
    assert [e.kind for e in events] == [EventKind.run_started, EventKind.run_completed]


def test_job_exception_is_recorded_as_failure(events):
    async def broken(rec, target_dir):
        raise RuntimeError("kaboom")

    async def go():
        d = Dispatcher(broken, lambda p: False, events.append)
        return await d.start([record("a"), record("b")], 1, "/dest").wait()

    summary = asyncio.run(go())
    assert summary.failed == 2
    assert "kaboom" in summary.results["a"].reason


def test_first_outcome_wins(events):
    git = FakeGit()

    async def go():
        d = Dispatcher(git.clone, git.has_checkout, events.append)
        handle = d.start([record("a"), record("b")], 2, "/dest")
        await settle()
        d.on_job_outcome("a", Outcome.cloned())
        handle.state.active += 1  # keep accounting balanced for the duplicate report
        d.on_job_outcome("a", Outcome.failed("late"))
        assert handle.state.results["a"].kind == OutcomeKind.cloned
        git.finish("b")
        await settle()
        return handle

    handle = asyncio.run(go())
    assert handle.done


def test_cancel_kills_active_and_launches_nothing_more(events):
    git = FakeGit()

    async def go():
        d = Dispatcher(git.clone, git.has_checkout, events.append)
        handle = d.start([record(n) for n in "abcde"], 2, "/dest")
        await settle()
        tasks = handle.cancel()
        assert len(tasks) == 2
        await asyncio.gather(*tasks, return_exceptions=True)
        await settle()
        with pytest.raises(CancellationError):
            await handle.wait()
        return handle

    handle = asyncio.run(go())
    assert sorted(git.cancelled) == ["a", "b"]
    assert git.started == ["a", "b"]
    assert [r.name for r in handle.state.pending] == ["c", "d", "e"]
    assert not any(e.kind == EventKind.run_completed for e in events)


def test_start_validation():
    async def go():
        git = FakeGit()
        d = Dispatcher(git.clone, git.has_checkout, lambda e: None)
        with pytest.raises(ValueError):
            d.start([record("a")], 0, "/dest")
        with pytest.raises(ValueError, match="unique"):
            d.start([record("a"), record("a")], 1, "/dest")
        handle = d.start([record("a")], 1, "/dest")
        with pytest.raises(PreconditionError):
            d.start([record("b")], 1, "/dest")
        handle.cancel()

    asyncio.run(go())
