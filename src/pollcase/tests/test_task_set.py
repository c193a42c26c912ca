"""Tests for TaskSet and OrderedTaskSet.

Validates:
- Completion order and FIFO wake order
- Stale and cross-thread wakes
- Yield budget for self-waking members
- Cancellation and failure isolation
"""

from __future__ import annotations

import threading

import pytest

from pollcase.runtime.concurrency import (
    DONE,
    PENDING,
    OrderedTaskSet,
    Ready,
    TaskHandle,
    TaskSet,
    Waker,
    block_on_stream,
    noop_waker,
    poll_fn,
    ready,
)
from pollcase.tests.conftest import Boom, Countdown, Gate, WakeCounter


# ─────────────────────────────────────────────────────────────────────────────
# TaskSet
# ─────────────────────────────────────────────────────────────────────────────


class TestTaskSetBasics:
    def test_empty_set_is_done(self, waker: Waker) -> None:
        tasks: TaskSet[int] = TaskSet()
        assert tasks.poll_next(waker) is DONE
        assert tasks.is_terminated
        assert tasks.poll_next(waker) is DONE

    def test_push_resets_termination(self, waker: Waker) -> None:
        tasks: TaskSet[int] = TaskSet()
        tasks.poll_next(waker)
        tasks.push(ready(1))
        assert not tasks.is_terminated
        assert tasks.poll_next(waker) == Ready(1)
        assert tasks.poll_next(waker) is DONE

    def test_results_in_completion_order(self) -> None:
        tasks = TaskSet([Countdown(3, "u1"), Countdown(1, "u2"), Countdown(2, "u3")])
        assert list(block_on_stream(tasks)) == ["u2", "u3", "u1"]
        assert tasks.is_empty

    def test_none_is_a_legal_result(self, waker: Waker) -> None:
        tasks = TaskSet([ready(None)])
        assert tasks.poll_next(waker) == Ready(None)
        assert tasks.poll_next(waker) is DONE

    def test_len_and_membership(self) -> None:
        tasks: TaskSet[int] = TaskSet()
        a = tasks.push(ready(1))
        b = tasks.insert(ready(2))
        assert len(tasks) == 2
        assert a in tasks and b in tasks
        assert a != b
        assert set(tasks.handles()) == {a, b}
        assert "not a handle" not in tasks


class TestTaskSetWakes:
    def test_idle_members_are_not_polled(self, waker: Waker) -> None:
        gate_a, gate_b = Gate[str](), Gate[str]()
        tasks = TaskSet([gate_a, gate_b])
        assert tasks.poll_next(waker) is PENDING
        assert (gate_a.polls, gate_b.polls) == (1, 1)

        gate_b.open("b")
        assert tasks.ready_count == 1
        assert tasks.poll_next(waker) == Ready("b")
        assert (gate_a.polls, gate_b.polls) == (1, 2)

    def test_member_wake_wakes_parent(self, counter: WakeCounter, waker: Waker) -> None:
        gate = Gate[int]()
        tasks = TaskSet([gate])
        assert tasks.poll_next(waker) is PENDING
        assert counter.count == 0
        gate.open(1)
        assert counter.count == 1

    def test_fifo_wake_order(self, waker: Waker) -> None:
        gates = [Gate[int]() for _ in range(3)]
        tasks = TaskSet(gates)
        assert tasks.poll_next(waker) is PENDING
        for i in (2, 0, 1):
            gates[i].open(i)
        assert [tasks.poll_next(waker) for _ in range(3)] == [Ready(2), Ready(0), Ready(1)]

    def test_repeated_wakes_queue_once(self, waker: Waker) -> None:
        gate = Gate[int]()
        tasks = TaskSet([gate])
        tasks.poll_next(waker)
        slot_waker = tasks._slots[0].waker
        for _ in range(5):
            slot_waker.wake()
        assert tasks.ready_count == 1

    def test_stale_wake_is_ignored(self, waker: Waker) -> None:
        gate = Gate[int]()
        tasks = TaskSet([gate])
        tasks.poll_next(waker)
        stale = tasks._slots[0].waker
        gate.open(1)
        assert tasks.poll_next(waker) == Ready(1)

        # Reuse the slot; the old waker must not schedule the new occupant
        fresh = Gate[int]()
        tasks.push(fresh)
        tasks.poll_next(waker)
        stale.wake()
        assert tasks.ready_count == 0
        assert tasks.poll_next(waker) is PENDING
        assert fresh.polls == 1

    def test_wake_after_set_dropped(self, waker: Waker) -> None:
        gate = Gate[int]()
        tasks = TaskSet([gate])
        tasks.poll_next(waker)
        del tasks
        gate.open(1)

    def test_wakes_from_other_threads(self) -> None:
        gates = [Gate[int]() for _ in range(16)]
        tasks = TaskSet(gates)

        def open_all() -> None:
            for i, gate in enumerate(gates):
                gate.open(i)

        threading.Timer(0.01, open_all).start()
        assert sorted(block_on_stream(tasks, timeout=5)) == list(range(16))


class TestTaskSetBudget:
    def test_self_waking_members_cannot_starve_driver(self, counter: WakeCounter, waker: Waker) -> None:
        spinners = [Countdown(100, i) for i in range(3)]
        tasks = TaskSet(spinners)
        assert tasks.poll_next(waker) is PENDING
        assert sum(s.polls for s in spinners) == 3
        assert counter.count >= 1

    def test_budget_allows_completion_after_yield(self) -> None:
        tasks = TaskSet([Countdown(5, "slow"), Countdown(2, "fast")])
        assert list(block_on_stream(tasks)) == ["fast", "slow"]


class TestTaskSetCancellation:
    def test_cancel_closes_member(self, waker: Waker) -> None:
        gate = Gate[int]()
        tasks = TaskSet([gate])
        (handle,) = tasks.handles()
        assert tasks.cancel(handle)
        assert gate.closed
        assert handle not in tasks
        assert not tasks.cancel(handle)
        assert tasks.poll_next(waker) is DONE

    def test_cancel_stale_handle(self) -> None:
        tasks: TaskSet[int] = TaskSet()
        assert not tasks.cancel(TaskHandle(3, 1))

    def test_wake_after_cancel_is_ignored(self, waker: Waker) -> None:
        gate = Gate[int]()
        other = Gate[int]()
        tasks = TaskSet([gate, other])
        tasks.poll_next(waker)
        tasks.cancel(tasks.handles()[0])
        gate.open(1)
        assert tasks.poll_next(waker) is PENDING
        assert gate.polls == 1

    def test_clear(self, waker: Waker) -> None:
        gates = [Gate[int]() for _ in range(3)]
        tasks = TaskSet(gates)
        tasks.clear()
        assert all(g.closed for g in gates)
        assert len(tasks) == 0
        assert tasks.poll_next(waker) is DONE


class TestTaskSetFailures:
    def test_failing_member_is_removed(self, waker: Waker) -> None:
        boom = Boom()
        gate = Gate[str]()
        tasks = TaskSet([boom, gate])
        with pytest.raises(ValueError, match="boom"):
            tasks.poll_next(waker)
        assert boom.closed
        assert len(tasks) == 1

        gate.open("ok")
        assert tasks.poll_next(waker) == Ready("ok")

    def test_failure_is_logged(self, waker: Waker, caplog: pytest.LogCaptureFixture) -> None:
        tasks = TaskSet([Boom()])
        with caplog.at_level("WARNING", logger="pollcase.task_set"), pytest.raises(ValueError):
            tasks.poll_next(waker)
        assert "MEMBER_FAILED" in caplog.text


# ─────────────────────────────────────────────────────────────────────────────
# OrderedTaskSet
# ─────────────────────────────────────────────────────────────────────────────


class TestOrderedTaskSet:
    def test_results_in_push_order(self) -> None:
        ordered = OrderedTaskSet([Countdown(3, "u1"), Countdown(1, "u2"), Countdown(2, "u3")])
        assert list(block_on_stream(ordered)) == ["u1", "u2", "u3"]

    def test_early_finisher_is_held(self, waker: Waker) -> None:
        first, second = Gate[str](), Gate[str]()
        ordered = OrderedTaskSet([first, second])
        assert ordered.poll_next(waker) is PENDING
        second.open("second")
        assert ordered.poll_next(waker) is PENDING
        assert len(ordered) == 2
        assert ordered.in_flight == 1
        first.open("first")
        assert ordered.poll_next(waker) == Ready("first")
        assert ordered.poll_next(waker) == Ready("second")
        assert ordered.poll_next(waker) is DONE
        assert ordered.is_terminated

    def test_push_front(self) -> None:
        ordered: OrderedTaskSet[str] = OrderedTaskSet()
        ordered.push_back(ready("b"))
        ordered.push_back(ready("c"))
        assert ordered.poll_next(noop_waker()) == Ready("b")
        ordered.push_front(ready("retry"))
        assert list(block_on_stream(ordered)) == ["retry", "c"]

    def test_push_front_on_empty(self) -> None:
        ordered: OrderedTaskSet[str] = OrderedTaskSet()
        ordered.push_front(ready("a"))
        ordered.push_back(ready("b"))
        assert list(block_on_stream(ordered)) == ["a", "b"]

    def test_clear_closes_members(self, waker: Waker) -> None:
        gate = Gate[int]()
        ordered = OrderedTaskSet([gate])
        ordered.clear()
        assert gate.closed
        assert ordered.poll_next(waker) is DONE

    def test_failed_member_does_not_block_later_results(self, waker: Waker) -> None:
        ordered = OrderedTaskSet([Boom(), ready("b")])
        with pytest.raises(ValueError):
            ordered.poll_next(waker)
        assert ordered.poll_next(waker) == Ready("b")
        assert ordered.poll_next(waker) is DONE
        assert len(ordered) == 0

    def test_failure_after_held_results(self, waker: Waker) -> None:
        broken = threading.Event()
        parked: list[Waker] = []

        def first(w: Waker):
            parked.append(w)
            if broken.is_set():
                raise ValueError("first broke")
            return PENDING

        third = Gate[str]()
        ordered = OrderedTaskSet([poll_fn(first), ready("second"), third])
        assert ordered.poll_next(waker) is PENDING
        assert len(ordered) == 3
        broken.set()
        parked[-1].wake()
        ordered.push_back(ready("fourth"))
        with pytest.raises(ValueError):
            ordered.poll_next(waker)
        assert ordered.poll_next(waker) == Ready("second")
        third.open("third")
        assert list(block_on_stream(ordered)) == ["third", "fourth"]
