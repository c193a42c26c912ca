"""Tests for bounded concurrency pipelines."""

from __future__ import annotations

import pytest

from pollcase.foundation.config import clear_settings_cache
from pollcase.foundation.errors import Err, InvalidConcurrencyLimit, Ok
from pollcase.runtime.concurrency import (
    DONE,
    PENDING,
    Ready,
    Waker,
    block_on,
    block_on_stream,
    buffer_unordered,
    buffered,
    catch_unwind,
    for_each_concurrent,
    iter_stream,
    noop_waker,
    ready,
    try_buffer_unordered,
    try_buffered,
    try_for_each_concurrent,
)
from pollcase.tests.conftest import Boom, Countdown, Gate


class Tracker:
    """Counts units that started but have not completed."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0
        self.finished: list[object] = []


class Job(Countdown[str]):
    def __init__(self, tracker: Tracker, polls: int, value: str) -> None:
        super().__init__(polls, value)
        self.tracker = tracker

    def poll(self, waker: Waker):
        if self.polls == 0:
            self.tracker.active += 1
            self.tracker.peak = max(self.tracker.peak, self.tracker.active)
        outcome = super().poll(waker)
        if outcome is not PENDING:
            self.tracker.active -= 1
            self.tracker.finished.append(self.value)
        return outcome


def drain(pipe, limit: int) -> list[object]:
    """Poll to the end with a no-op waker, checking the bound after every step."""
    results = []
    while (outcome := pipe.poll_next(noop_waker())) is not DONE:
        assert pipe.in_progress <= limit
        if isinstance(outcome, Ready):
            results.append(outcome.value)
    return results


class TestBuffered:
    def test_results_in_input_order(self) -> None:
        tracker = Tracker()
        jobs = [Job(tracker, polls, str(i)) for i, polls in enumerate([3, 1, 2, 1], start=1)]
        assert drain(buffered(jobs, limit=2), 2) == ["1", "2", "3", "4"]
        assert tracker.peak <= 2
        assert tracker.finished == ["2", "1", "4", "3"]

    def test_with_block_on_stream(self) -> None:
        jobs = (Countdown(polls, polls) for polls in [4, 1, 3, 2, 5])
        assert list(block_on_stream(buffered(jobs, limit=3))) == [4, 1, 3, 2, 5]

    def test_stream_method(self) -> None:
        assert list(block_on_stream(iter_stream([ready(1), ready(2)]).buffered(2))) == [1, 2]

    def test_failed_member_is_skipped(self, waker: Waker) -> None:
        pipe = buffered([Boom(), ready("b"), ready("c")], limit=3)
        with pytest.raises(ValueError):
            pipe.poll_next(waker)
        assert drain(pipe, 3) == ["b", "c"]
        assert pipe.in_progress == 0
        assert pipe.is_terminated

    def test_limit_one_is_sequential(self) -> None:
        tracker = Tracker()
        jobs = [Job(tracker, 2, str(i)) for i in range(4)]
        assert list(block_on_stream(buffered(jobs, limit=1))) == ["0", "1", "2", "3"]
        assert tracker.peak == 1


class TestBufferUnordered:
    def test_results_in_completion_order(self) -> None:
        tracker = Tracker()
        jobs = [Job(tracker, polls, str(i)) for i, polls in enumerate([3, 1, 2, 1], start=1)]
        assert drain(buffer_unordered(jobs, limit=2), 2) == ["2", "1", "3", "4"]
        assert tracker.peak == 2

    def test_input_is_pulled_lazily(self, waker: Waker) -> None:
        pulled: list[int] = []

        def source():
            for i in range(100):
                pulled.append(i)
                yield Gate[int]()

        pipe = buffer_unordered(source(), limit=3)
        assert pipe.poll_next(waker) is PENDING
        assert pulled == [0, 1, 2]
        assert pipe.admitted == 3

    def test_close_drops_admitted_units(self, waker: Waker) -> None:
        gates = [Gate[int]() for _ in range(4)]
        pipe = buffer_unordered(gates, limit=2)
        pipe.poll_next(waker)
        pipe.close()
        assert [g.closed for g in gates] == [True, True, False, False]

    def test_unbounded(self) -> None:
        pipe = buffer_unordered([Countdown(2, i) for i in range(10)], limit=None)
        assert pipe.limit is None
        assert sorted(block_on_stream(pipe)) == list(range(10))

    def test_empty_input(self, waker: Waker) -> None:
        pipe = buffer_unordered([], limit=4)
        assert pipe.poll_next(waker) is DONE
        assert pipe.is_terminated

    def test_member_failure_propagates(self, waker: Waker) -> None:
        pipe = buffer_unordered([Boom(), ready("ok")], limit=2)
        with pytest.raises(ValueError):
            pipe.poll_next(waker)
        assert pipe.poll_next(waker) == Ready("ok")

    def test_caught_failures_become_results(self) -> None:
        pipe = buffer_unordered([catch_unwind(Boom()), catch_unwind(ready(1))], limit=2)
        results = list(block_on_stream(pipe))
        assert [r.is_ok() for r in results] == [False, True]


class TestLimits:
    @pytest.mark.parametrize("limit", [0, -1, True, 1.5, "2"])
    def test_invalid_limit(self, limit: object) -> None:
        with pytest.raises(InvalidConcurrencyLimit) as info:
            buffered([], limit=limit)  # type: ignore[arg-type]
        assert info.value.limit == limit
        assert isinstance(info.value, ValueError)

    def test_invalid_limit_for_each(self) -> None:
        with pytest.raises(InvalidConcurrencyLimit):
            for_each_concurrent([], 0, ready)

    def test_default_limit_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("POLLCASE_CONCURRENCY_DEFAULT_LIMIT", "2")
        clear_settings_cache()
        assert buffered([]).limit == 2
        assert buffer_unordered([], limit=5).limit == 5

    def test_default_limit_unset_is_unbounded(self) -> None:
        assert buffered([]).limit is None


class TestForEachConcurrent:
    def test_runs_every_item_within_limit(self) -> None:
        tracker = Tracker()
        fut = for_each_concurrent(range(6), 2, lambda n: Job(tracker, n % 3 + 1, str(n)))
        assert block_on(fut) is None
        assert sorted(tracker.finished) == [str(n) for n in range(6)]
        assert tracker.peak == 2

    def test_waits_for_external_completion(self, waker: Waker) -> None:
        gates = [Gate[int]() for _ in range(3)]
        fut = for_each_concurrent(range(3), None, lambda n: gates[n])
        assert fut.poll(waker) is PENDING
        for gate in gates:
            gate.open()
        assert fut.poll(waker) == Ready(None)

    def test_empty_input(self, waker: Waker) -> None:
        assert for_each_concurrent([], 3, ready).poll(waker) == Ready(None)


# ─────────────────────────────────────────────────────────────────────────────
# Result-yielding pipelines
# ─────────────────────────────────────────────────────────────────────────────


class TestTryPipelines:
    def test_unordered_stops_at_first_err(self) -> None:
        gate = Gate[object]()
        pipe = try_buffer_unordered([ready(Ok(1)), ready(Err("bad")), gate], limit=3)
        assert list(block_on_stream(pipe)) == [Ok(1), Err("bad")]
        assert gate.closed
        assert pipe.is_terminated

    def test_ordered_err_waits_for_predecessors(self) -> None:
        gate = Gate[object]()
        pipe = try_buffered([Countdown(3, Ok("a")), ready(Err("e")), gate], limit=3)
        assert list(block_on_stream(pipe)) == [Ok("a"), Err("e")]
        assert gate.closed

    def test_all_ok_passes_through(self) -> None:
        pipe = try_buffered([Countdown(n, Ok(n)) for n in (3, 1, 2)], limit=2)
        assert list(block_on_stream(pipe)) == [Ok(3), Ok(1), Ok(2)]

    def test_input_not_pulled_after_err(self, waker: Waker) -> None:
        pulled: list[int] = []

        def source():
            for i in range(10):
                pulled.append(i)
                yield ready(Err(i) if i == 1 else Ok(i))

        pipe = try_buffered(source(), limit=1)
        assert pipe.poll_next(waker) == Ready(Ok(0))
        assert pipe.poll_next(waker) == Ready(Err(1))
        assert pipe.poll_next(waker) is DONE
        assert pulled == [0, 1]

    def test_for_each_all_ok(self) -> None:
        seen: list[int] = []

        def run(n: int):
            seen.append(n)
            return Countdown(n % 2 + 1, Ok(n))

        assert block_on(try_for_each_concurrent(range(4), 2, run)) == Ok(None)
        assert sorted(seen) == [0, 1, 2, 3]

    def test_for_each_short_circuits(self) -> None:
        gate = Gate[object]()
        started: list[int] = []

        def run(n: int):
            started.append(n)
            return gate if n == 0 else ready(Err("fail"))

        assert block_on(try_for_each_concurrent(range(5), 2, run)) == Err("fail")
        assert gate.closed
        assert started == [0, 1]

    def test_invalid_limit(self) -> None:
        with pytest.raises(InvalidConcurrencyLimit):
            try_buffered([], limit=0)
        with pytest.raises(InvalidConcurrencyLimit):
            try_for_each_concurrent([], -1, ready)
