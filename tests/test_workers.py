"""Tests for the bounded worker pool, cancellation tokens and keyed locks."""

from __future__ import annotations

import threading
import time

from treevault.core.locks import KeyedLock
from treevault.core.workers import CancelToken, run_bounded


class TestCancelToken:
    def test_not_cancelled_by_default(self):
        assert not CancelToken().cancelled

    def test_explicit_cancel(self):
        token = CancelToken()
        token.cancel()
        assert token.cancelled

    def test_deadline_trips(self):
        token = CancelToken(timeout=0)
        assert token.cancelled

    def test_future_deadline_not_tripped(self):
        assert not CancelToken(timeout=60).cancelled


class TestRunBounded:
    """Tests for run_bounded()."""

    def test_results_in_input_order(self):
        def slow_for_small(n: int) -> int:
            time.sleep(0.001 * (10 - n))
            return n * n

        run = run_bounded(slow_for_small, list(range(10)), max_workers=4)
        assert [item for item, _ in run.results] == list(range(10))
        assert [r for _, r in run.results] == [n * n for n in range(10)]
        assert not run.cancelled

    def test_sequential_when_single_worker(self):
        seen: list[str] = []

        def record(_: int) -> None:
            seen.append(threading.current_thread().name)

        run_bounded(record, [1, 2, 3], max_workers=1)
        assert set(seen) == {threading.current_thread().name}

    def test_concurrency_is_bounded(self):
        active = 0
        peak = 0
        guard = threading.Lock()

        def work(_: int) -> None:
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with guard:
                active -= 1

        run_bounded(work, list(range(12)), max_workers=3)
        assert 1 <= peak <= 3

    def test_cancelled_token_skips_everything(self):
        token = CancelToken()
        token.cancel()
        run = run_bounded(lambda n: n, [1, 2, 3], token=token)
        assert run.results == []
        assert run.skipped == [1, 2, 3]
        assert run.cancelled

    def test_cancel_midway_skips_remaining(self):
        token = CancelToken()

        def work(n: int) -> int:
            if n == 2:
                token.cancel()
            return n

        run = run_bounded(work, [1, 2, 3, 4], max_workers=1, token=token)
        assert [item for item, _ in run.results] == [1, 2]
        assert run.skipped == [3, 4]

    def test_empty_input(self):
        run = run_bounded(lambda n: n, [])
        assert run.results == []
        assert run.skipped == []


class TestKeyedLock:
    def test_same_key_is_exclusive(self):
        lock = KeyedLock()
        order: list[str] = []
        entered = threading.Event()

        def first() -> None:
            with lock.hold("k"):
                order.append("first-in")
                entered.set()
                time.sleep(0.05)
                order.append("first-out")

        def second() -> None:
            entered.wait()
            with lock.hold("k"):
                order.append("second")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert order == ["first-in", "first-out", "second"]

    def test_different_keys_do_not_block(self):
        lock = KeyedLock()
        with lock.hold("a"):
            with lock.hold("b"):
                assert len(lock) == 2

    def test_locks_released_after_use(self):
        lock = KeyedLock()
        with lock.hold(("version", "/repo", "a.txt")):
            pass
        assert len(lock) == 0
