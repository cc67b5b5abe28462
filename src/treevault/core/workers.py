"""Bounded worker pool and cooperative cancellation.

Per-file work (stat, hash, copy) is fanned out to a ``ThreadPoolExecutor``
capped at ``max_workers``.  Results are returned in input order regardless
of completion order, so callers that sort their inputs get deterministic
aggregation.

``CancelToken`` combines an explicit ``cancel()`` with an optional deadline.
Once tripped, no new item starts; items already running finish normally.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Generic, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


class CancelToken:
    """Cancellation flag shared between a caller and a running operation.

    Args:
        timeout: Seconds after which the token counts as cancelled.
            ``None`` means no deadline.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            logger.warning("Operation deadline exceeded; cancelling")
            self._event.set()
            return True
        return False


@dataclass
class BoundedRun(Generic[T, R]):
    """Outcome of ``run_bounded``.

    Attributes:
        results: ``(item, result)`` pairs for every item that ran, in input
            order.
        skipped: Items never started because the token was cancelled.
    """

    results: list[tuple[T, R]] = field(default_factory=list)
    skipped: list[T] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped)


_NOT_RUN = object()


def run_bounded(
    func: Callable[[T], R],
    items: Sequence[T],
    *,
    max_workers: int = 4,
    token: CancelToken | None = None,
) -> BoundedRun[T, R]:
    """Apply *func* to each item on at most *max_workers* threads.

    *func* is expected to contain its own per-item error handling; an
    exception escaping it propagates to the caller.
    """

    def _guarded(item: T) -> object:
        if token is not None and token.cancelled:
            return _NOT_RUN
        return func(item)

    outcomes: list[object] = [_NOT_RUN] * len(items)
    if max_workers <= 1 or len(items) <= 1:
        for index, item in enumerate(items):
            outcomes[index] = _guarded(item)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(_guarded, item): index
                for index, item in enumerate(items)
            }
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()

    run: BoundedRun[T, R] = BoundedRun()
    for item, outcome in zip(items, outcomes):
        if outcome is _NOT_RUN:
            run.skipped.append(item)
        else:
            run.results.append((item, outcome))  # type: ignore[arg-type]
    if run.skipped:
        logger.info(
            "Cancelled: %d of %d items not started",
            len(run.skipped),
            len(items),
        )
    return run
