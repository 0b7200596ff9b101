"""Run one callback per item concurrently, collecting results in input order."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ParallelResult(Generic[T]):
    """Outcome of one callback: the item it ran for and the error it raised, if any."""
    item: T
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def execute_parallel(
    items: Sequence[T],
    fn: Callable[[T], Any],
    max_workers: Optional[int] = None,
) -> List[ParallelResult[T]]:
    """
    Invoke ``fn(item)`` for every item on its own worker thread.

    Slot ``i`` of the returned list always describes ``items[i]`` regardless
    of completion order. An exception raised by one callback is stored in its
    slot and never stops the others.

    Args:
        items: Items to process
        fn: Callback invoked once per item; its return value is discarded
        max_workers: Upper bound on concurrent workers; None means one per item

    Returns:
        One ParallelResult per input item, in input order
    """
    items = list(items)
    results: List[Optional[ParallelResult[T]]] = [None] * len(items)
    if not items:
        return []

    def run(index: int) -> None:
        item = items[index]
        try:
            fn(item)
        except Exception as e:
            logger.debug(f"Parallel task for {item!r} failed: {e}")
            results[index] = ParallelResult(item, e)
        else:
            results[index] = ParallelResult(item)

    workers = max_workers or len(items)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        for future in [executor.submit(run, index) for index in range(len(items))]:
            future.result()

    return results
