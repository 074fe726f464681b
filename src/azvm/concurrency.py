"""Fan-out helpers for the sample's concurrent sequences.

Each unit of work is submitted once and joined once. Every unit is allowed to
finish before any error is surfaced, so a failure in one sequence never
hides or interrupts another sequence already in flight.
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskOutcome(Generic[T, R]):
    """Result of one unit of concurrent work."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def run_concurrently(
    fn: Callable[[T], R], items: Iterable[T], thread_name_prefix: str = "azvm"
) -> list[TaskOutcome[T, R]]:
    """Run fn over items in parallel and wait for all of them.

    Args:
        fn: Function applied to each item
        items: Work items; one thread each
        thread_name_prefix: Prefix for worker thread names

    Returns:
        Outcomes in the same order as items
    """
    work = list(items)
    if not work:
        return []

    with ThreadPoolExecutor(
        max_workers=len(work), thread_name_prefix=thread_name_prefix
    ) as executor:
        futures = [executor.submit(fn, item) for item in work]
        wait(futures)

    outcomes: list[TaskOutcome[T, R]] = []
    for item, future in zip(work, futures, strict=True):
        error = future.exception()
        if error is not None:
            logger.debug(f"Concurrent task for {item!r} failed: {error}")
            outcomes.append(TaskOutcome(item=item, error=error))
        else:
            outcomes.append(TaskOutcome(item=item, result=future.result()))
    return outcomes


def raise_first_error(outcomes: Iterable[TaskOutcome]) -> None:
    """Re-raise the first failure, in submission order.

    Raises:
        BaseException: The first recorded error, if any
    """
    for outcome in outcomes:
        if outcome.error is not None:
            raise outcome.error


__all__ = ["TaskOutcome", "raise_first_error", "run_concurrently"]
