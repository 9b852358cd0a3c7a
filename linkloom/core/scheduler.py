"""
Concurrency-Limited Scheduler

Drives an ordered collection of independent units through a fixed number
of in-flight slots. New units are launched as soon as any running unit
finishes (fastest-of-K), so one slow unit never holds back the others.

Every submitted unit resolves to exactly one ``Outcome`` and the returned
list is aligned with submission order, whatever order units complete in.
Retry and backoff policy belongs to the unit operation, not here.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Optional,
    Set,
    TypeVar,
)

from ..utils.error_handler import ConfigurationError
from .batch_types import Failure, Outcome, Success
from .cancellation import CancellationToken

U = TypeVar("U")
T = TypeVar("T")

UnitOperation = Callable[[U], Awaitable[Outcome]]
CompletionCallback = Callable[[int, Outcome], None]

logger = logging.getLogger(__name__)


def validate_limit(limit: Any, name: str = "concurrency limit") -> int:
    """
    Check a positive integer setting.

    Raises:
        ConfigurationError: If the value is not an integer >= 1
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ConfigurationError(f"{name} must be an integer, got {limit!r}")
    if limit <= 0:
        raise ConfigurationError(f"{name} must be at least 1, got {limit}")
    return limit


def as_unit_operation(
    func: Callable[[U], Awaitable[T]],
    cancel_token: Optional[CancellationToken] = None,
) -> UnitOperation:
    """
    Wrap a plain coroutine function into a failure-tolerant unit operation.

    The wrapped operation returns ``Success(value)`` when ``func`` returns,
    and ``Failure(kind=<exception class>, message=...)`` when it raises.
    With a cancellation token, units launched after cancellation resolve to
    ``Failure(kind="cancelled")`` without calling ``func``.
    """

    @functools.wraps(func)
    async def operation(unit: U) -> Outcome:
        if cancel_token is not None and cancel_token.is_cancelled:
            return Failure(kind="cancelled", message=cancel_token.reason)
        try:
            return Success(await func(unit))
        except Exception as e:
            return Failure(kind=type(e).__name__, message=str(e))

    return operation


class ConcurrencyLimitedScheduler:
    """
    Runs units with at most ``limit`` of them in flight at any instant.

    Example:
        >>> scheduler = ConcurrencyLimitedScheduler(limit=5)
        >>> outcomes = await scheduler.run(urls, as_unit_operation(probe))
    """

    def __init__(
        self,
        limit: int,
        on_unit_complete: Optional[CompletionCallback] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            limit: Maximum number of concurrently executing units (K)
            on_unit_complete: Optional callback ``(index, outcome)`` called once
                per unit, in completion order

        Raises:
            ConfigurationError: If limit is not a positive integer
        """
        self.limit = validate_limit(limit)
        self.on_unit_complete = on_unit_complete

        # Statistics for the most recent run
        self.in_flight = 0
        self.peak_in_flight = 0
        self.units_completed = 0
        self.units_failed = 0

    async def run(
        self, units: Iterable[U], operation: UnitOperation
    ) -> List[Outcome]:
        """
        Execute every unit and return their outcomes in submission order.

        Args:
            units: Ordered units; each is consumed exactly once
            operation: Async callable returning an Outcome for one unit

        Returns:
            One Outcome per unit, aligned with ``units``
        """
        units = list(units)
        self.in_flight = 0
        self.peak_in_flight = 0
        self.units_completed = 0
        self.units_failed = 0

        if not units:
            return []

        start_time = time.time()
        logger.info(
            f"Scheduling {len(units)} units with concurrency limit {self.limit}"
        )

        outcomes: List[Optional[Outcome]] = [None] * len(units)
        executing: Set[asyncio.Future] = set()

        try:
            for index, unit in enumerate(units):
                task = asyncio.ensure_future(
                    self._execute(index, unit, operation, outcomes)
                )
                executing.add(task)

                if len(executing) >= self.limit:
                    # Wait for the fastest in-flight unit, not for all of them
                    _, executing = await asyncio.wait(
                        executing, return_when=asyncio.FIRST_COMPLETED
                    )

            if executing:
                await asyncio.wait(executing)
        except asyncio.CancelledError:
            for task in executing:
                task.cancel()
            raise

        # A unit task that was cancelled from inside its operation records nothing
        for index, outcome in enumerate(outcomes):
            if outcome is None:
                logger.error(f"Unit {index} was cancelled before recording an outcome")
                self._record(
                    index,
                    Failure(
                        kind="cancelled",
                        message="Unit task was cancelled",
                        index=index,
                    ),
                    outcomes,
                )

        elapsed = time.time() - start_time
        logger.info(
            f"Completed {len(units)} units in {elapsed:.2f}s "
            f"({self.units_failed} failed, peak {self.peak_in_flight} in flight)"
        )

        return outcomes

    async def _execute(
        self,
        index: int,
        unit: U,
        operation: UnitOperation,
        outcomes: List[Optional[Outcome]],
    ) -> None:
        """Run one unit in a slot and record its outcome at its index."""
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            outcome = await operation(unit)
        except Exception as e:
            # Operations are expected to return a Failure instead of raising
            logger.error(
                f"Unit {index} raised {type(e).__name__} out of its operation: {e}"
            )
            outcome = Failure(kind="unhandled_exception", message=str(e), index=index)
        finally:
            self.in_flight -= 1

        self._record(index, outcome, outcomes)

    def _record(
        self, index: int, outcome: Outcome, outcomes: List[Optional[Outcome]]
    ) -> None:
        outcomes[index] = outcome
        self.units_completed += 1
        if not outcome.ok:
            self.units_failed += 1
            logger.warning(
                f"Unit {index} failed ({outcome.kind}): {outcome.message}"
            )

        if self.on_unit_complete is None:
            return
        try:
            self.on_unit_complete(index, outcome)
        except Exception as e:
            logger.error(
                f"Completion callback failed for unit {index}: "
                f"{type(e).__name__}: {e}"
            )


async def run_bounded(
    units: Iterable[U],
    limit: int,
    operation: UnitOperation,
    on_unit_complete: Optional[CompletionCallback] = None,
) -> List[Outcome]:
    """
    Convenience wrapper: run ``units`` through a fresh scheduler.

    Raises:
        ConfigurationError: If limit is not a positive integer (before any
            unit is launched)
    """
    scheduler = ConcurrencyLimitedScheduler(limit, on_unit_complete=on_unit_complete)
    return await scheduler.run(units, operation)


__all__ = [
    "CompletionCallback",
    "ConcurrencyLimitedScheduler",
    "UnitOperation",
    "as_unit_operation",
    "run_bounded",
    "validate_limit",
]
