"""Reservation window scheduling.

Given how many array tasks already occupy the queue and a persisted cursor,
decide which logical index range to submit next and how to express it as an
``sbatch --array`` argument.

Two numberings are in play. The *logical* window ``next_run_id..last_run_id``
tracks progress through ``0..max_id`` across invocations and is what gets
persisted. The *array* is the literal index set handed to Slurm: zero-based
and sized to the window unless ``max_array_size`` asks for the logical ids to
be folded into a fixed-size array.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

from loguru import logger

from smanage.errors import ConfigurationError
from smanage.jobs.records import IndexRange

__all__ = [
    "ReservationCursor",
    "ArraySpec",
    "Complete",
    "Skip",
    "Submit",
    "WindowOutcome",
    "fold_array",
    "next_window",
]


@dataclass(frozen=True, slots=True)
class ReservationCursor:
    """Persisted progress through a reserved batch.

    Parameters
    ----------
    next_run_id : int
        First logical index of the most recent window.
    last_run_id : int, optional
        Last logical index submitted; ``None`` before the first submission.
    max_id : int, optional
        Ceiling of the batch. Once the next window would start at or past it
        the batch is complete.
    reserve_capacity : int, optional
        Maximum queued plus running tasks allowed at once.
    max_array_size : int
        Fold logical ids modulo this size when submitting; ``0`` disables
        folding.
    """

    next_run_id: int = 0
    last_run_id: Optional[int] = None
    max_id: Optional[int] = None
    reserve_capacity: Optional[int] = None
    max_array_size: int = 0

    def advance(self, next_run_id: int, last_run_id: int) -> "ReservationCursor":
        return replace(self, next_run_id=next_run_id, last_run_id=last_run_id)

    @property
    def upcoming_run_id(self) -> int:
        """Logical index the next window starts at."""
        return 0 if self.last_run_id is None else self.last_run_id + 1


@dataclass(frozen=True, slots=True)
class ArraySpec:
    """Index set passed to ``sbatch --array``.

    ``start > end`` only happens when folding wrapped past the end of a
    fixed-size array; it then stands for ``start..size-1`` followed by
    ``0..end``.
    """

    start: int
    end: int
    size: int = 0

    @property
    def wraps(self) -> bool:
        return self.start > self.end

    def __str__(self) -> str:
        if not self.wraps:
            return str(IndexRange(self.start, self.end))
        head = IndexRange(self.start, self.size - 1)
        tail = IndexRange(0, self.end)
        return f"{head},{tail}"


@dataclass(frozen=True, slots=True)
class Complete:
    """The batch is exhausted; nothing left to submit."""

    message: str


@dataclass(frozen=True, slots=True)
class Skip:
    """The queue is full; try again later."""

    message: str
    occupancy: int
    capacity: int


@dataclass(frozen=True, slots=True)
class Submit:
    """Submit ``array`` to cover the logical ``window``."""

    window: IndexRange
    array: ArraySpec
    cursor: ReservationCursor


WindowOutcome = Union[Complete, Skip, Submit]


def fold_array(window: IndexRange, size: int) -> ArraySpec:
    """Fold logical ids into a fixed-size array of ``size`` slots."""
    if size <= 0:
        raise ValueError(f"array size must be positive, got {size}")
    lo, hi = window.start % size, window.end % size
    if window.width >= size:
        logger.warning(
            f"Window {window} is wider than the {size}-slot array; "
            f"only {str(ArraySpec(lo, hi, size))!r} will be submitted"
        )
    return ArraySpec(lo, hi, size)


def next_window(cursor: ReservationCursor, occupancy: int) -> WindowOutcome:
    """Compute the next submission for a reserved batch.

    Parameters
    ----------
    cursor : ReservationCursor
        Progress persisted by the previous cycle.
    occupancy : int
        Tasks currently pending or running for this batch.

    Returns
    -------
    Complete, Skip or Submit
        ``Submit.cursor`` is the cursor to persist once the submission is
        accepted; ``Complete`` and ``Skip`` leave the cursor untouched.

    Raises
    ------
    ConfigurationError
        If ``max_id`` or a positive ``reserve_capacity`` is missing.
    """
    if cursor.max_id is None:
        raise ConfigurationError("MAX_ID is required to submit with a reservation")
    capacity = cursor.reserve_capacity
    if capacity is None or capacity <= 0:
        raise ConfigurationError(
            f"RESERVE must be a positive integer, got {capacity!r}"
        )

    next_id = cursor.upcoming_run_id
    if next_id >= cursor.max_id:
        return Complete(f"all {cursor.max_id} jobs have been submitted")

    num_to_run = capacity - occupancy
    if num_to_run < 1:
        return Skip(f"queue full: {occupancy} of {capacity}", occupancy, capacity)

    last_id = min(next_id + num_to_run, cursor.max_id)
    if cursor.max_array_size > 0:
        # a folded array holds at most max_array_size distinct ids
        last_id = min(last_id, next_id + cursor.max_array_size - 1)
    window = IndexRange(next_id, last_id)

    if cursor.max_array_size > 0:
        array = fold_array(window, cursor.max_array_size)
    else:
        array = ArraySpec(0, window.width)

    logger.debug(
        f"Window {window} (occupancy {occupancy}/{capacity}) -> array {array}"
    )
    return Submit(window, array, cursor.advance(next_id, last_id))
