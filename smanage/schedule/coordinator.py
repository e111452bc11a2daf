"""One submission cycle: decide, submit, persist."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Protocol

from loguru import logger

from smanage.config.store import ConfigStore
from smanage.errors import SubmitError
from smanage.schedule.window import (
    Complete,
    ReservationCursor,
    Skip,
    Submit,
    WindowOutcome,
    next_window,
)

__all__ = ["SubmitFn", "CycleOutcome", "run_cycle", "submit_fixed", "cursor_values"]


class SubmitFn(Protocol):
    """Submits an ``--array`` value and returns the scheduler job id.

    Raises :class:`smanage.errors.SubmitError` on failure.
    """

    def __call__(self, array: Optional[str] = None, offset: Optional[int] = None) -> str:
        ...


@dataclass(frozen=True, slots=True)
class CycleOutcome:
    """Result of :func:`run_cycle`.

    Parameters
    ----------
    decision : Complete, Skip or Submit
        What the window scheduler decided.
    job_id : str, optional
        Job id returned by the submitter when ``decision`` is a ``Submit``.
    """

    decision: WindowOutcome
    job_id: Optional[str] = None

    @property
    def submitted(self) -> bool:
        return self.job_id is not None

    @property
    def cursor(self) -> Optional[ReservationCursor]:
        """The cursor that was persisted, if any."""
        if isinstance(self.decision, Submit) and self.submitted:
            return self.decision.cursor
        return None


def cursor_values(cursor: ReservationCursor) -> Dict[str, object]:
    """Config keys that persist ``cursor``'s position."""
    return {"NEXT_RUN_ID": cursor.next_run_id, "LAST_RUN_ID": cursor.last_run_id}


def run_cycle(
    cursor: ReservationCursor,
    occupancy: int,
    submit_fn: SubmitFn,
    store: Optional[ConfigStore] = None,
    persist_extra: Optional[Mapping[str, object]] = None,
) -> CycleOutcome:
    """Run one reservation cycle.

    Parameters
    ----------
    cursor : ReservationCursor
        Cursor read from the batch config.
    occupancy : int
        Tasks currently pending or running.
    submit_fn : SubmitFn
        Called with the rendered ``--array`` value and the window's first
        logical id. It is never retried.
    store : ConfigStore, optional
        Where the advanced cursor and new job id are written once the
        submission is accepted.
    persist_extra : Mapping, optional
        Additional keys written in the same update as the cursor.

    Returns
    -------
    CycleOutcome

    Raises
    ------
    ConfigurationError
        If the cursor lacks ``max_id`` or a positive capacity.
    SubmitError
        Propagated from ``submit_fn``; the stored cursor keeps its pre-cycle
        values.
    """
    decision = next_window(cursor, occupancy)
    match decision:
        case Complete(message=message):
            logger.info(f"Ding! {message}")
            return CycleOutcome(decision)
        case Skip(message=message):
            logger.info(f"No jobs submitted: {message}")
            return CycleOutcome(decision)
        case Submit(window=window, array=array, cursor=new_cursor):
            logger.info(f"Submitting jobs {window.start} - {window.end} as {array}")
            try:
                job_id = submit_fn(str(array), offset=window.start)
            except SubmitError:
                if store is not None and cursor.last_run_id is not None:
                    store.update(cursor_values(cursor))
                raise
            if store is not None:
                extra = dict(persist_extra or {})
                extra.update(cursor_values(new_cursor))
                store.append_job_ids([job_id], extra=extra)
            return CycleOutcome(decision, job_id)
    raise TypeError(f"unexpected window outcome {decision!r}")


def submit_fixed(
    array: Optional[str],
    submit_fn: SubmitFn,
    store: Optional[ConfigStore] = None,
    persist_extra: Optional[Mapping[str, object]] = None,
) -> str:
    """Submit a fixed ``--array`` (or a plain job) without capacity tracking."""
    logger.info(f"Submitting jobs {array}" if array else "Submitting job")
    job_id = submit_fn(array)
    if store is not None:
        store.append_job_ids([job_id], extra=dict(persist_extra or {}))
    return job_id
