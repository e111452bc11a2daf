"""Reservation window scheduling and the submission cycle."""

from .window import (
    ArraySpec,
    Complete,
    ReservationCursor,
    Skip,
    Submit,
    WindowOutcome,
    fold_array,
    next_window,
)
from .coordinator import CycleOutcome, run_cycle, submit_fixed

__all__ = [
    "ArraySpec",
    "Complete",
    "CycleOutcome",
    "ReservationCursor",
    "Skip",
    "Submit",
    "WindowOutcome",
    "fold_array",
    "next_window",
    "run_cycle",
    "submit_fixed",
]
