"""Summaries of classified accounting records for display."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from smanage.jobs.classify import Buckets
from smanage.jobs.records import AccountingRecord, JobState, parse_range_token

__all__ = [
    "REPORT_ORDER",
    "RunTimes",
    "ReportSummary",
    "summarize",
    "run_times",
    "format_duration",
    "sorted_indices",
    "sorted_job_ids",
    "to_frame",
]

# Order buckets are printed in.
REPORT_ORDER: Tuple[JobState, ...] = (
    JobState.COMPLETED,
    JobState.FAILED,
    JobState.TIMEOUT,
    JobState.RUNNING,
    JobState.PENDING,
    JobState.OTHER,
)


@dataclass(frozen=True, slots=True)
class RunTimes:
    """Average durations over a bucket; ``None`` means undefined (no samples)."""

    avg_run_time: Optional[timedelta]
    avg_wall_time: Optional[timedelta]
    n: int = 0


@dataclass(frozen=True, slots=True)
class ReportSummary:
    counts: Mapping[JobState, int]
    samples: Mapping[JobState, Tuple[AccountingRecord, ...]]

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def run_times(self, state: JobState) -> RunTimes:
        return run_times(self.samples[state])


def summarize(buckets: Buckets, sample_size: Optional[int] = None) -> ReportSummary:
    """Count each bucket and keep up to ``sample_size`` records of it (all if ``None``)."""
    counts = {state: len(buckets[state]) for state in JobState}
    samples = {
        state: tuple(buckets[state][:sample_size] if sample_size is not None else buckets[state])
        for state in JobState
    }
    return ReportSummary(counts=counts, samples=samples)


def run_times(records: Sequence[AccountingRecord]) -> RunTimes:
    """Average run time (``end - start``) and wall time (``end - submit``).

    Records missing any of the three timestamps are ignored.
    """
    run_total = timedelta()
    wall_total = timedelta()
    n = 0
    for rec in records:
        if rec.submit_time is None or rec.start_time is None or rec.end_time is None:
            continue
        run_total += rec.end_time - rec.start_time
        wall_total += rec.end_time - rec.submit_time
        n += 1
    if n == 0:
        return RunTimes(None, None, 0)
    # whole seconds, as sacct reports them
    return RunTimes(
        timedelta(seconds=int(run_total.total_seconds()) // n),
        timedelta(seconds=int(wall_total.total_seconds()) // n),
        n,
    )


def format_duration(value: Optional[timedelta]) -> str:
    """``HH:MM:SS`` (hours may exceed 24); ``"undefined"`` for ``None``."""
    if value is None:
        return "undefined"
    secs = int(value.total_seconds())
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def sorted_indices(records: Iterable[AccountingRecord]) -> List[int]:
    """Unique array indices, ascending; range tokens are expanded."""
    found = set()
    for rec in records:
        idx = rec.job_id.index
        if isinstance(idx, str):
            try:
                rng = parse_range_token(idx)
            except ValueError:
                continue
            found.update(range(rng.start, rng.end + 1))
        elif idx is not None:
            found.add(idx)
    return sorted(found)


def sorted_job_ids(records: Iterable[AccountingRecord]) -> List[int]:
    """Unique base job ids, ascending."""
    return sorted({rec.job_id.base for rec in records})


def to_frame(records: Iterable[AccountingRecord]) -> pd.DataFrame:
    """Tabulate records for the detailed report."""
    rows: List[Dict[str, object]] = [
        {
            "jobid": str(rec.job_id),
            "state": rec.raw_state or rec.state.value,
            "partition": rec.partition,
            "submit": rec.submit_time,
            "start": rec.start_time,
            "end": rec.end_time,
        }
        for rec in records
    ]
    columns = ["jobid", "state", "partition", "submit", "start", "end"]
    return pd.DataFrame(rows, columns=columns)
