"""Partition accounting records into per-state buckets."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from smanage.jobs.records import AccountingRecord, JobState

__all__ = ["Buckets", "classify"]


class Buckets(Mapping[JobState, Tuple[AccountingRecord, ...]]):
    """Read-only mapping with exactly one (possibly empty) bucket per state."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[JobState, Iterable[AccountingRecord]]):
        self._data = MappingProxyType(
            {state: tuple(data.get(state, ())) for state in JobState}
        )

    def __getitem__(self, state: JobState) -> Tuple[AccountingRecord, ...]:
        return self._data[state]

    def __iter__(self) -> Iterator[JobState]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        sizes = ", ".join(f"{s.value}={len(v)}" for s, v in self._data.items())
        return f"Buckets({sizes})"

    @property
    def total(self) -> int:
        """Number of records across all buckets."""
        return sum(len(v) for v in self._data.values())

    @property
    def pending(self) -> Tuple[AccountingRecord, ...]:
        return self._data[JobState.PENDING]

    @property
    def running(self) -> Tuple[AccountingRecord, ...]:
        return self._data[JobState.RUNNING]


def classify(
    records: Iterable[AccountingRecord],
    exclude: Optional[Iterable[int]] = None,
) -> Buckets:
    """Assign each record to the bucket named by its state.

    Parameters
    ----------
    records : iterable of AccountingRecord
        Parsed accounting records, in query order.
    exclude : iterable of int, optional
        Base job ids to leave out entirely.

    Returns
    -------
    Buckets
        Input order is preserved within each bucket.
    """
    skip = frozenset(exclude or ())
    grouped: Dict[JobState, List[AccountingRecord]] = {s: [] for s in JobState}
    for rec in records:
        if rec.job_id.base in skip:
            continue
        grouped[rec.state].append(rec)
    return Buckets(grouped)
