"""Count queued and running array tasks against the reservation cap."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from loguru import logger

from smanage.jobs.records import AccountingRecord, parse_range_token

__all__ = ["Occupancy", "pending_units", "count_occupancy", "occupancy", "highest_index"]


@dataclass(frozen=True, slots=True)
class Occupancy:
    """Occupied slot count plus any warnings raised while counting."""

    units: int
    warnings: Tuple[str, ...] = field(default_factory=tuple)


def pending_units(record: AccountingRecord) -> int:
    """Return how many slots one pending accounting line stands for.

    A folded ``[lo-hi]`` token counts ``hi - lo``, matching how the
    reservation math has always counted them.

    Raises
    ------
    ValueError
        If the record carries a malformed range token.
    """
    idx = record.job_id.index
    if isinstance(idx, str):
        return parse_range_token(idx).width
    return 1


def count_occupancy(
    pending: Sequence[AccountingRecord], running: Sequence[AccountingRecord]
) -> Occupancy:
    """Return ``len(running)`` plus the pending contributions."""
    warnings: List[str] = []
    units = len(running)
    for rec in pending:
        try:
            units += pending_units(rec)
        except ValueError as e:
            msg = f"Ignoring pending job {rec.job_id}: {e}"
            logger.warning(msg)
            warnings.append(msg)
    return Occupancy(units, tuple(warnings))


def occupancy(
    pending: Sequence[AccountingRecord], running: Sequence[AccountingRecord]
) -> int:
    return count_occupancy(pending, running).units


def highest_index(records: Iterable[AccountingRecord]) -> int:
    """Largest array index seen (right edge for range tokens), ``-1`` if none."""
    best = -1
    for rec in records:
        idx = rec.job_id.index
        if isinstance(idx, str):
            try:
                idx = parse_range_token(idx).end
            except ValueError:
                continue
        if idx is not None and idx > best:
            best = idx
    return best
