"""Accounting records, classification and occupancy counting."""

from .classify import Buckets, classify
from .occupancy import Occupancy, count_occupancy, highest_index, occupancy
from .records import (
    AccountingRecord,
    IndexRange,
    JobId,
    JobState,
    parse_sacct_line,
    parse_sacct_output,
)

__all__ = [
    "AccountingRecord",
    "Buckets",
    "IndexRange",
    "JobId",
    "JobState",
    "Occupancy",
    "classify",
    "count_occupancy",
    "highest_index",
    "occupancy",
    "parse_sacct_line",
    "parse_sacct_output",
]
