"""Public API for smanage.

Entry points fall into three groups:

* **Accounting** – parse ``sacct`` output and bucket jobs by state.
* **Scheduling** – count occupied slots, compute the next reservation window
  and run one submission cycle against a batch config.
* **Reporting** – summarize buckets for display.

Typical usage
-------------

Plan the next window for a batch without submitting anything::

    from smanage.api import load_batch_config, next_window, query_buckets, occupancy

    cfg = load_batch_config("mybatch_CONFIG")
    buckets = query_buckets(cfg.sacct_filter_args(default_name=True))
    print(next_window(cfg.cursor(), occupancy(buckets.pending, buckets.running)))
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from ._version import __version__
from .config import BatchConfig, ConfigStore, load_batch_config
from .exec.slurm import SacctQuery, SbatchSubmitter, query_max_array_size
from .jobs import (
    AccountingRecord,
    Buckets,
    JobState,
    classify,
    count_occupancy,
    occupancy,
    parse_sacct_output,
)
from .report import ReportSummary, summarize
from .schedule import (
    Complete,
    CycleOutcome,
    ReservationCursor,
    Skip,
    Submit,
    next_window,
    run_cycle,
    submit_fixed,
)

__all__ = [
    "__version__",
    "AccountingRecord",
    "BatchConfig",
    "Buckets",
    "Complete",
    "ConfigStore",
    "CycleOutcome",
    "JobState",
    "ReportSummary",
    "ReservationCursor",
    "SacctQuery",
    "SbatchSubmitter",
    "Skip",
    "Submit",
    "classify",
    "count_occupancy",
    "load_batch_config",
    "next_window",
    "occupancy",
    "parse_sacct_output",
    "query_buckets",
    "query_records",
    "query_max_array_size",
    "run_cycle",
    "submit_fixed",
    "summarize",
]


def query_records(
    filter_args: Sequence[str] = (), query: Optional[SacctQuery] = None
) -> List[AccountingRecord]:
    """Run ``sacct`` with ``filter_args`` and parse its lines."""
    lines = (query or SacctQuery())(filter_args)
    return parse_sacct_output(lines)


def query_buckets(
    filter_args: Sequence[str] = (),
    exclude: Sequence[int] = (),
    query: Optional[SacctQuery] = None,
) -> Buckets:
    """Run ``sacct`` with ``filter_args`` and classify the result."""
    return classify(query_records(filter_args, query), exclude=exclude)
