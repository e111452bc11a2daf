"""``smanage report``: classify a batch's jobs by state."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import click
import pandas as pd
from loguru import logger

from smanage.api import query_records
from smanage.cli.root import cli
from smanage.cli.shared import ctx_flag, format_commas, format_tabs
from smanage.config import BatchConfig, ConfigStore
from smanage.errors import QueryError
from smanage.exec.slurm import SacctQuery
from smanage.jobs import (
    AccountingRecord,
    Buckets,
    JobState,
    classify,
    count_occupancy,
    highest_index,
)
from smanage.report import (
    REPORT_ORDER,
    format_duration,
    run_times,
    sorted_indices,
    sorted_job_ids,
    summarize,
    to_frame,
)


def load_buckets(
    filter_args: Sequence[str],
    exclude: Sequence[int] = (),
    query: Optional[SacctQuery] = None,
) -> Tuple[List[AccountingRecord], Buckets]:
    """Query sacct, parse its lines and bucket the records."""
    records = query_records(filter_args, query)
    if not records:
        click.echo("No jobs found with these sacct args")
    else:
        click.echo(f"Jobs: {format_commas(sorted_job_ids(records))}")
    return records, classify(records, exclude=exclude)


def _echo_run_times(records: Sequence[AccountingRecord]) -> None:
    rt = run_times(records)
    click.echo(f"\tAvg Run Time: {format_duration(rt.avg_run_time)}")
    click.echo(f"\tAvg Wall Time: {format_duration(rt.avg_wall_time)}")


def _echo_ids(records: Sequence[AccountingRecord]) -> None:
    click.echo(format_tabs([str(r.job_id) for r in records]))
    click.echo(format_commas(sorted_indices(records)))


def _echo_bucket(state: JobState, records: Sequence[AccountingRecord]) -> None:
    if state is JobState.COMPLETED:
        _echo_run_times(records)
    elif state in (JobState.FAILED, JobState.TIMEOUT):
        click.echo("Rerun these jobs:")
        _echo_ids(records)
        _echo_run_times(records)
    elif state is JobState.RUNNING:
        _echo_ids(records)
    elif state is JobState.PENDING:
        click.echo("Pending jobs: ")
        click.echo(format_tabs([str(r.job_id) for r in records]))
    else:
        click.echo(format_tabs([f"{r.job_id}: {r.raw_state}" for r in records]))
    click.echo("")


def echo_report(buckets: Buckets, verbose: bool = False, detailed: bool = False) -> None:
    summary = summarize(buckets)
    for state in REPORT_ORDER:
        n = summary.counts[state]
        if state is JobState.OTHER:
            if n == 0:
                continue
            click.echo(f"{n} jobs with untracked status")
        else:
            click.echo(f"{n} {state.value} jobs")
        if n and verbose:
            _echo_bucket(state, summary.samples[state])

    if verbose:
        occ = count_occupancy(buckets.pending, buckets.running)
        click.echo(f"Queued or running: {occ.units}")
        seen = buckets.pending + buckets.running + buckets[JobState.COMPLETED]
        click.echo(f"Highest array index: {highest_index(seen)}")

    if detailed and summary.total:
        records = [rec for state in REPORT_ORDER for rec in summary.samples[state]]
        with pd.option_context("display.width", 140, "display.max_columns", None):
            click.echo(to_frame(records).to_string(index=False))


@cli.command("report", context_settings={"ignore_unknown_options": True})
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Batch config whose JOB_IDS, BATCH_NAME and JOB_DATE select the jobs.",
)
@click.option(
    "--exclude",
    "-x",
    multiple=True,
    type=int,
    help="Job id to leave out of the report (repeatable).",
)
@click.option("--detailed", "-d", is_flag=True, help="Print a table of every job.")
@click.argument("sacct_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def report(
    ctx: click.Context,
    config_path: Optional[Path],
    exclude: Tuple[int, ...],
    detailed: bool,
    sacct_args: Tuple[str, ...],
) -> None:
    """Output the report for jobs selected by a config and/or SACCT_ARGS."""
    filter_args: List[str] = []
    if config_path is not None:
        cfg = BatchConfig.from_store(ConfigStore(config_path))
        filter_args += cfg.sacct_filter_args()
    filter_args += list(sacct_args)

    try:
        _, buckets = load_buckets(filter_args, exclude=exclude)
    except QueryError as e:
        # reporting only: an unreachable sacct reads as an empty batch
        logger.warning(f"sacct query failed: {e}")
        click.echo("No jobs found with these sacct args")
        buckets = classify([])
    echo_report(buckets, verbose=ctx_flag(ctx, "verbose"), detailed=detailed)
