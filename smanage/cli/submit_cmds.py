"""``smanage submit``: submit the next window of a reserved batch."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from loguru import logger

from smanage.cli.report_cmds import load_buckets
from smanage.cli.root import cli
from smanage.cli.shared import ctx_flag
from smanage.config import BatchConfig, ConfigStore
from smanage.errors import ValidationError
from smanage.exec.slurm import SacctQuery, SbatchSubmitter, query_max_array_size
from smanage.jobs import count_occupancy
from smanage.schedule import Complete, Skip, Submit, run_cycle, submit_fixed


def _default_config_path(job_name: str) -> Path:
    return Path.cwd() / f"{job_name}_CONFIG"


@cli.command("submit")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Batch config holding the reservation cursor (default: ./<BATCH_NAME>_CONFIG).",
)
@click.option("--batch-name", default=None, help="Job name for sbatch and sacct.")
@click.option(
    "--batch-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory the batch runs in (sbatch -D).",
)
@click.option(
    "--batch-script",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="sbatch script to run.",
)
@click.option("--max-id", type=click.IntRange(min=0), default=None, help="Number of array tasks in the batch.")
@click.option("--reserve", type=int, default=None, help="Jobs allowed in the queue at a time.")
@click.option("--array", default=None, help="Fixed --array range when not reserving, e.g. 0-99.")
@click.option(
    "--max-array-size",
    type=click.IntRange(min=0),
    default=None,
    help="Fold task ids into an array of this size.",
)
@click.option(
    "--detect-array-size",
    is_flag=True,
    help="Fold task ids using the cluster's MaxArraySize from scontrol.",
)
@click.option("--partition", "-p", default=None, help="Partition to submit to.")
@click.option("--reservation", default=None, help="Slurm reservation to target.")
@click.option("--sacct-arg", "sacct_args", multiple=True, help="Extra sacct argument (repeatable).")
@click.option("--sbatch-arg", "sbatch_args", multiple=True, help="Extra sbatch argument (repeatable).")
@click.argument("script_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def submit(
    ctx: click.Context,
    config_path: Optional[Path],
    batch_name: Optional[str],
    batch_dir: Optional[Path],
    batch_script: Optional[Path],
    max_id: Optional[int],
    reserve: Optional[int],
    array: Optional[str],
    max_array_size: Optional[int],
    detect_array_size: bool,
    partition: Optional[str],
    reservation: Optional[str],
    sacct_args: Tuple[str, ...],
    sbatch_args: Tuple[str, ...],
    script_args: Tuple[str, ...],
) -> None:
    """Submit an array of jobs, honouring RESERVE and MAX_ID when set.

    With a reservation, each invocation submits only as many tasks as fit
    under RESERVE and advances NEXT_RUN_ID/LAST_RUN_ID in the config. Run it
    repeatedly (e.g. from cron) until it reports the batch is done. Do not run
    two instances against the same config at once.
    """
    dry_run = ctx_flag(ctx, "dry_run")
    overrides: Dict[str, Any] = {
        "BATCH_NAME": batch_name,
        "BATCH_DIR": str(batch_dir) if batch_dir else None,
        "BATCH_SCRIPT": str(batch_script) if batch_script else None,
        "MAX_ID": max_id,
        "RESERVE": reserve,
        "ARRAY": array,
        "MAX_ARRAY_SIZE": max_array_size,
        "PARTITION": partition,
        "RESERVATION": reservation,
    }
    given = {k: v for k, v in overrides.items() if v is not None}

    persist_extra: Dict[str, Any] = {}
    if config_path is not None:
        store = ConfigStore(config_path, dry_run=dry_run)
    else:
        job_name = BatchConfig.from_mapping(given).job_name
        store = ConfigStore(_default_config_path(job_name), dry_run=dry_run)
        if not store.path.exists():
            # first submission: remember how the batch was defined
            persist_extra = dict(given)
            persist_extra.setdefault("BATCH_NAME", job_name)
        else:
            logger.info(f"Using existing config {store.path}")

    cfg = BatchConfig.from_store(store, given)
    if cfg.batch_script is None:
        raise ValidationError("A batch script is required (--batch-script or BATCH_SCRIPT).")
    if persist_extra:
        persist_extra.setdefault("BATCH_DIR", str(cfg.batch_dir))

    if detect_array_size and cfg.max_array_size == 0:
        size = query_max_array_size()
        cfg = cfg.model_copy(update={"max_array_size": size})

    submitter = SbatchSubmitter(
        workdir=cfg.batch_dir,
        job_name=cfg.job_name,
        script=cfg.batch_script,
        script_args=script_args,
        sbatch_flags=[*cfg.sbatch_flags(), *sbatch_args],
        dry_run=dry_run,
    )

    if not cfg.uses_reservation:
        click.echo(f"Submitting jobs {cfg.array}" if cfg.array else "Submitting job")
        job_id = submit_fixed(cfg.array, submitter, store, persist_extra=persist_extra)
        click.echo(f"Submitted batch job {job_id}")
        return

    filter_args = [*cfg.sacct_filter_args(default_name=True), *sacct_args]
    _, buckets = load_buckets(filter_args, query=SacctQuery())
    occ = count_occupancy(buckets.pending, buckets.running)
    for warning in occ.warnings:
        click.echo(f"Warning: {warning}", err=True)

    outcome = run_cycle(cfg.cursor(), occ.units, submitter, store, persist_extra=persist_extra)
    match outcome.decision:
        case Complete():
            click.echo(f"Ding! Jobs named {cfg.job_name} are done!")
        case Skip(occupancy=occupancy, capacity=capacity):
            click.echo(
                f"No jobs submitted for {cfg.job_name}. "
                f"The queue is full with {occupancy} of {capacity} runs"
            )
        case Submit(window=window, array=spec):
            click.echo(f"Submitting jobs {window.start} - {window.end} as {spec}")
            click.echo(f"Submitted batch job {outcome.job_id}")
