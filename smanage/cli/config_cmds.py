"""``smanage config``: create, append to, or reset batch config files."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from smanage.cli.root import SmanageGroup, cli
from smanage.cli.shared import ctx_flag
from smanage.config import ConfigStore


def _split_ids(jobids: Optional[str]) -> list[str]:
    if not jobids:
        return []
    return [j.strip() for j in jobids.split(",") if j.strip()]


@cli.group("config", cls=SmanageGroup)
def config() -> None:
    """Create, reset or append job ids to a config file."""


@config.command("create")
@click.option("--jobname", required=True, help="Batch name; the file is written as <jobname>_CONFIG.")
@click.option(
    "--jobdir",
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory where the batch of jobs is stored.",
)
@click.option("--jobids", default=None, help="Comma separated job ids already submitted.")
@click.option(
    "--dest",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to write the config into (defaults to the current directory).",
)
@click.pass_context
def create(
    ctx: click.Context,
    jobname: str,
    jobdir: Path,
    jobids: Optional[str],
    dest: Optional[Path],
) -> None:
    """Write a new config for a batch."""
    path = (dest or Path.cwd()) / f"{jobname}_CONFIG"
    click.echo(f"Creating config file {path}")
    ConfigStore.create(
        path,
        batch_name=jobname,
        batch_dir=jobdir.resolve(),
        job_ids=_split_ids(jobids),
        dry_run=ctx_flag(ctx, "dry_run"),
    )


@config.command("append")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file to update.",
)
@click.option("--jobids", required=True, help="Comma separated job ids to add.")
@click.pass_context
def append(ctx: click.Context, config_path: Path, jobids: str) -> None:
    """Add job ids to JOB_IDS (sorted, unique) and stamp JOB_DATE if unset."""
    ids = _split_ids(jobids)
    if not ids:
        raise click.BadParameter("no job ids given", param_hint="--jobids")
    store = ConfigStore(config_path, dry_run=ctx_flag(ctx, "dry_run"))
    merged = store.append_job_ids(ids)
    click.echo(f"JOB_IDS={','.join(merged)}")


@config.command("reset")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file to reset.",
)
@click.pass_context
def reset(ctx: click.Context, config_path: Path) -> None:
    """Clear JOB_IDS, JOB_DATE and the reservation cursor."""
    store = ConfigStore(config_path, dry_run=ctx_flag(ctx, "dry_run"))
    click.echo(f"Resetting {store.get('BATCH_NAME') or config_path}")
    store.reset()
