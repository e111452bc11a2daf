"""Thin wrappers around the Slurm command-line tools smanage talks to."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from smanage.errors import ExternalCommandError, QueryError, SubmitError
from smanage.jobs.records import SACCT_FORMAT
from smanage.utils import process

__all__ = [
    "JOBID_RE",
    "DRY_RUN_JOB_ID",
    "SacctQuery",
    "SbatchSubmitter",
    "parse_job_id",
    "query_max_array_size",
]

JOBID_RE = re.compile(r"Submitted batch job\s+(\d+)", re.I)
DRY_RUN_JOB_ID = "DRYRUN"
_MAX_ARRAY_RE = re.compile(r"^\s*MaxArraySize\s*=\s*(\d+)", re.M)


def parse_job_id(output: str) -> Optional[str]:
    """Extract the job id from ``sbatch`` output, ``None`` if absent."""
    m = JOBID_RE.search(output)
    return m.group(1) if m else None


class SacctQuery:
    """Fetch accounting lines with ``sacct -XP --noheader``.

    Parameters
    ----------
    executable : str, optional
        ``sacct`` binary (defaults to ``$SMANAGE_SACCT`` or ``sacct``).
    """

    def __init__(self, executable: Optional[str] = None) -> None:
        self.executable = executable or process.sacct

    def command(self, filter_args: Sequence[str] = ()) -> List[str]:
        return [
            self.executable,
            "-XP",
            "--noheader",
            f"--format={SACCT_FORMAT}",
            *filter_args,
        ]

    def __call__(self, filter_args: Sequence[str] = ()) -> List[str]:
        """Return raw accounting lines; an empty list means no jobs matched.

        Raises
        ------
        QueryError
            Only when ``sacct`` cannot be executed at all.
        """
        cmd = self.command(filter_args)
        logger.info(f"Finding jobs using: {' '.join(cmd)}")
        try:
            result = process.run_with_log(cmd, check=False)
        except ExternalCommandError as e:
            raise QueryError(str(e), output=e.output, returncode=e.returncode) from e
        if result.returncode != 0:
            logger.warning(
                f"sacct exited with code {result.returncode}: {result.stderr.strip()}"
            )
        return [ln for ln in result.stdout.splitlines() if ln.strip()]


class SbatchSubmitter:
    """Submit the batch script as an array job.

    The logical offset of the window is appended as the last script
    argument so the script can map ``$SLURM_ARRAY_TASK_ID`` back onto the
    logical task id.

    Parameters
    ----------
    workdir : pathlib.Path
        Directory passed to ``sbatch -D``.
    job_name : str
        Value for ``--job-name``; sacct queries filter on it.
    script : pathlib.Path
        Batch script to submit.
    script_args : Sequence[str], optional
        Extra arguments for the script.
    sbatch_flags : Sequence[str], optional
        Extra ``sbatch`` flags (partition, reservation, ...).
    dry_run : bool, optional
        Log the command and return :data:`DRY_RUN_JOB_ID` instead of
        submitting.
    """

    def __init__(
        self,
        workdir: Path,
        job_name: str,
        script: Path,
        script_args: Sequence[str] = (),
        sbatch_flags: Sequence[str] = (),
        dry_run: bool = False,
        executable: Optional[str] = None,
    ) -> None:
        self.workdir = Path(workdir)
        self.job_name = job_name
        self.script = Path(script)
        self.script_args = list(script_args)
        self.sbatch_flags = list(sbatch_flags)
        self.dry_run = dry_run
        self.executable = executable or process.sbatch

    def command(self, array: Optional[str] = None, offset: Optional[int] = None) -> List[str]:
        cmd = [self.executable, "-D", str(self.workdir), f"--job-name={self.job_name}"]
        if array:
            cmd.append(f"--array={array}")
        cmd += self.sbatch_flags
        cmd.append(str(self.script))
        cmd += self.script_args
        if offset is not None:
            cmd.append(str(offset))
        return cmd

    def __call__(self, array: Optional[str] = None, offset: Optional[int] = None) -> str:
        """Submit and return the new job id.

        Raises
        ------
        SubmitError
            If ``sbatch`` exits non-zero or its output carries no job id.
        """
        cmd = self.command(array, offset)
        if self.dry_run:
            logger.info(f"[dry-run] {' '.join(cmd)}")
            return DRY_RUN_JOB_ID

        try:
            result = process.run_with_log(cmd, check=False)
        except ExternalCommandError as e:
            raise SubmitError(str(e), output=e.output, returncode=e.returncode) from e

        output = (result.stdout + result.stderr).strip()
        if result.returncode != 0:
            raise SubmitError(
                f"sbatch failed with exit code {result.returncode}",
                output=output,
                returncode=result.returncode,
            )
        job_id = parse_job_id(result.stdout)
        if job_id is None:
            raise SubmitError(f"Unexpected sbatch output: {output}", output=output)
        logger.info(result.stdout.strip())
        return job_id


def query_max_array_size(executable: Optional[str] = None) -> int:
    """Read ``MaxArraySize`` from ``scontrol show config``."""
    cmd = [executable or process.scontrol, "show", "config"]
    result = process.run_with_log(cmd)
    m = _MAX_ARRAY_RE.search(result.stdout)
    if not m:
        raise ExternalCommandError(
            "MaxArraySize not found in scontrol output", output=result.stdout
        )
    size = int(m.group(1))
    logger.debug(f"Cluster MaxArraySize = {size}")
    return size
