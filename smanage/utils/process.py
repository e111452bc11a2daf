from __future__ import annotations

import os
import shlex
import signal
import subprocess as sp
from typing import Mapping, Sequence

from loguru import logger

from smanage.errors import ExternalCommandError

__all__ = ["exec_from_env", "run_with_log", "sacct", "sbatch", "scontrol"]


def exec_from_env(key: str, default: str) -> str:
    """Resolve an executable name/path from the environment."""
    return os.environ.get(key, default)


# Slurm executables; overridable for sites that install them off PATH.
sacct = exec_from_env("SMANAGE_SACCT", "sacct")
sbatch = exec_from_env("SMANAGE_SBATCH", "sbatch")
scontrol = exec_from_env("SMANAGE_SCONTROL", "scontrol")


def run_with_log(
    command: Sequence[str],
    level: str = "debug",
    working_dir: str | os.PathLike[str] | None = None,
    *,
    check: bool = True,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> sp.CompletedProcess[str]:
    """
    Run a subprocess command and stream stdout/stderr through ``loguru``.

    Raises
    ------
    ExternalCommandError
        When the executable is missing, the command times out, or (with
        ``check``) it exits non-zero or dies from a signal.
    """
    log_methods = {
        "debug": logger.debug,
        "info": logger.info,
        "warning": logger.warning,
        "error": logger.error,
    }
    log = log_methods.get(level)
    if log is None:
        raise ValueError(f"Invalid log level: {level}")

    printable = shlex.join(str(c) for c in command)
    logger.debug(f"Running command: {printable}")
    if working_dir is not None:
        logger.debug(f"Working directory: {working_dir}")

    try:
        result = sp.run(
            [str(c) for c in command],
            stdout=sp.PIPE,
            stderr=sp.PIPE,
            text=True,
            check=False,
            cwd=working_dir,
            timeout=timeout,
            env=(None if env is None else {**os.environ, **env}),
        )
    except FileNotFoundError as e:
        raise ExternalCommandError(f"Executable not found: {command[0]}") from e
    except sp.TimeoutExpired as e:
        raise ExternalCommandError(
            f"Command timed out after {timeout}s: {printable}",
            output=str(e.output or ""),
        ) from e

    if result.stdout:
        log("Command output:")
        for line in result.stdout.splitlines():
            log(line)
    if result.stderr:
        log("Command errors:")
        for line in result.stderr.splitlines():
            log(line)

    rc = result.returncode
    if rc == 0 or not check:
        return result

    output = (result.stdout + result.stderr).strip()
    if rc < 0:
        sig = -rc
        try:
            sig_name = signal.Signals(sig).name
        except ValueError:  # pragma: no cover
            sig_name = f"SIG{sig}"
        raise ExternalCommandError(
            f"Command {printable} died with signal {sig_name} ({sig}).",
            output=output,
            returncode=rc,
        )
    raise ExternalCommandError(
        f"Command {printable} failed with return code {rc}.",
        output=output,
        returncode=rc,
    )
