from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import List

import pytest

SLURM_ENV = "SMANAGE_TEST_SLURM"


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slurm: needs a live Slurm installation (env: SMANAGE_TEST_SLURM)"
    )


def pytest_collection_modifyitems(config, items):
    slurm_enabled = os.environ.get(SLURM_ENV) == "1"
    for item in items:
        if "slurm" in item.keywords and not slurm_enabled:
            item.add_marker(
                pytest.mark.skip(reason="Set SMANAGE_TEST_SLURM=1 to run against a live Slurm.")
            )


def sacct_line(
    jobid: str,
    state: str = "COMPLETED",
    partition: str = "normal",
    submit: str = "2024-01-01T10:00:00",
    start: str = "2024-01-01T10:05:00",
    end: str = "2024-01-01T11:05:00",
    raw: str | None = None,
) -> str:
    """Build one ``sacct -XP`` line in smanage's column order."""
    if state in ("PENDING",):
        start, end = "Unknown", "Unknown"
    elif state == "RUNNING":
        end = "Unknown"
    return "|".join([jobid, state, partition, submit, start, end, raw or jobid])


class FakeSlurm:
    """Stand-in for ``run_with_log`` answering sacct, sbatch and scontrol."""

    def __init__(self) -> None:
        self.sacct_lines: List[str] = []
        self.sacct_rc = 0
        self.sbatch_rc = 0
        self.sbatch_error = "sbatch: error: QOSMaxSubmitJobPerUserLimit"
        self.next_job_id = 1000
        self.max_array_size = 1001
        self.calls: List[List[str]] = []

    def __call__(self, command, level="debug", working_dir=None, *, check=True, timeout=None, env=None):
        cmd = [str(c) for c in command]
        self.calls.append(cmd)
        exe = Path(cmd[0]).name
        if exe == "sacct":
            out = "".join(f"{ln}\n" for ln in self.sacct_lines)
            return subprocess.CompletedProcess(cmd, self.sacct_rc, out, "")
        if exe == "sbatch":
            if self.sbatch_rc:
                return subprocess.CompletedProcess(cmd, self.sbatch_rc, "", self.sbatch_error)
            job_id = self.next_job_id
            self.next_job_id += 1
            return subprocess.CompletedProcess(cmd, 0, f"Submitted batch job {job_id}\n", "")
        if exe == "scontrol":
            out = f"MaxArraySize            = {self.max_array_size}\nMaxJobCount = 10000\n"
            return subprocess.CompletedProcess(cmd, 0, out, "")
        raise AssertionError(f"unexpected command {cmd}")

    def commands(self, exe: str) -> List[List[str]]:
        return [c for c in self.calls if Path(c[0]).name == exe]


@pytest.fixture()
def fake_slurm(monkeypatch) -> FakeSlurm:
    fake = FakeSlurm()
    monkeypatch.setattr("smanage.utils.process.run_with_log", fake)
    return fake


@pytest.fixture()
def make_line():
    return sacct_line
