from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from smanage.cli import cli
from smanage.config import ConfigStore
from smanage.errors import ExternalCommandError


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def batch(tmp_path: Path) -> Path:
    script = tmp_path / "run.sh"
    script.write_text("#!/bin/bash\necho $SLURM_ARRAY_TASK_ID $1\n")
    cfg = tmp_path / "sweep_CONFIG"
    cfg.write_text(
        "BATCH_NAME=sweep\n"
        f"BATCH_DIR={tmp_path}\n"
        f"BATCH_SCRIPT={script}\n"
        "JOB_IDS=\n"
        "MAX_ID=10\n"
        "RESERVE=3\n"
    )
    return cfg


def test_no_arguments_prints_help(runner):
    result = runner.invoke(cli, [], obj={})
    assert result.exit_code == 0
    assert "report" in result.output and "submit" in result.output


def test_unknown_option_is_usage_error(runner):
    result = runner.invoke(cli, ["submit", "--no-such-flag"], obj={})
    assert result.exit_code == 1


def test_report_verbose(runner, fake_slurm, make_line):
    fake_slurm.sacct_lines = [
        make_line("300_0", "COMPLETED"),
        make_line("300_1", "FAILED"),
        make_line("300_2", "TIMEOUT"),
        make_line("300_3", "RUNNING"),
        make_line("300_[4-6]", "PENDING"),
        make_line("300_7", "CANCELLED by 42"),
    ]
    result = runner.invoke(cli, ["-v", "report", "--name=sweep"], obj={})

    assert result.exit_code == 0, result.output
    out = result.output
    assert "Jobs: 300" in out
    assert "1 COMPLETED jobs" in out
    assert "1 FAILED jobs" in out
    assert "1 TIMEOUT jobs" in out
    assert "1 RUNNING jobs" in out
    assert "1 PENDING jobs" in out
    assert "1 jobs with untracked status" in out
    assert "Rerun these jobs:" in out
    assert "300_7: CANCELLED by 42" in out
    assert "Queued or running: 3" in out
    assert "Highest array index: 6" in out
    assert fake_slurm.commands("sacct")[0][-1] == "--name=sweep"


def test_report_uses_config_and_exclude(runner, fake_slurm, make_line, batch):
    ConfigStore(batch).update({"JOB_IDS": "300,301", "JOB_DATE": "2024-01-01T09:00"})
    fake_slurm.sacct_lines = [make_line("300_0"), make_line("301_0", "FAILED")]

    result = runner.invoke(cli, ["report", "--config", str(batch), "-x", "301"], obj={})

    assert result.exit_code == 0, result.output
    assert "1 COMPLETED jobs" in result.output
    assert "0 FAILED jobs" in result.output
    assert "untracked" not in result.output
    cmd = fake_slurm.commands("sacct")[0]
    assert "--jobs=300,301" in cmd
    assert "--name=sweep" in cmd
    assert cmd[-2:] == ["-S", "2024-01-01T09:00"]


def test_report_detailed_table(runner, fake_slurm, make_line):
    fake_slurm.sacct_lines = [make_line("400_0"), make_line("400_1", "FAILED")]
    result = runner.invoke(cli, ["report", "-d", "--name=x"], obj={})
    assert result.exit_code == 0, result.output
    assert "jobid" in result.output and "400_1" in result.output


def test_report_no_jobs(runner, fake_slurm):
    result = runner.invoke(cli, ["report", "--name=nothing"], obj={})
    assert result.exit_code == 0
    assert "No jobs found with these sacct args" in result.output
    assert "0 COMPLETED jobs" in result.output


def test_submit_first_window(runner, fake_slurm, batch, tmp_path):
    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})

    assert result.exit_code == 0, result.output
    assert "Submitting jobs 0 - 3 as 0-3" in result.output
    assert "Submitted batch job 1000" in result.output
    cmd = fake_slurm.commands("sbatch")[0]
    assert "--array=0-3" in cmd
    assert "--job-name=sweep" in cmd
    assert cmd[-2:] == [str(tmp_path / "run.sh"), "0"]
    values = ConfigStore(batch).as_dict()
    assert (values["NEXT_RUN_ID"], values["LAST_RUN_ID"]) == ("0", "3")
    assert values["JOB_IDS"] == "1000"


def test_submit_second_window_passes_offset(runner, fake_slurm, batch):
    ConfigStore(batch).update({"NEXT_RUN_ID": 0, "LAST_RUN_ID": 3, "JOB_IDS": "999"})

    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})

    assert result.exit_code == 0, result.output
    assert "Submitting jobs 4 - 7 as 0-3" in result.output
    assert fake_slurm.commands("sbatch")[0][-1] == "4"
    assert "--jobs=999" in fake_slurm.commands("sacct")[0]
    store = ConfigStore(batch)
    assert (store.get("NEXT_RUN_ID"), store.get("LAST_RUN_ID")) == ("4", "7")
    assert store.job_ids() == ["999", "1000"]


def test_submit_skips_when_queue_full(runner, fake_slurm, make_line, batch):
    ConfigStore(batch).update({"NEXT_RUN_ID": 0, "LAST_RUN_ID": 3, "JOB_IDS": "1000"})
    before = batch.read_text()
    fake_slurm.sacct_lines = [
        make_line("1000_[1-3]", "PENDING"),
        make_line("1000_0", "RUNNING"),
    ]

    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})

    assert result.exit_code == 0, result.output
    assert "The queue is full with 3 of 3 runs" in result.output
    assert fake_slurm.commands("sbatch") == []
    assert batch.read_text() == before


def test_submit_reports_done(runner, fake_slurm, batch):
    ConfigStore(batch).update({"NEXT_RUN_ID": 9, "LAST_RUN_ID": 10})
    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})
    assert result.exit_code == 0, result.output
    assert "Ding! Jobs named sweep are done!" in result.output
    assert fake_slurm.commands("sbatch") == []


def test_submit_failure_passes_exit_code_through(runner, fake_slurm, batch):
    ConfigStore(batch).update({"NEXT_RUN_ID": 0, "LAST_RUN_ID": 3})
    before = batch.read_text()
    fake_slurm.sbatch_rc = 3

    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})

    assert result.exit_code == 3
    assert "ERROR: sbatch: error: QOSMaxSubmitJobPerUserLimit" in result.output
    assert batch.read_text() == before


def test_submit_missing_script(runner, fake_slurm, tmp_path):
    cfg = tmp_path / "noscript_CONFIG"
    cfg.write_text("BATCH_NAME=noscript\nMAX_ID=4\nRESERVE=2\n")
    result = runner.invoke(cli, ["submit", "--config", str(cfg)], obj={})
    assert result.exit_code == 1
    assert "batch script is required" in result.output
    assert fake_slurm.calls == []


def test_submit_reserve_without_max_id(runner, fake_slurm, batch):
    ConfigStore(batch).unset("MAX_ID")
    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})
    assert result.exit_code == 1
    assert "MAX_ID" in result.output
    assert fake_slurm.commands("sbatch") == []


def test_submit_fixed_array(runner, fake_slurm, tmp_path):
    script = tmp_path / "job.sh"
    script.write_text("#!/bin/bash\n")
    cfg = tmp_path / "fixed_CONFIG"
    cfg.write_text(f"BATCH_NAME=fixed\nBATCH_SCRIPT={script}\nARRAY=0-9\n")

    result = runner.invoke(cli, ["submit", "--config", str(cfg)], obj={})

    assert result.exit_code == 0, result.output
    assert "--array=0-9" in fake_slurm.commands("sbatch")[0]
    assert fake_slurm.commands("sacct") == []
    assert ConfigStore(cfg).job_ids() == ["1000"]


def test_submit_without_config_creates_one(runner, fake_slurm, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    script = tmp_path / "run.sh"
    script.write_text("#!/bin/bash\n")

    result = runner.invoke(
        cli,
        [
            "submit",
            "--batch-name", "sweep",
            "--batch-script", str(script),
            "--max-id", "10",
            "--reserve", "3",
            "--partition", "gpu",
        ],
        obj={},
    )

    assert result.exit_code == 0, result.output
    store = ConfigStore(tmp_path / "sweep_CONFIG")
    values = store.as_dict()
    assert values["BATCH_NAME"] == "sweep"
    assert values["MAX_ID"] == "10" and values["RESERVE"] == "3"
    assert values["PARTITION"] == "gpu"
    assert values["LAST_RUN_ID"] == "3"
    assert "--partition=gpu" in fake_slurm.commands("sbatch")[0]


def test_submit_detects_array_size(runner, fake_slurm, batch):
    ConfigStore(batch).update({"NEXT_RUN_ID": 4, "LAST_RUN_ID": 7, "MAX_ID": 20})
    fake_slurm.max_array_size = 5
    result = runner.invoke(
        cli, ["submit", "--config", str(batch), "--detect-array-size"], obj={}
    )
    assert result.exit_code == 0, result.output
    assert "--array=3-4,0-1" in fake_slurm.commands("sbatch")[0]


def test_dry_run_submit_writes_nothing(runner, fake_slurm, batch):
    before = batch.read_text()
    result = runner.invoke(cli, ["-n", "submit", "--config", str(batch)], obj={})
    assert result.exit_code == 0, result.output
    assert "Submitted batch job DRYRUN" in result.output
    assert fake_slurm.commands("sbatch") == []
    assert batch.read_text() == before


def test_config_create_append_reset(runner, tmp_path):
    jobdir = tmp_path / "jobs"
    jobdir.mkdir()

    result = runner.invoke(
        cli,
        ["config", "create", "--jobname", "demo", "--jobdir", str(jobdir), "--dest", str(tmp_path)],
        obj={},
    )
    assert result.exit_code == 0, result.output
    path = tmp_path / "demo_CONFIG"
    assert f"Creating config file {path}" in result.output
    assert ConfigStore(path).get("BATCH_DIR") == str(jobdir.resolve())

    result = runner.invoke(
        cli, ["config", "append", "--config", str(path), "--jobids", "42,7,42"], obj={}
    )
    assert result.exit_code == 0, result.output
    assert "JOB_IDS=7,42" in result.output

    ConfigStore(path).update({"NEXT_RUN_ID": 3, "LAST_RUN_ID": 5})
    result = runner.invoke(cli, ["config", "reset", "--config", str(path)], obj={})
    assert result.exit_code == 0, result.output
    assert "Resetting demo" in result.output
    values = ConfigStore(path).as_dict()
    assert values["JOB_IDS"] == ""
    assert "LAST_RUN_ID" not in values


def test_config_append_requires_ids(runner, tmp_path):
    path = tmp_path / "a_CONFIG"
    path.write_text("BATCH_NAME=a\n")
    result = runner.invoke(cli, ["config", "append", "--config", str(path), "--jobids", ","], obj={})
    assert result.exit_code == 1


def _sacct_missing(monkeypatch):
    def boom(command, *args, **kwargs):
        raise ExternalCommandError(f"Executable not found: {command[0]}")

    monkeypatch.setattr("smanage.utils.process.run_with_log", boom)


def test_report_survives_unreachable_sacct(runner, monkeypatch):
    _sacct_missing(monkeypatch)
    result = runner.invoke(cli, ["report", "--name=sweep"], obj={})
    assert result.exit_code == 0, result.output
    assert "No jobs found with these sacct args" in result.output
    assert "0 PENDING jobs" in result.output


def test_submit_stops_when_sacct_unreachable(runner, monkeypatch, batch):
    _sacct_missing(monkeypatch)
    before = batch.read_text()
    result = runner.invoke(cli, ["submit", "--config", str(batch)], obj={})
    assert result.exit_code == 1
    assert "Executable not found: sacct" in result.output
    assert batch.read_text() == before
