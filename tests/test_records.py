from __future__ import annotations

from datetime import datetime

import pytest

from smanage.errors import ParseError
from smanage.jobs.records import (
    IndexRange,
    JobId,
    JobState,
    parse_range_token,
    parse_sacct_line,
    parse_sacct_output,
)


def test_parse_completed_array_task(make_line):
    rec = parse_sacct_line(make_line("4242_7", "COMPLETED", raw="4250"))
    assert rec.job_id == JobId(4242, 7)
    assert rec.state is JobState.COMPLETED
    assert rec.partition == "normal"
    assert rec.submit_time == datetime(2024, 1, 1, 10, 0, 0)
    assert rec.end_time == datetime(2024, 1, 1, 11, 5, 0)
    assert rec.job_id_raw == "4250"


def test_parse_pending_range_keeps_token(make_line):
    rec = parse_sacct_line(make_line("4242_[3-9]", "PENDING"))
    assert rec.job_id.base == 4242
    assert rec.job_id.index == "[3-9]"
    assert rec.job_id.is_range
    assert rec.start_time is None and rec.end_time is None


def test_plain_job_has_no_index(make_line):
    rec = parse_sacct_line(make_line("77", "RUNNING"))
    assert rec.job_id == JobId(77)
    assert str(rec.job_id) == "77"


@pytest.mark.parametrize(
    "raw_state, expected",
    [
        ("TIMEOUT", JobState.TIMEOUT),
        ("FAILED", JobState.FAILED),
        ("CANCELLED by 1234", JobState.OTHER),
        ("OUT_OF_MEMORY", JobState.OTHER),
        ("", JobState.OTHER),
    ],
)
def test_state_mapping(raw_state, expected):
    assert JobState.from_sacct(raw_state) is expected


def test_other_state_keeps_literal(make_line):
    rec = parse_sacct_line(make_line("9_1", "CANCELLED by 1234"))
    assert rec.state is JobState.OTHER
    assert rec.raw_state == "CANCELLED by 1234"


@pytest.mark.parametrize(
    "line",
    [
        "4242_1|COMPLETED|normal",
        "abc|COMPLETED|normal|2024-01-01T10:00:00|Unknown|Unknown|abc",
        "4242_x|COMPLETED|normal|2024-01-01T10:00:00|Unknown|Unknown|4242",
        "4242_1|COMPLETED|normal|yesterday|Unknown|Unknown|4242",
    ],
)
def test_malformed_lines_raise(line):
    with pytest.raises(ParseError):
        parse_sacct_line(line)


def test_output_parsing_skips_bad_lines(make_line):
    lines = [
        make_line("10_0", "COMPLETED"),
        "garbage",
        "",
        make_line("10_1", "FAILED"),
    ]
    records = parse_sacct_output(lines)
    assert [str(r.job_id) for r in records] == ["10_0", "10_1"]


def test_range_token_parsing():
    assert parse_range_token("[2-10]") == IndexRange(2, 10)
    assert parse_range_token("[0-99%5]").width == 99
    with pytest.raises(ValueError):
        parse_range_token("[10-2]")
    with pytest.raises(ValueError):
        parse_range_token("[a-b]")
    with pytest.raises(ValueError):
        parse_range_token("[1,3,5]")
