"""Typed view of ``sacct`` accounting lines."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Union

from loguru import logger

from smanage.errors import ParseError

__all__ = [
    "SACCT_FORMAT",
    "JobState",
    "IndexRange",
    "JobId",
    "AccountingRecord",
    "parse_range_token",
    "parse_sacct_line",
    "parse_sacct_output",
]

# Column order requested from sacct; parse_sacct_line relies on it.
SACCT_FORMAT = "jobid,state,partition,submit,start,end,jobidraw"
_N_FIELDS = len(SACCT_FORMAT.split(","))

_RANGE_RE = re.compile(r"^\[(?P<lo>\d+)-(?P<hi>\d+)(?:%\d+)?\]$")
_UNSET_TIMES = {"", "Unknown", "None", "N/A"}


class JobState(str, Enum):
    """Accounting state buckets tracked by smanage."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
    RUNNING = "RUNNING"
    PENDING = "PENDING"
    OTHER = "OTHER"

    @classmethod
    def from_sacct(cls, value: str) -> "JobState":
        """Map a literal sacct state (``"CANCELLED by 42"`` etc.) to a bucket."""
        word = value.strip().upper()
        if word == cls.OTHER.value:
            return cls.OTHER
        try:
            return cls(word)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True, slots=True)
class IndexRange:
    """Inclusive pair of array indices ``start..end``."""

    start: int
    end: int

    @property
    def width(self) -> int:
        """Span width ``end - start`` as used for pending-slot accounting."""
        return self.end - self.start

    def __str__(self) -> str:
        if self.start == self.end:
            return str(self.start)
        return f"{self.start}-{self.end}"


def parse_range_token(token: str) -> IndexRange:
    """Parse a compressed pending-array token such as ``[12-40]``.

    Raises
    ------
    ValueError
        If the token is not a bracketed numeric range or ``lo > hi``.
    """
    m = _RANGE_RE.match(token.strip())
    if not m:
        raise ValueError(f"not an index range token: {token!r}")
    lo, hi = int(m.group("lo")), int(m.group("hi"))
    if lo > hi:
        raise ValueError(f"inverted index range token: {token!r}")
    return IndexRange(lo, hi)


@dataclass(frozen=True, slots=True)
class JobId:
    """Composite Slurm job identifier ``base[_index]``.

    ``index`` is ``None`` for plain jobs, an ``int`` for a single array task,
    or the raw bracketed token (``"[3-9]"``) when sacct folds many pending
    siblings into a single line.
    """

    base: int
    index: Union[int, str, None] = None

    @classmethod
    def parse(cls, raw: str) -> "JobId":
        text = raw.strip()
        base_txt, sep, idx_txt = text.partition("_")
        # job steps (``123.batch``) collapse onto their allocation
        base_txt = base_txt.split(".", 1)[0]
        if not base_txt.isdigit():
            raise ParseError(f"invalid job id {raw!r}", raw)
        if not sep:
            return cls(int(base_txt))
        idx_txt = idx_txt.split(".", 1)[0]
        if idx_txt.isdigit():
            return cls(int(base_txt), int(idx_txt))
        if idx_txt.startswith("["):
            return cls(int(base_txt), idx_txt)
        raise ParseError(f"invalid array index in job id {raw!r}", raw)

    @property
    def is_range(self) -> bool:
        return isinstance(self.index, str)

    def __str__(self) -> str:
        if self.index is None:
            return str(self.base)
        return f"{self.base}_{self.index}"


@dataclass(frozen=True, slots=True)
class AccountingRecord:
    """One accounting line for a job or array task.

    Parameters
    ----------
    job_id : JobId
        Parsed ``jobid`` column.
    state : JobState
        Bucket the sacct state maps to.
    partition : str
        Partition the job was submitted to (informational).
    submit_time, start_time, end_time : datetime, optional
        ``None`` when the phase has not happened yet.
    job_id_raw : str
        The ``jobidraw`` column.
    raw_state : str
        Literal sacct state, kept for display of untracked states.
    """

    job_id: JobId
    state: JobState
    partition: str = ""
    submit_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    job_id_raw: str = ""
    raw_state: str = ""


def _parse_time(value: str, line: str) -> Optional[datetime]:
    txt = value.strip()
    if txt in _UNSET_TIMES:
        return None
    try:
        return datetime.fromisoformat(txt)
    except ValueError as e:
        raise ParseError(f"invalid timestamp {txt!r}", line) from e


def parse_sacct_line(line: str) -> AccountingRecord:
    """Parse one ``sacct -XP`` line in :data:`SACCT_FORMAT` order.

    Raises
    ------
    ParseError
        When the line has too few fields, an invalid job id or timestamp.
    """
    fields = line.rstrip("\n").split("|")
    if len(fields) < _N_FIELDS:
        raise ParseError(
            f"expected {_N_FIELDS} fields, got {len(fields)}: {line!r}", line
        )
    jobid, state, partition, submit, start, end, jobidraw = fields[:_N_FIELDS]
    return AccountingRecord(
        job_id=JobId.parse(jobid),
        state=JobState.from_sacct(state),
        partition=partition.strip(),
        submit_time=_parse_time(submit, line),
        start_time=_parse_time(start, line),
        end_time=_parse_time(end, line),
        job_id_raw=jobidraw.strip(),
        raw_state=state.strip(),
    )


def parse_sacct_output(lines: Iterable[str]) -> List[AccountingRecord]:
    """Parse many sacct lines, skipping (and logging) malformed ones."""
    records: List[AccountingRecord] = []
    for line in lines:
        if not line.strip():
            continue
        try:
            records.append(parse_sacct_line(line))
        except ParseError as e:
            logger.warning(f"Skipping accounting line: {e}")
    return records
