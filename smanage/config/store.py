"""Durable ``KEY=value`` batch config files.

The file stays human-editable: comments, blank lines and key order survive
every rewrite. Writes go through a temporary file that is fsynced and then
atomically renamed over the original, so a cursor update is either fully on
disk or not at all.

No locking is performed. Two invocations against the same config can both
read the same ``LAST_RUN_ID`` and submit the same window twice, so callers
must run at most one ``smanage submit`` per batch at a time (one cron entry,
``flock`` wrapper, etc.).
"""

from __future__ import annotations

import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger

__all__ = [
    "ConfigStore",
    "KNOWN_KEYS",
    "CURSOR_KEYS",
    "JOB_DATE_FORMAT",
]

KNOWN_KEYS = (
    "BATCH_NAME",
    "BATCH_DIR",
    "BATCH_SCRIPT",
    "JOB_IDS",
    "JOB_DATE",
    "NEXT_RUN_ID",
    "LAST_RUN_ID",
    "MAX_ID",
    "RESERVE",
    "ARRAY",
    "MAX_ARRAY_SIZE",
    "PARTITION",
    "RESERVATION",
)
CURSOR_KEYS = ("NEXT_RUN_ID", "LAST_RUN_ID")
JOB_DATE_FORMAT = "%Y-%m-%dT%H:%M"

_LINE_RE = re.compile(r"^\s*(?:export\s+)?(?P<key>[A-Za-z_][A-Za-z0-9_]*)=(?P<value>.*)$")


def _job_sort_key(job_id: str):
    return (0, int(job_id), "") if job_id.isdigit() else (1, 0, job_id)


def _unquote(value: str) -> str:
    v = value.strip()
    if len(v) >= 2 and v[0] == v[-1] and v[0] in "\"'":
        return v[1:-1]
    return v


class ConfigStore:
    """Key/value view over a batch config file.

    Parameters
    ----------
    path : pathlib.Path
        Config file location. It does not need to exist until the first
        :meth:`set`.
    dry_run : bool, optional
        Log writes instead of performing them.
    """

    def __init__(self, path: Path | str, dry_run: bool = False) -> None:
        self.path = Path(path)
        self.dry_run = dry_run

    def __repr__(self) -> str:
        return f"ConfigStore({str(self.path)!r})"

    # ---------- reading ----------
    def _lines(self) -> List[str]:
        if not self.path.exists():
            return []
        return self.path.read_text().splitlines()

    def as_dict(self) -> Dict[str, str]:
        """All keys in the file; the last assignment of a key wins."""
        values: Dict[str, str] = {}
        for line in self._lines():
            m = _LINE_RE.match(line)
            if m:
                values[m.group("key")] = _unquote(m.group("value"))
        return values

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.as_dict().get(key)
        if value is None or value == "":
            return default
        return value

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    # ---------- writing ----------
    def _write(self, lines: List[str]) -> None:
        text = "\n".join(lines) + "\n"
        if self.dry_run:
            logger.info(f"[dry-run] would write {self.path}:\n{text}")
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def update(self, values: Dict[str, object]) -> None:
        """Set several keys in one write; existing keys are rewritten in place."""
        pending = {k: "" if v is None else str(v) for k, v in values.items()}
        written = set()
        out: List[str] = []
        for line in self._lines():
            m = _LINE_RE.match(line)
            key = m.group("key") if m else None
            if key in pending:
                # later duplicates of a rewritten key are dropped
                if key not in written:
                    out.append(f"{key}={pending[key]}")
                    written.add(key)
                continue
            out.append(line)
        out.extend(f"{k}={v}" for k, v in pending.items() if k not in written)
        logger.debug(f"Updating {self.path}: {values}")
        self._write(out)

    def set(self, key: str, value: object) -> None:
        """Set ``key`` or append it when missing."""
        self.update({key: value})

    def unset(self, *keys: str) -> None:
        """Remove every assignment of ``keys``."""
        drop = set(keys)
        lines = [
            ln
            for ln in self._lines()
            if not ((m := _LINE_RE.match(ln)) and m.group("key") in drop)
        ]
        self._write(lines)

    # ---------- batch helpers ----------
    @classmethod
    def create(
        cls,
        path: Path | str,
        batch_name: str,
        batch_dir: Path | str,
        job_ids: Iterable[str] = (),
        dry_run: bool = False,
    ) -> "ConfigStore":
        """Write a fresh config for a batch, overwriting ``path``."""
        store = cls(path, dry_run=dry_run)
        lines = [
            f"BATCH_NAME={batch_name}",
            f"JOB_IDS={','.join(job_ids)}",
            f"BATCH_DIR={batch_dir}",
            f"JOB_DATE={datetime.now().strftime(JOB_DATE_FORMAT)}",
            "",
        ]
        logger.debug(f"Creating config file {store.path}")
        store._write(lines)
        return store

    def job_ids(self) -> List[str]:
        raw = self.get("JOB_IDS") or ""
        return [j for j in (s.strip() for s in raw.split(",")) if j]

    def append_job_ids(
        self, ids: Iterable[str], extra: Optional[Dict[str, object]] = None
    ) -> List[str]:
        """Merge ``ids`` into ``JOB_IDS`` (sorted, unique) and stamp ``JOB_DATE``.

        Keys in ``extra`` are written in the same atomic update.

        Returns
        -------
        list of str
            The merged job id list as written.
        """
        new = {str(i).strip() for i in ids if str(i).strip()}
        merged = sorted(set(self.job_ids()) | new, key=_job_sort_key)
        values: Dict[str, object] = dict(extra or {})
        values["JOB_IDS"] = ",".join(merged)
        if "JOB_DATE" not in self:
            values["JOB_DATE"] = datetime.now().strftime(JOB_DATE_FORMAT)
        self.update(values)
        return merged

    def reset(self) -> None:
        """Forget submitted jobs and the cursor; ``MAX_ID``/``RESERVE`` stay."""
        logger.debug(f"Resetting {self.get('BATCH_NAME') or self.path}")
        lines: List[str] = []
        for ln in self._lines():
            m = _LINE_RE.match(ln)
            if m and m.group("key") in CURSOR_KEYS:
                continue
            if m and m.group("key") in ("JOB_IDS", "JOB_DATE"):
                lines.append(f"{m.group('key')}=")
                continue
            lines.append(ln)
        self._write(lines)
