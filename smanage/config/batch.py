"""Validated view of a batch config."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic import field_validator, model_validator
from loguru import logger

from smanage.config.store import KNOWN_KEYS, ConfigStore
from smanage.errors import ValidationError
from smanage.schedule.window import ReservationCursor

__all__ = ["BatchConfig"]


class BatchConfig(BaseModel):
    """
    Settings for one batch of array jobs.

    Field aliases are the ``KEY`` names used in the config file, so a
    :class:`BatchConfig` can be validated straight from
    :meth:`ConfigStore.as_dict`.

    Parameters
    ----------
    batch_name : str, optional
        Job name used with ``sbatch --job-name`` and ``sacct --name``.
    batch_dir : pathlib.Path
        Directory sbatch runs in (defaults to the current directory).
    batch_script : pathlib.Path, optional
        Script handed to ``sbatch``.
    job_ids : list[str]
        Job ids submitted so far.
    job_date : str, optional
        Earliest submission time, passed to ``sacct -S``.
    next_run_id, last_run_id : int, optional
        Persisted reservation cursor.
    max_id : int, optional
        Number of logical array tasks in the batch.
    reserve : int, optional
        Maximum queued plus running tasks.
    array : str, optional
        Fixed ``--array`` value used when no reservation is configured.
    max_array_size : int
        Fold logical ids into an array of this size (``0`` disables).
    partition, reservation : str, optional
        Forwarded to ``sbatch``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    batch_name: Optional[str] = Field(None, alias="BATCH_NAME")
    batch_dir: Optional[Path] = Field(None, alias="BATCH_DIR")
    batch_script: Optional[Path] = Field(None, alias="BATCH_SCRIPT")
    job_ids: List[str] = Field(default_factory=list, alias="JOB_IDS")
    job_date: Optional[str] = Field(None, alias="JOB_DATE")
    next_run_id: Optional[int] = Field(None, ge=0, alias="NEXT_RUN_ID")
    last_run_id: Optional[int] = Field(None, ge=-1, alias="LAST_RUN_ID")
    max_id: Optional[int] = Field(None, ge=0, alias="MAX_ID")
    reserve: Optional[int] = Field(None, alias="RESERVE")
    array: Optional[str] = Field(None, alias="ARRAY")
    max_array_size: int = Field(0, ge=0, alias="MAX_ARRAY_SIZE")
    partition: Optional[str] = Field(None, alias="PARTITION")
    reservation: Optional[str] = Field(None, alias="RESERVATION")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("job_ids", mode="before")
    @classmethod
    def _split_ids(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("batch_dir", "batch_script", mode="before")
    @classmethod
    def _expand_path(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        # ~ is expanded, $VARS are not
        return Path(str(v).strip()).expanduser()

    @field_validator("max_array_size", mode="before")
    @classmethod
    def _unset_size(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 0
        return v

    @model_validator(mode="after")
    def _defaults(self) -> "BatchConfig":
        if self.batch_dir is None:
            self.batch_dir = Path.cwd()
        return self

    # ---------- construction ----------
    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "BatchConfig":
        """Validate raw values, raising :class:`smanage.errors.ValidationError`."""
        try:
            return cls.model_validate(dict(values))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid batch config:\n{e}") from e

    @classmethod
    def from_store(
        cls, store: Optional[ConfigStore], overrides: Optional[Mapping[str, Any]] = None
    ) -> "BatchConfig":
        """Load from ``store`` (may be ``None``) with non-``None`` ``overrides`` on top."""
        values: Dict[str, Any] = store.as_dict() if store is not None else {}
        unknown = sorted(set(values) - set(KNOWN_KEYS))
        if unknown:
            logger.warning(f"Ignoring unknown keys in {store.path}: {', '.join(unknown)}")
        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value
        return cls.from_mapping(values)

    # ---------- derived ----------
    @property
    def job_name(self) -> str:
        """``BATCH_NAME``, or the basename of ``BATCH_DIR`` when unset."""
        return self.batch_name or self.batch_dir.resolve().name

    @property
    def uses_reservation(self) -> bool:
        """True when either ``RESERVE`` or ``MAX_ID`` asks for windowed submission."""
        return self.reserve is not None or self.max_id is not None

    def cursor(self) -> ReservationCursor:
        last = self.last_run_id
        if last is not None and last < 0:
            last = None
        return ReservationCursor(
            next_run_id=self.next_run_id or 0,
            last_run_id=last,
            max_id=self.max_id,
            reserve_capacity=self.reserve,
            max_array_size=self.max_array_size,
        )

    def sacct_filter_args(self, default_name: bool = False) -> List[str]:
        """``sacct`` arguments selecting this batch's jobs.

        With ``default_name`` the derived :attr:`job_name` is used when
        ``BATCH_NAME`` is unset.
        """
        args: List[str] = []
        if self.job_ids:
            args.append(f"--jobs={','.join(self.job_ids)}")
        name = self.job_name if default_name else self.batch_name
        if name:
            args.append(f"--name={name}")
        if self.job_date:
            args += ["-S", self.job_date]
        return args

    def sbatch_flags(self) -> List[str]:
        flags: List[str] = []
        if self.partition:
            flags.append(f"--partition={self.partition}")
        if self.reservation:
            flags.append(f"--reservation={self.reservation}")
        return flags
