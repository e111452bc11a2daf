"""Exception hierarchy shared across smanage.

Every error is terminal for the current invocation except :class:`ParseError`,
which the accounting parser recovers from by skipping the offending line.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "SmanageError",
    "ValidationError",
    "ParseError",
    "ConfigurationError",
    "ExternalCommandError",
    "QueryError",
    "SubmitError",
]


class SmanageError(Exception):
    """Base class for smanage failures."""

    exit_code: int = 1


class ValidationError(SmanageError):
    """Bad or missing command-line argument or required config key."""


class ParseError(SmanageError):
    """A single accounting line could not be parsed."""

    def __init__(self, message: str, line: str = "") -> None:
        super().__init__(message)
        self.line = line


class ConfigurationError(SmanageError):
    """Reservation scheduling requested without ``MAX_ID`` or ``RESERVE``."""


class ExternalCommandError(SmanageError):
    """An external Slurm tool exited unsuccessfully.

    Parameters
    ----------
    message : str
        Short description of the failure.
    output : str, optional
        Literal output of the tool, surfaced to the user verbatim.
    returncode : int, optional
        Exit code of the tool.
    """

    def __init__(
        self, message: str, output: str = "", returncode: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        if self.returncode and self.returncode > 0:
            return self.returncode
        return 1


class QueryError(ExternalCommandError):
    """The accounting query (``sacct``) failed."""


class SubmitError(ExternalCommandError):
    """The submission command (``sbatch``) failed."""
