"""Command-line interface for smanage."""

from __future__ import annotations

from smanage.cli.root import cli

# subcommands register themselves on ``cli`` at import time
from smanage.cli import config_cmds, report_cmds, submit_cmds  # noqa: F401

__all__ = ["cli", "main"]


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()  # pragma: no cover
