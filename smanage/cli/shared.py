"""Shared CLI helpers."""

from __future__ import annotations

import sys
from typing import Iterable, Sequence

import click
from loguru import logger

_LOG_FORMAT = "{level} | <level>{message}</level> "


def configure_logging(level: str = "INFO") -> None:
    """Replace the stderr sink installed by :mod:`smanage` with one at ``level``."""
    logger.remove()
    logger.add(sys.stderr, format=_LOG_FORMAT, level=level)


def format_tabs(items: Sequence[object], per_row: int = 5) -> str:
    """Tab-indented columns, ``per_row`` items to a line."""
    rows = []
    for i in range(0, len(items), per_row):
        rows.append("".join(f"\t{item}" for item in items[i : i + per_row]))
    return "\n".join(rows)


def format_commas(items: Iterable[object]) -> str:
    return ",".join(str(i) for i in items)


def ctx_flag(ctx: click.Context, name: str) -> bool:
    """Read a root-level flag stored on the context object."""
    obj = ctx.find_root().obj or {}
    return bool(obj.get(name, False))
