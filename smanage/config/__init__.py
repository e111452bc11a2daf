"""
Batch config files: the raw ``KEY=value`` store and its validated view.
"""

from __future__ import annotations

from pathlib import Path

from .batch import BatchConfig
from .store import CURSOR_KEYS, KNOWN_KEYS, ConfigStore

__all__ = [
    "BatchConfig",
    "ConfigStore",
    "CURSOR_KEYS",
    "KNOWN_KEYS",
    "load_batch_config",
]


def load_batch_config(path: Path | str | None) -> BatchConfig:
    """Read a batch config file (or nothing) and return a validated :class:`BatchConfig`."""
    store = ConfigStore(path) if path is not None else None
    return BatchConfig.from_store(store)
