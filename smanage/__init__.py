"""Submit and report on Slurm job arrays under a reservation cap."""

from ._version import __version__

__author__ = """Erik Surface"""
__version__ = __version__

import sys

from loguru import logger

logger.remove()
logger_format = ('{level} | <level>{message}</level> ')
logger.add(sys.stderr, format=logger_format, level="INFO")
