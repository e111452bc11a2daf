"""Slurm command wrappers."""

from .slurm import SacctQuery, SbatchSubmitter, parse_job_id, query_max_array_size

__all__ = ["SacctQuery", "SbatchSubmitter", "parse_job_id", "query_max_array_size"]
