from .process import exec_from_env, run_with_log

__all__ = ["exec_from_env", "run_with_log"]
