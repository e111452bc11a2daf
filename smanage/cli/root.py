"""Root CLI group and error-to-exit-code mapping."""

from __future__ import annotations

import click

from smanage._version import __version__
from smanage.cli.shared import configure_logging
from smanage.errors import SmanageError, SubmitError


class SmanageGroup(click.Group):
    """Click group with smanage's exit-code contract.

    ``0`` success or no-op, ``1`` usage/validation/configuration errors, and a
    failed ``sbatch``'s own exit code passed through.
    """

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = 1
            raise
        except SubmitError as e:
            click.echo(f"ERROR: {e.output or e}", err=True)
            ctx.exit(e.exit_code)
        except SmanageError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(e.exit_code)


@click.group(
    cls=SmanageGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=__version__, prog_name="smanage")
@click.option("-v", "--verbose", is_flag=True, help="Print more information at each step.")
@click.option("--debug", is_flag=True, help="Log at DEBUG level.")
@click.option(
    "-n",
    "--dry-run",
    is_flag=True,
    help="Print Slurm commands and config writes instead of running them.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, dry_run: bool) -> None:
    """Submit and report on job arrays run on Slurm."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["dry_run"] = dry_run
    if debug:
        configure_logging("DEBUG")
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)
