"""ctxcompiler CLI - ctxc command."""

import click

from ctxcompiler.cli.compile import compile_command
from ctxcompiler.cli.verify import verify_command
from ctxcompiler.config.constants import TOOL_VERSION
from ctxcompiler.core.logging import configure_logging


@click.group()
@click.version_option(version=TOOL_VERSION, prog_name="ctxc")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool) -> None:
    """ctxcompiler - static semantic model compiler for modular codebases."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json_logs"] = json_logs
    configure_logging(json_format=json_logs, level="DEBUG" if verbose else "INFO")


cli.add_command(compile_command, name="compile")
cli.add_command(verify_command, name="verify")


if __name__ == "__main__":
    cli()
