"""ctxc compile command - build the context documents for a repository."""

import json
from pathlib import Path
from typing import Any

import click

from ctxcompiler.cli.utils import CompileFailed, apply_log_flags, find_repo_root
from ctxcompiler.compiler.ops import Compiler
from ctxcompiler.config.loader import load_config
from ctxcompiler.core.errors import CtxCompilerError
from ctxcompiler.core.logging import configure_logging
from ctxcompiler.core.progress import get_console, pluralize, status, warnings_table


def _overrides(
    out: Path | None,
    max_depth: int | None,
    policy: str | None,
    no_verify: bool,
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if out is not None:
        overrides["output"] = {"dir": str(out)}
    if no_verify:
        overrides.setdefault("output", {})["verify"] = False
    if max_depth is not None:
        overrides["traversal"] = {"max_depth": max_depth}
    if policy is not None:
        overrides["resolution"] = {"confidence_policy": policy}
    return overrides


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file (default: .ctxcompiler/config.yaml)",
)
@click.option("-o", "--out", type=click.Path(path_type=Path), help="Output directory")
@click.option("--max-depth", type=int, help="Execution path depth limit")
@click.option(
    "--policy",
    type=click.Choice(["reciprocal", "geometric"]),
    help="Confidence decay policy",
)
@click.option("--no-verify", is_flag=True, help="Skip post-write byte comparison")
@click.option("--dry-run", is_flag=True, help="Resolve and render without writing")
@click.option("--json", "as_json", is_flag=True, help="Print the manifest as JSON")
@click.pass_context
def compile_command(
    ctx: click.Context,
    path: Path,
    config_file: Path | None,
    out: Path | None,
    max_depth: int | None,
    policy: str | None,
    no_verify: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Compile the semantic model of a repository into context documents.

    PATH is the repository root (default: current directory).
    """
    repo_root = find_repo_root(path)
    flags = ctx.obj or {}

    try:
        config = load_config(
            repo_root,
            config_file,
            **_overrides(out, max_depth, policy, no_verify),
        )
        configure_logging(
            config=apply_log_flags(
                config.logging,
                verbose=bool(flags.get("verbose")),
                json_logs=bool(flags.get("json_logs")),
            )
        )
        result = Compiler(repo_root, config, show_progress=not as_json).run(write=not dry_run)
    except CtxCompilerError as e:
        raise CompileFailed(e) from e

    if as_json:
        click.echo(json.dumps(result.manifest, indent=2, sort_keys=True))
        return

    summary = result.warnings.summary()
    items = result.warnings.to_list()
    if items:
        get_console().print(warnings_table(items))

    if result.written:
        written = pluralize(len(result.documents), "document")
        status(f"Wrote {written} to {result.out_dir}", style="success")
    else:
        status(f"Rendered {pluralize(len(result.documents), 'document')} (dry run)", style="info")
    status(f"Build hash: {result.build_hash}", indent=2)
    status(
        f"Integrity: {summary['analysis_integrity_score']:.2f}"
        + (" (degraded)" if summary["degraded"] else ""),
        style="warning" if summary["degraded"] else "info",
        indent=2,
    )
