"""ctxc verify command - check written documents against their manifest."""

from pathlib import Path

import click

from ctxcompiler.cli.utils import CompileFailed, find_repo_root
from ctxcompiler.config.loader import load_config
from ctxcompiler.core.errors import CtxCompilerError
from ctxcompiler.core.progress import status
from ctxcompiler.output.validator import verify_output


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--out", type=click.Path(path_type=Path), help="Output directory")
def verify_command(path: Path, out: Path | None) -> None:
    """Verify that written documents are intact and canonical.

    PATH is the repository root (default: current directory).
    """
    repo_root = find_repo_root(path)
    if out is None:
        try:
            config = load_config(repo_root)
        except CtxCompilerError as e:
            raise CompileFailed(e) from e
        out = Path(config.output.dir)
    out_dir = out if out.is_absolute() else repo_root / out

    if not out_dir.is_dir():
        raise click.ClickException(f"No output at {out_dir}. Run 'ctxc compile' first.")

    problems = verify_output(out_dir)
    if problems:
        for p in problems:
            status(p.message, style="error")
        raise CompileFailed(problems[0])

    status(f"{out_dir}: all documents verified", style="success")
