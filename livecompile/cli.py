"""
CLI for livecompile.

Compiles a source file the way a running service would and prints the
backend's diagnostics, so generated code can be checked by hand.
"""

import logging
import sys
from pathlib import Path

import click

from .backends import available_backends
from .compiler import RuntimeCompiler
from .config import load_settings
from .errors import CompilationError
from .errors import CompilerError
from .models import Diagnostic
from .naming import strip_timestamp

KIND_COLORS = {
    "error": "red",
    "mandatory_warning": "yellow",
    "warning": "yellow",
    "note": "blue",
    "other": "white",
}


def print_diagnostics(diagnostics: list[Diagnostic]) -> None:
    """Print diagnostics with colored severity."""
    for diagnostic in diagnostics:
        kind = click.style(f"[{diagnostic.kind}]", fg=KIND_COLORS.get(diagnostic.kind, "white"))
        click.echo(f"  {kind:28} {diagnostic}")


@click.group()
@click.version_option(version="1.0.0", prog_name="livecompile")
def cli() -> None:
    """livecompile - Runtime compilation of generated Python units."""
    pass


@cli.command(name="compile")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "-n", required=True, help="Versioned unit name (e.g. 'pkg.Greet_ts1000')")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML settings file",
)
@click.option("--target-version", help="Oldest Python grammar to accept (e.g. '3.9')")
@click.option("--lint-recovery/--no-lint-recovery", default=None, help="Retry once on lint failures")
@click.option(
    "--strict-warnings/--no-strict-warnings",
    default=None,
    help="Fail on any compiler warning (default) or only report it",
)
@click.option("--call", "call_path", help="Dotted attribute to call after loading (e.g. 'Greet.hi')")
@click.option("--verbose", "-v", is_flag=True, help="Show warnings and notes")
def compile_command(
    source: Path,
    name: str,
    config_path: Path | None,
    target_version: str | None,
    lint_recovery: bool | None,
    strict_warnings: bool | None,
    call_path: str | None,
    verbose: bool,
) -> None:
    """Compile SOURCE as unit NAME and report the outcome.

    Examples:

        livecompile compile greet.py --name templates.Greet_ts1000

        livecompile compile greet.py -n templates.Greet --call render
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(config_path)
        compiler = RuntimeCompiler.from_settings(settings)
        compiler.configure(
            target_version=target_version,
            enable_lint_recovery=lint_recovery,
            warnings_as_errors=strict_warnings,
        )
        compiler.init()
        module = compiler.compile(name, source.read_text(encoding="utf-8"))
    except CompilationError as e:
        click.secho(f"Compilation of {name} failed", fg="red", bold=True)
        print_diagnostics(e.diagnostics)
        sys.exit(1)
    except (CompilerError, ValueError, OSError) as e:
        click.secho(f"Error: {e}", fg="red", bold=True)
        sys.exit(2)

    click.secho(f"Compiled {name} -> {strip_timestamp(name)}", fg="green", bold=True)

    if call_path:
        target = module
        for part in call_path.split("."):
            target = getattr(target, part)
            if isinstance(target, type):
                target = target()
        click.echo(repr(target() if callable(target) else target))


@cli.command()
@click.argument("name")
def canonicalize(name: str) -> None:
    """Print NAME without its generation marker."""
    click.echo(strip_timestamp(name))


@cli.command(name="list-backends")
def list_backends() -> None:
    """List compilation backends that can be configured."""
    click.echo("Available backends:")
    click.echo()
    for backend in available_backends():
        click.echo(f"  {click.style(backend, fg='cyan', bold=True)}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
