"""Playback fixture CLI (playback).

Inspect and validate recorded transactions without running the tests.

Usage:
    playback list                 # Transactions and their step counts
    playback show get_secret      # One line per recorded step
    playback verify get_secret    # Parse every fixture, check numbering
"""

from __future__ import annotations

from pathlib import Path

import click

from .config import DEFAULT_RECORDINGS_DIR, ENV_RECORDINGS_DIR
from .errors import MockFrameworkError
from .log import setup_logging
from .transaction import STEP_FILE_PATTERN, Transaction

CLI_VERSION = "0.1.0"


def find_transactions(recordings_dir: Path) -> list[str]:
    """Find transaction names: directories directly holding step fixtures.

    Returns:
        Sorted names, relative to recordings_dir with "/" separators.
    """
    if not recordings_dir.is_dir():
        return []
    names = set()
    for fixture in recordings_dir.rglob("*.json"):
        if STEP_FILE_PATTERN.match(fixture.name):
            names.add(fixture.parent.relative_to(recordings_dir).as_posix())
    return sorted(names)


def verify_transaction(transaction: Transaction) -> list[str]:
    """Check every fixture of a transaction parses and steps are contiguous.

    Returns:
        Problems found; empty if the transaction is consistent.
    """
    problems: list[str] = []
    steps = transaction.steps()

    expected_numbers = list(range(1, len(steps) + 1))
    if list(steps) != expected_numbers:
        problems.append(f"steps are not contiguous from 1: {list(steps)}")

    for number, kinds in steps.items():
        for kind in ("request", "response"):
            if kind not in kinds:
                problems.append(f"step {number}: missing {number}_{kind}.json")

    # Walk the steps the way playback would
    for _ in steps:
        try:
            transaction.read_step()
        except MockFrameworkError as e:
            problems.append(str(e))
        transaction.increment_number()

    return problems


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=CLI_VERSION, prog_name="playback")
@click.option(
    "--recordings-dir",
    "-d",
    envvar=ENV_RECORDINGS_DIR,
    default=DEFAULT_RECORDINGS_DIR,
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Root directory of recorded transactions",
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, recordings_dir: Path, json_logs: bool, verbose: bool) -> None:
    """Playback fixture CLI.

    Inspect and validate request/response recordings used to test Azure
    SDK clients offline.
    """
    setup_logging(json_output=json_logs, verbose=verbose)
    ctx.obj = recordings_dir


@cli.command("list")
@click.pass_obj
def list_transactions(recordings_dir: Path) -> None:
    """List recorded transactions."""
    names = find_transactions(recordings_dir)
    if not names:
        click.echo(f"No transactions found in {recordings_dir}")
        return

    for name in names:
        steps = Transaction(name, recordings_dir).steps()
        click.echo(f"{name}  ({len(steps)} steps)")


@cli.command()
@click.argument("name")
@click.pass_obj
def show(recordings_dir: Path, name: str) -> None:
    """Show the recorded steps of transaction NAME."""
    try:
        transaction = Transaction(name, recordings_dir)
        for _ in transaction.steps():
            request, response = transaction.read_step()
            click.echo(
                f"{transaction.number:>3}  {request.method.value:<7} "
                f"{request.path_and_query} -> {response.status}"
            )
            transaction.increment_number()
    except (ValueError, MockFrameworkError) as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("name")
@click.pass_obj
def verify(recordings_dir: Path, name: str) -> None:
    """Validate every fixture of transaction NAME."""
    try:
        transaction = Transaction(name, recordings_dir)
        problems = verify_transaction(transaction)
    except (ValueError, MockFrameworkError) as e:
        raise click.ClickException(str(e)) from e

    if problems:
        for problem in problems:
            click.secho(f"✗ {problem}", fg="red", err=True)
        raise click.exceptions.Exit(1)

    click.secho(f"✓ {name}: {transaction.number - 1} steps verified", fg="green")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
