"""CLI commands operating on a single mirrored repository"""

import asyncio
import math
import sys
from datetime import datetime, timezone

import click

from repomirror.cli.utils.logging import logger
from repomirror.git.exceptions import RepositoryError


def _run(ctx, operation):
    """Run a coroutine function with the repository of the context."""
    repository = ctx.find_root().obj["REPOSITORY"]
    try:
        return asyncio.run(operation(repository))
    except RepositoryError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)


@click.command("checkout")
@click.argument("url")
@click.argument("ref")
@click.pass_context
def checkout(ctx, url, ref):
    """Clone URL if needed and check out REF."""
    directory = _run(ctx, lambda repo: repo.checkout(url, ref))
    click.echo(str(directory))


@click.command("list-tags")
@click.argument("url")
@click.pass_context
def list_tags(ctx, url):
    """List the tags of a repository."""
    for name in _run(ctx, lambda repo: repo.list_tags(url)):
        click.echo(name)


@click.command("list-folders")
@click.argument("url")
@click.argument("path")
@click.argument("ref")
@click.pass_context
def list_folders(ctx, url, path, ref):
    """List the subdirectories of PATH at REF."""
    for folder in _run(ctx, lambda repo: repo.list_folders(url, path, ref)):
        click.echo(folder)


@click.command("list-files")
@click.argument("url")
@click.argument("path")
@click.argument("ref")
@click.option(
    "--exclude",
    "-x",
    multiple=True,
    help="Path to skip; a trailing slash skips a whole directory. Repeatable.",
)
@click.pass_context
def list_files(ctx, url, path, ref, exclude):
    """List the files below PATH at REF, marking executables with '*'."""
    files = _run(ctx, lambda repo: repo.list_files(url, path, ref, list(exclude)))
    for file in files:
        click.echo(f"{file.filepath}{'*' if file.is_executable else ''}")


@click.command("read-file")
@click.argument("url")
@click.argument("filepath")
@click.argument("ref")
@click.option(
    "--last-commit", is_flag=True, help="Print the time of the last commit instead."
)
@click.pass_context
def read_file(ctx, url, filepath, ref, last_commit):
    """Print FILEPATH at REF."""
    if not last_commit:
        click.echo(_run(ctx, lambda repo: repo.read_file(url, filepath, ref)), nl=False)
        return

    timestamp = _run(ctx, lambda repo: repo.last_commit_time_for_file(url, filepath, ref))
    if math.isnan(timestamp):
        click.echo("unknown")
    else:
        click.echo(datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat())


@click.command("tag")
@click.argument("url")
@click.argument("ref")
@click.argument("name")
@click.argument("message")
@click.pass_context
def tag(ctx, url, ref, name, message):
    """Create the annotated tag NAME at REF, unless it already exists with MESSAGE."""
    record = _run(ctx, lambda repo: repo.create_tag_for_ref(url, ref, name, message))
    logger.info(f"Tag {record.name} is in place")


@click.command("branch")
@click.argument("url")
@click.argument("name")
@click.argument("from_ref")
@click.pass_context
def branch(ctx, url, name, from_ref):
    """Check out branch NAME, creating it from FROM_REF if needed."""
    click.echo(str(_run(ctx, lambda repo: repo.create_branch(url, name, from_ref))))


@click.command("pull")
@click.argument("url")
@click.argument("ref")
@click.pass_context
def pull(ctx, url, ref):
    """Fast-forward REF from origin."""
    click.echo(str(_run(ctx, lambda repo: repo.pull(url, ref))))
