"""repomirror CLI"""

from pathlib import Path

import click

from repomirror import __version__
from repomirror.cli.repo import (
    branch,
    checkout,
    list_files,
    list_folders,
    list_tags,
    pull,
    read_file,
    tag,
)
from repomirror.config import ConfigAccessor, GitSettings, get_storage_dir
from repomirror.repository import ShellGitRepository

from .debug import add_debug_option


@click.group()
@click.version_option(__version__, prog_name="repomirror")
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the working copies (defaults to the configured one).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file to read instead of the default one.",
)
@click.pass_context
def cli(ctx, storage_dir, config_path):
    """
    Mirror remote git repositories into local shallow working copies.
    """
    ctx.ensure_object(dict)
    accessor = ConfigAccessor(config_path) if config_path else None
    ctx.obj["REPOSITORY"] = ShellGitRepository(
        storage_dir=storage_dir or get_storage_dir(accessor),
        settings=GitSettings.from_config(accessor),
    )


for command in (checkout, list_tags, list_folders, list_files, read_file, tag, branch, pull):
    cli.add_command(add_debug_option(command))

add_debug_option(cli)

if __name__ == "__main__":
    cli(obj={})
