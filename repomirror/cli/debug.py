import click

from .utils.logging import configure_logging


def add_debug_option(cmd: click.Command) -> click.Command:
    """Add a --debug/--no-debug option to a command or group"""
    if not any(param.name == "debug" for param in cmd.params):
        cmd.params.insert(
            0,
            click.Option(
                ["--debug/--no-debug"],
                is_eager=True,
                expose_value=False,
                callback=lambda ctx, param, value: _set_debug(ctx, value),
                help="Enable debug mode",
            ),
        )
    return cmd


def _set_debug(ctx, value: bool):
    """Callback function for debug flag"""
    root_ctx = ctx.find_root()
    root_ctx.ensure_object(dict)

    cmd_depth = len(ctx.command_path.split())

    if "DEBUG" not in root_ctx.obj:
        root_ctx.obj["DEBUG"] = False

    # Only the level that enabled debug may disable it again
    if value is True or cmd_depth == 1:
        root_ctx.obj["DEBUG"] = value

    configure_logging(root_ctx.obj["DEBUG"])
    return root_ctx.obj["DEBUG"]
