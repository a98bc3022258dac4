import logging
import sys


logger = logging.getLogger("repomirror")

DEFAULT_FORMAT = "%(message)s"
DEBUG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class _ConsoleHandler(logging.StreamHandler):
    """Progress messages for the console, kept off stdout so command output can be piped."""

    def __init__(self):
        super().__init__(sys.stderr)


def configure_logging(debug: bool):
    """
    Log to stderr, with timestamps and logger names in debug mode.

    May be called once per command level; the console handler is reused and
    only its format and the level change.
    """
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    handler = next((h for h in logger.handlers if isinstance(h, _ConsoleHandler)), None)
    if handler is None:
        # Leave records to the handlers of an embedding application
        if logger.hasHandlers():
            return
        handler = _ConsoleHandler()
        logger.addHandler(handler)

    handler.setFormatter(logging.Formatter(DEBUG_FORMAT if debug else DEFAULT_FORMAT))
