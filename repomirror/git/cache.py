"""
Memoized working copy probes.

Deciding whether a checkout is needed means asking git for the current tag,
branch or commit of a working copy. Those answers only change when this layer
(or the pipeline driving it) mutates the working copy, so they are cached per
directory and per kind of probe until explicitly cleared.

Concurrent requests for the same key share one in-flight probe:

    cache = WorkingCopyStatCache()
    tag = await cache.memoize(repo_dir, "tag", probe_current_tag)
    ...
    cache.clear(repo_dir)  # after checkout, commit, tag, pull
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Union

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[Any]]


class WorkingCopyStatCache:
    """Per-directory, per-kind cache of probe results."""

    def __init__(self):
        self._entries: Dict[str, Dict[str, asyncio.Future]] = {}

    @staticmethod
    def _key(directory: Union[str, Path]) -> str:
        return str(directory)

    async def memoize(self, directory: Union[str, Path], kind: str, probe: Probe) -> Any:
        """
        Return the cached result of ``probe`` for (directory, kind).

        The probe runs at most once per key until ``clear`` is called. A probe
        that raises is forgotten, so the next request runs it again.

        Args:
            directory: Working copy directory
            kind: Name of the probe, e.g. "tag" or "branch"
            probe: Coroutine function performing the actual lookup

        Returns:
            The probe result
        """
        stats = self._entries.setdefault(self._key(directory), {})
        entry = stats.get(kind)

        if entry is None:
            entry = asyncio.ensure_future(probe())
            entry.add_done_callback(
                lambda done: self._forget_failure(directory, kind, done)
            )
            stats[kind] = entry

        if entry.done():
            return entry.result()

        # A cancelled caller must not cancel the probe other callers wait on
        return await asyncio.shield(entry)

    def _forget_failure(self, directory, kind: str, done: asyncio.Future) -> None:
        if done.cancelled() or done.exception() is not None:
            stats = self._entries.get(self._key(directory))
            if stats is not None and stats.get(kind) is done:
                logger.debug(f"Discarding failed {kind} probe for {directory}")
                del stats[kind]

    def clear(self, directory: Union[str, Path]) -> None:
        """Forget every cached probe of a working copy."""
        self._entries.pop(self._key(directory), None)

    def clear_all(self) -> None:
        self._entries.clear()

    def __contains__(self, key) -> bool:
        directory, kind = key
        return kind in self._entries.get(self._key(directory), {})
