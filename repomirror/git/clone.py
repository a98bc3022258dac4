"""
Shallow working copies of remote repositories.

Each remote URL maps to one directory below the storage directory (see
``dir_for_repo_url``). The first request clones the repository shallowly with
all branches; later requests reuse the clone and only check out the requested
ref when the working copy is not already on it.

A shallow clone may not contain an older tag or commit. When the checkout of
such a ref fails, the ref is fetched from the remote and the checkout is
retried once.
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from repomirror.config import GitSettings
from repomirror.model.repo import dir_for_repo_url

from .cache import WorkingCopyStatCache
from .exceptions import CloneError, CommandError, RepositoryError
from .executor import run_command

logger = logging.getLogger(__name__)

Runner = Callable[..., Awaitable[str]]

# Shared by every manager in the process, the setting is global to git
_safe_directory_relaxed = False


class WorkingCopyManager:
    """
    Clones repositories on demand and keeps their checked out ref in sync.

    Args:
        storage_dir: Directory holding one working copy per repository
        settings: Clone/fetch depths and commit identity
        cache: Stat cache for tag/branch/commit probes
        runner: Coroutine running a command, defaults to ``run_command``
    """

    def __init__(
        self,
        storage_dir: Optional[Path] = None,
        settings: Optional[GitSettings] = None,
        cache: Optional[WorkingCopyStatCache] = None,
        runner: Optional[Runner] = None,
    ):
        self.storage_dir = Path(storage_dir) if storage_dir is not None else None
        self.settings = settings or GitSettings()
        self.cache = cache if cache is not None else WorkingCopyStatCache()
        self.runner = runner or run_command

    async def git(self, *args: str, cwd: Optional[Path] = None) -> str:
        return await self.runner(["git", *args], cwd=cwd)

    def full_repo_path(self, url: str) -> Path:
        """Working copy directory for a repository URL."""
        if self.storage_dir is None:
            raise RepositoryError(
                "No storage directory configured, call set_storage_dir() first"
            )
        name = dir_for_repo_url(url).lstrip("/")
        if name in ("", ".", ".."):
            raise RepositoryError(f"Cannot derive a working copy directory from {url!r}")
        return self.storage_dir / name

    async def clone_repo(self, url: str, directory: Path, ref: Optional[str] = None) -> None:
        logger.info(
            f"Creating shallow {url} clone of {ref or 'all branches'} in {directory}"
        )
        directory.parent.mkdir(parents=True, exist_ok=True)
        self.cache.clear(directory)

        try:
            await self.git(
                "clone",
                f"--depth={self.settings.clone_depth}",
                "--quiet",
                "--no-single-branch",
                "--",
                url,
                str(directory),
            )
        except CommandError as e:
            raise CloneError(url, e) from e

    async def relax_repo_owner_permissions(self, directory: Path) -> None:
        """
        Mark all directories as safe for git once per process.

        Working copies mounted into containers may be owned by another user,
        which git refuses with "detected dubious ownership".
        """
        global _safe_directory_relaxed
        if not self.settings.relax_safe_directory or _safe_directory_relaxed:
            return
        _safe_directory_relaxed = True
        await self.git("config", "--global", "--add", "safe.directory", "*", cwd=directory)

    async def current_tag(self, directory: Path) -> str:
        async def probe():
            return (await self.git("describe", "--tags", "--always", cwd=directory)).strip()

        return await self.cache.memoize(directory, "tag", probe)

    async def current_branch(self, directory: Path) -> str:
        async def probe():
            return (await self.git("branch", "--show-current", cwd=directory)).strip()

        return await self.cache.memoize(directory, "branch", probe)

    async def current_commit(self, directory: Path) -> str:
        async def probe():
            return (await self.git("log", "-1", "--pretty=%H", cwd=directory)).strip()

        return await self.cache.memoize(directory, "commit", probe)

    async def is_on_ref(self, directory: Path, ref: str) -> bool:
        """True if the working copy's tag, branch or commit equals ``ref``."""
        probes: Sequence[Callable[[Path], Awaitable[str]]] = (
            self.current_tag,
            self.current_branch,
            self.current_commit,
        )
        for probe in probes:
            if await probe(directory) == ref:
                return True
        return False

    async def checkout_ref(self, url: str, directory: Path, ref: str) -> None:
        self.cache.clear(directory)
        try:
            await self.git("checkout", "--force", "--quiet", ref, cwd=directory)
        except CommandError as e:
            logger.warning(
                f"Checkout of {ref} failed in {directory}, fetching it from {url}: {e}"
            )
            await self.git(
                "fetch",
                "--quiet",
                f"--depth={self.settings.fetch_depth}",
                "origin",
                ref,
                cwd=directory,
            )
            await self.git("checkout", "--force", "--quiet", ref, cwd=directory)
        logger.info(f"Checked out {ref} in {directory}")

    async def init_repo(self, url: str, ref: Optional[str] = None) -> Path:
        """
        Make sure a working copy of ``url`` exists and is on ``ref``.

        Args:
            url: Repository URL
            ref: Branch, tag or commit to check out; None only ensures the clone

        Returns:
            Path to the working copy

        Raises:
            CloneError: If the repository cannot be cloned
            CommandError: If the ref cannot be checked out, even after fetching it
        """
        directory = self.full_repo_path(url)

        if not directory.exists():
            await self.clone_repo(url, directory, ref)

        await self.relax_repo_owner_permissions(directory)

        if ref and not await self.is_on_ref(directory, ref):
            await self.checkout_ref(url, directory, ref)

        return directory
