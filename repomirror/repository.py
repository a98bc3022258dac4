"""
Read and write operations on mirrored repositories.

``ShellGitRepository`` is the entry point used by the mirroring pipeline. It
owns the storage directory, the stat cache and the git settings, so several
instances with different storage roots can be used side by side:

    repo = ShellGitRepository(storage_dir=Path("build/repositories"))
    files = await repo.list_files(url, "app/code", "2.4.6", excludes=["app/code/Test/"])
    await repo.create_tag_for_ref(url, "2.4.6", "v2.4.6", "Release 2.4.6")

Every ref, tag and branch argument is validated before it reaches git.
"""

import logging
import math
import os
import stat
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from repomirror.config import GitSettings
from repomirror.git.cache import WorkingCopyStatCache
from repomirror.git.clone import Runner, WorkingCopyManager
from repomirror.git.exceptions import ConflictError
from repomirror.git.validation import validate_branch_is_secure, validate_ref_is_secure
from repomirror.model.repo import RepositoryFile, TagRecord

logger = logging.getLogger(__name__)

Exclude = Union[str, Callable[[str], str]]


def normalize_message(message: Optional[str]) -> str:
    """Replace single quotes by double quotes, as historically done for tags and commits."""
    return (message or "").replace("'", '"')


def _stored_form(message: str) -> str:
    # %(contents) skips the blank lines that open a tag message and we rstrip it
    return message.lstrip("\n").rstrip()


def _is_excluded(filepath: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if pattern.endswith("/"):
            if fnmatchcase(filepath, f"{pattern}*"):
                return True
        elif fnmatchcase(filepath, pattern):
            return True
    return False


class ShellGitRepository:
    """
    Repository operations backed by the git command line client.

    Args:
        storage_dir: Directory holding the working copies; may be set later
            with ``set_storage_dir``
        settings: Clone/fetch depths and commit identity
        runner: Coroutine running a command, defaults to ``run_command``
    """

    def __init__(
        self,
        storage_dir: Optional[Path] = None,
        settings: Optional[GitSettings] = None,
        runner: Optional[Runner] = None,
    ):
        self.cache = WorkingCopyStatCache()
        self.working_copies = WorkingCopyManager(
            storage_dir=storage_dir,
            settings=settings,
            cache=self.cache,
            runner=runner,
        )

    @property
    def settings(self) -> GitSettings:
        return self.working_copies.settings

    @property
    def storage_dir(self) -> Optional[Path]:
        return self.working_copies.storage_dir

    def set_storage_dir(self, directory: Union[str, Path]) -> None:
        self.working_copies.storage_dir = Path(directory)

    def full_repo_path(self, url: str) -> Path:
        return self.working_copies.full_repo_path(url)

    def clear_working_copy_stat(self, directory: Union[str, Path]) -> None:
        self.cache.clear(directory)

    def clear_cache(self) -> None:
        self.cache.clear_all()

    async def _git(self, directory: Path, *args: str) -> str:
        return await self.working_copies.git(*args, cwd=directory)

    async def _configure_identity(self, directory: Path) -> None:
        await self._git(directory, "config", "user.email", self.settings.user_email)
        await self._git(directory, "config", "user.name", self.settings.user_name)

    async def init_repo(self, url: str, ref: Optional[str] = None) -> Path:
        return await self.working_copies.init_repo(url, ref)

    async def list_folders(self, url: str, path_in_repo: str, ref: str) -> List[str]:
        """
        List the immediate subdirectories of a path.

        Hidden directories are skipped. Paths are relative to the repository
        root and carry no trailing slash.
        """
        validate_ref_is_secure(ref)
        directory = await self.init_repo(url, ref)
        base = directory / path_in_repo
        if not base.is_dir():
            return []

        return sorted(
            os.path.join(path_in_repo, entry.name) if path_in_repo else entry.name
            for entry in os.scandir(base)
            if not entry.name.startswith(".") and entry.is_dir()
        )

    def list_file_names(
        self, directory: Path, path_in_repo: str, excludes: Iterable[str]
    ) -> List[str]:
        """Relative paths of regular files below a path, sorted."""
        excludes = list(excludes)
        base = directory / path_in_repo
        if base.is_file():
            filepath = base.relative_to(directory).as_posix()
            return [] if _is_excluded(filepath, excludes) else [filepath]

        filepaths = []
        for root, dirs, files in os.walk(base):
            rel_root = Path(root).relative_to(directory).as_posix()
            if rel_root == ".git" or rel_root.startswith(".git/"):
                dirs[:] = []
                continue
            if rel_root == ".":
                dirs[:] = [d for d in dirs if d != ".git"]
            for name in files:
                filepath = name if rel_root == "." else f"{rel_root}/{name}"
                mode = os.lstat(os.path.join(root, name)).st_mode
                if not stat.S_ISREG(mode):
                    continue
                if _is_excluded(filepath, excludes):
                    continue
                filepaths.append(filepath)
        return sorted(filepaths)

    async def list_files(
        self,
        url: str,
        path_in_repo: str,
        ref: str,
        excludes: Iterable[Exclude] = (),
    ) -> List[RepositoryFile]:
        """
        Read all regular files below a path.

        Args:
            url: Repository URL
            path_in_repo: Directory relative to the repository root, "" for all
            ref: Ref to check out first
            excludes: Paths to skip. An entry ending in "/" skips everything
                below it, other entries match a whole path. Glob characters
                are honoured. Callables are called with ``ref`` and must
                return such a pattern; empty patterns are ignored.

        Returns:
            The files with their content and executable flag, sorted by path
        """
        validate_ref_is_secure(ref)
        directory = await self.init_repo(url, ref)
        if not (directory / path_in_repo).exists():
            return []

        patterns = [
            exclude(ref) if callable(exclude) else exclude for exclude in excludes
        ]
        patterns = [pattern for pattern in patterns if pattern]

        result = []
        for filepath in self.list_file_names(directory, path_in_repo, patterns):
            full_path = directory / filepath
            result.append(
                RepositoryFile(
                    filepath=filepath,
                    content=full_path.read_bytes(),
                    is_executable=bool(full_path.stat().st_mode & stat.S_IXUSR),
                )
            )
        return result

    async def read_file(self, url: str, filepath: str, ref: str) -> str:
        validate_ref_is_secure(ref)
        directory = await self.init_repo(url, ref)
        return (directory / filepath).read_text(encoding="utf-8")

    async def last_commit_time_for_file(self, url: str, filepath: str, ref: str) -> float:
        """
        POSIX timestamp of the last commit touching a file.

        Returns NaN instead of raising when git reports no commit for the
        file, e.g. because it is outside the shallow history.
        """
        validate_ref_is_secure(ref)
        directory = await self.init_repo(url, ref)
        out = await self._git(directory, "log", "-1", "--pretty=format:%at", "--", filepath)
        try:
            return float(int(out.strip()))
        except ValueError:
            return math.nan

    async def list_tags(self, url: str) -> List[str]:
        directory = await self.init_repo(url)
        out = (await self._git(directory, "tag")).strip()
        return out.split("\n") if out else []

    async def checkout(self, url: str, ref: str) -> Path:
        validate_ref_is_secure(ref)
        return await self.init_repo(url, ref)

    async def create_branch(self, url: str, branch: str, from_ref: str) -> Path:
        """
        Check out ``branch``, creating it from ``from_ref`` if it does not exist.

        Safe to call repeatedly: an existing branch is checked out as is.
        """
        validate_branch_is_secure(from_ref)
        validate_branch_is_secure(branch)
        directory = await self.init_repo(url)

        self.clear_working_copy_stat(directory)
        out = await self._git(
            directory, "branch", "--list", branch, "--format=%(refname:short)"
        )
        if branch in out.split():
            logger.info(f"Checking out existing branch {branch} in {directory}")
            await self._git(directory, "checkout", "--force", "--quiet", branch)
            return directory

        logger.info(f"Creating branch {branch} from {from_ref} in {directory}")
        await self._git(
            directory, "checkout", "--force", "--quiet", "-b", branch, from_ref
        )
        return directory

    async def pull(self, url: str, ref: str) -> Path:
        """Fast-forward the current branch to origin/ref, never merging."""
        validate_ref_is_secure(ref)
        directory = await self.init_repo(url, ref)
        self.clear_working_copy_stat(directory)
        await self._git(directory, "pull", "--ff-only", "--quiet", "origin", ref)
        return directory

    async def add_updated(self, url: str, pathspec: str) -> Path:
        """Stage changes to tracked files matching ``pathspec``."""
        directory = await self.init_repo(url)
        await self._git(directory, "add", "--update", "--", pathspec)
        return directory

    async def commit(self, url: str, ref: str, message: str) -> Path:
        validate_branch_is_secure(ref)
        directory = await self.init_repo(url, ref)
        await self._configure_identity(directory)
        self.clear_working_copy_stat(directory)
        await self._git(
            directory, "commit", "--no-gpg-sign", f"-m{normalize_message(message)}"
        )
        return directory

    async def tag_message(self, directory: Path, tag: str) -> str:
        out = await self._git(directory, "tag", "--list", "--format=%(contents)", tag)
        return out.rstrip()

    async def create_tag_for_ref(
        self,
        url: str,
        ref: str,
        tag: str,
        message: str,
        details=None,
    ) -> TagRecord:
        """
        Create an annotated tag at ``ref``.

        Creating a tag that already exists with the same message is a no-op,
        so the pipeline can be re-run over a repository.

        Raises:
            ConflictError: If the tag exists with a different message. The
                error carries ``details`` when given.
        """
        validate_ref_is_secure(ref)
        validate_ref_is_secure(tag)
        directory = await self.init_repo(url)
        message = normalize_message(message)

        if tag in await self.list_tags(url):
            existing = await self.tag_message(directory, tag)
            if existing == _stored_form(message):
                logger.debug(f"Tag {tag} already exists on {url} with the same message")
                return TagRecord(name=tag, message=existing)
            raise ConflictError(details or f"Tag {tag} already exists on repo {url}")

        await self._configure_identity(directory)
        self.clear_working_copy_stat(directory)
        await self._git(
            directory, "tag", "-a", "--cleanup=verbatim", tag, ref, "-m", message
        )
        logger.info(f"Created tag {tag} at {ref} on {url}")
        return TagRecord(name=tag, message=_stored_form(message))
