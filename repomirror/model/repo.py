# Data model and functions to manage mirrored repositories

from pydantic import BaseModel, ConfigDict


def dir_for_repo_url(url: str) -> str:
    """
    Derive the working copy directory name of a repository URL.

    The last path segment is used, with a trailing ``.git`` (any case) and a
    trailing slash removed. The leading slash is kept, so the result is meant
    to be appended to the storage directory:

        https://github.com/org/repo.git -> /repo
        git@host:org/repo.git -> /repo
    """
    if url[-4:].lower() == ".git":
        url = url[:-4]
    if url.endswith("/"):
        url = url[:-1]
    return url[url.rindex("/") :] if "/" in url else url


class RepositoryFile(BaseModel):
    """A regular file read from a working copy."""

    model_config = ConfigDict(frozen=True)

    filepath: str
    content: bytes
    is_executable: bool = False


class TagRecord(BaseModel):
    """An annotated tag and its message."""

    model_config = ConfigDict(frozen=True)

    name: str
    message: str
