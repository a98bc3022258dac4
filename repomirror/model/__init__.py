"""Data models for mirrored repositories."""

from repomirror.model.repo import (
    RepositoryFile,
    TagRecord,
    dir_for_repo_url,
)

__all__ = [
    "RepositoryFile",
    "TagRecord",
    "dir_for_repo_url",
]
