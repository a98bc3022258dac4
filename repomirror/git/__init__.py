"""
Git orchestration for mirrored repositories.

Commands are executed by the git binary through ``run_command``; refs and
branch names are validated before use, working copies are cloned shallowly
below a storage directory and their tag/branch/commit probes are memoized.
"""

from .cache import WorkingCopyStatCache
from .clone import WorkingCopyManager
from .exceptions import (
    CloneError,
    CommandError,
    ConflictError,
    RepositoryError,
    ValidationError,
)
from .executor import MAX_BUFFER_BYTES, run_command
from .validation import (
    is_strict_ref,
    validate_branch_is_secure,
    validate_ref_is_secure,
)

__all__ = [
    "WorkingCopyStatCache",
    "WorkingCopyManager",
    "CloneError",
    "CommandError",
    "ConflictError",
    "RepositoryError",
    "ValidationError",
    "MAX_BUFFER_BYTES",
    "run_command",
    "is_strict_ref",
    "validate_branch_is_secure",
    "validate_ref_is_secure",
]
