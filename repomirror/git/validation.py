"""
Guards for refs and branch names that end up as git arguments.

Refs come from the mirrored repositories and from build configuration, so
they are treated as untrusted. Commands are run without a shell, but a value
such as ``--upload-pack=...`` is still parsed by git as an option; the checks
here reject anything that looks like a flag or carries shell metacharacters.

The rules are a denylist. ``is_strict_ref`` offers an allowlist for callers
that want the tighter grammar; it is not applied by default.
"""

import re

from .exceptions import ValidationError

INSECURE_CHARACTERS = (" ", "\t", "\n", "\r", "\0", "`", "$", "|", "&", "<", ">")

_STRICT_REF = re.compile(r"^[A-Za-z0-9._/][A-Za-z0-9._/-]*$")


def _is_insecure(value) -> bool:
    if not isinstance(value, str) or not value:
        return True
    if value.startswith("-"):
        return True
    return any(char in value for char in INSECURE_CHARACTERS)


def validate_ref_is_secure(ref):
    """
    Ensure a ref (tag, branch or commit) is safe to pass to git.

    Args:
        ref: The ref as supplied by the caller

    Returns:
        The ref, unchanged

    Raises:
        ValidationError: If the ref is empty, starts with a hyphen or contains
            whitespace, NUL or shell metacharacters
    """
    if _is_insecure(ref):
        raise ValidationError(ref, "ref")
    return ref


def validate_branch_is_secure(branch):
    """Same rules as validate_ref_is_secure, reported as a branch."""
    if _is_insecure(branch):
        raise ValidationError(branch, "branch")
    return branch


def is_strict_ref(value) -> bool:
    """Allowlist check: alphanumerics, '.', '_', '/' and non-leading '-'."""
    return isinstance(value, str) and bool(_STRICT_REF.match(value))
