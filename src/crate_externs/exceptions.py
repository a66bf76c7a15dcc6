"""Exception classes for crate-externs.

Every error the resolver can report derives from CrateExternsError, which
carries a human-readable message and a dictionary of diagnostic details.
"""

from typing import Any, Dict, Optional


class CrateExternsError(Exception):
    """Base exception for all crate-externs errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize exception with message and optional details.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidIdentityError(CrateExternsError, ValueError):
    """Raised when a dependency cannot be turned into a matching identity."""

    pass


class UnsupportedReferenceError(InvalidIdentityError):
    """Raised for git references other than an explicit revision.

    Tag and branch references do not pin a commit, so there is no way to tell
    which checkout a build artifact came from.
    """

    def __init__(self, logical_name: str, reference_kind: str):
        super().__init__(
            f"unsupported git reference for `{logical_name}`: {reference_kind} "
            "(only `rev = \"...\"` is supported)",
            details={"logical_name": logical_name, "reference_kind": reference_kind},
        )
        self.logical_name = logical_name
        self.reference_kind = reference_kind


class MissingDepsDirError(CrateExternsError):
    """Raised when the dependency output directory does not exist."""

    def __init__(self, deps_dir: str):
        super().__init__(
            "dependency output directory does not exist",
            details={"deps_dir": deps_dir},
        )
        self.deps_dir = deps_dir


class FileNameEncodingError(CrateExternsError):
    """Raised when a directory entry name is not valid UTF-8."""

    pass


class ArtifactNotFoundError(CrateExternsError):
    """Raised when no auxiliary file matches a dependency identity."""

    def __init__(self, logical_name: str, patterns: tuple = ()):
        super().__init__(
            f"no artifact found for `{logical_name}`",
            details={"logical_name": logical_name, "patterns": list(patterns)},
        )
        self.logical_name = logical_name
        self.patterns = patterns


class ArtifactInconsistencyError(CrateExternsError):
    """Raised when a matched auxiliary file has no artifact next to it.

    This means the output directory is stale or corrupt and needs a look,
    it is not something to retry.
    """

    def __init__(self, aux_path: str, extensions: tuple):
        super().__init__(
            f"auxiliary file {aux_path} matched but no artifact exists "
            f"with any of the extensions {', '.join(extensions)}",
            details={"aux_path": aux_path, "extensions": list(extensions)},
        )
        self.aux_path = aux_path
        self.extensions = extensions


class ManifestError(CrateExternsError, ValueError):
    """Raised when the manifest cannot be read or is not supported."""

    pass
