"""Resolve cargo dependencies to their already-built artifacts."""

from .exceptions import (
    ArtifactInconsistencyError,
    ArtifactNotFoundError,
    CrateExternsError,
    FileNameEncodingError,
    InvalidIdentityError,
    ManifestError,
    MissingDepsDirError,
    UnsupportedReferenceError,
)
from .locator import GitReference, GitReferenceKind, Locator, RevisionLocator, VersionLocator
from .resolver import (
    ArtifactResolver,
    ResolutionPlan,
    ResolvedArtifact,
    find_library_path,
    resolve_all_dependencies,
)

__all__ = [
    "ArtifactInconsistencyError",
    "ArtifactNotFoundError",
    "ArtifactResolver",
    "CrateExternsError",
    "FileNameEncodingError",
    "GitReference",
    "GitReferenceKind",
    "InvalidIdentityError",
    "Locator",
    "ManifestError",
    "MissingDepsDirError",
    "ResolutionPlan",
    "ResolvedArtifact",
    "RevisionLocator",
    "UnsupportedReferenceError",
    "VersionLocator",
    "find_library_path",
    "resolve_all_dependencies",
]
