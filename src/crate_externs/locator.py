"""
Dependency identities and the evidence they look for.

A Locator names one built dependency precisely enough to pick its artifact
out of a cargo output directory. Cargo writes a `{crate}-{hash}.d` file next
to every artifact listing the source files it was compiled from; those paths
embed the registry directory `{name}-{version}` or the git checkout
`{name}-{hash}/{short rev}`, so a plain substring search over the `.d` file
tells which build a given hash belongs to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .exceptions import InvalidIdentityError, UnsupportedReferenceError

REVISION_PREFIX_LENGTH = 7


class GitReferenceKind(Enum):
    """How a git dependency selects its commit."""

    REV = "rev"
    TAG = "tag"
    BRANCH = "branch"
    DEFAULT_BRANCH = "default-branch"


@dataclass(frozen=True)
class GitReference:
    """A git dependency's commit selector, as declared in the manifest."""

    kind: GitReferenceKind
    value: Optional[str] = None


class Locator(ABC):
    """Matching identity of one dependency."""

    logical_name: str

    def symbol_name(self) -> str:
        """Name cargo uses for files of this crate: hyphens become underscores."""
        return self.logical_name.replace("-", "_")

    @abstractmethod
    def search_patterns(self) -> Tuple[str, ...]:
        """Substrings that must all appear in a matching `.d` file."""

    def matches(self, contents: str) -> bool:
        """Return True if every search pattern occurs in contents."""
        return all(pattern in contents for pattern in self.search_patterns())

    @staticmethod
    def from_version_req(logical_name: str, version_req: str) -> "VersionLocator":
        """
        Build a locator from an exact version requirement.

        Args:
            logical_name: Package name as declared
            version_req: Requirement string, must look like `= X.Y.Z`

        Returns:
            VersionLocator: Locator for that exact version

        Raises:
            InvalidIdentityError: If the requirement is not an exact match
        """
        _check_name(logical_name)
        requirement = version_req.strip()
        version = requirement[1:].strip()
        # `==1.0` is not a cargo operator, and a bare `=` names nothing
        if not requirement.startswith("=") or not version or version.startswith("="):
            raise InvalidIdentityError(
                "version requirement must be an exact match, of the form `= X.Y.Z`",
                details={"logical_name": logical_name, "version_req": version_req},
            )

        return VersionLocator(logical_name=logical_name, version=version)

    @staticmethod
    def from_git_reference(
        logical_name: str, reference: GitReference
    ) -> "RevisionLocator":
        """
        Build a locator from a git reference.

        Only revisions pin a commit; tags, branches and the default branch
        are rejected.

        Raises:
            UnsupportedReferenceError: For anything but a revision
            InvalidIdentityError: For an empty revision
        """
        _check_name(logical_name)
        if reference.kind is not GitReferenceKind.REV:
            raise UnsupportedReferenceError(logical_name, reference.kind.value)

        revision = (reference.value or "").strip()
        if not revision:
            raise InvalidIdentityError(
                f"empty git revision for `{logical_name}`",
                details={"logical_name": logical_name},
            )

        return RevisionLocator(logical_name=logical_name, revision=revision)


def _check_name(logical_name: str) -> None:
    if not logical_name or not logical_name.strip():
        raise InvalidIdentityError("dependency name must not be empty")


@dataclass(frozen=True)
class VersionLocator(Locator):
    """A registry dependency pinned to one exact version."""

    logical_name: str
    version: str

    def search_patterns(self) -> Tuple[str, ...]:
        # Slashes on both sides keep `1.2` from matching a stored `1.22`
        return (f"/{self.logical_name}-{self.version}/",)

    def __str__(self) -> str:
        return f"{self.logical_name} = {self.version}"


@dataclass(frozen=True)
class RevisionLocator(Locator):
    """A git dependency pinned to one commit."""

    logical_name: str
    revision: str

    @property
    def short_revision(self) -> str:
        return self.revision[:REVISION_PREFIX_LENGTH]

    def search_patterns(self) -> Tuple[str, ...]:
        # Checkouts live under `git/checkouts/{name}-{hash}/{short rev}/`,
        # so name and revision are two separate path segments.
        return (f"/{self.logical_name}", f"/{self.short_revision}/")

    def __str__(self) -> str:
        return f"{self.logical_name} @ {self.short_revision}"
