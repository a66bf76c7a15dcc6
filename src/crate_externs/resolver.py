"""
Artifact resolution engine.

Finds the compiled artifact of each dependency in a cargo output directory
(`target/<profile>/deps`) without invoking cargo. The directory may hold
several builds of the same crate, e.g. `serde-1a2b.d` and `serde-3c4d.d`;
which one belongs to the requested identity is decided by the contents of
the `.d` files, see `Locator.matches`.
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence, Tuple, Union

from .cli_config import get_config
from .error_handling import ErrorCategory, get_error_handler, log_resolution_error
from .exceptions import (
    ArtifactInconsistencyError,
    ArtifactNotFoundError,
    CrateExternsError,
    FileNameEncodingError,
    MissingDepsDirError,
)
from .locator import Locator
from .structured_logging import (
    log_batch_resolved,
    log_candidate_rejected,
    log_dependency_resolved,
    log_resolution_failed,
    log_resolution_start,
)

AUX_SUFFIX = ".d"
ARTIFACT_PREFIX = "lib"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ResolvedArtifact:
    """A dependency matched to its compiled artifact."""

    symbol_name: str
    artifact_path: Path


@dataclass(frozen=True)
class ResolutionPlan:
    """Everything a compiler invocation needs to link a set of dependencies."""

    deps_dir: Path
    artifacts: Tuple[ResolvedArtifact, ...] = ()

    def __len__(self) -> int:
        return len(self.artifacts)


class ArtifactResolver:
    """Resolves Locators to artifacts inside one output directory."""

    def __init__(self, artifact_extensions: Optional[Sequence[str]] = None):
        """
        Initialize resolver.

        Args:
            artifact_extensions: Artifact extensions in priority order, without
                the leading dot. Defaults to the configured list.
        """
        if artifact_extensions is None:
            artifact_extensions = get_config().resolver.artifact_extensions
        self.artifact_extensions: Tuple[str, ...] = tuple(artifact_extensions)
        if not self.artifact_extensions:
            raise ValueError("at least one artifact extension is required")
        self.error_handler = get_error_handler()

    def find_library_path(self, locator: Locator, deps_dir: PathLike) -> Path:
        """
        Find the artifact built for `locator` in `deps_dir`.

        Candidates are tried in directory order and the first whose `.d`
        file matches wins.

        Args:
            locator: Identity of the dependency
            deps_dir: Cargo output directory

        Returns:
            Path: Absolute path of the artifact

        Raises:
            MissingDepsDirError: If deps_dir does not exist
            FileNameEncodingError: If an entry name is not valid UTF-8
            ArtifactNotFoundError: If no candidate matches
            ArtifactInconsistencyError: If a match has no artifact file
        """
        directory = self._validate_deps_dir(deps_dir)
        symbol_name = locator.symbol_name()
        log_resolution_start(locator.logical_name, symbol_name, locator.search_patterns())

        scanned = 0
        for candidate in self._iter_candidates(directory, symbol_name):
            scanned += 1
            if not locator.matches(self._read_candidate(candidate)):
                log_candidate_rejected(locator.logical_name, candidate.name)
                continue

            artifact_path = self._artifact_path(candidate, locator)
            log_dependency_resolved(
                locator.logical_name, symbol_name, str(artifact_path), scanned
            )
            return artifact_path

        log_resolution_failed(
            locator.logical_name, "no_matching_candidate", candidates_scanned=scanned
        )
        error = ArtifactNotFoundError(locator.logical_name, locator.search_patterns())
        log_resolution_error(
            str(error),
            "find_library_path",
            logical_name=locator.logical_name,
            deps_dir=str(directory),
            exception=error,
        )
        raise error

    def resolve(self, locator: Locator, deps_dir: PathLike) -> ResolvedArtifact:
        """Resolve one dependency to a ResolvedArtifact."""
        return ResolvedArtifact(
            symbol_name=locator.symbol_name(),
            artifact_path=self.find_library_path(locator, deps_dir),
        )

    def resolve_all(
        self, locators: Iterable[Locator], deps_dir: PathLike
    ) -> ResolutionPlan:
        """
        Resolve every locator against the same directory.

        Stops at the first failure; there is no partial result.

        Returns:
            ResolutionPlan: Output directory and artifacts in input order
        """
        start = time.perf_counter()
        directory = self._validate_deps_dir(deps_dir)

        artifacts = [self.resolve(locator, directory) for locator in locators]

        duration_ms = int((time.perf_counter() - start) * 1000)
        log_batch_resolved(str(directory), len(artifacts), duration_ms)
        return ResolutionPlan(deps_dir=directory, artifacts=tuple(artifacts))

    def _validate_deps_dir(self, deps_dir: PathLike) -> Path:
        """Make deps_dir absolute and check that it exists."""
        path = Path(deps_dir).resolve()
        if not path.is_dir():
            self.error_handler.error(
                ErrorCategory.FILESYSTEM,
                "dependency output directory does not exist",
                "resolver",
                "_validate_deps_dir",
                details={"deps_dir": str(path)},
                suggestions=["Run `cargo build` first", "Check --profile and --target"],
            )
            raise MissingDepsDirError(str(path))
        return path

    def _iter_candidates(self, directory: Path, symbol_name: str) -> Iterator[Path]:
        """Yield `{symbol_name}-*.d` files of directory, in directory order."""
        prefix = f"{symbol_name}-"

        # Listing as bytes so undecodable names surface instead of being
        # smuggled through as surrogate escapes.
        with os.scandir(os.fsencode(directory)) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    continue

                try:
                    name = entry.name.decode("utf-8")
                except UnicodeDecodeError as e:
                    self.error_handler.error(
                        ErrorCategory.FILESYSTEM,
                        "file name has invalid bytes for UTF-8",
                        "resolver",
                        "_iter_candidates",
                        exception=e,
                        details={"deps_dir": str(directory)},
                    )
                    raise FileNameEncodingError(
                        "file name has invalid bytes for UTF-8",
                        details={"deps_dir": str(directory), "file_name": repr(entry.name)},
                    ) from e

                if name.startswith(prefix) and name.endswith(AUX_SUFFIX):
                    yield directory / name

    def _read_candidate(self, candidate: Path) -> str:
        try:
            return candidate.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            self.error_handler.error(
                ErrorCategory.FILESYSTEM,
                f"Cannot read auxiliary file: {e}",
                "resolver",
                "_read_candidate",
                exception=e,
                details={"file_name": candidate.name},
            )
            raise CrateExternsError(
                f"cannot read {candidate}: {e}", details={"aux_path": str(candidate)}
            ) from e

    def _artifact_path(self, candidate: Path, locator: Locator) -> Path:
        """Map `foo-hash.d` to the first existing `libfoo-hash.<ext>`."""
        stem = candidate.with_name(ARTIFACT_PREFIX + candidate.name)
        for extension in self.artifact_extensions:
            artifact = stem.with_suffix(f".{extension}")
            if artifact.exists():
                return artifact

        log_resolution_failed(
            locator.logical_name, "artifact_missing", aux_path=str(candidate)
        )
        error = ArtifactInconsistencyError(str(candidate), self.artifact_extensions)
        log_resolution_error(
            str(error),
            "_artifact_path",
            logical_name=locator.logical_name,
            deps_dir=str(candidate.parent),
            exception=error,
            critical=True,
        )
        raise error


def find_library_path(
    locator: Locator,
    deps_dir: PathLike,
    artifact_extensions: Optional[Sequence[str]] = None,
) -> Path:
    """
    Convenience function to resolve one dependency.

    Args:
        locator: Identity of the dependency
        deps_dir: Cargo output directory
        artifact_extensions: Extension priority list, defaults to configuration

    Returns:
        Path: Absolute artifact path
    """
    return ArtifactResolver(artifact_extensions).find_library_path(locator, deps_dir)


def resolve_all_dependencies(
    locators: Iterable[Locator],
    deps_dir: PathLike,
    artifact_extensions: Optional[Sequence[str]] = None,
) -> ResolutionPlan:
    """Convenience function to resolve a batch of dependencies."""
    return ArtifactResolver(artifact_extensions).resolve_all(locators, deps_dir)
