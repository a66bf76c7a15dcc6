"""
Cargo manifest reader.

Turns the dependency tables of a Cargo.toml into Locators. Only identities
that pin one exact build are accepted: `= X.Y.Z` version requirements and
git dependencies with `rev = "..."`.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import toml

from .error_handling import ErrorCallback, ErrorCategory, get_error_handler, log_manifest_error
from .exceptions import InvalidIdentityError, ManifestError
from .locator import GitReference, GitReferenceKind, Locator
from .structured_logging import log_manifest_loaded

MANIFEST_NAME = "Cargo.toml"

# Cargo accepts the underscore spellings too.
DEPENDENCY_SECTIONS = [
    ("dependencies",),
    ("dev-dependencies", "dev_dependencies"),
    ("build-dependencies", "build_dependencies"),
]


@dataclass(frozen=True)
class ManifestDependency:
    """One entry of a dependency table."""

    key: str
    package_name: str
    version_req: str
    section: str
    git_reference: Optional[GitReference] = None
    git_url: Optional[str] = None

    def to_locator(self) -> Locator:
        """
        Build the Locator for this dependency.

        Raises:
            InvalidIdentityError: If the version requirement is not exact
            UnsupportedReferenceError: If the git reference is a tag or branch
        """
        if self.git_reference is not None:
            return Locator.from_git_reference(self.package_name, self.git_reference)
        return Locator.from_version_req(self.package_name, self.version_req)


def _validate_manifest_path(file_path: str) -> Path:
    """
    Validate the manifest path.

    Args:
        file_path: Path to Cargo.toml, or to the directory containing it

    Returns:
        Path: Resolved path of the manifest file

    Raises:
        ManifestError: If the path is not an existing Cargo.toml
    """
    if not file_path:
        raise ManifestError("manifest path must be a non-empty string")

    path = Path(file_path).resolve()
    if path.is_dir():
        path = path / MANIFEST_NAME

    if not path.exists():
        raise ManifestError(f"manifest does not exist: {path}")
    if not path.is_file():
        raise ManifestError(f"manifest is not a file: {path}")
    if not path.name.endswith(MANIFEST_NAME):
        raise ManifestError(f"File must be a Cargo.toml file, got {path.name}")

    return path


def _read_manifest(path: Path) -> Dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
        return toml.loads(content)
    except toml.TomlDecodeError as e:
        log_manifest_error(
            f"Invalid TOML format in Cargo.toml: {e}",
            "_read_manifest",
            file_path=str(path),
            exception=e,
        )
        raise ManifestError(f"Invalid TOML format: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        log_manifest_error(
            f"Error reading Cargo.toml file: {e}",
            "_read_manifest",
            file_path=str(path),
            exception=e,
        )
        raise ManifestError(f"Error reading Cargo.toml file: {e}") from e


def _iter_dependency_tables(data: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    """Yield (section label, table) for every dependency table, top level first."""
    scopes: List[Tuple[str, Dict[str, Any]]] = [("", data)]
    targets = data.get("target", {})
    if isinstance(targets, dict):
        for cfg, table in targets.items():
            if isinstance(table, dict):
                scopes.append((f"target.{cfg}.", table))

    for scope_label, scope in scopes:
        for spellings in DEPENDENCY_SECTIONS:
            for spelling in spellings:
                table = scope.get(spelling)
                if isinstance(table, dict):
                    yield f"{scope_label}{spellings[0]}", table


def _git_reference(spec: Dict[str, Any]) -> GitReference:
    for kind in (GitReferenceKind.REV, GitReferenceKind.TAG, GitReferenceKind.BRANCH):
        if kind.value in spec:
            return GitReference(kind, str(spec[kind.value]))
    return GitReference(GitReferenceKind.DEFAULT_BRANCH)


def _parse_entry(key: str, spec: Any, section: str) -> ManifestDependency:
    if isinstance(spec, str):
        return ManifestDependency(
            key=key, package_name=key, version_req=spec, section=section
        )

    if not isinstance(spec, dict):
        raise ManifestError(
            f"dependency `{key}` in [{section}] must be a string or a table",
            details={"dependency": key, "section": section},
        )

    if spec.get("workspace") is True:
        raise ManifestError(
            f"dependency `{key}` inherits from the workspace, which is not supported",
            details={"dependency": key, "section": section},
        )

    return ManifestDependency(
        key=key,
        package_name=str(spec.get("package", key)),
        version_req=str(spec.get("version", "*")),
        section=section,
        git_reference=_git_reference(spec) if "git" in spec else None,
        git_url=str(spec["git"]) if "git" in spec else None,
    )


def parse_cargo_manifest(
    file_path: str, error_callback: Optional[ErrorCallback] = None
) -> List[ManifestDependency]:
    """
    Parse the dependency tables of a Cargo.toml.

    Reads [dependencies], [dev-dependencies] and [build-dependencies], then the
    same tables under each [target.<cfg>] section, in declaration order.

    Args:
        file_path: Path to the Cargo.toml file or its directory
        error_callback: Called with the ErrorContext of manifest errors logged
            during this call

    Returns:
        List[ManifestDependency]: Declared dependencies

    Raises:
        ManifestError: If the manifest cannot be read, is invalid TOML, or is
            a virtual (workspace-only) manifest
    """
    error_handler = get_error_handler()
    if error_callback:
        error_handler.register_callback(error_callback, ErrorCategory.MANIFEST)

    try:
        validated_path = _validate_manifest_path(file_path)
        data = _read_manifest(validated_path)

        if "package" not in data:
            message = (
                "virtual manifest is not supported."
                if "workspace" in data
                else "manifest has no [package] section"
            )
            log_manifest_error(
                message, "parse_cargo_manifest", file_path=str(validated_path)
            )
            raise ManifestError(message, details={"manifest": str(validated_path)})

        dependencies = []
        for section, table in _iter_dependency_tables(data):
            for key, spec in table.items():
                dependencies.append(_parse_entry(key, spec, section))

        return dependencies
    finally:
        if error_callback:
            error_handler.unregister_callback(error_callback, ErrorCategory.MANIFEST)


def load_locators(
    file_path: str, error_callback: Optional[ErrorCallback] = None
) -> List[Locator]:
    """
    Read a Cargo.toml and build one Locator per distinct dependency.

    A crate listed in several tables with the same identity yields a single
    Locator. Fails on the first dependency that cannot be located.

    Raises:
        ManifestError: If the manifest cannot be parsed
        InvalidIdentityError: If a dependency is not pinned exactly
    """
    error_handler = get_error_handler()
    if error_callback:
        error_handler.register_callback(error_callback, ErrorCategory.MANIFEST)

    locators: List[Locator] = []
    try:
        for dependency in parse_cargo_manifest(file_path):
            try:
                locator = dependency.to_locator()
            except InvalidIdentityError as e:
                log_manifest_error(
                    str(e),
                    "load_locators",
                    file_path=file_path,
                    dependency=dependency.key,
                    source=dependency.git_url,
                    exception=e,
                )
                raise

            if locator not in locators:
                locators.append(locator)
    finally:
        if error_callback:
            error_handler.unregister_callback(error_callback, ErrorCategory.MANIFEST)

    log_manifest_loaded(str(file_path), len(locators))
    return locators
