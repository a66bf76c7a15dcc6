"""
Core functionality tests for crate-externs.
Tests locator identities, evidence matching, and artifact resolution.
"""

import os
import sys

import pytest

from crate_externs.exceptions import (
    ArtifactInconsistencyError,
    ArtifactNotFoundError,
    FileNameEncodingError,
    InvalidIdentityError,
    MissingDepsDirError,
    UnsupportedReferenceError,
)
from crate_externs.locator import (
    GitReference,
    GitReferenceKind,
    Locator,
    RevisionLocator,
    VersionLocator,
)
from crate_externs.resolver import ArtifactResolver, find_library_path


class TestLocatorConstruction:
    """Test building identities from requirements and git references."""

    @pytest.mark.parametrize(
        "requirement", ["1.0.0", "^1.0.0", "~1.0", ">=1.0, <2.0", "*", "", " 1.0.0=", "==1.0.0", "="]
    )
    def test_non_exact_requirement_rejected(self, requirement):
        with pytest.raises(InvalidIdentityError) as exc_info:
            Locator.from_version_req("foo", requirement)

        assert "exact match" in str(exc_info.value)

    @pytest.mark.parametrize(
        "requirement,version",
        [("=1.0.0", "1.0.0"), ("= 1.0.0", "1.0.0"), ("=   0.4.11  ", "0.4.11"), ("=1.0.0-beta.2", "1.0.0-beta.2")],
    )
    def test_exact_requirement_version_is_trimmed(self, requirement, version):
        locator = Locator.from_version_req("foo", requirement)

        assert isinstance(locator, VersionLocator)
        assert locator.version == version

    def test_bare_equals_rejected(self):
        with pytest.raises(InvalidIdentityError):
            Locator.from_version_req("foo", "=")

    def test_revision_reference(self):
        locator = Locator.from_git_reference(
            "mycrate", GitReference(GitReferenceKind.REV, "abcdef1234567890")
        )

        assert isinstance(locator, RevisionLocator)
        assert locator.revision == "abcdef1234567890"
        assert locator.short_revision == "abcdef1"

    @pytest.mark.parametrize(
        "reference",
        [
            GitReference(GitReferenceKind.TAG, "v1.0.0"),
            GitReference(GitReferenceKind.BRANCH, "main"),
            GitReference(GitReferenceKind.DEFAULT_BRANCH),
        ],
    )
    def test_tag_and_branch_references_unsupported(self, reference):
        with pytest.raises(UnsupportedReferenceError) as exc_info:
            Locator.from_git_reference("mycrate", reference)

        assert exc_info.value.reference_kind == reference.kind.value
        # Still an identity error for callers that only care about that
        assert isinstance(exc_info.value, InvalidIdentityError)

    def test_empty_name_rejected(self):
        with pytest.raises(InvalidIdentityError):
            Locator.from_version_req("", "=1.0.0")

    def test_locators_are_immutable_values(self):
        a = Locator.from_version_req("foo", "=1.0.0")
        b = Locator.from_version_req("foo", "= 1.0.0")

        assert a == b
        assert hash(a) == hash(b)
        with pytest.raises(AttributeError):
            a.version = "2.0.0"


class TestLocatorMatching:
    """Test symbol names, search patterns and content matching."""

    @pytest.mark.parametrize(
        "name,symbol",
        [("foo", "foo"), ("foo-bar", "foo_bar"), ("a-b-c", "a_b_c"), ("already_ok", "already_ok")],
    )
    def test_symbol_name(self, name, symbol):
        locator = VersionLocator(logical_name=name, version="1.0.0")

        assert locator.symbol_name() == symbol
        assert locator.symbol_name().replace("-", "_") == symbol

    def test_version_pattern(self):
        locator = VersionLocator(logical_name="foo-bar", version="1.2.3")

        assert locator.search_patterns() == ("/foo-bar-1.2.3/",)

    def test_revision_patterns(self):
        locator = RevisionLocator(logical_name="mycrate", revision="abcdef1234567890")

        assert locator.search_patterns() == ("/mycrate", "/abcdef1/")

    def test_version_match_is_path_delimited(self):
        locator = VersionLocator(logical_name="foo", version="1.2")

        assert not locator.matches("/registry/src/foo-1.22/src/lib.rs")
        assert locator.matches("/registry/src/foo-1.2/src/lib.rs")

    def test_revision_requires_both_patterns(self):
        locator = RevisionLocator(logical_name="mycrate", revision="abcdef1234567890")

        assert locator.matches("/git/checkouts/mycrate-5f2a/abcdef1/src/lib.rs")
        assert not locator.matches("/git/checkouts/mycrate-5f2a/1234567/src/lib.rs")
        assert not locator.matches("/git/checkouts/other-5f2a/abcdef1/src/lib.rs")


class TestArtifactResolution:
    """Test scanning a cargo output directory."""

    def test_resolves_single_build(self, deps_dir, add_registry_build):
        add_registry_build("foo", "1.0.0", "abc123")
        locator = Locator.from_version_req("foo", "=1.0.0")

        path = find_library_path(locator, deps_dir, ["so", "rlib"])

        assert path == (deps_dir / "libfoo-abc123.rlib").resolve()
        assert path.is_absolute()

    def test_shared_object_preferred(self, deps_dir, add_registry_build):
        add_registry_build("foo", "1.0.0", "abc123", extensions=("rlib", "so"))
        locator = Locator.from_version_req("foo", "=1.0.0")

        path = find_library_path(locator, deps_dir, ["so", "rlib"])

        assert path.name == "libfoo-abc123.so"

    def test_only_shared_object(self, deps_dir, add_registry_build):
        add_registry_build("derive-thing", "0.3.1", "f00d", extensions=("so",))
        locator = Locator.from_version_req("derive-thing", "=0.3.1")

        path = find_library_path(locator, deps_dir, ["so", "rlib"])

        assert path.name == "libderive_thing-f00d.so"

    def test_extension_order_is_configurable(self, deps_dir, add_registry_build):
        add_registry_build("foo", "1.0.0", "abc123", extensions=("rlib", "so"))
        locator = Locator.from_version_req("foo", "=1.0.0")

        path = find_library_path(locator, deps_dir, ["rlib", "so"])

        assert path.name == "libfoo-abc123.rlib"

    def test_disambiguates_versions(self, deps_dir, add_registry_build):
        add_registry_build("foo", "1.0.0", "aaa")
        add_registry_build("foo", "2.0.0", "bbb")

        v2 = find_library_path(Locator.from_version_req("foo", "=2.0.0"), deps_dir)
        v1 = find_library_path(Locator.from_version_req("foo", "=1.0.0"), deps_dir)

        assert v2.name == "libfoo-bbb.rlib"
        assert v1.name == "libfoo-aaa.rlib"

    def test_disambiguates_revisions(self, deps_dir, add_git_build):
        add_git_build("mycrate", "1111111aaaaaaa", "old")
        add_git_build("mycrate", "abcdef1234567890", "new")
        locator = Locator.from_git_reference(
            "mycrate", GitReference(GitReferenceKind.REV, "abcdef1234567890")
        )

        path = find_library_path(locator, deps_dir)

        assert path.name == "libmycrate-new.rlib"

    def test_hyphenated_name_uses_symbol_prefix(self, deps_dir, add_registry_build):
        add_registry_build("foo-bar", "1.0.0", "123")
        # Same logical prefix but a different crate
        add_registry_build("foo", "1.0.0", "456")

        path = find_library_path(Locator.from_version_req("foo-bar", "=1.0.0"), deps_dir)

        assert path.name == "libfoo_bar-123.rlib"

    def test_ignores_other_files_and_directories(self, deps_dir, add_registry_build):
        (deps_dir / "foo-dir.d").mkdir()
        (deps_dir / "foo-abc.rmeta").write_text("/foo-1.0.0/")
        (deps_dir / "foobar-abc.d").write_text("/foo-1.0.0/")
        add_registry_build("foo", "1.0.0", "real")

        path = find_library_path(Locator.from_version_req("foo", "=1.0.0"), deps_dir)

        assert path.name == "libfoo-real.rlib"

    def test_no_match_names_dependency(self, deps_dir, add_registry_build):
        add_registry_build("foo", "1.0.0", "aaa")
        before = sorted((p.name, p.stat().st_mtime_ns) for p in deps_dir.iterdir())

        with pytest.raises(ArtifactNotFoundError) as exc_info:
            find_library_path(Locator.from_version_req("foo", "=3.0.0"), deps_dir)

        assert "foo" in str(exc_info.value)
        assert exc_info.value.logical_name == "foo"
        after = sorted((p.name, p.stat().st_mtime_ns) for p in deps_dir.iterdir())
        assert before == after

    def test_no_candidates(self, deps_dir):
        with pytest.raises(ArtifactNotFoundError):
            find_library_path(Locator.from_version_req("foo", "=1.0.0"), deps_dir)

    def test_missing_directory(self, tmp_path, monkeypatch):
        missing = tmp_path / "target" / "release" / "deps"
        scandir_calls = []
        monkeypatch.setattr(os, "scandir", lambda *a: scandir_calls.append(a))

        with pytest.raises(MissingDepsDirError) as exc_info:
            find_library_path(Locator.from_version_req("foo", "=1.0.0"), missing)

        assert "does not exist" in str(exc_info.value)
        assert scandir_calls == []

    def test_matched_build_without_artifact(self, deps_dir, add_registry_build):
        add_registry_build("foo", "1.0.0", "abc", extensions=())

        with pytest.raises(ArtifactInconsistencyError) as exc_info:
            find_library_path(Locator.from_version_req("foo", "=1.0.0"), deps_dir)

        assert exc_info.value.extensions == ("so", "rlib")

    @pytest.mark.skipif(sys.platform != "linux", reason="needs byte file names")
    def test_undecodable_file_name(self, deps_dir):
        try:
            with open(os.path.join(os.fsencode(deps_dir), b"foo-\xff.d"), "w") as f:
                f.write("/foo-1.0.0/")
        except OSError:
            pytest.skip("filesystem rejects non UTF-8 names")

        with pytest.raises(FileNameEncodingError):
            find_library_path(Locator.from_version_req("foo", "=1.0.0"), deps_dir)

    def test_dep_info_with_invalid_utf8_contents(self, deps_dir):
        registry = "/home/dev/.cargo/registry/src/github.com-1ecc6299db9ec823"
        (deps_dir / "foo-abc.d").write_bytes(
            b"/build/caf\xe9/out.rs:\n" + f"{registry}/foo-1.0.0/src/lib.rs:\n".encode()
        )
        (deps_dir / "libfoo-abc.rlib").write_bytes(b"")

        path = find_library_path(Locator.from_version_req("foo", "=1.0.0"), deps_dir)

        assert path.name == "libfoo-abc.rlib"

    def test_resolver_requires_extensions(self):
        with pytest.raises(ValueError):
            ArtifactResolver([])


class TestBatchResolution:
    """Test resolving several dependencies in one pass."""

    def test_resolve_all_keeps_order(self, deps_dir, add_registry_build, add_git_build):
        add_registry_build("serde", "1.0.104", "s1")
        add_git_build("mycrate", "abcdef1234567890", "m1")
        add_registry_build("log", "0.4.8", "l1", extensions=("so", "rlib"))
        locators = [
            Locator.from_version_req("log", "=0.4.8"),
            Locator.from_git_reference(
                "mycrate", GitReference(GitReferenceKind.REV, "abcdef1234567890")
            ),
            Locator.from_version_req("serde", "=1.0.104"),
        ]

        plan = ArtifactResolver().resolve_all(locators, deps_dir)

        assert plan.deps_dir == deps_dir.resolve()
        assert [a.symbol_name for a in plan.artifacts] == ["log", "mycrate", "serde"]
        assert [a.artifact_path.name for a in plan.artifacts] == [
            "liblog-l1.so",
            "libmycrate-m1.rlib",
            "libserde-s1.rlib",
        ]

    def test_resolve_all_fails_on_first_error(self, deps_dir, add_registry_build):
        add_registry_build("serde", "1.0.104", "s1")
        locators = [
            Locator.from_version_req("missing-crate", "=1.0.0"),
            Locator.from_version_req("serde", "=1.0.104"),
        ]

        with pytest.raises(ArtifactNotFoundError) as exc_info:
            ArtifactResolver().resolve_all(locators, deps_dir)

        assert exc_info.value.logical_name == "missing-crate"

    def test_empty_batch(self, deps_dir):
        plan = ArtifactResolver().resolve_all([], deps_dir)

        assert len(plan) == 0
        assert plan.deps_dir == deps_dir.resolve()

    def test_failure_is_logged_once(self, deps_dir, caplog):
        locators = [Locator.from_version_req("missing-crate", "=1.0.0")]

        with pytest.raises(ArtifactNotFoundError):
            ArtifactResolver().resolve_all(locators, deps_dir)

        records = [r for r in caplog.records if r.name == "crate_externs"]
        assert len(records) == 1
        assert records[0].levelname == "ERROR"
        assert "no artifact found for `missing-crate`" in records[0].getMessage()

    def test_missing_directory_is_logged_once(self, tmp_path, caplog):
        locators = [Locator.from_version_req("serde", "=1.0.104")]

        with pytest.raises(MissingDepsDirError):
            ArtifactResolver().resolve_all(locators, tmp_path / "absent")

        records = [r for r in caplog.records if r.name == "crate_externs"]
        assert len(records) == 1
