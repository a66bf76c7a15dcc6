"""
Shared fixtures for crate-externs tests.

The fixtures lay out a fake cargo output directory the way cargo does:
`{crate}-{hash}.d` dep-info files next to `lib{crate}-{hash}.{ext}` artifacts.
"""

import pytest

from crate_externs import cli_config
from crate_externs.cli_config import LoggingConfig, reset_config
from crate_externs.structured_logging import configure_logging

REGISTRY_SRC = "/home/dev/.cargo/registry/src/github.com-1ecc6299db9ec823"
GIT_CHECKOUTS = "/home/dev/.cargo/git/checkouts"

_ENV_VARS = [
    "CRATE_EXTERNS_PROFILE",
    "CRATE_EXTERNS_TARGET",
    "CRATE_EXTERNS_ARTIFACT_EXTENSIONS",
    "CRATE_EXTERNS_LOG_LEVEL",
    "CARGO_TARGET_DIR",
]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep user config files and environment out of the tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(cli_config, "find_config_file", lambda: None)
    reset_config()
    yield
    reset_config()
    defaults = LoggingConfig()
    configure_logging(defaults.log_level, defaults.enable_json, defaults.log_format)


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for test files."""
    return tmp_path


@pytest.fixture
def deps_dir(tmp_path):
    """Empty `target/release/deps` directory next to the project root."""
    path = tmp_path / "target" / "release" / "deps"
    path.mkdir(parents=True)
    return path


def _write_dep_info(deps_dir, symbol_name, hash_, sources, extensions):
    stem = f"{symbol_name}-{hash_}"
    artifact = deps_dir / f"lib{stem}.rlib"
    lines = [
        f"{artifact}: {' '.join(sources)}",
        "",
        f"{deps_dir / stem}.d: {' '.join(sources)}",
        "",
    ]
    lines.extend(f"{source}:" for source in sources)
    (deps_dir / f"{stem}.d").write_text("\n".join(lines) + "\n")

    for extension in extensions:
        (deps_dir / f"lib{stem}.{extension}").write_bytes(b"\x00artifact")

    return deps_dir / f"{stem}.d"


@pytest.fixture
def add_registry_build(deps_dir):
    """Add a crates.io build of `name`/`version` to deps_dir."""

    def add(name, version, hash_, extensions=("rlib",)):
        root = f"{REGISTRY_SRC}/{name}-{version}"
        sources = [f"{root}/src/lib.rs", f"{root}/src/util.rs"]
        return _write_dep_info(
            deps_dir, name.replace("-", "_"), hash_, sources, extensions
        )

    return add


@pytest.fixture
def add_git_build(deps_dir):
    """Add a git build of `name` at `revision` to deps_dir."""

    def add(name, revision, hash_, extensions=("rlib",)):
        root = f"{GIT_CHECKOUTS}/{name}-5f2a9c1d3e4b6a78/{revision[:7]}"
        sources = [f"{root}/src/lib.rs"]
        return _write_dep_info(
            deps_dir, name.replace("-", "_"), hash_, sources, extensions
        )

    return add


@pytest.fixture
def write_manifest(tmp_path):
    """Write a Cargo.toml with the given dependency tables into tmp_path."""

    def write(body, package=True):
        header = '[package]\nname = "app"\nversion = "0.1.0"\nedition = "2018"\n\n'
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text((header if package else "") + body)
        return manifest

    return write
