"""Locating cargo's dependency output directory."""

import os
from pathlib import Path
from typing import Optional

from .cli_config import get_config

# Built-in profiles whose output directory is not named after the profile.
PROFILE_DIR_NAMES = {"dev": "debug", "test": "debug", "bench": "release"}


def profile_dir_name(profile: str) -> str:
    return PROFILE_DIR_NAMES.get(profile, profile)


def locate_deps_dir(
    manifest_path: str,
    deps_dir: Optional[str] = None,
    profile: Optional[str] = None,
    target: Optional[str] = None,
) -> Path:
    """
    Work out which directory holds the built dependencies.

    An explicit deps_dir wins. Otherwise the directory is
    `<target dir>/[<triple>/]<profile>/deps`, where the target dir is
    CARGO_TARGET_DIR if set, else `target` next to the manifest.

    Args:
        manifest_path: Path to Cargo.toml or its directory
        deps_dir: Explicit output directory, if given
        profile: Cargo profile, defaults to the configured one
        target: Target triple, defaults to the configured one

    Returns:
        Path: Absolute directory path. Existence is checked by the resolver.
    """
    if deps_dir:
        return Path(deps_dir).resolve()

    build = get_config().build
    profile = profile or build.profile
    target = target or build.target

    manifest = Path(manifest_path).resolve()
    project_dir = manifest if manifest.is_dir() else manifest.parent

    env_target_dir = os.environ.get("CARGO_TARGET_DIR")
    if env_target_dir:
        # Relative values are relative to the working directory, as for cargo
        target_dir = Path(env_target_dir).resolve()
    else:
        target_dir = project_dir / build.target_dir_name

    if target:
        target_dir = target_dir / target

    return target_dir / profile_dir_name(profile) / "deps"
