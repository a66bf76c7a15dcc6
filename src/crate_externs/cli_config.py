"""
Configuration management for crate-externs.

Settings come from built-in defaults, an optional JSON or YAML config file,
and CRATE_EXTERNS_* environment variables, in that order.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console

try:
    import yaml

    HAS_YAML = True
except ImportError:
    HAS_YAML = False

console = Console(stderr=True)


@dataclass
class ResolverConfig:
    """Artifact naming and matching settings."""

    # Tried in order; the first existing file wins.
    artifact_extensions: List[str] = field(default_factory=lambda: ["so", "rlib"])


@dataclass
class BuildConfig:
    """Where cargo puts its output."""

    profile: str = "release"
    target: Optional[str] = None
    target_dir_name: str = "target"


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_json: bool = True


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_global_config: Optional[ComprehensiveConfig] = None

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    extensions = config.resolver.artifact_extensions
    if not isinstance(extensions, list):
        errors.append("resolver.artifact_extensions must be a list")
    elif not extensions:
        errors.append("resolver.artifact_extensions must not be empty")
    else:
        bare = [ext for ext in extensions if _is_bare_extension(ext)]
        for ext in extensions:
            if not _is_bare_extension(ext):
                errors.append(
                    f"resolver.artifact_extensions entry {ext!r} must be a bare extension like 'rlib'"
                )
        if len(set(bare)) != len(bare):
            errors.append("resolver.artifact_extensions must not contain duplicates")

    build = config.build
    if not isinstance(build.profile, str) or not build.profile:
        errors.append("build.profile must be a non-empty string")
    if build.target is not None and (not isinstance(build.target, str) or not build.target):
        errors.append("build.target must be a non-empty string or null")
    if not isinstance(build.target_dir_name, str) or not build.target_dir_name:
        errors.append("build.target_dir_name must be a non-empty string")

    logging_config = config.logging
    if (
        not isinstance(logging_config.log_level, str)
        or logging_config.log_level.upper() not in _VALID_LOG_LEVELS
    ):
        errors.append(
            f"logging.log_level must be one of {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    if not isinstance(logging_config.log_format, str) or not logging_config.log_format:
        errors.append("logging.log_format must be a non-empty string")
    if not isinstance(logging_config.enable_json, bool):
        errors.append("logging.enable_json must be true or false")

    return errors


def _is_bare_extension(ext: Any) -> bool:
    return isinstance(ext, str) and bool(ext) and not ext.startswith(".") and "/" not in ext


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                if HAS_YAML:
                    return yaml.safe_load(f)
                console.print(
                    "⚠️  PyYAML not installed, skipping YAML config", style="yellow"
                )
                return None
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".crate-externs.json",
        Path.cwd() / ".crate-externs.yaml",
        Path.cwd() / ".crate-externs.yml",
        Path.home() / ".config" / "crate-externs" / "config.json",
        Path.home() / ".config" / "crate-externs" / "config.yaml",
        Path.home() / ".crate-externs.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""
    if profile := os.environ.get("CRATE_EXTERNS_PROFILE"):
        config.build.profile = profile
    if target := os.environ.get("CRATE_EXTERNS_TARGET"):
        config.build.target = target
    if extensions := os.environ.get("CRATE_EXTERNS_ARTIFACT_EXTENSIONS"):
        config.resolver.artifact_extensions = [
            ext.strip() for ext in extensions.split(",") if ext.strip()
        ]
    if log_level := os.environ.get("CRATE_EXTERNS_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def config_from_dict(file_config: Optional[Dict[str, Any]]) -> ComprehensiveConfig:
    """Apply config file data on top of the defaults."""
    config = ComprehensiveConfig()

    if file_config:
        for section_name in ("resolver", "build", "logging"):
            if isinstance(file_config.get(section_name), dict):
                apply_config_section(
                    getattr(config, section_name), file_config[section_name], section_name
                )

    return config


def build_config(file_config: Optional[Dict[str, Any]] = None) -> ComprehensiveConfig:
    """Build a configuration from file data and the environment.

    Invalid settings are reported and replaced by the defaults.
    """
    config = config_from_dict(file_config)
    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        return ComprehensiveConfig()

    return config


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    file_config = None
    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)

    _global_config = build_config(file_config)
    return _global_config


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration with the default values."""
    return json.dumps(asdict(ComprehensiveConfig()), indent=2)
