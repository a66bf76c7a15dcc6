import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .cli_config import (
    config_from_dict,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .deps_dir import locate_deps_dir
from .exceptions import CrateExternsError
from .parsers import load_locators
from .reporting import OUTPUT_FORMATS, ExternReporter, format_plan
from .resolver import ArtifactResolver, ResolutionPlan
from .structured_logging import clear_run_context, configure_logging, set_run_context

__version__ = "0.4.0"

console = Console(stderr=True)


def build_plan(
    manifest_path: str,
    deps_dir: Optional[str] = None,
    profile: Optional[str] = None,
    target: Optional[str] = None,
) -> ResolutionPlan:
    """
    Resolve every dependency of a manifest to its built artifact.

    Args:
        manifest_path: Path to Cargo.toml or its directory
        deps_dir: Explicit cargo output directory
        profile: Cargo profile used to locate the output directory
        target: Target triple used to locate the output directory

    Returns:
        ResolutionPlan: Artifacts in manifest order plus the output directory

    Raises:
        CrateExternsError: On the first dependency that cannot be resolved
    """
    config = get_config()
    locators = load_locators(manifest_path)
    directory = locate_deps_dir(manifest_path, deps_dir, profile, target)

    set_run_context(str(Path(manifest_path).resolve()), str(directory), len(locators))
    try:
        resolver = ArtifactResolver(config.resolver.artifact_extensions)
        return resolver.resolve_all(locators, directory)
    finally:
        clear_run_context()


def _error_message(error: Exception) -> str:
    name = getattr(error, "details", {}).get("logical_name")
    message = str(error)
    if name and f"`{name}`" not in message:
        message = f"{name}: {message}"
    return message


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 crate-externs: rustc flags for already-built cargo dependencies

    Maps every dependency of a Cargo.toml to the artifact cargo built for it
    and prints the matching `--extern` and `-L dependency=` flags.
    """
    if version:
        click.echo(f"crate-externs version {__version__}")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("manifest_path", type=click.Path(exists=True, readable=True))
@click.argument("deps_dir", required=False, type=click.Path())
@click.option(
    "--profile",
    help="Cargo profile whose output directory is used (default from config or release)",
)
@click.option("--target", help="Target triple the dependencies were built for")
@click.option(
    "--output-format",
    type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
    default="flags",
    help="Output format for results",
    show_default=True,
)
@click.option(
    "--output-file",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write the result to a file instead of stdout",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Log every resolution step and print a summary table",
)
def resolve(
    manifest_path: str,
    deps_dir: Optional[str],
    profile: Optional[str],
    target: Optional[str],
    output_format: str,
    output_file: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Resolve the dependencies of MANIFEST_PATH to built artifacts.

    DEPS_DIR defaults to target/<profile>/deps next to the manifest.

    Examples:

      crate-externs resolve Cargo.toml

      crate-externs resolve Cargo.toml target/debug/deps

      crate-externs resolve . --profile dev --output-format json -o externs.json
    """
    try:
        config = load_config()
        if quiet:
            log_level = "CRITICAL"
        elif verbose:
            log_level = "DEBUG"
        else:
            log_level = config.logging.log_level
        configure_logging(
            log_level, config.logging.enable_json, config.logging.log_format
        )

        plan = build_plan(manifest_path, deps_dir, profile, target)
        rendered = format_plan(plan, output_format.lower())

        if verbose and not quiet:
            ExternReporter(Console(stderr=True)).print_summary(plan, manifest_path)

        if output_file:
            Path(output_file).write_text(rendered + "\n", encoding="utf-8")
            if not quiet:
                Console(stderr=True).print(
                    f"✅ {len(plan)} externs written to {escape(output_file)}",
                    style="green",
                )
        else:
            click.echo(rendered)

    except (CrateExternsError, OSError) as e:
        if not quiet:
            Console(stderr=True).print(
                f"❌ Error: {escape(_error_message(e))}", style="red", soft_wrap=True
            )
        sys.exit(1)


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".crate-externs.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        config_path.write_text(create_sample_config(), encoding="utf-8")
    except OSError as e:
        console.print(f"❌ Failed to create config file: {e}", style="red")
        sys.exit(1)

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🔎 Resolver Settings:[/bold cyan]")
    console.print(
        f"  Artifact Extensions: {', '.join(current_config.resolver.artifact_extensions)}"
    )

    console.print("\n[bold cyan]🛠  Build Settings:[/bold cyan]")
    console.print(f"  Profile: {current_config.build.profile}")
    console.print(f"  Target: {current_config.build.target or 'host'}")
    console.print(f"  Target Directory: {current_config.build.target_dir_name}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Logs: {current_config.logging.enable_json}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if config_data is None:
        console.print(f"❌ Could not load config from {config_file}", style="red")
        sys.exit(1)

    errors = validate_config_values(config_from_dict(config_data))
    if errors:
        console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
