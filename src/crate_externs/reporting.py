"""
Output formatting for resolution plans.

The flag string and the JSON document are the machine-facing outputs and go
to stdout; the Rich summary table is for humans and goes to stderr.
"""

import json
import shlex
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .resolver import ResolutionPlan

OUTPUT_FORMATS = ["flags", "json"]


def compile_options(plan: ResolutionPlan) -> List[str]:
    """
    Build the rustc arguments for a plan.

    Returns:
        List[str]: `--extern name=path` pairs followed by `-L dependency=dir`
    """
    options: List[str] = []
    for artifact in plan.artifacts:
        options.extend(["--extern", f"{artifact.symbol_name}={artifact.artifact_path}"])
    options.extend(["-L", f"dependency={plan.deps_dir}"])
    return options


def format_flags(plan: ResolutionPlan) -> str:
    """Render the plan as one shell-escaped command line fragment."""
    return " ".join(shlex.quote(option) for option in compile_options(plan))


def plan_to_dict(plan: ResolutionPlan) -> Dict[str, Any]:
    return {
        "deps_dir": str(plan.deps_dir),
        "externs": [
            {"name": artifact.symbol_name, "path": str(artifact.artifact_path)}
            for artifact in plan.artifacts
        ],
    }


def format_json(plan: ResolutionPlan) -> str:
    """Render the plan as a JSON document."""
    return json.dumps(plan_to_dict(plan), indent=2, ensure_ascii=False)


def format_plan(plan: ResolutionPlan, output_format: str = "flags") -> str:
    """
    Render a plan in the requested format.

    Raises:
        ValueError: If output_format is unknown
    """
    if output_format == "flags":
        return format_flags(plan)
    if output_format == "json":
        return format_json(plan)
    raise ValueError(f"Unsupported output format: {output_format}")


class ExternReporter:
    """Human-readable summary of a resolution plan."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def print_summary(self, plan: ResolutionPlan, manifest_path: str) -> None:
        """
        Print a table of resolved artifacts.

        Args:
            plan: The resolved plan
            manifest_path: Manifest the plan was built from
        """
        table = Table(
            title=f"📦 Resolved externs for {escape(manifest_path)}",
            box=box.ROUNDED,
            title_style="bold cyan",
        )
        table.add_column("Crate", style="bold")
        table.add_column("Artifact")

        for artifact in plan.artifacts:
            table.add_row(artifact.symbol_name, artifact.artifact_path.name)

        self.console.print(table)
        self.console.print(f"Search path: {plan.deps_dir}", style="dim")
