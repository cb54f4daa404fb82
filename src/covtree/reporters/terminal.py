"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from covtree.engine.thresholds import DEFAULT_THRESHOLDS, Tier, classify
from covtree.engine.tree import walk
from covtree.models.coverage import DirectoryNode, LineStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from covtree.engine.thresholds import Thresholds
    from covtree.models.coverage import (
        CoverageReport,
        Diagnostic,
        FileCoverage,
        FunctionSummary,
        Summary,
    )

console = Console()

_TIER_COLORS = {
    Tier.HIGH: "green",
    Tier.MEDIUM: "yellow",
    Tier.LOW: "red",
    Tier.UNRATED: "dim",
}

_LINE_STYLES = {
    LineStatus.COVERED: "green",
    LineStatus.NOT_COVERED: "red",
    LineStatus.MIXED: "yellow",
    LineStatus.NOT_INSTRUMENTED: "dim",
}

_MAX_FUNCTION_NAME_LENGTH = 60


def tier_color(tier: Tier) -> str:
    """Return a Rich color name for a coverage tier."""
    return _TIER_COLORS[tier]


def _ratio_cell(covered: int, total: int, thresholds: Thresholds) -> str:
    """Format ``covered/total (pct%)`` colored by tier."""
    color = tier_color(classify(covered, total, thresholds))
    if total == 0:
        return f"[{color}]-[/{color}]"
    pct = covered * 100.0 / total
    return f"[{color}]{pct:.1f}%[/{color}] [dim]{covered}/{total}[/dim]"


class CLIReporter:
    """Rich terminal output for coverage reports."""

    def __init__(self, out: Console | None = None) -> None:
        self.console = out or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{escape(title)}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[dim]{escape(message)}[/dim]")

    # ── Tree ───────────────────────────────────────────────────────────

    def _summary_cells(self, summary: Summary, thresholds: Thresholds) -> tuple[str, str, str]:
        return (
            _ratio_cell(summary.lines_covered, summary.lines_total, thresholds),
            _ratio_cell(summary.regions_covered, summary.regions_total, thresholds),
            _ratio_cell(summary.functions_covered, summary.functions_total, thresholds),
        )

    def print_tree(
        self,
        report: CoverageReport,
        *,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        max_depth: int | None = None,
    ) -> None:
        """Print the directory tree with line, region and function coverage."""
        table = Table(title="Coverage Report", title_style="bold cyan")
        table.add_column("Path", style="bold")
        table.add_column("Lines", justify="right")
        table.add_column("Regions", justify="right")
        table.add_column("Functions", justify="right")

        for depth, node in walk(report.root):
            if depth == 0 or (max_depth is not None and depth > max_depth):
                continue
            indent = "  " * (depth - 1)
            if isinstance(node, DirectoryNode):
                label = f"{indent}[bold blue]{escape(node.name)}/[/bold blue]"
            else:
                label = f"{indent}{escape(node.name)}"
            table.add_row(label, *self._summary_cells(node.summary, thresholds))

        table.add_section()
        table.add_row("[bold]Total[/bold]", *self._summary_cells(report.summary, thresholds))
        self.console.print(table)

    # ── Functions ──────────────────────────────────────────────────────

    def print_functions(
        self,
        functions: Sequence[FunctionSummary],
        *,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        uncovered_only: bool = False,
    ) -> None:
        """Print functions sorted by name with execution counts."""
        table = Table(title="Functions", title_style="bold cyan")
        table.add_column("Function", style="bold")
        table.add_column("File")
        table.add_column("Calls", justify="right")
        table.add_column("Regions", justify="right")

        for fn in sorted(functions, key=lambda f: (f.display_name, f.filename)):
            if uncovered_only and fn.is_covered:
                continue
            name = fn.display_name
            if len(name) > _MAX_FUNCTION_NAME_LENGTH:
                name = name[: _MAX_FUNCTION_NAME_LENGTH - 1] + "…"
            calls_color = "green" if fn.is_covered else "red"
            table.add_row(
                escape(name),
                escape(fn.filename),
                f"[{calls_color}]{fn.execution_count}[/{calls_color}]",
                _ratio_cell(fn.covered_region_count, fn.region_count, thresholds),
            )

        self.console.print(table)

    # ── Single file ────────────────────────────────────────────────────

    def print_annotated_file(
        self,
        file_coverage: FileCoverage,
        source_lines: Sequence[str] | None = None,
    ) -> None:
        """Print one file line by line with execution counts and status colors.

        Without *source_lines*, only lines known to the coverage data are shown.
        """
        if source_lines is not None:
            line_numbers: Sequence[int] = range(1, len(source_lines) + 1)
        else:
            line_numbers = sorted(file_coverage.line_verdicts)
        width = len(str(line_numbers[-1])) if line_numbers else 1

        self.print_header(file_coverage.path)
        for line in line_numbers:
            verdict = file_coverage.verdict(line)
            style = _LINE_STYLES[verdict.display_status]
            count = str(verdict.max_count) if verdict.is_instrumented else ""
            text = source_lines[line - 1] if source_lines is not None else ""
            self.console.print(
                f"[dim]{line:>{width}}[/dim] [{style}]{count:>8}[/{style}] │ "
                f"[{style}]{escape(text)}[/{style}]",
                highlight=False,
            )

    # ── Diagnostics ────────────────────────────────────────────────────

    def print_diagnostics(
        self, diagnostics: Sequence[Diagnostic], *, include_info: bool = False
    ) -> None:
        """Print recovered errors; cross-check notes only with *include_info*."""
        for diagnostic in diagnostics:
            if diagnostic.severity == "info":
                if include_info:
                    self.print_info(f"[{diagnostic.code}] {diagnostic.path}: {diagnostic.message}")
                continue
            self.print_warning(f"[{diagnostic.code}] {diagnostic.message}")


reporter = CLIReporter()
