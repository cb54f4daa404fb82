"""covtree CLI: top-level command group."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import click

from covtree import __version__
from covtree.adapters.export import load_export
from covtree.config import CovtreeConfig, load_config, validate_config
from covtree.engine.pipeline import ReportConfig, build_report
from covtree.engine.tree import iter_files
from covtree.errors import SchemaError, VersionError
from covtree.logging_config import setup_logging
from covtree.models.coverage import CoverageReport, FileCoverage
from covtree.reporters.json_reporter import JSONReporter
from covtree.reporters.terminal import reporter

logger = logging.getLogger(__name__)

_EXIT_FATAL = 1
_EXIT_BELOW_THRESHOLD = 2

_export_argument = click.argument(
    "export", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)


def _config_options(func):  # type: ignore[no-untyped-def]
    """Options shared by every command that builds a report."""
    func = click.option(
        "--jobs",
        "-j",
        type=click.IntRange(min=1),
        default=None,
        help="Worker threads for per-file resolution.",
    )(func)
    func = click.option(
        "--high", type=click.FloatRange(0.0, 1.0), default=None, help="HIGH tier cut point."
    )(func)
    func = click.option(
        "--low", type=click.FloatRange(0.0, 1.0), default=None, help="LOW tier cut point."
    )(func)
    func = click.option(
        "--config-dir",
        default=".",
        type=click.Path(exists=True, file_okay=False, resolve_path=True),
        help="Directory containing .covtree.yml.",
    )(func)
    return click.option(
        "--source-root",
        "-p",
        default=None,
        type=click.Path(file_okay=False, resolve_path=True),
        help="Source root the tree is built from (default: the export's directory).",
    )(func)


def _resolve_settings(
    export: Path,
    *,
    source_root: str | None,
    config_dir: str,
    low: float | None,
    high: float | None,
) -> tuple[CovtreeConfig, ReportConfig]:
    """Merge ``.covtree.yml`` with command-line overrides."""
    config = load_config(config_dir)
    report = config.report
    if low is not None:
        report = replace(report, low_threshold=low)
    if high is not None:
        report = replace(report, high_threshold=high)
    config = replace(config, report=report)

    errors = validate_config(config)
    if errors:
        for error in errors:
            reporter.print_error(error)
        raise SystemExit(_EXIT_FATAL)

    if source_root is not None:
        root = source_root
    elif config.report.source_root:
        root = config.source_root
    else:
        root = str(export.resolve().parent)
    return config, replace(config.to_report_config(), source_root=root)


def _load_report(export: Path, report_config: ReportConfig, workers: int | None) -> CoverageReport:
    """Read, validate and aggregate *export*; fatal errors exit without a report."""
    logger.info("Reading llvm-cov export from %s", export)
    try:
        payload = load_export(export.read_bytes())
    except OSError as e:
        reporter.print_error(f"Cannot read {export}: {e}")
        raise SystemExit(_EXIT_FATAL) from e
    except (SchemaError, VersionError) as e:
        reporter.print_error(f"Invalid coverage export {export}: {e}")
        raise SystemExit(_EXIT_FATAL) from e
    return build_report(payload, report_config, workers=workers)


def _workers(jobs: int | None, config: CovtreeConfig) -> int | None:
    if jobs is not None:
        return jobs
    return config.execution.workers or None


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors.")
@click.version_option(version=__version__, prog_name="covtree")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """covtree: navigable coverage reports from llvm-cov exports."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose, quiet=quiet)


@cli.command("report")
@_export_argument
@_config_options
@click.option(
    "--json-output",
    "json_output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the coverage tree as JSON to this file.",
)
@click.option("--depth", type=click.IntRange(min=1), default=None, help="Tree depth to display.")
@click.option(
    "--fail-under",
    type=click.FloatRange(0.0, 100.0),
    default=None,
    help="Exit with status 2 when overall line coverage is below this percentage.",
)
@click.pass_context
def report_cmd(
    ctx: click.Context,
    export: Path,
    source_root: str | None,
    config_dir: str,
    low: float | None,
    high: float | None,
    jobs: int | None,
    json_output: Path | None,
    depth: int | None,
    fail_under: float | None,
) -> None:
    """Summarize EXPORT as a directory tree with rolled-up coverage."""
    config, report_config = _resolve_settings(
        export, source_root=source_root, config_dir=config_dir, low=low, high=high
    )
    report = _load_report(export, report_config, _workers(jobs, config))

    reporter.print_tree(report, thresholds=report_config.thresholds, max_depth=depth)
    reporter.print_diagnostics(report.diagnostics, include_info=ctx.obj.get("verbose", False))

    if json_output is not None:
        JSONReporter(report_config.thresholds).generate(json_output, report)
        reporter.print_success(f"JSON report written to {json_output}")

    threshold = fail_under if fail_under is not None else config.report.fail_under
    if not report.summary.lines_total:
        logger.info("No instrumented lines; skipping the fail-under check")
    elif threshold and report.summary.line_percent < threshold:
        reporter.print_error(
            f"Line coverage {report.summary.line_percent:.1f}% is below {threshold:.1f}%"
        )
        raise SystemExit(_EXIT_BELOW_THRESHOLD)


@cli.command("functions")
@_export_argument
@_config_options
@click.option("--uncovered", is_flag=True, help="Only list functions that never ran.")
def functions_cmd(
    export: Path,
    source_root: str | None,
    config_dir: str,
    low: float | None,
    high: float | None,
    jobs: int | None,
    *,
    uncovered: bool,
) -> None:
    """List the functions in EXPORT sorted by name."""
    config, report_config = _resolve_settings(
        export, source_root=source_root, config_dir=config_dir, low=low, high=high
    )
    report = _load_report(export, report_config, _workers(jobs, config))
    reporter.print_functions(
        report.functions, thresholds=report_config.thresholds, uncovered_only=uncovered
    )


def _find_file(report: CoverageReport, wanted: str) -> FileCoverage | None:
    """Match *wanted* against exported paths, exactly or as a path suffix."""
    files = list(iter_files(report.root))
    for file_coverage in files:
        if file_coverage.path == wanted:
            return file_coverage
    suffix = "/" + wanted.lstrip("/")
    matches = [f for f in files if f.path.replace("\\", "/").endswith(suffix)]
    if len(matches) > 1:
        logger.warning("%s matches %d files; using %s", wanted, len(matches), matches[0].path)
    return matches[0] if matches else None


def _read_source(file_coverage: FileCoverage, source_root: str) -> list[str] | None:
    candidate = Path(file_coverage.path)
    if not candidate.is_absolute():
        candidate = Path(source_root) / candidate
    try:
        return candidate.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        logger.info("Source for %s not available; showing counts only", file_coverage.path)
        return None


@cli.command("annotate")
@_export_argument
@click.argument("filename")
@_config_options
def annotate_cmd(
    export: Path,
    filename: str,
    source_root: str | None,
    config_dir: str,
    low: float | None,
    high: float | None,
    jobs: int | None,
) -> None:
    """Show FILENAME from EXPORT line by line with execution counts."""
    config, report_config = _resolve_settings(
        export, source_root=source_root, config_dir=config_dir, low=low, high=high
    )
    report = _load_report(export, report_config, _workers(jobs, config))

    file_coverage = _find_file(report, filename)
    if file_coverage is None:
        reporter.print_error(f"{filename} is not part of {export}")
        raise SystemExit(_EXIT_FATAL)

    reporter.print_annotated_file(
        file_coverage, _read_source(file_coverage, report_config.source_root)
    )


def main() -> None:
    cli(obj={})
