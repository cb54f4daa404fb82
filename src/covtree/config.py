"""Configuration parsing from ``.covtree.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from covtree.engine.pipeline import ReportConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".covtree.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        else:
            result[key] = value
    return result


@dataclass
class ReportSection:
    """The ``report:`` section."""

    source_root: str = ""
    """Directory the coverage tree is rooted at (relative to the config file)."""

    low_threshold: float = 0.5
    """Coverage ratio below which a node is rated LOW."""

    high_threshold: float = 0.8
    """Coverage ratio at or above which a node is rated HIGH."""

    fail_under: float = 0.0
    """Minimum overall line coverage percentage; 0 disables the check."""


@dataclass
class ExecutionConfig:
    """The ``execution:`` section."""

    workers: int = 0
    """Worker threads for per-file resolution; 0 lets the executor decide."""


@dataclass
class CovtreeConfig:
    """Top-level configuration."""

    root: str
    """Directory the configuration was loaded from."""

    report: ReportSection = field(default_factory=ReportSection)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)

    @property
    def source_root(self) -> str:
        """Source root resolved against :attr:`root`."""
        if not self.report.source_root:
            return self.root
        return str((Path(self.root) / self.report.source_root).resolve())

    def to_report_config(self) -> ReportConfig:
        return ReportConfig(
            source_root=self.source_root,
            low_threshold=self.report.low_threshold,
            high_threshold=self.report.high_threshold,
        )


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    if not isinstance(section, dict):
        logger.warning("Ignoring non-mapping %r section in %s", name, CONFIG_FILENAME)
        return {}
    return section


def _parse_report_section(raw: dict[str, Any]) -> ReportSection:
    """Parse the report section, falling back to ``COVTREE_*`` variables."""
    report_raw = _section(raw, "report")
    return ReportSection(
        source_root=str(
            report_raw.get("source_root", os.environ.get("COVTREE_SOURCE_ROOT", ""))
        ),
        low_threshold=float(
            report_raw.get("low_threshold", os.environ.get("COVTREE_LOW_THRESHOLD", 0.5))
        ),
        high_threshold=float(
            report_raw.get("high_threshold", os.environ.get("COVTREE_HIGH_THRESHOLD", 0.8))
        ),
        fail_under=float(report_raw.get("fail_under", 0.0)),
    )


def _parse_execution_config(raw: dict[str, Any]) -> ExecutionConfig:
    exec_raw = _section(raw, "execution")
    return ExecutionConfig(workers=int(exec_raw.get("workers", 0)))


def load_config(root: str | Path) -> CovtreeConfig:
    """Load ``.covtree.yml`` from *root*.

    Falls back to defaults and environment variables when the file is
    missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        elif parsed is not None:
            logger.warning("%s does not contain a mapping; using defaults", config_file)

    return CovtreeConfig(
        root=str(root_path),
        report=_parse_report_section(raw),
        execution=_parse_execution_config(raw),
    )


def _validate_report_section(report: ReportSection) -> list[str]:
    errors: list[str] = []

    for name in ("low_threshold", "high_threshold"):
        value = getattr(report, name)
        if not 0.0 <= value <= 1.0:
            errors.append(f"report.{name} must be between 0 and 1 (got: {value})")

    if report.low_threshold > report.high_threshold:
        errors.append(
            f"report.low_threshold must not exceed report.high_threshold "
            f"(got: {report.low_threshold} > {report.high_threshold})"
        )

    if not 0.0 <= report.fail_under <= 100.0:
        errors.append(f"report.fail_under must be between 0 and 100 (got: {report.fail_under})")

    return errors


def validate_config(config: CovtreeConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors = _validate_report_section(config.report)
    if config.execution.workers < 0:
        errors.append(f"execution.workers must not be negative (got: {config.execution.workers})")
    return errors
