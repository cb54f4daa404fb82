"""Renderers for coverage reports."""

from covtree.reporters.json_reporter import JSONReporter
from covtree.reporters.terminal import CLIReporter, reporter

__all__ = ["CLIReporter", "JSONReporter", "reporter"]
