"""Workflow content scanning against a fixed, injectable rule set."""

from runner_gate.scanner.engine import Finding, scan_directory, scan_text
from runner_gate.scanner.rules import DEFAULT_RULES, ScanRule, load_rules

__all__ = [
    "DEFAULT_RULES",
    "Finding",
    "ScanRule",
    "load_rules",
    "scan_directory",
    "scan_text",
]
