"""Pattern scanning of downloaded workflow files.

Every regular file under the download directory is read in full and searched
with every rule. Each (file, rule) pair that matches yields one Finding
listing all 1-indexed lines the rule matched on. Repository attribution comes
from the provenance mapping, keyed by basename, falling back to "unknown".

Scanning has no side effects beyond the returned list and runs happily on an
empty or missing directory (vacuous pass).
"""

from __future__ import annotations

__all__ = [
    "Finding",
    "scan_directory",
    "scan_text",
]

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from runner_gate.constants import UNKNOWN_REPOSITORY
from runner_gate.scanner.rules import DEFAULT_RULES, ScanRule
from runner_gate.telemetry.system_logger import get_system_logger


@dataclass(frozen=True)
class Finding:
    """One rule matched in one file.

    Attributes:
        rule_name: Name of the matching rule.
        pattern: Regex source of the matching rule.
        file_path: Path of the scanned file.
        line_numbers: 1-indexed lines with at least one match, ascending.
        repository: Repository that supplied the file, or "unknown".
    """

    rule_name: str
    pattern: str
    file_path: Path
    line_numbers: tuple[int, ...]
    repository: str

    def describe(self) -> str:
        """One-line human summary: pattern found in file (from: repository)."""
        return f"{self.pattern} found in {self.file_path.name} (from: {self.repository})"


def _line_number(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def scan_text(text: str, rules: Iterable[ScanRule] = DEFAULT_RULES) -> list[tuple[ScanRule, tuple[int, ...]]]:
    """Search text with every rule.

    Returns:
        (rule, line_numbers) for each rule with at least one match, in rule order.
    """
    matches: list[tuple[ScanRule, tuple[int, ...]]] = []
    for rule in rules:
        lines = sorted({_line_number(text, m.start()) for m in rule.pattern.finditer(text)})
        if lines:
            matches.append((rule, tuple(lines)))
    return matches


def scan_directory(
    directory: Path,
    provenance: Mapping[str, str],
    rules: Iterable[ScanRule] = DEFAULT_RULES,
) -> list[Finding]:
    """Scan every file under directory.

    Args:
        directory: Download directory (searched recursively).
        provenance: Basename -> owning repository.
        rules: Ordered rules to apply.

    Returns:
        Findings ordered by file path, then rule order.
    """
    logger = get_system_logger()
    rules = tuple(rules)
    findings: list[Finding] = []

    if not directory.is_dir():
        logger.info(
            {
                "event": "scan_skipped",
                "message": f"Nothing to scan: {directory} does not exist",
                "directory": str(directory),
            }
        )
        return findings

    files = sorted(path for path in directory.rglob("*") if path.is_file() and not path.is_symlink())
    for path in files:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            # An unreadable file cannot be vouched for
            logger.error(
                {
                    "event": "scan_read_failed",
                    "message": f"Could not read {path} for scanning: {e.strerror}",
                    "path": str(path),
                }
            )
            raise

        repository = provenance.get(path.name, UNKNOWN_REPOSITORY)
        for rule, lines in scan_text(text, rules):
            findings.append(
                Finding(
                    rule_name=rule.name,
                    pattern=rule.pattern.pattern,
                    file_path=path,
                    line_numbers=lines,
                    repository=repository,
                )
            )
            logger.warning(
                {
                    "event": "pattern_matched",
                    "message": (
                        f"Rule {rule.name} matched {path.name} (from: {repository})"
                        f" on line(s) {', '.join(str(n) for n in lines)}"
                    ),
                    "rule": rule.name,
                    "file": str(path),
                    "repository": repository,
                    "lines": list(lines),
                }
            )

    logger.info(
        {
            "event": "scan_completed",
            "message": f"Scanned {len(files)} file(s) against {len(rules)} rule(s): {len(findings)} finding(s)",
            "files": len(files),
            "rules": len(rules),
            "findings": len(findings),
        }
    )
    return findings
