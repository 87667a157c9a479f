"""Risk rules for workflow content.

A rule is a named, case-sensitive regular expression. The default set is
deliberately small and conservative: false positives are preferred over
missed supply-chain indicators. It can be replaced as a whole with a JSON
rules file:

    {
      "rules": [
        {"name": "curl_pipe_shell", "pattern": "curl\\\\s[^|\\\\n]*\\\\|\\\\s*sh", "description": "..."}
      ]
    }
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_RULES",
    "ScanRule",
    "load_rules",
]

import re
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field

from runner_gate.exceptions import ConfigurationError
from runner_gate.utils.file_helpers import load_validated_json, require_file_exists


@dataclass(frozen=True)
class ScanRule:
    """One named risk pattern.

    Attributes:
        name: Stable identifier (snake_case).
        pattern: Compiled regex, searched against whole file text.
        description: What the match indicates, for alert bodies.
    """

    name: str
    pattern: re.Pattern[str]
    description: str = ""

    @classmethod
    def compile(cls, name: str, pattern: str, description: str = "") -> "ScanRule":
        """Build a rule from a regex string (MULTILINE, case-sensitive).

        Raises:
            re.error: If pattern is not a valid regex.
        """
        return cls(name=name, pattern=re.compile(pattern, re.MULTILINE), description=description)


# Ordered: findings are reported in this order within a file
DEFAULT_RULES: tuple[ScanRule, ...] = (
    ScanRule.compile(
        "curl_pipe_shell",
        r"\bcurl\b[^\n|]*\|\s*(?:sudo\s+)?(?:ba|z|da|k)?sh\b",
        "Remote script fetched with curl and piped into a shell",
    ),
    ScanRule.compile(
        "wget_pipe_shell",
        r"\bwget\b[^\n|]*\|\s*(?:sudo\s+)?(?:ba|z|da|k)?sh\b",
        "Remote script fetched with wget and piped into a shell",
    ),
    ScanRule.compile(
        "base64_decode",
        r"\bbase64\s+(?:-\w*d\b|--decode\b|-D\b)",
        "Base64 payload decoded at run time",
    ),
    ScanRule.compile(
        "eval_call",
        r"\beval\s*[(\"'$`]",
        "Dynamic evaluation of constructed code",
    ),
    ScanRule.compile(
        "reverse_shell_dev_tcp",
        r"/dev/(?:tcp|udp)/",
        "Bash /dev/tcp socket, typical of reverse shells",
    ),
    ScanRule.compile(
        "netcat_exec",
        r"\b(?:nc|ncat|netcat)\b[^\n]*\s-[ec]\s",
        "Netcat spawning a program, typical of reverse shells",
    ),
    ScanRule.compile(
        "rm_rf_root",
        r"\brm\s+-(?:rf|fr|Rf|fR)\s+(?:--no-preserve-root\s+)?/(?:\*|\s|$)",
        "Recursive deletion of the filesystem root",
    ),
)


class _RuleModel(BaseModel):
    name: str = Field(min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")
    pattern: str = Field(min_length=1)
    description: str = ""


class _RulesFileModel(BaseModel):
    rules: list[_RuleModel] = Field(min_length=1)


def load_rules(path: Path | None) -> tuple[ScanRule, ...]:
    """Load the rule set, falling back to DEFAULT_RULES when path is None.

    Args:
        path: Optional JSON rules file.

    Returns:
        Ordered rules.

    Raises:
        ConfigurationError: If the file is missing, invalid, has duplicate
            names or contains an invalid regex.
    """
    if path is None:
        return DEFAULT_RULES

    try:
        require_file_exists(path, "rules")
        model = load_validated_json(path, _RulesFileModel, "rules")
    except (FileNotFoundError, ValueError) as e:
        raise ConfigurationError(str(e)) from e

    seen: set[str] = set()
    rules: list[ScanRule] = []
    for rule in model.rules:
        if rule.name in seen:
            raise ConfigurationError(f"Duplicate rule name {rule.name!r} in {path}")
        seen.add(rule.name)
        try:
            rules.append(ScanRule.compile(rule.name, rule.pattern, rule.description))
        except re.error as e:
            raise ConfigurationError(f"Rule {rule.name!r} in {path} has an invalid pattern: {e}") from e
    return tuple(rules)
