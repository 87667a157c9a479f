"""Parsing of workflow reference strings into WorkflowReference values.

GitHub reports workflow locations in a few string shapes:

- Run "path" field:          ".github/workflows/ci.yml" (sometimes "...@ref")
- Referenced workflow path:  "octo-org/shared/.github/workflows/build.yml@v2"
- GITHUB_WORKFLOW_REF:       "octo-org/app/.github/workflows/ci.yml@refs/heads/main"

Every parser here either returns a complete WorkflowReference or raises
WorkflowReferenceError; none of them guesses on malformed input.
"""

from __future__ import annotations

__all__ = [
    "WorkflowReference",
    "parse_primary_path",
    "parse_referenced_workflow",
    "parse_workflow_ref_env",
    "split_ref",
    "strip_ref",
]

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

from runner_gate.constants import WORKFLOW_DIR_MARKER
from runner_gate.exceptions import WorkflowReferenceError


@dataclass(frozen=True)
class WorkflowReference:
    """Where one workflow file comes from.

    Attributes:
        path: Path inside the owning repository (".github/workflows/x.yml").
        repository: Owning repository ("owner/repo").
        ref: Commit SHA or git ref to fetch the file at.
    """

    path: str
    repository: str
    ref: str

    @property
    def filename(self) -> str:
        """Basename of path, the provenance mapping key."""
        return PurePosixPath(self.path).name


def split_ref(value: str) -> tuple[str, str | None]:
    """Split "path@ref" at the first "@".

    Returns:
        (path, ref) where ref is None if there was no "@".

    Raises:
        WorkflowReferenceError: If value or the path part is empty, or the
            ref part after "@" is empty.
    """
    if not value or not value.strip():
        raise WorkflowReferenceError("workflow reference is empty")
    path, sep, ref = value.strip().partition("@")
    if not path:
        raise WorkflowReferenceError(f"workflow reference {value!r} has no path before '@'")
    if sep and not ref:
        raise WorkflowReferenceError(f"workflow reference {value!r} has an empty ref after '@'")
    return path, (ref if sep else None)


def strip_ref(value: str) -> str:
    """Return value with everything from the first "@" onward removed."""
    return split_ref(value)[0]


def _normalize_repo_path(path: str, original: str) -> str:
    relative = path.lstrip("/")
    parts = PurePosixPath(relative).parts
    if not relative or ".." in parts:
        raise WorkflowReferenceError(f"workflow reference {original!r} has an invalid file path")
    return relative


def parse_primary_path(path: str, repository: str, sha: str) -> WorkflowReference:
    """Build the reference for the run's own workflow file.

    Args:
        path: The run's "path" field, with or without an "@ref" suffix.
        repository: The run's repository ("owner/repo").
        sha: The run's commit SHA; the primary file is always read there.

    Raises:
        WorkflowReferenceError: If path is empty or malformed, or sha is empty.
    """
    if not sha:
        raise WorkflowReferenceError("primary workflow has no commit SHA")
    relative = _normalize_repo_path(strip_ref(path), path)
    return WorkflowReference(path=relative, repository=repository, ref=sha)


def _split_owner_path(full_path: str, original: str) -> tuple[str, str]:
    """Split "owner/repo/.github/..." into ("owner/repo", ".github/...")."""
    index = full_path.find(WORKFLOW_DIR_MARKER)
    if index < 0:
        raise WorkflowReferenceError(f"workflow reference {original!r} has no '.github' directory segment")
    repository = full_path[:index].strip("/")
    if repository.count("/") != 1 or not all(repository.split("/")):
        raise WorkflowReferenceError(f"workflow reference {original!r} has no 'owner/repo' prefix")
    relative = _normalize_repo_path(full_path[index + 1 :], original)
    return repository, relative


def parse_referenced_workflow(entry: dict[str, Any]) -> WorkflowReference:
    """Parse one item of a run's "referenced_workflows" list.

    The owning repository is the path prefix before "/.github/". The ref is
    the entry's "sha" if present, else its "ref", else the "@" suffix of the
    path; it may differ from the primary run's commit.

    Raises:
        WorkflowReferenceError: If the entry is malformed.
    """
    if not isinstance(entry, dict):
        raise WorkflowReferenceError("referenced workflow entry is not an object")
    raw_path = entry.get("path")
    if not isinstance(raw_path, str):
        raise WorkflowReferenceError("referenced workflow entry has no path")

    full_path, path_ref = split_ref(raw_path)
    repository, relative = _split_owner_path(full_path, raw_path)

    ref = entry.get("sha") or entry.get("ref") or path_ref
    if not isinstance(ref, str) or not ref.strip():
        raise WorkflowReferenceError(f"referenced workflow {raw_path!r} has no ref")
    return WorkflowReference(path=relative, repository=repository, ref=ref.strip())


def parse_workflow_ref_env(value: str) -> WorkflowReference:
    """Parse GITHUB_WORKFLOW_REF ("owner/repo/path@ref").

    Unlike referenced workflows, the path is not required to sit under
    .github/ (dynamic workflows look like "owner/repo/dynamic/x/y@ref").

    Raises:
        WorkflowReferenceError: If value is malformed or has no ref.
    """
    full_path, ref = split_ref(value)
    if ref is None:
        raise WorkflowReferenceError(f"workflow reference {value!r} has no '@ref' suffix")
    parts = full_path.split("/", 2)
    if len(parts) < 3 or not all(parts):
        raise WorkflowReferenceError(f"workflow reference {value!r} has no 'owner/repo/path' form")
    repository = f"{parts[0]}/{parts[1]}"
    relative = _normalize_repo_path(parts[2], value)
    return WorkflowReference(path=relative, repository=repository, ref=ref)
