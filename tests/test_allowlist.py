"""Tests for the workflow allowlist gate."""

from __future__ import annotations

import pytest

from runner_gate.allowlist import check_workflow_allowed, normalize_workflow_path
from runner_gate.exceptions import WorkflowNotAllowedError

ALLOWED = [".github/workflows/copilot-setup-steps"]


class TestNormalizeWorkflowPath:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            (".github/workflows/build.yml", ".github/workflows/build"),
            (".github/workflows/build.yaml", ".github/workflows/build"),
            ("./.github/workflows/build", ".github/workflows/build"),
            ("/.github/workflows/build.yml", ".github/workflows/build"),
        ],
    )
    def test_normalize(self, path: str, expected: str) -> None:
        # Act & Assert
        assert normalize_workflow_path(path) == expected


class TestCheckWorkflowAllowed:
    """Tests for check_workflow_allowed."""

    @pytest.mark.parametrize(
        "workflow_ref",
        [
            "octo-org/app/.github/workflows/copilot-setup-steps.yml@refs/heads/main",
            "octo-org/app/.github/workflows/copilot-setup-steps.yaml@refs/pull/7/merge",
        ],
        ids=["yml", "yaml"],
    )
    def test_allowed_regardless_of_extension(self, workflow_ref: str) -> None:
        """Given an allowed workflow with either extension, returns its reference."""
        # Act
        reference = check_workflow_allowed(workflow_ref, ALLOWED)

        # Assert
        assert reference.repository == "octo-org/app"

    def test_allowlist_entry_with_extension(self) -> None:
        # Act
        reference = check_workflow_allowed(
            "octo-org/app/.github/workflows/release.yaml@refs/tags/v1", [".github/workflows/release.yml"]
        )

        # Assert
        assert reference.path == ".github/workflows/release.yaml"

    def test_other_workflow_refused(self) -> None:
        # Act & Assert
        with pytest.raises(WorkflowNotAllowedError, match="not allowed") as exc_info:
            check_workflow_allowed("octo-org/app/.github/workflows/ci.yml@refs/heads/main", ALLOWED)
        assert exc_info.value.exit_code == 21

    def test_same_name_in_other_directory_refused(self) -> None:
        # Act & Assert
        with pytest.raises(WorkflowNotAllowedError):
            check_workflow_allowed("octo-org/app/dynamic/copilot-setup-steps.yml@refs/heads/main", ALLOWED)

    @pytest.mark.parametrize(
        "workflow_ref",
        [None, "", "octo-org/app/.github/workflows/copilot-setup-steps.yml"],
        ids=["unset", "empty", "no_ref"],
    )
    def test_unidentifiable_workflow_refused(self, workflow_ref: str | None) -> None:
        # Act & Assert
        with pytest.raises(WorkflowNotAllowedError):
            check_workflow_allowed(workflow_ref, ALLOWED)
