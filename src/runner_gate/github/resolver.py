"""Workflow resolution: which files produced this run, fetched at the exact ref.

State machine:

    AUTHENTICATED -> RUN_METADATA_FETCHED -> FILES_DOWNLOADING -> RESOLVED
          \\-> METADATA_FETCH_FAILED (fatal)

(Authentication itself happens before a resolver exists; an auth failure
never reaches this module.)

The primary workflow is read at the run's commit SHA. Each referenced
(reusable) workflow is read from its own repository at its own ref. Those
downloads are independent and run on a bounded thread pool. A failed download
is logged and recorded, never fatal: one unreachable reference must not stop
the remaining files from being scanned.

Files land under download_dir/<owner>/<repo>/<path> so two repositories
supplying the same basename do not overwrite each other. The provenance
mapping is still keyed by basename (first writer wins, collisions logged).
"""

from __future__ import annotations

__all__ = [
    "DownloadFailure",
    "ResolutionResult",
    "ResolverState",
    "WorkflowResolver",
]

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from runner_gate.config import RunIdentity
from runner_gate.constants import DEFAULT_DOWNLOAD_WORKERS
from runner_gate.exceptions import ConfigurationError, WorkflowReferenceError, WorkflowResolutionError
from runner_gate.github.client import GitHubAPIError, GitHubClient
from runner_gate.github.workflow_ref import (
    WorkflowReference,
    parse_primary_path,
    parse_referenced_workflow,
)
from runner_gate.security.cleanup import remove_path
from runner_gate.telemetry.system_logger import get_system_logger
from runner_gate.utils.file_helpers import set_secure_permissions


class ResolverState(str, Enum):
    """Resolver progress, exposed for logging and tests."""

    AUTHENTICATED = "authenticated"
    RUN_METADATA_FETCHED = "run_metadata_fetched"
    FILES_DOWNLOADING = "files_downloading"
    RESOLVED = "resolved"
    METADATA_FETCH_FAILED = "metadata_fetch_failed"


@dataclass(frozen=True)
class DownloadFailure:
    """A workflow file that could not be fetched.

    Attributes:
        source: The reference string or path as reported by GitHub.
        reason: Why the download failed.
        status_code: HTTP status when the API answered, else None.
    """

    source: str
    reason: str
    status_code: int | None = None


@dataclass
class ResolutionResult:
    """Outcome of resolving one run.

    Attributes:
        download_dir: Directory holding the downloaded copies.
        primary: Reference of the triggering workflow.
        referenced: References of the reusable workflows it calls.
        downloaded: Local paths of successfully downloaded files, in
            reference order (primary first).
        provenance: Basename -> owning repository.
        failures: Downloads that did not succeed.
    """

    download_dir: Path
    primary: WorkflowReference
    referenced: list[WorkflowReference] = field(default_factory=list)
    downloaded: list[Path] = field(default_factory=list)
    provenance: dict[str, str] = field(default_factory=dict)
    failures: list[DownloadFailure] = field(default_factory=list)


class WorkflowResolver:
    """Determines and downloads the workflow files behind a run.

    Usage:
        resolver = WorkflowResolver(client, Path.home() / ".cache/runner-gate/workflows")
        result = resolver.resolve(run_identity)
    """

    def __init__(
        self,
        client: GitHubClient,
        download_dir: Path,
        max_workers: int = DEFAULT_DOWNLOAD_WORKERS,
    ) -> None:
        """Initialize the resolver.

        Args:
            client: GitHub client authenticated with an installation token.
            download_dir: Directory to (re)create for downloaded files.
            max_workers: Upper bound on concurrent referenced downloads.
        """
        self._client = client
        self._download_dir = download_dir
        self._max_workers = max(1, max_workers)
        self._lock = threading.Lock()
        self.state = ResolverState.AUTHENTICATED

    def resolve(self, run: RunIdentity) -> ResolutionResult:
        """Resolve and download every workflow file behind the run.

        Returns only after every download has settled.

        Raises:
            WorkflowResolutionError: If run metadata cannot be fetched or
                names no usable primary workflow path.
            ConfigurationError: If the download directory or its parent is a
                symlink.
        """
        logger = get_system_logger()
        metadata = self._fetch_run(run)

        try:
            primary = parse_primary_path(str(metadata.get("path") or ""), run.repository, run.sha)
        except WorkflowReferenceError as e:
            self.state = ResolverState.METADATA_FETCH_FAILED
            raise WorkflowResolutionError(f"Run {run.run_id} has no usable workflow path: {e}") from e

        self._prepare_download_dir()
        result = ResolutionResult(download_dir=self._download_dir, primary=primary)

        self.state = ResolverState.FILES_DOWNLOADING
        primary_path = self._download(primary, f"{primary.repository}/{primary.path}", result)

        referenced_entries = metadata.get("referenced_workflows") or []
        if not isinstance(referenced_entries, list):
            referenced_entries = []

        for entry in referenced_entries:
            try:
                result.referenced.append(parse_referenced_workflow(entry))
            except WorkflowReferenceError as e:
                source = entry.get("path", "<missing>") if isinstance(entry, dict) else "<invalid>"
                self._record_failure(result, DownloadFailure(source=str(source), reason=str(e)))

        referenced_paths: list[Path | None] = []
        if result.referenced:
            workers = min(self._max_workers, len(result.referenced))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="workflow-download") as pool:
                futures = [
                    pool.submit(self._download, reference, f"{reference.repository}/{reference.path}", result)
                    for reference in result.referenced
                ]
            # Executor exit waits for every future
            for future, reference in zip(futures, result.referenced):
                try:
                    referenced_paths.append(future.result())
                except Exception as e:  # noqa: BLE001
                    self._record_failure(
                        result,
                        DownloadFailure(
                            source=f"{reference.repository}/{reference.path}@{reference.ref}",
                            reason=f"unexpected {type(e).__name__}: {e}",
                        ),
                    )
                    referenced_paths.append(None)

        result.downloaded = [path for path in [primary_path, *referenced_paths] if path is not None]
        self.state = ResolverState.RESOLVED

        logger.info(
            {
                "event": "workflows_resolved",
                "message": (
                    f"Resolved {len(result.downloaded)} workflow file(s) for run {run.run_id}"
                    f" ({len(result.failures)} failed)"
                ),
                "run_id": run.run_id,
                "downloaded": len(result.downloaded),
                "referenced": len(result.referenced),
                "failures": len(result.failures),
            }
        )
        return result

    def _fetch_run(self, run: RunIdentity) -> dict[str, Any]:
        try:
            metadata = self._client.get_run(run.repository, run.run_id)
        except GitHubAPIError as e:
            self.state = ResolverState.METADATA_FETCH_FAILED
            raise WorkflowResolutionError(f"Failed to fetch metadata for run {run.run_id}: {e}") from e
        self.state = ResolverState.RUN_METADATA_FETCHED
        get_system_logger().info(
            {
                "event": "run_metadata_fetched",
                "message": f"Fetched metadata for run {run.run_id} of {run.repository}",
                "run_id": run.run_id,
                "repository": run.repository,
            }
        )
        return metadata

    def _prepare_download_dir(self) -> None:
        # rmtree and mkdir would act on whatever a planted link points at
        for candidate in (self._download_dir, self._download_dir.parent):
            if candidate.is_symlink():
                raise ConfigurationError(
                    f"Download directory {self._download_dir} must not be or sit directly under a symlink ({candidate})"
                )
        # Stale copies from an earlier job on this runner must not be scanned
        if self._download_dir.exists():
            remove_path(self._download_dir)
        self._download_dir.mkdir(parents=True, exist_ok=True)
        set_secure_permissions(self._download_dir, is_directory=True)

    def _download(self, reference: WorkflowReference, relative_dest: str, result: ResolutionResult) -> Path | None:
        """Fetch one file; on failure record it and return None."""
        source = f"{reference.repository}/{reference.path}@{reference.ref}"
        try:
            content = self._client.get_file_content(reference.repository, reference.path, reference.ref)
        except GitHubAPIError as e:
            self._record_failure(result, DownloadFailure(source=source, reason=str(e), status_code=e.status_code))
            return None

        dest = self._download_dir / relative_dest
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(content)
        except OSError as e:
            self._record_failure(result, DownloadFailure(source=source, reason=f"write failed: {e.strerror}"))
            return None

        self._record_provenance(result, reference)
        get_system_logger().info(
            {
                "event": "workflow_downloaded",
                "message": f"Downloaded {reference.path} from {reference.repository} at {reference.ref}",
                "path": reference.path,
                "repository": reference.repository,
                "ref": reference.ref,
            }
        )
        return dest

    def _record_provenance(self, result: ResolutionResult, reference: WorkflowReference) -> None:
        with self._lock:
            existing = result.provenance.get(reference.filename)
            if existing is None:
                result.provenance[reference.filename] = reference.repository
                return
        if existing != reference.repository:
            get_system_logger().warning(
                {
                    "event": "provenance_collision",
                    "message": (
                        f"{reference.filename} is supplied by both {existing} and {reference.repository};"
                        f" findings in either copy are attributed to {existing}"
                    ),
                    "filename": reference.filename,
                    "kept": existing,
                    "ignored": reference.repository,
                }
            )

    def _record_failure(self, result: ResolutionResult, failure: DownloadFailure) -> None:
        with self._lock:
            result.failures.append(failure)
        get_system_logger().warning(
            {
                "event": "workflow_download_failed",
                "message": f"Could not download {failure.source}: {failure.reason}",
                "source": failure.source,
                "status_code": failure.status_code,
            }
        )
