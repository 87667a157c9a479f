"""Minimal GitHub REST client for the scan hook.

Only the three calls the gate needs: read run metadata, read a file's raw
content at a ref, and open an issue. Authenticated with an installation
token held in a Secret; the token is read from the Secret per request, so
clearing it makes the client unusable.
"""

from __future__ import annotations

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "github_headers",
]

from typing import Any
from urllib.parse import quote

import httpx

from runner_gate.constants import GITHUB_API_VERSION, GITHUB_HTTP_TIMEOUT_SECONDS, USER_AGENT
from runner_gate.security.secret import Secret


def github_headers(bearer: str, accept: str = "application/vnd.github+json") -> dict[str, str]:
    """Standard GitHub REST headers with a bearer credential."""
    return {
        "Authorization": f"Bearer {bearer}",
        "Accept": accept,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": USER_AGENT,
    }


class GitHubAPIError(Exception):
    """A GitHub REST call failed.

    Attributes:
        status_code: HTTP status, or None for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubClient:
    """GitHub REST client bound to one installation token.

    Usage:
        with GitHubClient(api_url, token) as client:
            run = client.get_run("owner/repo", 42)
    """

    def __init__(
        self,
        api_url: str,
        token: Secret,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: REST base URL.
            token: Installation token.
            http_client: Optional httpx client (for testing).
        """
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._client = http_client or httpx.Client(timeout=GITHUB_HTTP_TIMEOUT_SECONDS)
        self._owns_client = http_client is None

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client:
            self._client.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        accept: str = "application/vnd.github+json",
        **kwargs: Any,
    ) -> httpx.Response:
        headers = github_headers(self._token.reveal(), accept)
        try:
            response = self._client.request(method, f"{self._api_url}{endpoint}", headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"{method} {endpoint} failed: {type(e).__name__}") from e
        if not response.is_success:
            raise GitHubAPIError(
                f"{method} {endpoint} returned status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def get_run(self, repository: str, run_id: int) -> dict[str, Any]:
        """Fetch workflow run metadata.

        Raises:
            GitHubAPIError: On transport error, non-2xx or a non-object body.
        """
        response = self._request("GET", f"/repos/{repository}/actions/runs/{run_id}")
        try:
            data = response.json()
        except ValueError as e:
            raise GitHubAPIError(f"Run {run_id} metadata is not valid JSON") from e
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Run {run_id} metadata is not a JSON object")
        return data

    def get_file_content(self, repository: str, path: str, ref: str) -> bytes:
        """Fetch the raw bytes of a file at a ref.

        Raises:
            GitHubAPIError: On transport error or non-2xx (e.g., 404 for a
                missing file or an inaccessible repository).
        """
        response = self._request(
            "GET",
            f"/repos/{repository}/contents/{quote(path)}",
            accept="application/vnd.github.raw",
            params={"ref": ref},
        )
        return response.content

    def create_issue(
        self,
        repository: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
    ) -> dict[str, Any]:
        """Open an issue.

        Returns:
            The created issue object.

        Raises:
            GitHubAPIError: On transport error or non-2xx.
        """
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = labels
        if assignees:
            payload["assignees"] = assignees
        response = self._request("POST", f"/repos/{repository}/issues", json=payload)
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
