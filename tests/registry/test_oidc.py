"""Tests for the OIDC token request."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from runner_gate.exceptions import CredentialBrokerError
from runner_gate.registry.oidc import OIDCRequestContext, request_federated_token
from runner_gate.security.secret import Secret

REQUEST_URL = "https://token.actions.test/_apis/idtoken?api-version=2.0"


def _response(status_code: int, payload: object) -> httpx.Response:
    return httpx.Response(status_code, json=payload, request=httpx.Request("GET", REQUEST_URL))


@pytest.fixture
def context() -> OIDCRequestContext:
    return OIDCRequestContext(
        request_url=REQUEST_URL,
        request_token=Secret("request-bearer-token", label="oidc_request_token"),
    )


class TestOIDCRequestContext:
    """Tests for reading the request context from the environment."""

    def test_from_environ(self) -> None:
        # Arrange
        environ = {
            "ACTIONS_ID_TOKEN_REQUEST_URL": REQUEST_URL,
            "ACTIONS_ID_TOKEN_REQUEST_TOKEN": "request-bearer-token",
        }

        # Act
        context = OIDCRequestContext.from_environ(environ)

        # Assert
        assert context.request_url == REQUEST_URL
        assert context.request_token.reveal() == "request-bearer-token"
        context.request_token.clear()

    @pytest.mark.parametrize(
        "environ",
        [
            {"ACTIONS_ID_TOKEN_REQUEST_URL": REQUEST_URL},
            {"ACTIONS_ID_TOKEN_REQUEST_TOKEN": "t0ken"},
            {"ACTIONS_ID_TOKEN_REQUEST_URL": "", "ACTIONS_ID_TOKEN_REQUEST_TOKEN": "t0ken"},
        ],
        ids=["no_token", "no_url", "empty_url"],
    )
    def test_missing_variables_raise(self, environ: dict[str, str]) -> None:
        """Given a job without id-token permission, raises CredentialBrokerError."""
        # Act & Assert
        with pytest.raises(CredentialBrokerError, match="id-token: write"):
            OIDCRequestContext.from_environ(environ)


class TestRequestFederatedToken:
    """Tests for request_federated_token."""

    def test_returns_token_for_sts_audience(self, context: OIDCRequestContext) -> None:
        """Given a valid response, returns the token and clears the request bearer."""
        # Arrange
        mock_client = MagicMock(spec=httpx.Client)
        mock_client.get.return_value = _response(200, {"value": "eyJoidc.token.value"})

        # Act
        token = request_federated_token(context, http_client=mock_client)

        # Assert
        assert token.reveal() == "eyJoidc.token.value"
        kwargs = mock_client.get.call_args.kwargs
        assert mock_client.get.call_args.args[0] == REQUEST_URL
        assert kwargs["params"] == {"audience": "sts.amazonaws.com"}
        assert kwargs["headers"]["Authorization"] == "bearer request-bearer-token"
        assert context.request_token.cleared
        token.clear()

    @pytest.mark.parametrize(
        "response",
        [
            _response(403, {"message": "forbidden"}),
            _response(200, {"value": ""}),
            _response(200, {"count": 1}),
            _response(200, ["value"]),
        ],
        ids=["forbidden", "empty_value", "no_value", "not_object"],
    )
    def test_bad_response_raises(self, context: OIDCRequestContext, response: httpx.Response) -> None:
        # Arrange
        mock_client = MagicMock(spec=httpx.Client)
        mock_client.get.return_value = response

        # Act & Assert
        with pytest.raises(CredentialBrokerError):
            request_federated_token(context, http_client=mock_client)
        assert context.request_token.cleared

    def test_transport_error_raises(self, context: OIDCRequestContext) -> None:
        # Arrange
        mock_client = MagicMock(spec=httpx.Client)
        mock_client.get.side_effect = httpx.ConnectError("refused")

        # Act & Assert
        with pytest.raises(CredentialBrokerError, match="HTTP error"):
            request_federated_token(context, http_client=mock_client)
        assert mock_client.get.call_count == 1
        assert context.request_token.cleared
