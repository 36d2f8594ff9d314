"""Tests for the admin JSON-RPC listener."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from keygate.core.app_factory import create_admin_app
from keygate.core.errors import BackendAppError
from keygate.schemas.rpc import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PROCEDURE_FAILED,
)


@pytest.fixture
def client(mock_backend: MagicMock) -> TestClient:
    return TestClient(create_admin_app(mock_backend))


def _call(client: TestClient, method: str, params=None, call_id=1) -> dict:
    payload = {"jsonrpc": "2.0", "method": method, "id": call_id}
    if params is not None:
        payload["params"] = params
    response = client.post("/rpc", json=payload)
    assert response.status_code == 200
    return response.json()


class TestBlacklist:
    def test_generated_true_is_returned(self, client: TestClient, mock_backend: MagicMock) -> None:
        mock_backend.report_blacklist.return_value = True

        reply = _call(client, "blacklister.Blacklist", ["host-123"])

        assert reply == {"jsonrpc": "2.0", "id": 1, "result": True}
        mock_backend.report_blacklist.assert_called_once_with("host-123")

    def test_generated_false_is_returned(self, client: TestClient, mock_backend: MagicMock) -> None:
        reply = _call(client, "blacklister.Blacklist", ["host-123"])

        assert reply["result"] is False
        assert "error" not in reply

    def test_named_params_are_accepted(self, client: TestClient, mock_backend: MagicMock) -> None:
        _call(client, "blacklister.Blacklist", {"keyname": "host-9"})

        mock_backend.report_blacklist.assert_called_once_with("host-9")

    def test_backend_error_surfaces_as_failure(self, client: TestClient, mock_backend: MagicMock) -> None:
        mock_backend.report_blacklist.side_effect = BackendAppError(
            code="key_not_found", message="unknown key name: 'host-123'"
        )

        reply = _call(client, "blacklister.Blacklist", ["host-123"])

        assert "result" not in reply
        assert reply["error"]["code"] == PROCEDURE_FAILED
        assert reply["error"]["message"] == "unknown key name: 'host-123'"

    @pytest.mark.parametrize("params", [[], ["a", "b"], [42], {"name": "x"}, "host-123"])
    def test_bad_params_are_rejected(self, client: TestClient, mock_backend: MagicMock, params) -> None:
        response = client.post(
            "/rpc",
            json={"jsonrpc": "2.0", "method": "blacklister.Blacklist", "params": params, "id": 7},
        )
        reply = response.json()

        if isinstance(params, str):
            assert reply["error"]["code"] == INVALID_REQUEST
        else:
            assert reply["error"]["code"] == INVALID_PARAMS
        mock_backend.report_blacklist.assert_not_called()


class TestTrigger:
    @pytest.mark.parametrize("params", [None, [], {}, [{}]])
    def test_trigger_invokes_backend(self, client: TestClient, mock_backend: MagicMock, params) -> None:
        reply = _call(client, "trigger.Trigger", params)

        assert reply == {"jsonrpc": "2.0", "id": 1, "result": None}
        mock_backend.trigger_generation.assert_called_once_with()

    def test_arguments_are_rejected(self, client: TestClient, mock_backend: MagicMock) -> None:
        reply = _call(client, "trigger.Trigger", ["now"])

        assert reply["error"]["code"] == INVALID_PARAMS
        mock_backend.trigger_generation.assert_not_called()


class TestProtocolErrors:
    def test_invalid_json(self, client: TestClient) -> None:
        response = client.post("/rpc", content=b"{not json")

        assert response.json()["error"]["code"] == PARSE_ERROR

    def test_missing_method(self, client: TestClient) -> None:
        response = client.post("/rpc", json={"jsonrpc": "2.0", "id": 3})

        reply = response.json()
        assert reply["error"]["code"] == INVALID_REQUEST
        assert reply["id"] == 3

    def test_unknown_method(self, client: TestClient) -> None:
        reply = _call(client, "blacklister.Whitelist", ["x"], call_id="abc")

        assert reply["error"]["code"] == METHOD_NOT_FOUND
        assert reply["id"] == "abc"
