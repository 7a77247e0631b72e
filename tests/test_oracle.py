"""
Tests for the Ollama oracle client with a mocked ollama.Client.
"""

import httpx
import ollama
import pytest
from unittest.mock import MagicMock, patch

from src.agents.oracle import OllamaOracle, OracleReply
from src.core.errors import OracleUnavailableError


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def oracle(mock_client):
    return OllamaOracle(model="test-model", timeout=2, temperature=0.0, examples=[], client=mock_client)


class TestOllamaOracle:

    def test_tool_call_is_parsed(self, oracle, mock_client):
        mock_client.chat.return_value = {
            "message": {
                "content": "Counting the books.",
                "tool_calls": [{"function": {"name": "countData", "arguments": {"target": "books"}}}],
            }
        }

        reply = oracle.ask("how many books?")

        assert reply == OracleReply(tool_name="countData", arguments={"target": "books"}, text="Counting the books.")
        assert reply.is_call

    def test_first_tool_call_wins(self, oracle, mock_client):
        mock_client.chat.return_value = {"message": {"content": "", "tool_calls": [
            {"function": {"name": "findBook", "arguments": {"identifier": "Dune"}}},
            {"function": {"name": "deleteBook", "arguments": {"identifier": "Dune"}}},
        ]}}
        assert oracle.ask("find Dune").tool_name == "findBook"

    def test_json_string_arguments(self, oracle, mock_client):
        mock_client.chat.return_value = {"message": {"tool_calls": [
            {"function": {"name": "findBook", "arguments": '{"identifier": "Dune"}'}},
        ]}}
        assert oracle.ask("find Dune").arguments == {"identifier": "Dune"}

    def test_invalid_json_arguments_become_empty(self, oracle, mock_client):
        mock_client.chat.return_value = {"message": {"tool_calls": [
            {"function": {"name": "findBook", "arguments": "{identifier"}},
        ]}}
        assert oracle.ask("find Dune").arguments == {}

    def test_free_text_reply(self, oracle, mock_client):
        mock_client.chat.return_value = {"message": {"content": "  I only know about the CRM. "}}
        reply = oracle.ask("what's the weather?")
        assert reply == OracleReply(text="I only know about the CRM.")
        assert not reply.is_call

    def test_request_carries_tools_and_temperature(self, oracle, mock_client):
        mock_client.chat.return_value = {"message": {"content": "ok"}}
        oracle.ask("hello")

        kwargs = mock_client.chat.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["options"] == {"temperature": 0.0}
        assert kwargs["messages"][-1] == {"role": "user", "content": "hello"}
        names = {tool["function"]["name"] for tool in kwargs["tools"]}
        assert "countExpenseReports" in names

    @pytest.mark.parametrize("error,message", [
        (httpx.ReadTimeout("timed out"), "did not respond in time"),
        (ollama.ResponseError("model not found"), "returned an error"),
        (ConnectionError("refused"), "could not be reached"),
        (httpx.ConnectError("refused"), "could not be reached"),
    ])
    def test_failures_map_to_oracle_unavailable(self, oracle, mock_client, error, message):
        mock_client.chat.side_effect = error

        with pytest.raises(OracleUnavailableError) as exc_info:
            oracle.ask("how many books?")

        assert message in exc_info.value.message
        assert exc_info.value.retryable
        assert exc_info.value.status_code == 503
        mock_client.chat.assert_called_once()

    def test_health_check(self, oracle, mock_client):
        assert oracle.health_check() is True
        mock_client.list.side_effect = ConnectionError("down")
        assert oracle.health_check() is False

    @patch("src.agents.oracle.ollama.Client")
    def test_default_client_uses_configured_host_and_timeout(self, mock_client_cls):
        OllamaOracle(model="m", host="http://ollama:11434", timeout=7, examples=[])
        mock_client_cls.assert_called_once_with(host="http://ollama:11434", timeout=7)
