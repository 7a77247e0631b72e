"""
Oracle client
Ollama-backed generative model that classifies a command into one tool call or free text.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import ollama

from ..core import config
from ..core.errors import OracleUnavailableError
from .few_shot import load_few_shot_examples
from .intents import SYSTEM_INSTRUCTION, build_tool_catalogue
from util.logging import logger


@dataclass(frozen=True)
class OracleReply:
    """What came back from the oracle: a structured call, free text, or both."""
    tool_name: Optional[str] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    text: str = ""

    @property
    def is_call(self) -> bool:
        return bool(self.tool_name)


def _decode_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            logger.warning("Oracle returned tool arguments that are not valid JSON")
            return {}
    if not isinstance(raw, dict):
        # Mapping-like models from the ollama client
        try:
            raw = dict(raw)
        except (TypeError, ValueError):
            return {}
    return raw


class OllamaOracle:
    """
    Oracle implementation on a local Ollama model with tool calling.
    Never retries: a failed call surfaces as a retryable OracleUnavailableError.
    """

    def __init__(self, model: Optional[str] = None, host: Optional[str] = None,
                 timeout: Optional[float] = None, temperature: Optional[float] = None,
                 examples: Optional[List[Dict[str, Any]]] = None, client: Any = None):
        self.model = model or config.OLLAMA_MODEL
        self.host = host or config.OLLAMA_HOST
        self.timeout = timeout or config.get_oracle_timeout()
        self.temperature = config.ORACLE_TEMPERATURE if temperature is None else temperature
        self.examples = load_few_shot_examples() if examples is None else examples
        self.tools = build_tool_catalogue()
        self.client = client or ollama.Client(host=self.host, timeout=self.timeout)

    def build_messages(self, command: str) -> List[Dict[str, Any]]:
        """
        Build the chat transcript: system instruction, few-shot exchanges, then the command.
        """
        messages = [{'role': 'system', 'content': SYSTEM_INSTRUCTION}]

        for example in self.examples:
            messages.append({'role': 'user', 'content': example['command']})
            call = example.get('call')
            if call:
                messages.append({
                    'role': 'assistant',
                    'content': '',
                    'tool_calls': [{'function': {'name': call['name'], 'arguments': call.get('args', {})}}]
                })
            else:
                messages.append({'role': 'assistant', 'content': example.get('text', '')})

        messages.append({'role': 'user', 'content': command})
        return messages

    def ask(self, command: str) -> OracleReply:
        """Send one command to the model and parse its reply."""
        start_time = time.time()
        try:
            response = self.client.chat(
                model=self.model,
                messages=self.build_messages(command),
                tools=self.tools,
                options={'temperature': self.temperature}
            )
        except httpx.TimeoutException as e:
            self._log_failure(start_time, "timeout", e)
            raise OracleUnavailableError(
                "The language model did not respond in time.", {"timeout_sec": self.timeout}
            ) from e
        except ollama.ResponseError as e:
            self._log_failure(start_time, "model_error", e)
            raise OracleUnavailableError("The language model returned an error.", {"model": self.model}) from e
        except (ollama.RequestError, httpx.HTTPError, ConnectionError, TimeoutError) as e:
            self._log_failure(start_time, "transport_error", e)
            raise OracleUnavailableError("The language model could not be reached.") from e

        reply = self._parse_response(response)
        logger.log_oracle_call(
            self.model, (time.time() - start_time) * 1000,
            details={"tool": reply.tool_name or "none", "text_length": len(reply.text)}
        )
        return reply

    def _parse_response(self, response: Any) -> OracleReply:
        message = response.get('message') or {}
        text = (message.get('content') or '').strip()
        tool_calls = message.get('tool_calls') or []

        # First tool call wins; one command maps to one operation
        if tool_calls:
            function = tool_calls[0].get('function') or {}
            return OracleReply(
                tool_name=function.get('name'),
                arguments=_decode_arguments(function.get('arguments') or {}),
                text=text,
            )
        return OracleReply(text=text)

    def _log_failure(self, start_time: float, status: str, error: Exception):
        logger.log_oracle_call(
            self.model, (time.time() - start_time) * 1000, status,
            details={"error_type": type(error).__name__}
        )

    def health_check(self) -> bool:
        """Check if Ollama is reachable."""
        try:
            self.client.list()
            return True
        except Exception:
            return False
