"""Tests for the generation client and its error mapping."""
from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from village.llm.client import LLMClient
from village.llm.errors import ApplicationError, MissingCredentialError, ProtocolError, TransportError
from village.llm.schema import ChatMessage, GenerationRequest, SamplingParams, ToolSpec

_URL = "http://127.0.0.1:9/v1/chat/completions"


class _Dumped:
    def __init__(self, payload: dict) -> None:
        self._payload = payload

    def model_dump(self) -> dict:
        return self._payload


def _client_returning(behaviour) -> tuple[LLMClient, list[dict]]:
    calls: list[dict] = []

    def create(**kwargs):
        calls.append(kwargs)
        if isinstance(behaviour, Exception):
            raise behaviour
        return _Dumped(behaviour)

    sdk = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client = LLMClient(base_url="http://127.0.0.1:9/v1", model="test-model", api_key="k", _sdk_client=sdk)
    return client, calls


def _request(**sampling) -> GenerationRequest:
    return GenerationRequest(
        messages=[ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="ctx")],
        sampling=SamplingParams(**sampling),
        tools=[ToolSpec(name="set_task", parameters={"type": "object"})],
    )


def test_from_env_requires_credential(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    with pytest.raises(MissingCredentialError):
        LLMClient.from_env()


def test_from_env_clamps_values(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "secret")
    monkeypatch.setenv("LLM_TIMEOUT_SEC", "9999")
    monkeypatch.setenv("LLM_MAX_RETRIES", "nope")
    monkeypatch.setenv("LLM_BASE_URL", "http://localhost:8080/v1/")

    client = LLMClient.from_env()

    assert client.api_key == "secret"
    assert client.timeout_sec == 180.0
    assert client.max_retries == 0
    assert client.base_url == "http://localhost:8080/v1"


def test_generate_sends_sampling_and_tools():
    client, calls = _client_returning({"choices": [{"message": {"content": "Theo: Hi"}}]})

    reply = client.generate(_request(temperature=0.5, stop=["\n"], logit_bias={"50256": -100}))

    assert reply.content == "Theo: Hi"
    sent = calls[0]
    assert sent["model"] == "test-model"
    assert sent["messages"] == [{"role": "system", "content": "sys"}, {"role": "user", "content": "ctx"}]
    assert sent["temperature"] == 0.5
    assert sent["stop"] == ["\n"]
    assert sent["logit_bias"] == {"50256": -100}
    assert sent["tools"][0]["function"]["name"] == "set_task"


def test_connection_failure_is_transport_error():
    request = httpx.Request("POST", _URL)
    client, _ = _client_returning(openai.APIConnectionError(request=request))

    with pytest.raises(TransportError):
        client.generate(_request())


def test_status_error_is_application_error_with_category():
    request = httpx.Request("POST", _URL)
    response = httpx.Response(429, request=request)
    body = {"error": {"message": "Rate limit reached", "type": "rate_limit_exceeded"}}
    client, _ = _client_returning(openai.RateLimitError("Rate limit reached", response=response, body=body))

    with pytest.raises(ApplicationError) as info:
        client.generate(_request())

    assert info.value.category == "rate_limit_exceeded"
    assert info.value.message == "Rate limit reached"


def test_error_envelope_in_success_body_is_application_error():
    client, _ = _client_returning({"error": {"message": "model overloaded", "type": "server_error"}})

    with pytest.raises(ApplicationError) as info:
        client.generate(_request())
    assert info.value.category == "server_error"


def test_unexpected_body_is_protocol_error():
    client, _ = _client_returning({"object": "chat.completion"})

    with pytest.raises(ProtocolError):
        client.generate(_request())
