from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from village.llm.errors import ApplicationError, ProtocolError


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Literal["system", "user", "assistant"]
    content: str


class SamplingParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    temperature: float = Field(default=0.9, ge=0.0, le=2.0)
    top_p: float = Field(default=1.0, gt=0.0, le=1.0)
    frequency_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(default=0.6, ge=-2.0, le=2.0)
    stop: list[str] = Field(default_factory=lambda: ["\n"], max_length=4)
    max_tokens: int = Field(default=128, ge=1, le=4096)
    logit_bias: dict[str, int] | None = None


class ToolSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=64)
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class GenerationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    messages: list[ChatMessage] = Field(min_length=1)
    sampling: SamplingParams = Field(default_factory=SamplingParams)
    tools: list[ToolSpec] = Field(default_factory=list)

    def wire_messages(self) -> list[dict[str, str]]:
        return [message.model_dump() for message in self.messages]


class ToolCall(BaseModel):
    name: str
    arguments: str = ""


class GenerationReply(BaseModel):
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)


def parse_completion(payload: Any) -> GenerationReply:
    """Turn a chat-completions body into a reply, or raise for an error envelope.

    Some gateways answer HTTP 200 with ``{"error": {...}}``, so the error
    shape is checked before the success shape.
    """
    if not isinstance(payload, Mapping):
        raise ProtocolError(f"response body is not an object: {type(payload).__name__}")

    error = payload.get("error")
    if error:
        if isinstance(error, Mapping):
            message = str(error.get("message") or "unspecified error")
            category = error.get("type") or error.get("code")
            raise ApplicationError(message, str(category) if category is not None else None)
        raise ApplicationError(str(error))

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise ProtocolError("response has no choices")
    first = choices[0]
    if not isinstance(first, Mapping):
        raise ProtocolError("first choice is not an object")
    message = first.get("message")
    if not isinstance(message, Mapping):
        raise ProtocolError("first choice has no message")

    content = message.get("content")
    if isinstance(content, list):
        parts = [item.get("text", "") for item in content if isinstance(item, Mapping)]
        content = "".join(part for part in parts if isinstance(part, str))
    if content is not None and not isinstance(content, str):
        raise ProtocolError(f"message content has unexpected type: {type(content).__name__}")

    tool_calls: list[ToolCall] = []
    for raw_call in message.get("tool_calls") or []:
        if not isinstance(raw_call, Mapping):
            raise ProtocolError("tool call is not an object")
        function = raw_call.get("function")
        if not isinstance(function, Mapping):
            raise ProtocolError("tool call has no function")
        try:
            tool_calls.append(
                ToolCall.model_validate(
                    {"name": function.get("name"), "arguments": function.get("arguments") or ""}
                )
            )
        except ValidationError as exc:
            raise ProtocolError(f"malformed tool call: {exc.errors()}") from exc

    return GenerationReply(content=content, tool_calls=tool_calls)
