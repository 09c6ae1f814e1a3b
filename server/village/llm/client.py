from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

import openai
from openai import OpenAI

from village.llm.errors import ApplicationError, MissingCredentialError, ProtocolError, TransportError
from village.llm.schema import GenerationReply, GenerationRequest, parse_completion


def _is_enabled(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class LLMClient:
    base_url: str
    model: str
    api_key: str
    timeout_sec: float = 30.0
    max_output_tokens: int = 128
    temperature: float = 0.9
    max_retries: int = 0
    debug: bool = False
    _sdk_client: OpenAI | None = None

    @classmethod
    def from_env(cls) -> "LLMClient":
        api_key = os.getenv("LLM_API_KEY", "").strip()
        if not api_key:
            raise MissingCredentialError("LLM_API_KEY is not set; agents cannot request decisions")

        base_url = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1").strip()
        model = os.getenv("LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"

        try:
            timeout_sec = float(os.getenv("LLM_TIMEOUT_SEC", "30"))
        except ValueError:
            timeout_sec = 30.0
        timeout_sec = max(1.0, min(timeout_sec, 180.0))

        try:
            max_output_tokens = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "128"))
        except ValueError:
            max_output_tokens = 128
        max_output_tokens = max(16, min(max_output_tokens, 4096))

        try:
            temperature = float(os.getenv("LLM_TEMPERATURE", "0.9"))
        except ValueError:
            temperature = 0.9
        temperature = max(0.0, min(temperature, 2.0))

        try:
            max_retries = int(os.getenv("LLM_MAX_RETRIES", "0"))
        except ValueError:
            max_retries = 0
        max_retries = max(0, min(max_retries, 5))

        debug = _is_enabled(os.getenv("LLM_DEBUG", "0"))

        return cls(
            base_url=base_url.rstrip("/"),
            model=model,
            api_key=api_key,
            timeout_sec=timeout_sec,
            max_output_tokens=max_output_tokens,
            temperature=temperature,
            max_retries=max_retries,
            debug=debug,
        )

    def _get_sdk_client(self) -> OpenAI:
        if self._sdk_client is None:
            self._sdk_client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_sec,
                max_retries=self.max_retries,
            )
        return self._sdk_client

    def _debug(self, message: str) -> None:
        if self.debug:
            logging.getLogger("village.llm.client").warning(message)

    def _create_kwargs(self, request: GenerationRequest) -> dict[str, Any]:
        sampling = request.sampling
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": request.wire_messages(),
            "temperature": sampling.temperature,
            "top_p": sampling.top_p,
            "frequency_penalty": sampling.frequency_penalty,
            "presence_penalty": sampling.presence_penalty,
            "max_tokens": min(sampling.max_tokens, self.max_output_tokens),
        }
        if sampling.stop:
            kwargs["stop"] = list(sampling.stop)
        if sampling.logit_bias:
            kwargs["logit_bias"] = dict(sampling.logit_bias)
        if request.tools:
            kwargs["tools"] = [tool.to_wire() for tool in request.tools]
        return kwargs

    def generate(self, request: GenerationRequest) -> GenerationReply:
        """Blocking chat-completions call. Runs on a worker thread, never on the tick thread."""
        try:
            response = self._get_sdk_client().chat.completions.create(**self._create_kwargs(request))
        except openai.APIConnectionError as exc:
            self._debug(f"LLM transport error type={type(exc).__name__} detail={exc!r}")
            raise TransportError(str(exc) or type(exc).__name__) from exc
        except openai.APIResponseValidationError as exc:
            self._debug(f"LLM response validation error detail={exc!r}")
            raise ProtocolError(str(exc)) from exc
        except openai.APIStatusError as exc:
            self._debug(f"LLM status error status={exc.status_code} detail={exc!r}")
            raise ApplicationError(*self._status_error_details(exc)) from exc

        try:
            as_dict = response.model_dump()
        except Exception as exc:
            raise ProtocolError(f"response could not be dumped: {exc!r}") from exc

        self._debug(f"LLM chat.completions response prefix={json.dumps(as_dict, ensure_ascii=False, default=str)[:280]!r}")
        return parse_completion(as_dict)

    def _status_error_details(self, exc: openai.APIStatusError) -> tuple[str, str]:
        body = exc.body
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            body = body["error"]
        if isinstance(body, dict):
            message = str(body.get("message") or exc.message)
            category = body.get("type") or body.get("code")
            if category:
                return message, str(category)
        return exc.message, f"http_{exc.status_code}"
