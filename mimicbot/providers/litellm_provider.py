"""LiteLLM completion provider.

A call goes to the requested model. If it times out or errors, the call is
retried once on the rotation's current fallback model. A second
failure raises ``CompletionError``; the turn is aborted rather than answered
with an error message in character.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import json_repair
import litellm
from litellm import acompletion
from loguru import logger

from mimicbot.errors import CompletionError
from mimicbot.providers.base import LLMProvider, LLMResponse, ToolCallRequest

# Per-attempt ceiling so a stuck provider cannot hold the scheduler forever
DEFAULT_TIMEOUT: float = 45.0


class ModelRotation:
    """Ordered fallback list with a sticky position.

    The first attempt always goes to the model the caller asked for. Only a
    retry draws from the fallback list, starting where the last retry left
    off. Without fallback models the retry hits the requested model again.
    """

    def __init__(self, models: list[str] | None = None) -> None:
        self.models = list(models or [])
        self.position = 0
        self.failures: Counter[str] = Counter()

    def pick(self, requested: str, retry: bool = False) -> str:
        if not retry or not self.models:
            return requested
        model = self.models[self.position]
        if model == requested and len(self.models) > 1:
            self.position = (self.position + 1) % len(self.models)
            model = self.models[self.position]
        return model

    def failed(self, model: str) -> None:
        self.failures[model] += 1
        if not self.models or self.models[self.position] != model:
            return
        self.position = (self.position + 1) % len(self.models)
        logger.warning(f"LLM rotation: {model} failed, next fallback is {self.models[self.position]}")

    def succeeded(self, model: str) -> None:
        self.failures.pop(model, None)


class LiteLLMProvider(LLMProvider):
    """Chat completions through LiteLLM (OpenRouter, OpenAI, Anthropic, local...)."""

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "openrouter/deepseek/deepseek-v3.2",
        extra_headers: dict[str, str] | None = None,
        fallback_models: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}
        self.rotation = ModelRotation(fallback_models)
        self._timeout = timeout

        litellm.suppress_debug_info = True
        # Providers that reject a parameter get it dropped instead of a 400
        litellm.drop_params = True

    def get_default_model(self) -> str:
        return self.default_model

    def _request(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max(1, max_tokens),
            "temperature": temperature,
        }
        optional = {
            "api_key": self.api_key,
            "api_base": self.api_base,
            "extra_headers": self.extra_headers,
        }
        request.update({key: value for key, value in optional.items() if value})
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"
        return request

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Complete ``messages`` on ``model``, with one retry on a fallback model.

        Raises:
            CompletionError: The first attempt and the retry both failed.
        """
        requested = model or self.default_model
        tried: list[str] = []
        last_error: BaseException | None = None

        for attempt in range(2):
            current = self.rotation.pick(requested, retry=bool(attempt))
            tried.append(current)
            if attempt:
                logger.info(f"LLM retry on {current}")
            try:
                raw = await asyncio.wait_for(
                    acompletion(**self._request(current, messages, tools, max_tokens, temperature)),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError as e:
                logger.warning(f"LLM timeout after {self._timeout}s on {current}")
                last_error = e
            except Exception as e:
                logger.warning(f"LLM error on {current}: {e}")
                last_error = e
            else:
                self.rotation.succeeded(current)
                return self._parse_response(raw)
            self.rotation.failed(current)

        logger.error(f"LLM call failed on {' and '.join(tried)}")
        raise CompletionError(f"completion failed on {', '.join(tried)}: {last_error!r}") from last_error

    @staticmethod
    def _tool_arguments(raw: Any) -> dict[str, Any]:
        """Arguments as a dict; broken JSON is repaired, anything else is {}."""
        if isinstance(raw, str):
            raw = json_repair.loads(raw) if raw.strip() else {}
        return raw if isinstance(raw, dict) else {}

    def _parse_response(self, response: Any) -> LLMResponse:
        choice = response.choices[0]
        message = choice.message

        tool_calls = [
            ToolCallRequest(id=tc.id, name=tc.function.name, arguments=self._tool_arguments(tc.function.arguments))
            for tc in (getattr(message, "tool_calls", None) or [])
        ]

        usage: dict[str, int] = {}
        if getattr(response, "usage", None):
            usage = {
                key: getattr(response.usage, key, 0) or 0
                for key in ("prompt_tokens", "completion_tokens", "total_tokens")
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )
