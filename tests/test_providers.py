"""Tests for backend capability slots and the LiteLLM provider."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mimicbot.errors import CompletionError, MissingCapability
from mimicbot.providers.base import Backends
from mimicbot.providers.litellm_provider import LiteLLMProvider


def fake_response(content="hi", tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3, total_tokens=10),
    )


def fake_tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


# ── Backends ───────────────────────────────────────────────


class StubSearcher:
    async def search(self, query, limit=5):
        return []


def test_backends_bind_and_require():
    chat = MagicMock()
    backends = Backends(chat=chat)

    assert backends.has("chat")
    assert backends.require("chat") is chat
    assert backends.get("vector") is None
    with pytest.raises(MissingCapability):
        backends.require("vector")

    backends.bind("search", StubSearcher())
    assert backends.has("search")


def test_backends_reject_wrong_implementation():
    backends = Backends()
    with pytest.raises(TypeError):
        backends.bind("chat", object())
    with pytest.raises(ValueError):
        backends.bind("telepathy", MagicMock())


# ── LiteLLMProvider ────────────────────────────────────────


@pytest.mark.asyncio
async def test_chat_passes_request_through():
    provider = LiteLLMProvider(api_key="k", default_model="base-model")
    tools = [{"type": "function", "function": {"name": "echo"}}]

    with patch("mimicbot.providers.litellm_provider.acompletion", AsyncMock(return_value=fake_response())) as call:
        response = await provider.chat([{"role": "user", "content": "yo"}], tools=tools, max_tokens=50)

    kwargs = call.call_args.kwargs
    assert kwargs["model"] == "base-model"
    assert kwargs["api_key"] == "k"
    assert kwargs["tools"] == tools
    assert kwargs["tool_choice"] == "auto"
    assert kwargs["max_tokens"] == 50
    assert response.content == "hi"
    assert response.usage == {"prompt_tokens": 7, "completion_tokens": 3, "total_tokens": 10}


@pytest.mark.asyncio
async def test_tool_call_arguments_parsed():
    provider = LiteLLMProvider()
    calls = [
        fake_tool_call("c1", "echo", '{"text": "hi"'),  # truncated JSON
        fake_tool_call("c2", "react", {"id": 1}),
        fake_tool_call("c3", "wave", ""),
        fake_tool_call("c4", "odd", "[1, 2]"),
    ]

    with patch("mimicbot.providers.litellm_provider.acompletion",
               AsyncMock(return_value=fake_response(None, calls, "tool_calls"))):
        response = await provider.chat([])

    assert response.has_tool_calls
    assert [c.arguments for c in response.tool_calls] == [{"text": "hi"}, {"id": 1}, {}, {}]
    assert response.finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_requested_model_goes_first():
    provider = LiteLLMProvider(default_model="main", fallback_models=["big-a", "big-b"])
    mock = AsyncMock(return_value=fake_response())

    with patch("mimicbot.providers.litellm_provider.acompletion", mock):
        await provider.chat([], model="tiny-classifier")
        await provider.chat([])

    assert [c.kwargs["model"] for c in mock.call_args_list] == ["tiny-classifier", "main"]


@pytest.mark.asyncio
async def test_fallback_retries_once_and_sticks():
    provider = LiteLLMProvider(default_model="main", fallback_models=["backup-a", "backup-b"])
    mock = AsyncMock(side_effect=[RuntimeError("overloaded"), fake_response("from backup")])

    with patch("mimicbot.providers.litellm_provider.acompletion", mock):
        response = await provider.chat([])

    assert response.content == "from backup"
    assert [c.kwargs["model"] for c in mock.call_args_list] == ["main", "backup-a"]

    # A failed fallback moves the retry position along for later calls
    mock = AsyncMock(side_effect=[
        RuntimeError("down"), RuntimeError("down too"),
        RuntimeError("still down"), fake_response("ok"),
    ])
    with patch("mimicbot.providers.litellm_provider.acompletion", mock):
        with pytest.raises(CompletionError):
            await provider.chat([], model="chat-model")
        await provider.chat([], model="chat-model")
    assert [c.kwargs["model"] for c in mock.call_args_list] == [
        "chat-model", "backup-a", "chat-model", "backup-b",
    ]


@pytest.mark.asyncio
async def test_retry_skips_the_model_that_just_failed():
    provider = LiteLLMProvider(default_model="primary", fallback_models=["primary", "backup"])
    mock = AsyncMock(side_effect=[RuntimeError("overloaded"), fake_response()])

    with patch("mimicbot.providers.litellm_provider.acompletion", mock):
        await provider.chat([])

    assert [c.kwargs["model"] for c in mock.call_args_list] == ["primary", "backup"]


@pytest.mark.asyncio
async def test_both_attempts_failing_raises():
    provider = LiteLLMProvider(fallback_models=["primary", "backup"])
    mock = AsyncMock(side_effect=[RuntimeError("down"), RuntimeError("also down")])

    with patch("mimicbot.providers.litellm_provider.acompletion", mock):
        with pytest.raises(CompletionError):
            await provider.chat([])
    assert mock.await_count == 2


@pytest.mark.asyncio
async def test_timeout_counts_as_failure():
    provider = LiteLLMProvider(default_model="slow", timeout=0.01)

    async def hang(**kwargs):
        await asyncio.sleep(1)

    with patch("mimicbot.providers.litellm_provider.acompletion", hang):
        with pytest.raises(CompletionError):
            await provider.chat([])
