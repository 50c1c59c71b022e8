"""Tests for the OpenAI-backed answer engine."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from backend.app.config import MissingOpenAIKeyError, Settings
from backend.app.monitor.engines import (
    OpenAIAnswerEngine,
    build_answer_engines,
    build_search_prompt,
)


def mock_client(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


def completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


@pytest.mark.unit
def test_search_prompt_follows_locale():
    assert build_search_prompt("best crm", "en").startswith("Please search")
    assert build_search_prompt("最好的CRM", "zh").startswith("请搜索")
    assert build_search_prompt("best crm", "en").endswith("best crm")


@pytest.mark.unit
@pytest.mark.asyncio
class TestOpenAIAnswerEngine:
    async def test_returns_answer(self):
        client = mock_client(return_value=completion("1. Acme\n2. Globex"))
        engine = OpenAIAnswerEngine("gpt-4o-mini", client)

        answer = await engine.ask("best crm", "en")

        assert engine.name == "openai:gpt-4o-mini"
        assert answer.engine == "openai:gpt-4o-mini"
        assert answer.answer == "1. Acme\n2. Globex"
        assert answer.duration >= 0
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"

    async def test_null_content_is_empty_answer(self):
        engine = OpenAIAnswerEngine("m", mock_client(return_value=completion(None)))
        assert (await engine.ask("q", "en")).answer == ""

    async def test_api_error_yields_empty_answer(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        client = mock_client(side_effect=openai.APIConnectionError(request=request))
        engine = OpenAIAnswerEngine("m", client)

        answer = await engine.ask("q", "en")
        assert answer.answer == ""
        assert answer.engine == "openai:m"

    async def test_timeout_yields_empty_answer(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return completion("too late")

        client = MagicMock()
        client.chat.completions.create = slow
        engine = OpenAIAnswerEngine("m", client, timeout_s=0.01)

        assert (await engine.ask("q", "en")).answer == ""


@pytest.mark.unit
def test_build_answer_engines_one_per_model():
    settings = Settings(answer_engine_models=["gpt-4o-mini", "gpt-4o"])
    engines = build_answer_engines(settings, client=mock_client())

    assert [e.name for e in engines] == ["openai:gpt-4o-mini", "openai:gpt-4o"]


@pytest.mark.unit
def test_build_answer_engines_requires_key():
    settings = Settings(openai_api_key="dummy-key")
    with pytest.raises(MissingOpenAIKeyError):
        build_answer_engines(settings)
