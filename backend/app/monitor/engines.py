"""Answer engines queried during brand monitor checks."""

import asyncio
import logging
import time
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from backend.app.config import Settings, get_openai_api_key, get_settings
from backend.app.monitor.types import EngineAnswer

logger = logging.getLogger(__name__)

# Web-grounded answers routinely take 20-40s
ENGINE_TIMEOUT_S = 60.0


class AnswerEngine(Protocol):
    """An AI answer engine that responds to a buyer-intent question."""

    name: str

    async def ask(self, query: str, locale: str) -> EngineAnswer:
        """Answer the query; failures yield an empty answer rather than raising."""
        ...


def build_search_prompt(query: str, locale: str) -> str:
    if locale == "zh":
        return f"请搜索并回答以下问题，引用相关来源：\n\n{query}"
    return f"Please search and answer the following question, citing relevant sources:\n\n{query}"


class OpenAIAnswerEngine:
    """Answer engine backed by an OpenAI chat model."""

    def __init__(
        self,
        model: str,
        client: AsyncOpenAI,
        timeout_s: float = ENGINE_TIMEOUT_S,
    ) -> None:
        self.model = model
        self.name = f"openai:{model}"
        self.client = client
        self.timeout_s = timeout_s

    async def ask(self, query: str, locale: str) -> EngineAnswer:
        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "user", "content": build_search_prompt(query, locale)}
                    ],
                    temperature=0.3,
                ),
                timeout=self.timeout_s,
            )
            answer = response.choices[0].message.content or ""
        except (OpenAIError, asyncio.TimeoutError):
            # An engine that fails counts as "no mention" for this query
            logger.warning(
                "Answer engine failed",
                exc_info=True,
                extra={"engine": self.name, "query": query},
            )
            answer = ""

        return EngineAnswer(
            engine=self.name,
            answer=answer,
            duration=int((time.monotonic() - started) * 1000),
        )


def create_openai_client(settings: Settings | None = None) -> AsyncOpenAI:
    """Create async OpenAI client.

    Raises:
        MissingOpenAIKeyError: If no API key is configured
    """
    return AsyncOpenAI(api_key=get_openai_api_key(settings))


def build_answer_engines(
    settings: Settings | None = None, client: AsyncOpenAI | None = None
) -> list[AnswerEngine]:
    """One engine per configured answer-engine model."""
    settings = settings or get_settings()
    client = client or create_openai_client(settings)
    return [OpenAIAnswerEngine(model, client) for model in settings.answer_engine_models]
