"""Batch sentiment analysis of brand mention contexts."""

import json
import logging
import re
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from backend.app.monitor.types import Sentiment, SentimentInput, SentimentResult

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class SentimentAnalyzer(Protocol):
    async def analyze_batch(
        self, brand_name: str, inputs: list[SentimentInput], locale: str
    ) -> dict[int, SentimentResult]:
        """Classify every input; the result has an entry per query index."""
        ...


def normalize_sentiment(raw: object) -> Sentiment:
    value = str(raw).strip().lower()
    if value == "positive":
        return "positive"
    if value == "negative":
        return "negative"
    return "neutral"


def build_prompt(brand_name: str, inputs: list[SentimentInput]) -> str:
    entries = "\n\n".join(f"[{item.query_index}] {item.context}" for item in inputs)
    return (
        f'Analyze the sentiment toward the brand "{brand_name}" in each text snippet below.\n\n'
        f"{entries}\n\n"
        "For each snippet, determine sentiment: positive (recommendation), "
        "neutral (objective mention), negative (criticism).\n\n"
        "Return strictly in this JSON format, no extra text:\n"
        '[{"index":0,"sentiment":"positive|neutral|negative","confidence":0.9}]'
    )


def parse_sentiment_response(
    text: str, inputs: list[SentimentInput]
) -> dict[int, SentimentResult]:
    """Parse the model's JSON array; unparsable or missing items become neutral.

    Raises:
        ValueError: If the text holds no JSON array
    """
    match = _JSON_ARRAY.search(text)
    if match is None:
        raise ValueError("No JSON array in sentiment response")

    contexts = {item.query_index: item.context for item in inputs}
    results: dict[int, SentimentResult] = {}
    for item in json.loads(match.group(0)):
        if not isinstance(item, dict) or item.get("index") not in contexts:
            continue
        index = item["index"]
        confidence = item.get("confidence")
        results[index] = SentimentResult(
            sentiment=normalize_sentiment(item.get("sentiment", "neutral")),
            confidence=float(confidence) if isinstance(confidence, (int, float)) else 0.8,
            context=contexts[index],
        )
    return results


def fill_neutral(
    results: dict[int, SentimentResult], inputs: list[SentimentInput]
) -> dict[int, SentimentResult]:
    for item in inputs:
        results.setdefault(
            item.query_index,
            SentimentResult(sentiment="neutral", confidence=0.0, context=item.context),
        )
    return results


class NeutralSentimentAnalyzer:
    """Marks every context neutral; used when no model is configured."""

    async def analyze_batch(
        self, brand_name: str, inputs: list[SentimentInput], locale: str
    ) -> dict[int, SentimentResult]:
        return fill_neutral({}, inputs)


class OpenAISentimentAnalyzer:
    """One chat completion classifies every context of a check."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self.client = client
        self.model = model

    async def analyze_batch(
        self, brand_name: str, inputs: list[SentimentInput], locale: str
    ) -> dict[int, SentimentResult]:
        if not inputs:
            return {}

        results: dict[int, SentimentResult] = {}
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(brand_name, inputs)}],
                temperature=0,
            )
            text = (response.choices[0].message.content or "").strip()
            results = parse_sentiment_response(text, inputs)
        except (OpenAIError, ValueError):
            logger.warning(
                "Sentiment analysis failed, defaulting to neutral",
                exc_info=True,
                extra={"brand": brand_name, "inputs": len(inputs)},
            )

        return fill_neutral(results, inputs)
