"""Content statistics and characteristics for Chinese and English text."""

import re

from backend.app.analysis.types import ContentCharacteristics, ContentStats
from backend.app.utils.rounding import round_half_up

_CJK_CHAR = re.compile(r"[\u4e00-\u9fa5]")
_LATIN_WORD = re.compile(r"[a-zA-Z]+")
_SENTENCE_END = re.compile(r"[.!?。！？]+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_WORD_TOKEN = re.compile(r"[\u4e00-\u9fa5]|[a-z]+", re.IGNORECASE)

_STATISTICS = re.compile(r"\d+%|\d+\.\d+|\d{4}年|\d+ (percent|million|billion)", re.IGNORECASE)
_CITATIONS = re.compile(
    r"\[\d+\]|（.*?研究.*?）|\(.*?et al\..*?\)|according to|研究表明|数据显示", re.IGNORECASE
)
_QUOTES = re.compile(r"[“\"「『].*?[”\"」』]")
_STRUCTURE = re.compile(r"^#+\s|^\d+\.\s|^[-*]\s|<h[1-6]>", re.MULTILINE)


def count_words(text: str) -> int:
    """Count CJK characters plus Latin words."""
    return len(_CJK_CHAR.findall(text)) + len(_LATIN_WORD.findall(text))


def count_sentences(text: str) -> int:
    """Count runs of sentence-ending punctuation; at least 1."""
    return len(_SENTENCE_END.findall(text)) or 1


def count_paragraphs(text: str) -> int:
    paragraphs = [p for p in _PARAGRAPH_BREAK.split(text) if p.strip()]
    return max(len(paragraphs), 1)


def calculate_content_stats(content: str) -> ContentStats:
    return ContentStats(
        char_count=len(content),
        word_count=count_words(content),
        sentence_count=count_sentences(content),
        paragraph_count=count_paragraphs(content),
    )


def analyze_content_characteristics(content: str) -> ContentCharacteristics:
    """Detect statistics, citations, quotes and structure in the content.

    Args:
        content: Raw text

    Returns:
        ContentCharacteristics with the average sentence length in characters
        and the unique-words ratio as a percentage, both rounded.
    """
    sentences = [s.strip() for s in _SENTENCE_END.split(content) if s.strip()]
    avg_sentence_length = (
        sum(len(s) for s in sentences) / len(sentences) if sentences else 0.0
    )

    words = _WORD_TOKEN.findall(content.lower())
    unique_ratio = len(set(words)) / len(words) if words else 0.0

    return ContentCharacteristics(
        has_statistics=_STATISTICS.search(content) is not None,
        has_citations=_CITATIONS.search(content) is not None,
        has_quotes=_QUOTES.search(content) is not None,
        has_structure=_STRUCTURE.search(content) is not None,
        avg_sentence_length=round_half_up(avg_sentence_length),
        unique_words_ratio=round_half_up(unique_ratio * 100),
    )
