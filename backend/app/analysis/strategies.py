"""GEO strategy scoring.

Nine local heuristics from the Generative Engine Optimization paper
(Aggarwal et al., 2023), each scoring the content 0-100 and suggesting
improvements. Pure functions, no network calls.
"""

import re
from collections.abc import Callable
from enum import Enum

from backend.app.analysis.types import StrategyAnalysis, StrategyScore
from backend.app.utils.rounding import round_half_up


class GeoStrategy(str, Enum):
    CITE_SOURCES = "cite_sources"
    STATISTICS = "statistics"
    QUOTATIONS = "quotations"
    FLUENCY = "fluency"
    AUTHORITATIVE = "authoritative"
    TECHNICAL_TERMS = "technical_terms"
    CREDIBILITY = "credibility"
    UNIQUE_WORDS = "unique_words"
    EASY_TO_UNDERSTAND = "easy_to_understand"


# label, description
_STRATEGY_TEXT: dict[GeoStrategy, tuple[str, str]] = {
    GeoStrategy.CITE_SOURCES: (
        "Cite Sources",
        "Enhance content credibility by citing authoritative sources",
    ),
    GeoStrategy.STATISTICS: (
        "Statistics",
        "Use data and statistics to enhance persuasiveness",
    ),
    GeoStrategy.QUOTATIONS: ("Quotations", "Quote experts to enhance content authority"),
    GeoStrategy.FLUENCY: ("Fluency", "Improve text fluency and readability"),
    GeoStrategy.AUTHORITATIVE: (
        "Authoritative",
        "Establish authority, answer questions directly",
    ),
    GeoStrategy.TECHNICAL_TERMS: (
        "Technical Terms",
        "Use structured format to improve content organization",
    ),
    GeoStrategy.CREDIBILITY: (
        "Credibility",
        "Enhance credibility through timeliness and sources",
    ),
    GeoStrategy.UNIQUE_WORDS: (
        "Unique Words",
        "Maintain content freshness and vocabulary diversity",
    ),
    GeoStrategy.EASY_TO_UNDERSTAND: (
        "Easy to Understand",
        "Simplify language, improve content comprehensibility",
    ),
}

_SENTENCE_SPLIT = re.compile(r"[。！？.!?]+")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def _count(patterns: list[re.Pattern[str]], content: str) -> int:
    return sum(len(pattern.findall(content)) for pattern in patterns)


def _score(strategy: GeoStrategy, score: int, suggestions: list[str]) -> StrategyScore:
    label, description = _STRATEGY_TEXT[strategy]
    return StrategyScore(
        strategy=strategy.value,
        score=score,
        label=label,
        description=description,
        suggestions=suggestions,
    )


def _avg_sentence_length(content: str) -> float:
    sentences = [s for s in _SENTENCE_SPLIT.split(content) if s.strip()]
    return len(content) / max(len(sentences), 1)


_CITATION_PATTERNS = [
    re.compile(r"\[\d+\]"),
    re.compile(r"\([A-Z][a-z]+,?\s+\d{4}\)"),
    re.compile(r"根据.*研究"),
    re.compile(r"数据显示"),
    re.compile(r"来源[:：]"),
]


def analyze_cite_sources(content: str) -> StrategyScore:
    count = _count(_CITATION_PATTERNS, content)
    if count >= 5:
        return _score(GeoStrategy.CITE_SOURCES, 90, [])
    if count >= 3:
        return _score(
            GeoStrategy.CITE_SOURCES,
            70,
            ["Add more citations, recommend at least 5 references"],
        )
    if count >= 1:
        return _score(
            GeoStrategy.CITE_SOURCES,
            50,
            ["Few citations found, add authoritative data sources and research references"],
        )
    return _score(
        GeoStrategy.CITE_SOURCES,
        20,
        [
            "No citations found! Add academic research, industry reports, "
            "or authoritative website references"
        ],
    )


_STATISTICS_PATTERNS = [
    re.compile(r"\d+%"),
    re.compile(r"\d+\s*亿"),
    re.compile(r"\d+\s*万"),
    re.compile(r"\d+\s*(?:倍|次|个|人|家)"),
    re.compile(r"增长\s*\d+"),
    re.compile(r"\d+\.\d+"),
]


def analyze_statistics(content: str) -> StrategyScore:
    count = _count(_STATISTICS_PATTERNS, content)
    if count >= 8:
        return _score(GeoStrategy.STATISTICS, 95, [])
    if count >= 5:
        return _score(GeoStrategy.STATISTICS, 80, [])
    if count >= 3:
        return _score(
            GeoStrategy.STATISTICS,
            60,
            ["Add more specific data and statistics to make content more persuasive"],
        )
    if count >= 1:
        return _score(
            GeoStrategy.STATISTICS,
            40,
            ["Few statistics found, add market data, user data, or research statistics"],
        )
    return _score(
        GeoStrategy.STATISTICS,
        15,
        ["No statistics found! Add specific numbers, percentages, growth rates, etc."],
    )


_QUOTE_PATTERNS = [
    re.compile(r"[“\"].*?[”\"]|「.*?」"),
    re.compile(r".*?表示|.*?认为|.*?指出"),
    re.compile(r"根据.*?(?:专家|教授|CEO|创始人)"),
]


def analyze_quotations(content: str) -> StrategyScore:
    count = _count(_QUOTE_PATTERNS, content)
    if count >= 3:
        return _score(GeoStrategy.QUOTATIONS, 85, [])
    if count >= 2:
        return _score(GeoStrategy.QUOTATIONS, 70, [])
    if count >= 1:
        return _score(
            GeoStrategy.QUOTATIONS,
            50,
            ["Add more expert opinions or industry leader quotes"],
        )
    return _score(
        GeoStrategy.QUOTATIONS,
        25,
        ["Add expert opinions, authoritative quotes, or industry report conclusions"],
    )


def analyze_fluency(content: str) -> StrategyScore:
    score = 70
    suggestions = []

    if _avg_sentence_length(content) > 100:
        score -= 20
        suggestions.append(
            "Sentences too long, split into shorter sentences for better readability"
        )

    paragraphs = [p for p in _PARAGRAPH_BREAK.split(content) if p.strip()]
    if len(paragraphs) < 3:
        score -= 15
        suggestions.append("Add paragraph breaks for clearer content structure")

    return _score(GeoStrategy.FLUENCY, max(score, 30), suggestions)


_DIRECT_ANSWER = re.compile(r"^(.*?是|.*?指|.*?表示|.*?means|.*?refers to)", re.MULTILINE)
_AUTHORITY_PATTERNS = [
    re.compile(r"研究表明|数据显示|事实上|实际上"),
    re.compile(r"research shows|studies indicate|in fact", re.IGNORECASE),
]


def analyze_authoritative(content: str) -> StrategyScore:
    score = 60
    if _DIRECT_ANSWER.search(content):
        score += 20

    count = _count(_AUTHORITY_PATTERNS, content)
    if count >= 3:
        score += 15
    elif count >= 1:
        score += 5

    suggestions = []
    if score < 70:
        suggestions.append(
            "Answer core question directly at the beginning, "
            "use more authoritative expressions"
        )
    return _score(GeoStrategy.AUTHORITATIVE, min(score, 95), suggestions)


_HEADINGS = [
    re.compile(r"^#{1,6}\s+", re.MULTILINE),
    re.compile(r"^[一二三四五六七八九十]+[、.]", re.MULTILINE),
]
_LISTS = [
    re.compile(r"^[-*•]\s+", re.MULTILINE),
    re.compile(r"^\d+[.)]\s+", re.MULTILINE),
]
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")


def analyze_technical_terms(content: str) -> StrategyScore:
    score = 50
    if any(p.search(content) for p in _HEADINGS):
        score += 20
    if any(p.search(content) for p in _LISTS):
        score += 20
    if _CODE_BLOCK.search(content):
        score += 10

    suggestions = []
    if score < 70:
        suggestions.append("Use headings, lists, code blocks to structure content")
    return _score(GeoStrategy.TECHNICAL_TERMS, min(score, 95), suggestions)


_CREDIBILITY_PATTERNS = [
    re.compile(r"https?://[^\s]+"),
    re.compile(r"\d{4}年"),
    re.compile(r"最新|最近|近期"),
]


def analyze_credibility(content: str) -> StrategyScore:
    count = _count(_CREDIBILITY_PATTERNS, content)
    if count >= 5:
        score = 85
    elif count >= 3:
        score = 70
    elif count >= 1:
        score = 55
    else:
        score = 50

    suggestions = []
    if score < 70:
        suggestions.append(
            "Add links, timestamps, and recent information to enhance credibility"
        )
    return _score(GeoStrategy.CREDIBILITY, score, suggestions)


_WORD_RUNS = re.compile(r"[\u4e00-\u9fa5]+|[a-zA-Z]+")


def analyze_unique_words(content: str) -> StrategyScore:
    words = _WORD_RUNS.findall(content)
    diversity = len(set(words)) / len(words) if words else 0.0

    if diversity > 0.6:
        return _score(GeoStrategy.UNIQUE_WORDS, 90, [])
    if diversity > 0.5:
        return _score(GeoStrategy.UNIQUE_WORDS, 75, [])
    if diversity > 0.4:
        return _score(GeoStrategy.UNIQUE_WORDS, 60, [])
    return _score(
        GeoStrategy.UNIQUE_WORDS,
        40,
        ["Increase vocabulary diversity, avoid repeating same words"],
    )


_EXPLANATION = re.compile(
    r"例如|比如|也就是说|换句话说|for example|in other words", re.IGNORECASE
)


def analyze_easy_to_understand(content: str) -> StrategyScore:
    score = 70
    suggestions = []

    if _avg_sentence_length(content) > 80:
        score -= 15
        suggestions.append("Simplify sentence structure, use simpler expressions")

    if not _EXPLANATION.search(content):
        score -= 10
        suggestions.append(
            "Add examples and explanations to help readers understand complex concepts"
        )

    return _score(GeoStrategy.EASY_TO_UNDERSTAND, max(score, 40), suggestions)


STRATEGY_ANALYZERS: list[Callable[[str], StrategyScore]] = [
    analyze_cite_sources,
    analyze_statistics,
    analyze_quotations,
    analyze_fluency,
    analyze_authoritative,
    analyze_technical_terms,
    analyze_credibility,
    analyze_unique_words,
    analyze_easy_to_understand,
]


def analyze_geo_strategies(content: str) -> StrategyAnalysis:
    """Score the content on all nine strategies.

    Args:
        content: Raw text

    Returns:
        StrategyAnalysis with per-strategy scores, the rounded mean as the
        overall score, and the three strongest and weakest strategies.
    """
    scores = [analyzer(content) for analyzer in STRATEGY_ANALYZERS]
    overall = round_half_up(sum(s.score for s in scores) / len(scores))

    # Stable sort keeps declaration order among equal scores
    ranked = sorted(scores, key=lambda s: s.score, reverse=True)
    return StrategyAnalysis(
        scores=scores,
        overall_score=overall,
        top_strengths=ranked[:3],
        top_weaknesses=list(reversed(ranked[-3:])),
    )
