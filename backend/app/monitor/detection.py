"""Brand mention, list position and citation detection.

Pure functions over answer text, no I/O.
"""

import re
from urllib.parse import urlsplit

from backend.app.monitor.types import BrandMention, Citation, CompetitorBrand, CompetitorMention

# "1. Foo" / "1、Foo" / "1) Foo"
NUMBERED_RE = re.compile(r"(\d+)[.、)]\s*(.+)")
# "- Foo" / "• Foo" / "* Foo"
BULLETED_RE = re.compile(r"^[-•*]\s*(.+)", re.MULTILINE)

URL_RE = re.compile(r"https?://[^\s\])<>\"']+", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[.,;:!?)]+$")

CONTEXT_CHARS = 100


def detect_position_in_list(answer: str, names: list[str]) -> int:
    """Return the 1-based list position of the first item naming any of `names`.

    Numbered lists are checked first and report their own number; bulleted
    lists report order of appearance. Returns 0 when no list item matches.
    """
    lowered = [name.lower() for name in names]

    for match in NUMBERED_RE.finditer(answer):
        text = match.group(2).lower()
        if any(name in text for name in lowered):
            return int(match.group(1))

    for index, match in enumerate(BULLETED_RE.finditer(answer), start=1):
        text = match.group(1).lower()
        if any(name in text for name in lowered):
            return index

    return 0


def extract_mention_context(answer: str, names: list[str], chars: int = CONTEXT_CHARS) -> str:
    """Text within `chars` characters around the first mention of any name."""
    lower = answer.lower()
    for name in names:
        index = lower.find(name.lower())
        if index != -1:
            start = max(0, index - chars)
            end = min(len(answer), index + len(name) + chars)
            return answer[start:end].strip()
    return ""


def detect_brand_mention(answer: str, brand_names: list[str]) -> BrandMention:
    """Case-insensitive search for any brand name variant.

    Args:
        answer: Engine answer text
        brand_names: Brand name variants, in priority order

    Returns:
        BrandMention for the first variant found
    """
    lower = answer.lower()
    for name in brand_names:
        if name and name.lower() in lower:
            return BrandMention(
                found=True,
                position=detect_position_in_list(answer, [name]),
                context=extract_mention_context(answer, [name]),
                matched_name=name,
            )
    return BrandMention(found=False, position=0, context="", matched_name="")


def detect_competitor_mentions(
    answer: str, competitors: list[CompetitorBrand]
) -> list[CompetitorMention]:
    """Every competitor named (by name or alias) in the answer, with its list position."""
    lower = answer.lower()
    mentions = []
    for competitor in competitors:
        names = [competitor.name, *competitor.aliases]
        if any(name and name.lower() in lower for name in names):
            mentions.append(
                CompetitorMention(
                    name=competitor.name,
                    position=detect_position_in_list(answer, names),
                )
            )
    return mentions


def extract_domain(url: str) -> str:
    """Hostname without a leading `www.`, or "" for unparsable URLs."""
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return hostname.removeprefix("www.")


def parse_citations_from_text(text: str) -> list[Citation]:
    """Extract inline URLs as citations."""
    citations = []
    for raw in URL_RE.findall(text):
        url = _TRAILING_PUNCTUATION.sub("", raw)
        domain = extract_domain(url)
        if domain:
            citations.append(Citation(url=url, domain=domain))
    return citations


def deduplicate_citations(citations: list[Citation]) -> list[Citation]:
    """Drop repeated URLs (case and trailing slash insensitive), keeping order."""
    seen: set[str] = set()
    unique = []
    for citation in citations:
        key = citation.url.lower().rstrip("/")
        if key in seen:
            continue
        seen.add(key)
        unique.append(citation)
    return unique
