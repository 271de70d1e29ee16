"""Individual quality checks and the main score_content entry point.

Each check starts from 100 and deducts points for a problem, appending a
suggestion describing it. The overall score is the weighted sum.
"""

from __future__ import annotations

import math
import re
from typing import Optional

from bs4 import BeautifulSoup

from carekorea.validation.report import compute_grade

WEIGHTS = {
    "readability": 0.20,
    "seo_optimization": 0.25,
    "content_depth": 0.20,
    "structure": 0.15,
    "engagement": 0.10,
    "uniqueness": 0.10,
}

# word counts: (min, ideal, max)
CONTENT_LENGTH_TARGETS = {
    "en": (800, 1500, 3000),
    "ko": (600, 1200, 2500),
    "ja": (600, 1200, 2500),
    "zh-CN": (500, 1000, 2000),
    "zh-TW": (500, 1000, 2000),
    "th": (600, 1200, 2500),
    "mn": (500, 1000, 2000),
    "ru": (700, 1400, 2800),
}

STOP_WORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "are", "was", "were", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "this", "that", "these", "those",
    "it", "its", "they", "their", "we", "our", "you", "your",
}

CTA_PATTERNS = [
    re.compile(r"상담.*받"),
    re.compile(r"문의.*하세요"),
    re.compile(r"지금.*시작"),
    re.compile(r"더.*알아보"),
    re.compile(r"클릭"),
    re.compile(r"contact", re.IGNORECASE),
    re.compile(r"learn more", re.IGNORECASE),
    re.compile(r"get started", re.IGNORECASE),
    re.compile(r"book.*appointment", re.IGNORECASE),
]

PERSONAL_ADDRESS = re.compile(r"당신|여러분|귀하|you|your", re.IGNORECASE)

EMOTIONAL_WORDS = [
    "놀라운", "혁신적인", "최고의", "특별한", "완벽한",
    "amazing", "revolutionary", "best", "special", "perfect",
    "안전한", "신뢰", "전문", "safe", "trust", "expert",
]

CLICHES = [
    "말할 필요도 없이",
    "두말할 나위 없이",
    "needless to say",
    "it goes without saying",
    "at the end of the day",
    "결론적으로 말하자면",
]

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

_HEADING_PREFIX = {"h2": "## ", "h3": "### ", "h4": "#### "}
_BLOCK_TAGS = ["p", "div", "section", "article", "aside", "figure", "table", "ul", "ol", "blockquote"]


# ── Main entry point ─────────────────────────────────────────────────────


def score_content(
    title: str,
    content: str,
    target_keyword: str,
    target_locale: str,
    excerpt: str = "",
    meta_description: str = "",
    tags: Optional[list[str]] = None,
) -> dict:
    """Score a post on six weighted criteria.

    Returns a dict with overall_score (0-100), breakdown, grade and the
    ten most severe suggestions.
    """
    text = html_to_text(content)
    suggestions: list[dict] = []

    breakdown = {
        "readability": check_readability(text, target_locale, suggestions),
        "seo_optimization": check_seo(
            title, text, target_keyword, excerpt, meta_description, tags, suggestions
        ),
        "content_depth": check_content_depth(text, target_locale, suggestions),
        "structure": check_structure(text, suggestions),
        "engagement": check_engagement(text, suggestions),
        "uniqueness": check_uniqueness(text, suggestions),
    }
    overall = round_half_up(sum(breakdown[key] * weight for key, weight in WEIGHTS.items()))
    suggestions.sort(key=lambda s: SEVERITY_ORDER[s["severity"]])

    return {
        "overall_score": overall,
        "breakdown": breakdown,
        "suggestions": suggestions[:10],
        "grade": compute_grade(overall),
    }


def meets_quality_threshold(result: dict, threshold: int = 70) -> bool:
    return result["overall_score"] >= threshold


def round_half_up(value: float) -> int:
    """74.5 -> 75. Float noise below 1e-6 is dropped first, so 74.49999999 counts as 74.5."""
    return int(math.floor(round(value, 6) + 0.5))


def html_to_text(content: str) -> str:
    """Flatten HTML to markdown-style text: "## " headings, "- " list items,
    blank lines between blocks. Plain text is returned unchanged."""
    if "<" not in content:
        return content
    soup = BeautifulSoup(content, "html.parser")
    for name, prefix in _HEADING_PREFIX.items():
        for tag in soup.find_all(name):
            tag.insert_before("\n\n" + prefix)
            tag.insert_after("\n\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n\n")
        tag.insert_after("\n\n")
    for tag in soup.find_all("li"):
        tag.insert_before("\n- ")
    text = soup.get_text()
    text = re.sub(r"[ \t]*\n[ \t]*", "\n", text)
    text = re.sub(r"(^|\n)(#{2,4} |- )\n+", r"\1\2", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _suggest(suggestions: list, category: str, severity: str, message: str, recommendation: str):
    suggestions.append({
        "category": category,
        "severity": severity,
        "message": message,
        "recommendation": recommendation,
    })


def _paragraphs(text: str) -> list[str]:
    return [p for p in re.split(r"\n\n+", text) if p.strip()]


# ── Individual checks ────────────────────────────────────────────────────


def check_readability(text: str, locale: str, suggestions: list) -> int:
    """Sentence length, paragraph length and long-word ratio."""
    score = 100

    sentences = [s for s in re.split(r"[.!?。！？]", text) if s.strip()]
    if sentences:
        avg_sentence = sum(len(s.split()) for s in sentences) / len(sentences)
        ideal = 17 if locale == "en" else 12
        if avg_sentence > ideal + 10:
            score -= 15
            _suggest(suggestions, "readability", "medium", "Sentences are too long",
                     "Split sentences to improve readability")
        elif avg_sentence < ideal - 8:
            score -= 10
            _suggest(suggestions, "readability", "low", "Sentences are too short",
                     "Combine some sentences for a more natural flow")

    paragraphs = _paragraphs(text)
    if paragraphs and sum(len(p) for p in paragraphs) / len(paragraphs) > 500:
        score -= 10
        _suggest(suggestions, "readability", "medium", "Paragraphs are too long",
                 "Break long paragraphs into shorter ones")

    words = text.split()
    if words and sum(1 for w in words if len(w) > 12) / len(words) > 0.1:
        score -= 10
        _suggest(suggestions, "readability", "low", "Too many complex terms",
                 "Explain technical terms or replace them with simpler words")

    return max(0, score)


def check_seo(
    title: str,
    text: str,
    keyword: str,
    excerpt: str,
    meta_description: str,
    tags: Optional[list[str]],
    suggestions: list,
) -> int:
    """Keyword in title and body, title length, meta description, excerpt, tags."""
    score = 100
    keyword_lower = keyword.lower()

    if keyword_lower not in title.lower():
        score -= 15
        _suggest(suggestions, "seo_optimization", "high", "Target keyword missing from title",
                 f'Include "{keyword}" in the title')

    if len(title) < 30:
        score -= 10
        _suggest(suggestions, "seo_optimization", "medium", "Title is too short",
                 "Write a 50-60 character title")
    elif len(title) > 70:
        score -= 5
        _suggest(suggestions, "seo_optimization", "low", "Title is too long",
                 "Keep the title under 60 characters so it is not truncated")

    words = text.lower().split()
    if words:
        parts = keyword_lower.split(" ")
        keyword_count = sum(1 for w in words if keyword_lower in w or any(p in w for p in parts))
        density = keyword_count / len(words) * 100
        if density < 0.5:
            score -= 15
            _suggest(suggestions, "seo_optimization", "high", "Keyword density is too low",
                     f'Use "{keyword}" more often in the body (1-3% recommended)')
        elif density > 4:
            score -= 20
            _suggest(suggestions, "seo_optimization", "high", "Keyword density is too high (stuffing risk)",
                     "Use synonyms and related phrases instead of repeating the keyword")

    if not meta_description:
        score -= 10
        _suggest(suggestions, "seo_optimization", "medium", "Meta description is missing",
                 "Add a 120-160 character meta description")
    elif len(meta_description) < 100 or len(meta_description) > 170:
        score -= 5
        _suggest(suggestions, "seo_optimization", "low", "Meta description length is not optimal",
                 "Adjust it to 120-160 characters")

    if not excerpt or len(excerpt) < 50:
        score -= 5
        _suggest(suggestions, "seo_optimization", "low", "Excerpt is missing or too short",
                 "Write a 100-200 character excerpt")

    if not tags or len(tags) < 3:
        score -= 5
        _suggest(suggestions, "seo_optimization", "low", "Not enough tags",
                 "Add 3-5 related tags")

    return max(0, score)


def check_content_depth(text: str, locale: str, suggestions: list) -> int:
    """Length against the locale's targets, figures, lists and questions."""
    score = 100
    minimum, ideal, maximum = CONTENT_LENGTH_TARGETS.get(locale, CONTENT_LENGTH_TARGETS["en"])
    word_count = len(text.split())

    if word_count < minimum:
        score -= 30
        _suggest(suggestions, "content_depth", "high", f"Content is too short ({word_count} words)",
                 f"Write at least {minimum} words")
    elif word_count < ideal:
        score -= 10
        _suggest(suggestions, "content_depth", "medium", "Content length is below ideal",
                 f"Around {ideal} words is ideal")
    elif word_count > maximum:
        score -= 5
        _suggest(suggestions, "content_depth", "low", "Content is too long",
                 "Keep the essentials and tighten the text")

    if not re.search(r"\d+%|\d+,\d+|\$\d+|₩\d+", text):
        score -= 10
        _suggest(suggestions, "content_depth", "medium", "No concrete figures or statistics",
                 "Add specific data to improve credibility")

    if not re.search(r"[-•*]\s+.+", text) and not re.search(r"\d+\.\s+.+", text):
        score -= 5
        _suggest(suggestions, "content_depth", "low", "No lists",
                 "Summarize key information as a list")

    if "?" not in text:
        score -= 5

    return max(0, score)


def check_structure(text: str, suggestions: list) -> int:
    """Heading hierarchy, paragraph count, intro and closing length."""
    score = 100
    h2_count = len(re.findall(r"^##\s+.+", text, re.MULTILINE))
    h3_count = len(re.findall(r"^###\s+.+", text, re.MULTILINE))

    if h2_count == 0:
        score -= 20
        _suggest(suggestions, "structure", "high", "No H2 headings",
                 "Split the content into sections with H2 headings")
    elif h2_count < 3:
        score -= 10
        _suggest(suggestions, "structure", "medium", "Too few sections",
                 "Organize the content into 3-5 main sections")

    if h3_count > 0 and h2_count == 0:
        score -= 10
        _suggest(suggestions, "structure", "medium", "Heading hierarchy is broken",
                 "Use an H2 before any H3")

    paragraphs = _paragraphs(text)
    if len(paragraphs) < 5:
        score -= 10
        _suggest(suggestions, "structure", "medium", "Too few paragraphs",
                 "Split the content into more paragraphs")

    if len(paragraphs[0] if paragraphs else "") < 100:
        score -= 5
        _suggest(suggestions, "structure", "low", "Introduction is too short",
                 "Write an introduction that properly sets up the topic")

    if len(paragraphs[-1] if paragraphs else "") < 50:
        score -= 5
        _suggest(suggestions, "structure", "low", "Conclusion is missing or too short",
                 "Add a conclusion summarizing the key points")

    return max(0, score)


def check_engagement(text: str, suggestions: list) -> int:
    """Call to action, direct address and emotive vocabulary."""
    score = 100

    if not any(pattern.search(text) for pattern in CTA_PATTERNS):
        score -= 15
        _suggest(suggestions, "engagement", "medium", "No call to action",
                 "Add a line that invites the reader to take the next step")

    if not PERSONAL_ADDRESS.search(text):
        score -= 10
        _suggest(suggestions, "engagement", "low", "The reader is never addressed directly",
                 'Address the reader ("you") to sound more personal')

    lowered = text.lower()
    if not any(word.lower() in lowered for word in EMOTIONAL_WORDS):
        score -= 5

    return max(0, score)


def check_uniqueness(text: str, suggestions: list) -> int:
    """Vocabulary variety and cliches."""
    score = 100
    lowered = text.lower()
    words = [w for w in lowered.split() if len(w) > 3 and w not in STOP_WORDS]

    if words:
        ratio = len(set(words)) / len(words)
        if ratio < 0.3:
            score -= 20
            _suggest(suggestions, "uniqueness", "medium", "Low vocabulary variety",
                     "Use synonyms to vary the wording")
        elif ratio < 0.5:
            score -= 10
            _suggest(suggestions, "uniqueness", "low", "The same words repeat often",
                     "Rephrase repeated words")

    if any(cliche in lowered for cliche in CLICHES):
        score -= 5
        _suggest(suggestions, "uniqueness", "low", "Contains cliches",
                 "Replace cliches with fresher expressions")

    return max(0, score)
