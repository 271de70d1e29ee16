"""Learning step: feed high-performing posts back into the retrieval index.

After a Search Console collection, each published post that met the
high-performer thresholds is analysed (title pattern, writing style, SEO
patterns) and upserted into the vector index with source
"high-performing-content", where the retrieval step looks for similar
content. Vector ids are stable per post and locale, so a post that keeps
performing is refreshed rather than duplicated.
"""

from __future__ import annotations

import re

from carekorea.errors import StoreError
from carekorea.pipeline.rag import create_embedding, get_openai_client, get_vector_index
from carekorea.validation.checks import html_to_text, round_half_up

SOURCE = "high-performing-content"
EXCERPT_CHARS = 1000


def calculate_performance_score(metrics: dict) -> int:
    """0-100: ctr (max 30), clicks (max 25), position (max 25), conversions (max 20)."""
    ctr_score = min(metrics.get("ctr", 0) * 1000, 30)
    click_score = min(metrics.get("clicks", 0) / 10, 25)
    position_score = max(0, 25 - metrics.get("position", 100))
    conversion_score = min(metrics.get("conversions", 0) * 5, 20)
    return round_half_up(ctr_score + click_score + position_score + conversion_score)


# ── Content analysis ──────────────────────────────────────────────────────


def _first_word(keyword: str) -> str:
    words = keyword.lower().split()
    return words[0] if words else ""


def analyze_title_pattern(title: str, keyword: str) -> str:
    first_word = _first_word(keyword)
    patterns = []
    if first_word and title.lower().startswith(first_word):
        patterns.append("keyword-first")
    if re.search(r"20\d{2}", title):
        patterns.append("includes-year")
    if re.search(r"\d+", title):
        patterns.append("includes-number")
    if re.search(r"\$|cost|price|가격|비용|費用|价格", title, re.IGNORECASE):
        patterns.append("price-focused")
    if re.search(r"guide|complete|ultimate|가이드|완벽|指南", title, re.IGNORECASE):
        patterns.append("comprehensive-guide")
    return ", ".join(patterns) or "standard"


def analyze_writing_style(content: str, locale: str) -> str:
    text = html_to_text(content)
    styles = []

    sentences = re.split(r"[.!?。！？]", text)
    avg_length = sum(len(s) for s in sentences) / len(sentences)
    if avg_length < 50:
        styles.append("concise-sentences")
    elif avg_length > 100:
        styles.append("detailed-sentences")

    if re.search(r"^\s*[-•*]\s", text, re.MULTILINE) or re.search(r"^\s*\d+\.\s", text, re.MULTILINE):
        styles.append("uses-lists")
    if re.search(r"\?\s*\n", text):
        styles.append("uses-questions")
    if re.search(r"\*\*[^*]+\*\*|<(strong|b)>", content):
        styles.append("uses-bold-emphasis")
    if locale == "ja" and re.search(r"です|ます", text):
        styles.append("polite-form")

    return ", ".join(styles) or "standard"


def analyze_seo_patterns(content: str, keyword: str) -> dict:
    text = html_to_text(content)
    lower_text = text.lower()
    first_word = _first_word(keyword)

    headings = [h[3:].strip() for h in re.findall(r"^## .+$", text, re.MULTILINE)]

    placement = []
    if first_word and first_word in lower_text[:500]:
        placement.append("intro")
    if first_word and any(first_word in h.lower() for h in headings):
        placement.append("headings")
    if first_word and first_word in lower_text[-500:]:
        placement.append("conclusion")

    cta_style = "standard"
    if re.search(r"whatsapp|\bline\b|wechat", text, re.IGNORECASE):
        cta_style = "messenger-focused"
    if re.search(r"free consultation|무료 상담|免費諮詢", text, re.IGNORECASE):
        cta_style = "consultation-focused"

    markdown_tables = len(re.findall(r"\|.*\|.*\|", content)) // 3
    faq_count = len(re.findall(r"^###?\s*(?:Q:|FAQ|질문|問題)", text, re.MULTILINE | re.IGNORECASE))

    return {
        "title_structure": headings[0] if headings else "standard",
        "heading_patterns": headings[:5],
        "keyword_placement": placement,
        "cta_style": cta_style,
        "content_length": len(text),
        "faq_count": faq_count,
        "table_count": content.lower().count("<table") + markdown_tables,
    }


def extract_excerpt(text: str, max_length: int = EXCERPT_CHARS) -> str:
    """Heading-free excerpt cut at a sentence boundary."""
    clean = re.sub(r"^#+\s+.+$", "", text, flags=re.MULTILINE)
    clean = re.sub(r"\n{3,}", "\n\n", clean).strip()
    if len(clean) <= max_length:
        return clean

    excerpt = ""
    for sentence in re.split(r"[.!?。！？]", clean[: max_length + 200]):
        if len(excerpt + sentence) > max_length:
            break
        excerpt += sentence + "."
    return excerpt.strip() or clean[:max_length]


# ── Indexing ──────────────────────────────────────────────────────────────


def build_learning_record(post: dict, metrics: dict) -> dict:
    """Summary of a saved blog_posts row and its Search Console metrics."""
    keyword = (post.get("generation_metadata") or {}).get("keyword") or post["title"]
    locale = post.get("locale") or "en"
    return {
        "blog_post_id": post["id"],
        "keyword": keyword,
        "locale": locale,
        "category": post.get("category") or "general",
        "title": post["title"],
        "performance_score": calculate_performance_score(metrics),
        "excerpt": extract_excerpt(html_to_text(post.get("content") or "")),
        "title_pattern": analyze_title_pattern(post["title"], keyword),
        "writing_style": analyze_writing_style(post.get("content") or "", locale),
        "seo_patterns": analyze_seo_patterns(post.get("content") or "", keyword),
    }


def embedding_text(record: dict) -> str:
    return " | ".join([
        f"Title Pattern: {record['title_pattern']}",
        f"Writing Style: {record['writing_style']}",
        f"Category: {record['category']}",
        f"Locale: {record['locale']}",
        f"Performance Score: {record['performance_score']}",
        f"Content Excerpt: {record['excerpt']}",
        f"SEO Patterns: {record['seo_patterns']}",
    ])


def index_high_performer(record: dict, embedder=None, index=None) -> str:
    """Upsert one learning record; returns its vector id."""
    vector_id = f"learning:{record['blog_post_id']}:{record['locale']}"
    embedding = create_embedding(embedding_text(record), client=embedder)
    metadata = {
        "source": SOURCE,
        "blog_post_id": record["blog_post_id"],
        "keyword": record["keyword"],
        "locale": record["locale"],
        "category": record["category"],
        "title": record["title"],
        "excerpt": record["excerpt"],
        "performance_score": record["performance_score"],
        "title_pattern": record["title_pattern"],
        "writing_style": record["writing_style"],
        "seo_patterns": record["seo_patterns"],
    }
    (index or get_vector_index()).upsert(vectors=[(vector_id, embedding, metadata)])
    return vector_id


def run_learning_pipeline(
    store,
    high_performers: list[dict],
    embedder=None,
    index=None,
) -> dict:
    """Index every published post in `high_performers`.

    Args:
        store: ContentStore.
        high_performers: Dicts with blog_post_id, clicks, impressions, ctr, position.
        embedder: OpenAI client; built from OPENAI_API_KEY when omitted.
        index: Vector index; built from the Upstash credentials when omitted.

    Returns:
        {processed, indexed, skipped, errors}. Missing credentials raise ValueError.
    """
    result = {"processed": len(high_performers), "indexed": 0, "skipped": 0, "errors": []}
    if not high_performers:
        return result

    embedder = embedder or get_openai_client()
    index = index or get_vector_index()

    for item in high_performers:
        post_id = item["blog_post_id"]
        try:
            post = store.get_blog_post(post_id)
        except StoreError as e:
            print(f"  Warning: could not load post {post_id}: {e}")
            result["errors"].append(f"Post {post_id}: {e}")
            continue
        if not post or post.get("status") != "published":
            result["skipped"] += 1
            continue

        try:
            record = build_learning_record(post, item)
            vector_id = index_high_performer(record, embedder=embedder, index=index)
        except Exception as e:
            print(f"  Warning: could not index post {post_id}: {e}")
            result["errors"].append(f"Post {post_id}: {e}")
            continue

        result["indexed"] += 1
        print(f"  OK Indexed {post_id} (score {record['performance_score']}) as {vector_id}")

    return result
