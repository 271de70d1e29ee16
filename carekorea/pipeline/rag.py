"""Retrieval step: reference material for the content prompt.

The keyword is embedded with OpenAI and matched against an Upstash Vector
index that holds three kinds of documents, told apart by their `source`
metadata: chunks of Google's SEO guide, summaries of high-performing posts,
and editor feedback on earlier posts. Category best practices are static.
"""

from __future__ import annotations

from typing import Optional

from carekorea import config

_openai_client = None
_vector_index = None


def get_openai_client():
    global _openai_client
    if _openai_client is None:
        if not config.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not set. Add it to your .env file.")
        from openai import OpenAI

        _openai_client = OpenAI(api_key=config.OPENAI_API_KEY)
    return _openai_client


def get_vector_index():
    global _vector_index
    if _vector_index is None:
        if not config.UPSTASH_VECTOR_REST_URL or not config.UPSTASH_VECTOR_REST_TOKEN:
            raise ValueError(
                "Upstash Vector credentials not set "
                "(UPSTASH_VECTOR_REST_URL, UPSTASH_VECTOR_REST_TOKEN)."
            )
        from upstash_vector import Index

        _vector_index = Index(url=config.UPSTASH_VECTOR_REST_URL, token=config.UPSTASH_VECTOR_REST_TOKEN)
    return _vector_index


def create_embedding(text: str, client=None) -> list[float]:
    client = client or get_openai_client()
    response = client.embeddings.create(model=config.EMBEDDING_MODEL, input=text)
    return response.data[0].embedding


# ── Vector queries ────────────────────────────────────────────────────────


def _query(index, embedding: list[float], top_k: int, filter_expr: str, label: str) -> list:
    try:
        return index.query(vector=embedding, top_k=top_k, include_metadata=True, filter=filter_expr)
    except Exception as e:
        print(f"  Warning: {label} query failed ({e}), continuing without it")
        return []


def query_seo_guide(index, embedding: list[float], top_k: int) -> list[dict]:
    results = _query(index, embedding, top_k, 'source = "google-seo-guide"', "SEO guide")
    guidelines = []
    for r in results:
        meta = r.metadata or {}
        guidelines.append({
            "text": meta.get("text", ""),
            "section": meta.get("section", ""),
            "priority": meta.get("priority") or 5,
            "type": meta.get("type") or "guideline",
            "relevance_score": r.score or 0,
        })
    return guidelines


def query_similar_content(
    index, embedding: list[float], category: Optional[str], locale: str, top_k: int
) -> list[dict]:
    filter_expr = 'source = "high-performing-content"'
    if category:
        filter_expr += f' AND category = "{category}"'
    if locale:
        filter_expr += f' AND locale = "{locale}"'
    results = _query(index, embedding, top_k, filter_expr, "similar content")
    similar = []
    for r in results:
        meta = r.metadata or {}
        similar.append({
            "title": meta.get("title", ""),
            "excerpt": meta.get("excerpt", ""),
            "performance_score": meta.get("performance_score") or 0,
            "writing_style": meta.get("writing_style", ""),
            "seo_patterns": meta.get("seo_patterns") or {},
            "relevance_score": r.score or 0,
        })
    return similar


def query_user_feedback(index, embedding: list[float], keyword: str, locale: str, top_k: int) -> list[dict]:
    filter_expr = f'source = "user-feedback" AND locale = "{locale}"'
    results = _query(index, embedding, top_k, filter_expr, "user feedback")
    feedback = []
    for r in results:
        meta = r.metadata or {}
        feedback.append({
            "feedback_text": meta.get("feedback_text", ""),
            "feedback_type": meta.get("feedback_type") or "positive",
            "keyword": meta.get("keyword") or keyword,
            "relevance_score": r.score or 0,
        })
    return feedback


# ── Best practices ────────────────────────────────────────────────────────

BEST_PRACTICES = {
    "plastic-surgery": {
        "ko": [
            "수술 전후 사진을 포함하되, 의료법 준수",
            "회복 기간과 과정을 상세히 설명",
            "의료진 경력과 자격증 강조",
            "안전성과 부작용에 대한 투명한 정보 제공",
            "실제 환자 후기 포함 (검증된 경우에만)",
        ],
        "en": [
            "Include before/after photos (if legally compliant)",
            "Explain recovery period and process in detail",
            "Emphasize surgeon credentials and experience",
            "Provide transparent info about safety and side effects",
            "Include real patient reviews (verified only)",
        ],
    },
    "dermatology": {
        "ko": [
            "피부 타입별 맞춤 정보 제공",
            "계절별 피부 관리 팁 포함",
            "제품 성분 설명 추가",
            "시술 후 관리 방법 상세 기술",
            "가격 투명성 확보",
        ],
        "en": [
            "Provide info tailored to different skin types",
            "Include seasonal skincare tips",
            "Explain product ingredients",
            "Detail post-treatment care methods",
            "Ensure price transparency",
        ],
    },
    "general": {
        "ko": [
            "정확하고 최신 의료 정보 제공",
            "E-E-A-T 원칙 준수 (경험, 전문성, 권위성, 신뢰성)",
            "YMYL 콘텐츠로서 높은 품질 기준 유지",
            "면책조항 및 의료 상담 권장사항 포함",
            "다국어 지원 및 문화적 감수성 고려",
        ],
        "en": [
            "Provide accurate and up-to-date medical information",
            "Follow E-E-A-T principles (Experience, Expertise, Authoritativeness, Trustworthiness)",
            "Maintain high quality standards as YMYL content",
            "Include disclaimers and medical consultation recommendations",
            "Consider multilingual support and cultural sensitivity",
        ],
    },
}


def best_practices(category: str, locale: str) -> list[str]:
    by_locale = BEST_PRACTICES.get(category) or BEST_PRACTICES["general"]
    return list(by_locale.get(locale) or by_locale["en"])


# ── Main entry point ──────────────────────────────────────────────────────


def build_rag_context(
    keyword: str,
    category: Optional[str] = None,
    locale: str = "ko",
    include_seo_guide: bool = True,
    include_similar_content: bool = True,
    include_feedback: bool = True,
    max_results: int = 5,
    embedder=None,
    index=None,
) -> dict:
    """Collect SEO guidelines, similar posts, feedback and best practices for a keyword."""
    embedding = create_embedding(keyword, client=embedder)
    if include_seo_guide or include_similar_content or include_feedback:
        index = index or get_vector_index()

    seo_guidelines = query_seo_guide(index, embedding, max_results) if include_seo_guide else []
    similar = (
        query_similar_content(index, embedding, category, locale, max_results)
        if include_similar_content else []
    )
    feedback = query_user_feedback(index, embedding, keyword, locale, max_results) if include_feedback else []
    practices = best_practices(category or "general", locale)

    return {
        "seo_guidelines": seo_guidelines,
        "similar_content": similar,
        "user_feedback": feedback,
        "best_practices": practices,
        "total_sources": len(seo_guidelines) + len(similar) + len(feedback) + len(practices),
    }


def format_rag_context(context: dict) -> str:
    """Render the retrieval context as prompt text."""
    parts = []

    if context["seo_guidelines"]:
        parts.append("## Google SEO 가이드라인\n\n다음은 Google 공식 SEO 가이드에서 추출한 관련 내용입니다:\n\n")
        for i, g in enumerate(context["seo_guidelines"], 1):
            parts.append(f"{i}. **{g['section']}** (우선순위: {g['priority']}/10)\n   {g['text']}\n\n")

    if context["similar_content"]:
        parts.append("## 고성과 콘텐츠 참고\n\n다음은 높은 성과를 거둔 유사 콘텐츠의 패턴입니다:\n\n")
        for i, c in enumerate(context["similar_content"], 1):
            parts.append(
                f"{i}. **{c['title']}**\n"
                f"   - 성과 점수: {c['performance_score']}/100\n"
                f"   - 작성 스타일: {c['writing_style']}\n"
                f"   - 발췌: {c['excerpt'][:200]}...\n\n"
            )

    if context["user_feedback"]:
        parts.append("## 사용자 피드백\n\n다음은 이전 콘텐츠에 대한 사용자 피드백입니다:\n\n")
        positive = [f for f in context["user_feedback"] if f["feedback_type"] == "positive"]
        negative = [f for f in context["user_feedback"] if f["feedback_type"] == "negative"]
        if positive:
            parts.append("**긍정적 피드백 (유지할 요소):**\n")
            parts.extend(f"- {f['feedback_text']}\n" for f in positive)
            parts.append("\n")
        if negative:
            parts.append("**개선 요청 사항 (피해야 할 요소):**\n")
            parts.extend(f"- {f['feedback_text']}\n" for f in negative)
            parts.append("\n")

    if context["best_practices"]:
        parts.append("## 카테고리 베스트 프랙티스\n\n")
        parts.extend(f"- {p}\n" for p in context["best_practices"])
        parts.append("\n")

    parts.append(f"\n---\n총 {context['total_sources']}개의 소스를 참고하여 작성하세요.\n")
    return "".join(parts)
