"""Batch runner: generate posts for the pending keyword queue.

Keywords are taken highest priority first, oldest first, up to
DAILY_GENERATION_LIMIT. Each keyword is marked `generating` and run through
the pipeline one at a time; the personas assigned so far are passed along so
the batch spreads posts across authors. The run is recorded in cron_logs.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from carekorea import config
from carekorea.errors import StoreError
from carekorea.pipeline.orchestrator import generate_slug, run_content_generation_pipeline
from carekorea.pipeline.translator import generate_multi_language_content

JOB_NAME = "auto-generate"


def build_request(keyword_row: dict, **overrides) -> dict:
    """Pipeline request for a content_keywords row, using the current config defaults."""
    request = {
        "keyword_id": keyword_row["id"],
        "keyword": keyword_row["keyword"],
        "locale": keyword_row["locale"],
        "category": keyword_row.get("category") or config.DEFAULT_CATEGORY,
        "include_rag": config.INCLUDE_RAG,
        "include_images": config.INCLUDE_IMAGES,
        "image_count": config.DEFAULT_IMAGE_COUNT,
        "auto_publish": config.AUTO_PUBLISH,
        "additional_instructions": "",
    }
    request.update({k: v for k, v in overrides.items() if v is not None})
    return request


def run_auto_generate(
    store,
    limit: Optional[int] = None,
    keyword_rows: Optional[list[dict]] = None,
    request_overrides: Optional[dict] = None,
    translate_to: Optional[list[str]] = None,
    pipeline: Callable = run_content_generation_pipeline,
) -> dict:
    """Generate posts for pending keywords.

    Args:
        store: ContentStore.
        limit: Max keywords; defaults to DAILY_GENERATION_LIMIT.
        keyword_rows: Explicit keyword rows instead of the pending queue.
        request_overrides: Values overriding the config defaults per request
                           (include_rag, include_images, auto_publish, ...).
        translate_to: Locales to translate each saved post into.
        pipeline: Pipeline function (run_content_generation_pipeline signature).

    Returns:
        {success, total, generated, failed, total_cost, results}
    """
    start = time.time()

    if keyword_rows is None and not config.AUTO_GENERATE_ENABLED:
        print("  .. Auto-generation is disabled in settings, nothing to do")
        return {"success": True, "total": 0, "generated": 0, "failed": 0, "total_cost": 0.0,
                "results": [], "message": "Auto-generation disabled"}

    if keyword_rows is None:
        limit = limit or config.DAILY_GENERATION_LIMIT
        try:
            keyword_rows = store.fetch_pending_keywords(limit, priority_threshold=config.PRIORITY_THRESHOLD)
        except StoreError as e:
            print(f"  ERROR {e}")
            store.log_cron_execution(JOB_NAME, "error", {"error": str(e)}, _elapsed_ms(start))
            return {"success": False, "error": str(e), "total": 0, "generated": 0, "failed": 0,
                    "total_cost": 0.0, "results": []}

    if not keyword_rows:
        print("  No pending keywords to process")
        store.log_cron_execution(
            JOB_NAME, "success", {"message": "No pending keywords to process", "generated": 0},
            _elapsed_ms(start),
        )
        return {"success": True, "total": 0, "generated": 0, "failed": 0, "total_cost": 0.0,
                "results": [], "message": "No pending keywords to process"}

    print(f"\nProcessing {len(keyword_rows)} keywords")
    assigned_in_batch: dict[str, int] = {}
    results = []

    for i, row in enumerate(keyword_rows, 1):
        print(f"\n[{i}/{len(keyword_rows)}] {row['keyword']} ({row['locale']})")
        try:
            store.update_keyword_status(row["id"], "generating")
        except StoreError as e:
            print(f"  ERROR could not claim keyword: {e}")
            results.append({"success": False, "keyword_id": row["id"], "keyword": row["keyword"],
                            "locale": row["locale"], "error": str(e)})
            continue

        result = pipeline(
            store,
            build_request(row, **(request_overrides or {})),
            assigned_in_batch=assigned_in_batch,
            preassigned_author_id=row.get("author_persona_id"),
        )
        if result["success"]:
            persona_id = result.get("author_persona_id")
            if persona_id:
                assigned_in_batch[persona_id] = assigned_in_batch.get(persona_id, 0) + 1
            if translate_to:
                targets = [loc for loc in translate_to if loc != row["locale"]]
                if targets:
                    try:
                        result["translations"] = translate_saved_post(
                            store, result["blog_post_id"], targets, row["keyword"]
                        )
                    except Exception as e:
                        print(f"  Warning: translations failed: {e}")
                        result["translations"] = {
                            "saved": {}, "errors": [{"locale": None, "error": str(e)}],
                            "total_cost": 0.0, "hreflang_tags": [],
                        }
                    result["total_cost"] += result["translations"]["total_cost"]
        results.append(result)

    generated = sum(1 for r in results if r["success"])
    failed = len(results) - generated
    total_cost = sum(r.get("total_cost") or 0 for r in results if r["success"])
    elapsed_ms = _elapsed_ms(start)

    summary = {
        "total": len(keyword_rows),
        "generated": generated,
        "failed": failed,
        "total_cost": total_cost,
        "results": results,
    }
    store.log_cron_execution(JOB_NAME, "success" if failed == 0 else "partial", summary, elapsed_ms)

    print(f"\nAuto-generate completed: {generated}/{len(keyword_rows)} successful")
    print(f"  Total cost: ${total_cost:.4f}")
    print(f"  Total time: {elapsed_ms / 1000:.1f}s")
    return {"success": True, **summary}


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


# ── Translations ──────────────────────────────────────────────────────────


def source_content_from_post(post: dict) -> dict:
    """The translatable fields of a saved blog_posts row, in the generator's JSON shape."""
    seo = post.get("seo_meta") or {}
    meta = post.get("generation_metadata") or {}
    return {
        "title": post["title"],
        "excerpt": post.get("excerpt") or "",
        "content": post["content"],
        "contentFormat": "html",
        "metaTitle": seo.get("meta_title") or post["title"],
        "metaDescription": seo.get("meta_description") or post.get("excerpt") or "",
        "tags": post.get("tags") or [],
        "faqSchema": meta.get("faq_schema") or [],
        "howToSchema": meta.get("howto_schema") or [],
    }


def translate_saved_post(
    store,
    blog_post_id: str,
    target_locales: list[str],
    keyword: str,
    translate: Callable = generate_multi_language_content,
) -> dict:
    """Translate a saved post and store each translation as a draft.

    Returns {saved: {locale: post_id}, errors, total_cost, hreflang_tags}.
    """
    try:
        post = store.get_blog_post(blog_post_id)
    except StoreError as e:
        print(f"  Warning: could not load post {blog_post_id}: {e}")
        return {"saved": {}, "errors": [{"locale": None, "error": str(e)}],
                "total_cost": 0.0, "hreflang_tags": []}
    if not post:
        return {"saved": {}, "errors": [{"locale": None, "error": f"post {blog_post_id} not found"}],
                "total_cost": 0.0, "hreflang_tags": []}

    outcome = translate(
        source_content_from_post(post),
        post["locale"],
        target_locales,
        keyword,
        category=post.get("category"),
    )

    saved, errors = {}, list(outcome["errors"])
    for locale, translated in outcome["translations"].items():
        row = translated_post_row(post, translated, locale, keyword, outcome["hreflang_tags"])
        try:
            saved[locale] = store.insert_blog_post(row)["id"]
            print(f"  OK Saved {locale} translation: {saved[locale]}")
        except StoreError as e:
            print(f"  Warning: could not save {locale} translation: {e}")
            errors.append({"locale": locale, "error": str(e)})

    return {
        "saved": saved,
        "errors": errors,
        "total_cost": outcome["total_cost"],
        "hreflang_tags": outcome["hreflang_tags"],
    }


def translated_post_row(source: dict, translated: dict, locale: str, keyword: str, hreflang_tags: list) -> dict:
    title = translated.get("title") or source["title"]
    meta_title = translated.get("metaTitle") or title
    meta_description = translated.get("metaDescription") or translated.get("excerpt") or ""
    source_seo = source.get("seo_meta") or {}
    return {
        "slug": generate_slug(title, locale),
        "locale": locale,
        "title": title,
        "excerpt": translated.get("excerpt") or "",
        "content": translated.get("content") or "",
        "category": source.get("category"),
        "tags": translated.get("tags") or source.get("tags") or [],
        "status": "draft",
        "author_persona_id": source.get("author_persona_id"),
        "cover_image_url": source.get("cover_image_url"),
        "cover_image_alt": source.get("cover_image_alt"),
        "seo_meta": {
            **source_seo,
            "meta_title": meta_title,
            "meta_description": meta_description,
            "og_title": meta_title,
            "og_description": meta_description,
            "twitter_title": meta_title,
            "twitter_description": meta_description,
        },
        "generation_metadata": {
            "keyword": keyword,
            "locale": locale,
            "category": source.get("category"),
            "source_post_id": source["id"],
            "source_locale": source["locale"],
            "faq_schema": translated.get("faqSchema") or [],
            "howto_schema": translated.get("howToSchema") or [],
            "hreflang_tags": hreflang_tags,
            "author_persona_id": source.get("author_persona_id"),
        },
    }
