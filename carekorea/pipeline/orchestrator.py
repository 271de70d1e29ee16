"""Run the full content pipeline for one keyword.

Steps:
1. Author persona - pre-assigned, or selected with retries
2. Validation - critical errors stop the run
3. Content generation (Claude)
4. Images (Imagen 4), injected into the HTML
5. Save - blog_posts row, then the keyword is marked generated/published

Whenever the run stops early or raises, the keyword goes back to `pending`
so the next batch picks it up again. The pipeline never raises; it returns a
result dict with `success` set accordingly.
"""

from __future__ import annotations

import re
import time
from typing import Callable, Optional

from carekorea import config
from carekorea.errors import StoreError
from carekorea.pipeline.generator import generate_single_language_content
from carekorea.pipeline.images import generate_images, insert_images_into_content
from carekorea.pipeline.personas import fetch_author_persona, load_preassigned_persona
from carekorea.store.client import now_iso
from carekorea.validation import score_content

_SLUG_STRIP = re.compile(r"[^a-z0-9가-힣ぁ-んァ-ン一-龯]+")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_request_id() -> str:
    return f"GEN-{to_base36(int(time.time() * 1000))}"


def generate_slug(title: str, locale: str) -> str:
    """URL slug: sanitized title (50 chars), locale and a base36 timestamp."""
    sanitized = _SLUG_STRIP.sub("-", title.lower()).strip("-")[:50]
    return f"{sanitized}-{locale}-{to_base36(int(time.time() * 1000))}"


# ── Validation ────────────────────────────────────────────────────────────


def validate_pipeline_input(request: dict, author_id: Optional[str], author: Optional[dict]) -> dict:
    """Check the request before any paid API call.

    Returns {is_valid, critical_errors, warnings}.
    """
    keyword = request.get("keyword") or ""
    locale = request.get("locale")
    critical, warnings = [], []

    if not keyword.strip():
        critical.append("Keyword is empty or missing")

    if locale not in config.SUPPORTED_LOCALES:
        critical.append(
            f"Invalid locale: {locale}. Must be one of: {', '.join(config.SUPPORTED_LOCALES)}"
        )

    if not author_id:
        critical.append("Author persona not found - cannot generate content without author")

    if author:
        if not author.get("name_en") and not author.get("name_ko"):
            warnings.append("Author persona has no name")
        if not author.get("years_of_experience"):
            warnings.append("Author persona has no years_of_experience, using default: 5")

    if not config.ANTHROPIC_API_KEY:
        critical.append("ANTHROPIC_API_KEY is not configured")

    if request.get("include_images", True) and not config.REPLICATE_API_TOKEN:
        warnings.append("REPLICATE_API_TOKEN not configured - images will NOT be generated")

    return {"is_valid": not critical, "critical_errors": critical, "warnings": warnings}


# ── Rollback ──────────────────────────────────────────────────────────────


def rollback_keyword_status(store, keyword_id: str, tag: str, reason: str) -> None:
    """Reset the keyword to pending. Failures are reported, never raised."""
    print(f"  .. {tag}ROLLBACK: resetting keyword to 'pending' ({reason})")
    try:
        store.rollback_keyword(keyword_id)
    except StoreError as e:
        print(f"  ERROR {tag}Rollback failed: {e}")
        return
    print(f"  OK {tag}Rollback successful")


# ── Save ──────────────────────────────────────────────────────────────────


def build_blog_post_row(
    content: dict,
    final_html: str,
    request: dict,
    author_id: str,
    author: Optional[dict],
    images: list[dict],
    image_cost: float,
    quality: dict,
) -> dict:
    """Assemble the blog_posts row for a generated post."""
    auto_publish = request.get("auto_publish", False)
    cover_url = images[0]["url"] if images else None
    cover_alt = images[0]["alt"] if images else None
    total_cost = content["estimated_cost"] + image_cost
    timestamp = now_iso()

    return {
        "slug": generate_slug(content["title"] or request["keyword"], request["locale"]),
        "locale": request["locale"],
        "title": content["title"],
        "excerpt": content["excerpt"],
        "content": final_html,
        "category": request.get("category") or config.DEFAULT_CATEGORY,
        "tags": content["tags"],
        "status": "published" if auto_publish else "draft",
        "author_persona_id": author_id,
        "cover_image_url": cover_url,
        "cover_image_alt": cover_alt,
        "seo_meta": {
            "meta_title": content["meta_title"],
            "meta_description": content["meta_description"],
            "og_title": content["meta_title"],
            "og_description": content["meta_description"],
            "og_image": cover_url,
            "twitter_title": content["meta_title"],
            "twitter_description": content["meta_description"],
            "twitter_image": cover_url,
        },
        "generation_metadata": {
            "keyword": request["keyword"],
            "locale": request["locale"],
            "category": request.get("category"),
            "generation_cost": total_cost,
            "content_cost": content["estimated_cost"],
            "image_cost": image_cost,
            "images_generated": len(images),
            "faq_schema": content["faq_schema"],
            "howto_schema": content["howto_schema"],
            "internal_links": content["internal_links"],
            "author_persona_id": author_id,
            "author_slug": author.get("slug") if author else None,
            "quality_score": quality["overall_score"],
            "quality_grade": quality["grade"],
            "generated_at": timestamp,
        },
        "created_at": timestamp,
        "updated_at": timestamp,
        "published_at": timestamp if auto_publish else None,
    }


def _generate_and_save(
    store,
    request: dict,
    tag: str,
    author_id: str,
    author: Optional[dict],
    generate: Callable,
    images_fn: Callable,
) -> dict:
    keyword, locale = request["keyword"], request["locale"]
    category = request.get("category") or config.DEFAULT_CATEGORY
    include_images = request.get("include_images", True)
    image_count = request.get("image_count", config.DEFAULT_IMAGE_COUNT)

    # ── Step 3: Content ───────────────────────────────────────────────────
    content = generate(
        keyword=keyword,
        locale=locale,
        category=category,
        include_rag=request.get("include_rag", True),
        include_images=include_images,
        image_count=image_count,
        additional_instructions=request.get("additional_instructions", ""),
        db_author=author,
    )

    # ── Step 4: Images ────────────────────────────────────────────────────
    final_html = content["content"]
    generated_images: list[dict] = []
    image_cost = 0.0
    if include_images and content["images"] and config.REPLICATE_API_TOKEN:
        print(f"  -> {tag}Generating {len(content['images'])} images...")
        try:
            image_result = images_fn(content["images"], keyword, locale, store)
            generated_images = image_result["images"]
            image_cost = image_result["total_cost"]
            if generated_images:
                captions = {
                    img["placeholder"]: img["caption"]
                    for img in content["images"]
                    if img.get("placeholder") and img.get("caption")
                }
                final_html = insert_images_into_content(final_html, generated_images, captions)
                print(f"  OK {tag}{len(generated_images)} images generated and injected")
            if image_result["errors"]:
                print(f"  Warning: {tag}{len(image_result['errors'])} images failed to generate")
        except Exception as e:
            print(f"  Warning: {tag}image generation failed: {e}")
    elif include_images and not config.REPLICATE_API_TOKEN:
        print(f"  .. {tag}Skipping images: REPLICATE_API_TOKEN not configured")

    # ── Step 5: Save ──────────────────────────────────────────────────────
    quality = score_content(
        content["title"], final_html, keyword, locale,
        excerpt=content["excerpt"],
        meta_description=content["meta_description"],
        tags=content["tags"],
    )
    print(f"  OK {tag}Quality score: {quality['overall_score']}/100 ({quality['grade']})")

    row = build_blog_post_row(
        content, final_html, request, author_id, author, generated_images, image_cost, quality
    )
    print(f"  -> {tag}Saving to database...")
    saved = store.insert_blog_post(row)
    print(f"  OK {tag}Blog post saved: {saved['id']}")

    keyword_status = "published" if request.get("auto_publish") else "generated"
    try:
        store.update_keyword_status(request["keyword_id"], keyword_status, blog_post_id=saved["id"])
        print(f"  OK {tag}Keyword status updated to '{keyword_status}'")
    except StoreError as e:
        print(f"  Warning: {tag}failed to update keyword status: {e}")

    return {
        "success": True,
        "keyword_id": request["keyword_id"],
        "keyword": keyword,
        "locale": locale,
        "blog_post_id": saved["id"],
        "author_persona_id": author_id,
        "author_slug": author.get("slug") if author else None,
        "title": content["title"],
        "cover_image_url": row["cover_image_url"],
        "cover_image_alt": row["cover_image_alt"],
        "images_generated": len(generated_images),
        "total_cost": row["generation_metadata"]["generation_cost"],
        "quality_score": quality["overall_score"],
    }


# ── Main entry point ──────────────────────────────────────────────────────


def run_content_generation_pipeline(
    store,
    request: dict,
    request_id: Optional[str] = None,
    assigned_in_batch: Optional[dict] = None,
    preassigned_author_id: Optional[str] = None,
    generate: Callable = generate_single_language_content,
    images: Callable = generate_images,
) -> dict:
    """Generate, illustrate and save a post for one content_keywords row.

    Args:
        store: ContentStore.
        request: {keyword_id, keyword, locale, category, include_rag,
                  include_images, image_count, auto_publish,
                  additional_instructions}.
        request_id: Tag for console lines; generated when omitted.
        assigned_in_batch: {persona_id: posts assigned so far in this batch}.
        preassigned_author_id: Persona chosen in advance for this keyword.
        generate: Content generator (generate_single_language_content signature).
        images: Image generator (generate_images signature).

    Returns:
        Result dict; on failure {success: False, error, ...} and the keyword
        is back to pending.
    """
    request_id = request_id or new_request_id()
    tag = f"[{request_id}] "
    keyword_id = request["keyword_id"]
    failure = {
        "success": False,
        "keyword_id": keyword_id,
        "keyword": request.get("keyword"),
        "locale": request.get("locale"),
    }

    print(f"\n{'='*60}")
    print(f"{tag}CONTENT GENERATION PIPELINE")
    print(f"  Keyword:  {request.get('keyword')!r}")
    print(f"  Locale:   {request.get('locale')}")
    print(f"  Category: {request.get('category')}")
    if preassigned_author_id:
        print(f"  Pre-assigned author: {preassigned_author_id}")
    print(f"{'='*60}")

    try:
        # ── Step 1: Author persona ────────────────────────────────────────
        author_id, author = None, None
        if preassigned_author_id:
            author = load_preassigned_persona(store, preassigned_author_id)
            if author:
                author_id = author["id"]
                print(f"  OK {tag}Pre-assigned author loaded: {author['slug']}")
            else:
                print(f"  Warning: {tag}pre-assigned author {preassigned_author_id} not found")

        if not author_id:
            author_id, author = fetch_author_persona(
                store,
                request.get("locale"),
                request.get("category") or config.DEFAULT_CATEGORY,
                request_id=request_id,
                assigned_in_batch=assigned_in_batch,
            )

        if not author_id:
            rollback_keyword_status(store, keyword_id, tag, "author persona fetch failed")
            return {
                **failure,
                "error": "Failed to fetch author persona after maximum retries",
                "validation_errors": ["No author persona available for content generation"],
            }

        # ── Step 2: Validate ──────────────────────────────────────────────
        validation = validate_pipeline_input(request, author_id, author)
        for warning in validation["warnings"]:
            print(f"  Warning: {tag}{warning}")
        if not validation["is_valid"]:
            for error in validation["critical_errors"]:
                print(f"  ERROR {tag}{error}")
            rollback_keyword_status(store, keyword_id, tag, "validation failed")
            return {
                **failure,
                "error": "Validation failed",
                "validation_errors": validation["critical_errors"],
            }
        print(f"  OK {tag}Validation passed")

        # ── Steps 3-5 ─────────────────────────────────────────────────────
        result = _generate_and_save(store, request, tag, author_id, author, generate, images)
    except Exception as e:
        print(f"  ERROR {tag}Pipeline error: {e}")
        rollback_keyword_status(store, keyword_id, tag, "unexpected pipeline error")
        return {**failure, "error": str(e) or type(e).__name__}

    print(f"\n{'='*60}")
    print(f"{tag}PIPELINE COMPLETE: post {result['blog_post_id']} (${result['total_cost']:.4f})")
    print(f"{'='*60}\n")
    return result
