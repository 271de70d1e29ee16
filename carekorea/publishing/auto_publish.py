"""Publish draft posts that pass the publishing checks."""

from __future__ import annotations

import time
from typing import Optional

from carekorea import config
from carekorea.errors import StoreError
from carekorea.validation import score_content

JOB_NAME = "auto-publish"


def default_criteria() -> dict:
    return {
        "min_quality_score": config.MIN_PUBLISH_QUALITY_SCORE,
        "require_image": False,
        "require_meta_description": True,
        "require_excerpt": True,
    }


def validate_for_publishing(post: dict, keyword: Optional[str] = None, criteria: Optional[dict] = None) -> dict:
    """Check a blog_posts row against the publishing criteria.

    Returns {is_valid, can_publish, quality_score, issues, warnings};
    quality_score is the score_content result, or None without title/content.
    """
    criteria = {**default_criteria(), **(criteria or {})}
    issues, warnings = [], []

    title = (post.get("title") or "").strip()
    content = (post.get("content") or "").strip()
    excerpt = (post.get("excerpt") or "").strip()
    meta_description = ((post.get("seo_meta") or {}).get("meta_description") or "").strip()

    if not title:
        issues.append("Title is required")
    if len(content) < config.MIN_PUBLISH_CONTENT_CHARS:
        issues.append(f"Content must be at least {config.MIN_PUBLISH_CONTENT_CHARS} characters")
    if criteria["require_meta_description"] and not meta_description:
        issues.append("Meta description is required")
    if criteria["require_excerpt"] and not excerpt:
        issues.append("Excerpt is required")
    if not post.get("cover_image_url"):
        if criteria["require_image"]:
            issues.append("Cover image is required")
        else:
            warnings.append("Cover image is missing (optional)")

    quality = None
    if title and content:
        keyword = keyword or (post.get("generation_metadata") or {}).get("keyword") or title
        quality = score_content(
            title, content, keyword, post.get("locale") or config.DEFAULT_LOCALE,
            excerpt=excerpt, meta_description=meta_description, tags=post.get("tags") or [],
        )
        if quality["overall_score"] < criteria["min_quality_score"]:
            issues.append(
                f"Quality score ({quality['overall_score']}) is below minimum ({criteria['min_quality_score']})"
            )

    already_published = post.get("status") == "published"
    if already_published:
        warnings.append("Post is already published")

    return {
        "is_valid": not issues,
        "can_publish": not issues and not already_published,
        "quality_score": quality,
        "issues": issues,
        "warnings": warnings,
    }


def auto_publish_batch(store, limit: Optional[int] = None, criteria: Optional[dict] = None) -> dict:
    """Validate and publish up to `limit` draft posts, oldest first.

    Returns {total, published, skipped, failed, results}. Posts that fail
    validation are skipped; failed means the status update itself failed.
    """
    start = time.time()
    summary = {"total": 0, "published": 0, "skipped": 0, "failed": 0, "results": []}
    if not config.AUTO_PUBLISH_ENABLED:
        print("  .. Auto-publish is disabled in settings, nothing to do")
        return summary

    try:
        posts = store.fetch_posts_for_publishing(limit or config.MAX_PUBLISH_PER_RUN)
    except StoreError as e:
        print(f"  ERROR {e}")
        store.log_cron_execution(JOB_NAME, "error", {"error": str(e)}, int((time.time() - start) * 1000))
        return {**summary, "error": str(e)}
    summary["total"] = len(posts)
    print(f"\nChecking {len(posts)} draft posts for publishing")

    for post in posts:
        validation = validate_for_publishing(post, criteria=criteria)
        score = validation["quality_score"]["overall_score"] if validation["quality_score"] else None
        result = {
            "blog_post_id": post["id"],
            "title": post.get("title"),
            "previous_status": post.get("status"),
            "quality_score": score,
        }

        if not validation["can_publish"]:
            print(f"  .. Skipped {post['id']}: {'; '.join(validation['issues'] or validation['warnings'])}")
            summary["skipped"] += 1
            summary["results"].append({**result, "success": False, "new_status": post.get("status"),
                                       "issues": validation["issues"]})
            continue

        try:
            published_at = store.publish_post(post["id"])
        except StoreError as e:
            print(f"  Warning: failed to publish {post['id']}: {e}")
            summary["failed"] += 1
            summary["results"].append({**result, "success": False, "new_status": post.get("status"),
                                       "issues": [str(e)]})
            continue

        print(f"  OK Published {post['id']} (score {score})")
        summary["published"] += 1
        summary["results"].append({**result, "success": True, "new_status": "published",
                                   "published_at": published_at})

    status = "success" if summary["failed"] == 0 else "partial"
    store.log_cron_execution(JOB_NAME, status, summary, int((time.time() - start) * 1000))
    print(f"\nAuto-publish completed: {summary['published']} published, "
          f"{summary['skipped']} skipped, {summary['failed']} failed")
    return summary
