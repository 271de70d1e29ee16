"""Translate a generated post into other locales and build hreflang links."""

from __future__ import annotations

import json
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional

import anthropic

from carekorea import config
from carekorea.pipeline.anthropic_retry import messages_create_with_retry, response_text
from carekorea.pipeline.generator import estimate_tokens, extract_json_block
from carekorea.pipeline.personas import build_writer_persona
from carekorea.pipeline.prompts import build_translation_prompt


def locale_display_name(locale: str) -> str:
    return config.LOCALE_DISPLAY_NAMES.get(locale, locale)


def locale_flag(locale: str) -> str:
    return config.LOCALE_FLAGS.get(locale, "🌐")


def translate_content(
    source_content: dict,
    source_locale: str,
    target_locale: str,
    author: dict,
    localize: bool = True,
    client: Optional[anthropic.Anthropic] = None,
) -> dict:
    """Translate (or localize) one post; raises on API or JSON errors."""
    client = client or anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)
    prompt = build_translation_prompt(
        json.dumps(source_content, ensure_ascii=False, indent=2),
        source_locale,
        target_locale,
        author,
        localize=localize,
    )
    message = messages_create_with_retry(
        client,
        label=target_locale,
        model=config.TRANSLATION_MODEL,
        max_tokens=config.CLAUDE_MAX_TOKENS,
        temperature=config.CLAUDE_TEMPERATURE,
        messages=[{"role": "user", "content": prompt}],
    )
    translated = json.loads(extract_json_block(response_text(message)))
    if not isinstance(translated, dict):
        raise ValueError(f"{target_locale} translation is not a JSON object")
    translated["locale"] = target_locale
    translated["contentFormat"] = "html"
    return translated


def generate_multi_language_content(
    source_content: dict,
    source_locale: str,
    target_locales: list[str],
    keyword: str,
    category: Optional[str] = None,
    localize: bool = True,
    max_concurrency: Optional[int] = None,
    on_progress: Optional[Callable[[dict], None]] = None,
    client: Optional[anthropic.Anthropic] = None,
) -> dict:
    """Translate source_content into every target locale.

    Targets are processed in chunks of max_concurrency; a chunk finishes
    before the next starts. A failed locale is recorded in "errors" and
    does not stop the others. on_progress receives a copy of
    {total, completed, failed, in_progress, current} after every change.
    """
    max_concurrency = max(1, max_concurrency or config.DEFAULT_TRANSLATION_CONCURRENCY)
    if client is None:
        if not config.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY not set. Add it to your .env file.")
        client = anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)

    mode = "localization" if localize else "translation"
    print(f"  -> Translating {source_locale} -> {', '.join(target_locales)} ({mode}, {max_concurrency} at a time)")

    author = source_content.get("author") or build_writer_persona(None, keyword, category or "general")
    translations: dict[str, dict] = {}
    errors: list[dict] = []
    total_cost = 0.0
    progress = {"total": len(target_locales), "completed": 0, "failed": 0, "in_progress": 0, "current": None}
    lock = threading.Lock()

    def report():
        if on_progress:
            on_progress(dict(progress))

    def work(target_locale: str) -> dict:
        with lock:
            progress["in_progress"] += 1
            progress["current"] = target_locale
            report()
        try:
            translated = translate_content(
                source_content, source_locale, target_locale, author, localize=localize, client=client
            )
        except Exception:
            with lock:
                progress["failed"] += 1
                progress["in_progress"] -= 1
                report()
            raise
        with lock:
            progress["completed"] += 1
            progress["in_progress"] -= 1
            report()
        return translated

    for start in range(0, len(target_locales), max_concurrency):
        chunk = target_locales[start:start + max_concurrency]
        with ThreadPoolExecutor(max_workers=len(chunk)) as pool:
            futures = [pool.submit(work, locale) for locale in chunk]
            for locale, future in zip(chunk, futures):
                try:
                    translated = future.result()
                except Exception as e:
                    print(f"  Warning: {locale_flag(locale)} {locale} failed: {e}")
                    errors.append({"locale": locale, "error": str(e)})
                    continue
                translations[locale] = translated
                cost = (
                    estimate_tokens(json.dumps(source_content, ensure_ascii=False)) / 1000
                    * config.CLAUDE_INPUT_COST_PER_1K
                    + estimate_tokens(json.dumps(translated, ensure_ascii=False)) / 1000
                    * config.CLAUDE_OUTPUT_COST_PER_1K
                )
                total_cost += cost
                print(f"  OK {locale_flag(locale)} {locale} complete (est. ${cost:.4f})")

    hreflang_tags = generate_hreflang_tags(source_locale, list(translations), keyword)
    print(f"  OK Translations: {len(translations)}/{len(target_locales)}, ${total_cost:.3f}")
    return {
        "source_locale": source_locale,
        "source_content": source_content,
        "translations": translations,
        "errors": errors,
        "hreflang_tags": hreflang_tags,
        "generation_timestamp": datetime.now(timezone.utc).isoformat(),
        "total_cost": total_cost,
    }


# ── hreflang ──────────────────────────────────────────────────────────────


def hreflang_slug(keyword: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", keyword.lower())
    return re.sub(r"\s+", "-", slug)[:60]


def generate_hreflang_tags(
    source_locale: str,
    target_locales: list[str],
    keyword: str,
    base_url: Optional[str] = None,
) -> list[dict]:
    """Alternate links for the source, each target and x-default.

    x-default points at English when English is among the targets,
    otherwise at the source locale.
    """
    base_url = (base_url or config.SITE_BASE_URL).rstrip("/")
    slug = hreflang_slug(keyword)
    tags = [{"locale": source_locale, "url": f"{base_url}/{source_locale}/blog/{slug}"}]
    tags.extend({"locale": locale, "url": f"{base_url}/{locale}/blog/{slug}"} for locale in target_locales)
    default_locale = "en" if "en" in target_locales else source_locale
    tags.append({"locale": "x-default", "url": f"{base_url}/{default_locale}/blog/{slug}"})
    return tags


def format_hreflang_tags(tags: list[dict]) -> str:
    return "\n".join(
        f'<link rel="alternate" hreflang="{tag["locale"]}" href="{tag["url"]}" />' for tag in tags
    )
