"""Generate one blog post in the keyword's own locale.

Two steps:
1. Retrieval (optional) - SEO guidelines, similar posts and feedback
2. Content generation (main model) - a JSON document holding the HTML post,
   meta fields, FAQ / HowTo schema and image prompts
"""

from __future__ import annotations

import json
import math
import re
import time
from datetime import datetime, timezone
from typing import Optional

import anthropic
import markdown as md_lib

from carekorea import config
from carekorea.errors import GenerationError
from carekorea.pipeline.anthropic_retry import messages_create_with_retry, response_text
from carekorea.pipeline.personas import build_writer_persona
from carekorea.pipeline.prompts import build_system_prompt, build_user_prompt
from carekorea.pipeline.rag import build_rag_context, format_rag_context

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def extract_json_block(text: str) -> str:
    """Pull the JSON object out of a model response.

    Tries a ```json fence, then any fence, then the span from the first "{"
    to the last "}". Returns the best candidate; parsing is left to the caller.
    """
    candidate = text.strip()

    match = _JSON_FENCE.search(candidate)
    if match:
        candidate = match.group(1).strip()

    if not candidate.startswith("{"):
        match = _ANY_FENCE.search(candidate)
        if match:
            candidate = match.group(1).strip()

    if not candidate.startswith("{"):
        first, last = candidate.find("{"), candidate.rfind("}")
        if first != -1 and last > first:
            candidate = candidate[first:last + 1]

    return candidate


def ensure_html(content: str) -> str:
    """If the content already looks like HTML keep it, otherwise convert from markdown."""
    html_indicators = ["<h2>", "<h2 ", "<p>", "<p ", "<section", "<div"]
    if any(indicator in content for indicator in html_indicators):
        return content.strip()
    return md_lib.markdown(content, extensions=["extra", "sane_lists", "smarty"])


def parse_generated_content(text: str) -> dict:
    """Parse the model's JSON answer and check the required fields."""
    try:
        parsed = json.loads(extract_json_block(text))
    except json.JSONDecodeError as e:
        print(f"  ERROR Failed to parse JSON response; first 500 chars: {text[:500]!r}")
        raise GenerationError("Invalid JSON response from Claude") from e

    if not isinstance(parsed, dict) or not parsed.get("content") or not parsed.get("title"):
        raise GenerationError("Missing required fields in generated content")

    if parsed.get("contentFormat") != "html":
        print("  Warning: content format is not HTML, converting")
        parsed["content"] = ensure_html(parsed["content"])
        parsed["contentFormat"] = "html"
    return parsed


def generate_single_language_content(
    keyword: str,
    locale: str,
    category: str = "general",
    include_rag: bool = True,
    include_images: bool = True,
    image_count: int = 3,
    additional_instructions: str = "",
    db_author: Optional[dict] = None,
    client: Optional[anthropic.Anthropic] = None,
    rag_builder=build_rag_context,
) -> dict:
    """Generate a complete post for one keyword in its target locale.

    Args:
        keyword: Target search keyword.
        locale: Locale of the keyword (the post is written in it).
        category: Medical category, used for retrieval and the persona.
        include_rag: Add retrieval context to the system prompt.
        include_images: Ask for image_count contextual images.
        image_count: Number of images to request.
        additional_instructions: Extra free-form instructions.
        db_author: Author persona selected from the database, if any.
        client: Anthropic client; built from ANTHROPIC_API_KEY when omitted.
        rag_builder: Retrieval function (build_rag_context signature).

    Returns:
        Dict with title, excerpt, content (HTML), meta fields, author, tags,
        faq_schema, howto_schema, images, internal_links,
        generation_timestamp and estimated_cost.

    Raises:
        ValueError: ANTHROPIC_API_KEY is not set and no client was given.
        GenerationError: any other failure, as "Failed to generate content for <keyword>".
    """
    if client is None:
        if not config.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY not set. Add it to your .env file.")
        client = anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)

    print(f"  -> Generating content for '{keyword}' ({locale}, {category})")
    start = time.time()
    estimated_cost = 0.0

    try:
        author = build_writer_persona(db_author, keyword, category)
        print(f"  OK Author: {author['name_en']} ({author['years_of_experience']} years)")

        # ── Step 1: Retrieval ─────────────────────────────────────────────
        rag_prompt = ""
        if include_rag:
            print("  -> Building retrieval context...")
            context = rag_builder(
                keyword=keyword,
                category=category,
                locale=locale,
                include_seo_guide=True,
                include_similar_content=True,
                include_feedback=True,
                max_results=5,
            )
            rag_prompt = format_rag_context(context)
            estimated_cost += config.RAG_COST
            print(f"  OK Retrieval context built ({context['total_sources']} sources)")

        # ── Step 2: Generate with the main model ──────────────────────────
        instructions = additional_instructions or ""
        if include_images:
            instructions += f"\n\nInclude {image_count} contextual images throughout the content."

        system_prompt = build_system_prompt(
            author, rag_context=rag_prompt, additional_instructions=instructions
        )
        user_prompt = build_user_prompt(keyword, locale, category, author)

        print(f"  -> Calling {config.CLAUDE_MODEL}...")
        message = messages_create_with_retry(
            client,
            label=keyword,
            model=config.CLAUDE_MODEL,
            max_tokens=config.CLAUDE_MAX_TOKENS,
            temperature=config.CLAUDE_TEMPERATURE,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )

        input_tokens = estimate_tokens(system_prompt + rag_prompt + user_prompt)
        output_tokens = message.usage.output_tokens
        claude_cost = (
            input_tokens / 1000 * config.CLAUDE_INPUT_COST_PER_1K
            + output_tokens / 1000 * config.CLAUDE_OUTPUT_COST_PER_1K
        )
        estimated_cost += claude_cost
        print(f"  OK Content generated ({input_tokens} in / {output_tokens} out, ${claude_cost:.4f})")

        parsed = parse_generated_content(response_text(message))
    except Exception as e:
        print(f"  ERROR Content generation failed: {e}")
        raise GenerationError(f"Failed to generate content for {keyword}") from e

    result = {
        "locale": locale,
        "keyword": keyword,
        "category": category,
        "title": parsed["title"],
        "excerpt": parsed.get("excerpt") or "",
        "content": parsed["content"],
        "content_format": "html",
        "meta_title": parsed.get("metaTitle") or parsed["title"],
        "meta_description": parsed.get("metaDescription") or parsed.get("excerpt") or "",
        "author": author,
        "tags": parsed.get("tags") or [],
        "faq_schema": parsed.get("faqSchema") or [],
        "howto_schema": parsed.get("howToSchema") or [],
        "images": parsed.get("images") or [],
        "internal_links": parsed.get("internalLinks") or [],
        "generation_timestamp": datetime.now(timezone.utc).isoformat(),
        "estimated_cost": estimated_cost,
    }

    elapsed = time.time() - start
    print(
        f"  OK Generation complete in {elapsed:.1f}s "
        f"(${estimated_cost:.4f}, {len(result['images'])} images requested)"
    )
    return result
