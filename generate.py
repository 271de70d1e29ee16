#!/usr/bin/env python3
"""Generate blog posts for the pending keyword queue.

Usage:
    python generate.py                          # Generate up to the daily limit
    python generate.py --limit 5                # Generate the first 5 pending keywords
    python generate.py --keyword-id <uuid>      # Generate one specific keyword
    python generate.py --no-images --no-rag     # Text only, no retrieval context
    python generate.py --translate-to en,ja,zh-CN  # Also save draft translations
    python generate.py --dry-run                # Show the queue without calling any API

Settings from the system_settings table override config.py defaults.
"""

from __future__ import annotations

import argparse
import json
import os
import sys

from carekorea import config
from carekorea.errors import StoreError
from carekorea.pipeline.batch import build_request, run_auto_generate
from carekorea.store import create_store


def parse_locales(value: str) -> list[str]:
    return [loc.strip() for loc in value.split(",") if loc.strip()]


def print_summary(summary: dict):
    print(f"\n\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    for r in summary.get("results", []):
        if r.get("success"):
            translations = r.get("translations")
            extra = f", {len(translations['saved'])} translations" if translations else ""
            print(f"  {r['keyword']} ({r['locale']}): post {r['blog_post_id']}, "
                  f"score {r.get('quality_score', '?')}, ${r.get('total_cost', 0):.4f}{extra}")
        else:
            print(f"  {r.get('keyword')} ({r.get('locale')}): FAILED {r.get('error', '')}")
    print(f"\n  Generated: {summary.get('generated', 0)}/{summary.get('total', 0)}")
    print(f"  Total cost: ${summary.get('total_cost', 0):.4f}")


def main():
    parser = argparse.ArgumentParser(description="Generate GetCareKorea blog posts from the keyword queue")
    parser.add_argument("--limit", type=int, default=0,
                        help="Max keywords to process (default: daily generation limit)")
    parser.add_argument("--keyword-id", type=str, default="",
                        help="Generate a single content_keywords row by id")
    parser.add_argument("--no-images", action="store_true",
                        help="Skip image generation")
    parser.add_argument("--no-rag", action="store_true",
                        help="Skip retrieval context")
    parser.add_argument("--auto-publish", action="store_true",
                        help="Save posts as published instead of draft")
    parser.add_argument("--translate-to", type=str, default="",
                        help="Comma-separated locales to translate each post into")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show the keywords that would be processed")
    args = parser.parse_args()

    try:
        store = create_store()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("Loading settings from system_settings...")
    try:
        config.apply_db_settings(store.read_settings())
    except StoreError as e:
        print(f"  Warning: {e}, using config.py defaults")

    keyword_rows = None
    if args.keyword_id:
        try:
            row = store.get_keyword(args.keyword_id)
        except StoreError as e:
            print(f"Error: {e}")
            sys.exit(1)
        if not row:
            print(f"Keyword {args.keyword_id} not found")
            sys.exit(1)
        keyword_rows = [row]

    overrides = {
        "include_images": False if args.no_images else None,
        "include_rag": False if args.no_rag else None,
        "auto_publish": True if args.auto_publish else None,
    }

    if args.dry_run:
        try:
            rows = keyword_rows or store.fetch_pending_keywords(
                args.limit or config.DAILY_GENERATION_LIMIT, priority_threshold=config.PRIORITY_THRESHOLD
            )
        except StoreError as e:
            print(f"Error: {e}")
            sys.exit(1)
        print(f"\n  [DRY RUN] Would generate {len(rows)} posts:")
        for row in rows:
            request = build_request(row, **overrides)
            print(f"    {row['keyword']} ({row['locale']}, {request['category']}) "
                  f"rag={request['include_rag']} images={request['include_images']} "
                  f"publish={request['auto_publish']}")
        return

    summary = run_auto_generate(
        store,
        limit=args.limit or None,
        keyword_rows=keyword_rows,
        request_overrides=overrides,
        translate_to=parse_locales(args.translate_to) or None,
    )
    print_summary(summary)

    os.makedirs(config.OUTPUT_DIR, exist_ok=True)
    summary_path = os.path.join(config.OUTPUT_DIR, "_summary.json")
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False, default=str)
    print(f"\nSummary saved to {summary_path}")

    if not summary.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
