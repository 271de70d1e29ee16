#!/usr/bin/env python3
"""Publish draft posts that pass the quality checks.

Usage:
    python publish.py                 # Up to MAX_PUBLISH_PER_RUN posts
    python publish.py --limit 3
    python publish.py --min-score 80  # Stricter quality threshold for this run
"""

from __future__ import annotations

import argparse
import sys

from carekorea import config
from carekorea.errors import StoreError
from carekorea.publishing.auto_publish import auto_publish_batch, default_criteria
from carekorea.store import create_store


def main():
    parser = argparse.ArgumentParser(description="Auto-publish draft blog posts")
    parser.add_argument("--limit", type=int, default=0,
                        help="Max posts to check (default: max_publish_per_run setting)")
    parser.add_argument("--min-score", type=int, default=0,
                        help="Minimum quality score (default: min_quality_score setting)")
    args = parser.parse_args()

    store = create_store()
    try:
        config.apply_db_settings(store.read_settings())
    except StoreError as e:
        print(f"  Warning: {e}, using config.py defaults")

    criteria = default_criteria()
    if args.min_score:
        criteria["min_quality_score"] = args.min_score

    summary = auto_publish_batch(store, limit=args.limit or None, criteria=criteria)

    print(f"\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    for r in summary["results"]:
        status = "published" if r["success"] else "; ".join(r.get("issues") or []) or "skipped"
        print(f"  {r['blog_post_id']} {r.get('title', '')!r}: {status}")

    if summary.get("error"):
        print(f"\nError: {summary['error']}")
        sys.exit(1)


if __name__ == "__main__":
    main()
