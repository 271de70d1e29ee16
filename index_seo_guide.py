#!/usr/bin/env python3
"""Index Google's SEO guide into the vector index used for retrieval.

Usage:
    python index_seo_guide.py                          # docs/google-seo-guide.md
    python index_seo_guide.py --path my-guide.md
    python index_seo_guide.py --dry-run                # Show chunks without calling any API
"""

from __future__ import annotations

import argparse
import sys
from collections import Counter
from pathlib import Path

from carekorea import config
from carekorea.loaders.seo_guide import index_chunks, split_into_chunks
from carekorea.pipeline.generator import estimate_tokens
from carekorea.pipeline.rag import create_embedding, get_vector_index

TEST_QUERY = "How to write good title tags for SEO?"


def main():
    parser = argparse.ArgumentParser(description="Index the SEO guide into Upstash Vector")
    parser.add_argument("--path", type=str, default=str(config.SEO_GUIDE_PATH),
                        help="Markdown file with the guide")
    parser.add_argument("--dry-run", action="store_true",
                        help="Split and summarize without embedding or uploading")
    parser.add_argument("--test-query", type=str, default=TEST_QUERY,
                        help="Query to run against the index afterwards")
    args = parser.parse_args()

    path = Path(args.path)
    if not path.exists():
        print(f"Error: {path} not found")
        sys.exit(1)

    content = path.read_text(encoding="utf-8")
    print(f"Reading SEO guide from {path} ({len(content) / 1024:.2f} KB)")

    chunks = split_into_chunks(content)
    if not chunks:
        print("Error: no chunks found in the guide")
        sys.exit(1)
    avg_tokens = sum(estimate_tokens(c["text"]) for c in chunks) / len(chunks)
    print(f"  OK {len(chunks)} chunks, about {avg_tokens:.0f} tokens each")

    print("\n  Chunks by section:")
    for section, count in Counter(c["metadata"]["section"] for c in chunks).most_common(10):
        print(f"    {section[:40]}: {count}")
    print("\n  Chunks by priority:")
    for priority, count in sorted(Counter(c["metadata"]["priority"] for c in chunks).items(), reverse=True):
        print(f"    Priority {priority}: {count}")

    if args.dry_run:
        print("\n  [DRY RUN] Nothing uploaded")
        return

    print(f"\nIndexing {len(chunks)} chunks...")
    try:
        indexed = index_chunks(chunks)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nTesting retrieval: {args.test_query!r}")
    results = get_vector_index().query(
        vector=create_embedding(args.test_query), top_k=3, include_metadata=True,
    )
    for i, r in enumerate(results, 1):
        meta = r.metadata or {}
        print(f"  {i}. [{r.score or 0:.3f}] {meta.get('section', '')}")
        print(f"     {str(meta.get('text', ''))[:100]}...")

    print(f"\n{'='*60}")
    print(f"  Indexed {indexed} chunks ({config.EMBEDDING_MODEL})")
    print(f"{'='*60}")


if __name__ == "__main__":
    main()
