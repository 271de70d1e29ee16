#!/usr/bin/env python3
"""Collect Search Console performance for published blog posts.

Usage:
    python collect_gsc.py             # Last 28 days (ending two days ago)
    python collect_gsc.py --days 7

The first run opens a browser for Google OAuth; the token is cached.
"""

from __future__ import annotations

import argparse
import sys

from carekorea import config
from carekorea.loaders import collect_gsc_data
from carekorea.store import create_store


def main():
    parser = argparse.ArgumentParser(description="Collect Search Console data into content_performance")
    parser.add_argument("--days", type=int, default=config.GSC_DAYS,
                        help="Length of the date range in days")
    args = parser.parse_args()

    store = create_store()
    result = collect_gsc_data(store, days_ago=args.days)

    print(f"\n  Pages: {result['pages_processed']}, records: {result['records']}, "
          f"high performers: {result['high_performers']}")
    learning = result.get("learning")
    if learning:
        print(f"  Learning: {learning.get('indexed', 0)} indexed, {learning.get('skipped', 0)} skipped")
        for error in learning.get("errors", []):
            print(f"  Warning: {error}")
    for error in result["errors"]:
        print(f"  ERROR {error}")
    if not result["success"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
