#!/usr/bin/env python3
"""Import keyword CSV files into the content_keywords queue.

Usage:
    python import_keywords.py data/keywords/en.csv           # Locale detected from the first keyword
    python import_keywords.py ja.csv --locale ja --category plastic-surgery
    python import_keywords.py kw.csv --delimiter , --no-header
    python import_keywords.py kw.csv --dry-run               # Parse and report only
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from carekorea import config
from carekorea.loaders import import_keywords, load_keyword_file
from carekorea.store import create_store


def main():
    parser = argparse.ArgumentParser(description="Import keyword CSV files")
    parser.add_argument("files", nargs="*", type=Path,
                        help="CSV files (default: every .csv in data/keywords)")
    parser.add_argument("--locale", type=str, default=None,
                        help="Locale of the keywords (default: auto-detect)")
    parser.add_argument("--category", type=str, default=None,
                        help="Category for every imported keyword")
    parser.add_argument("--delimiter", type=str, default="|")
    parser.add_argument("--no-header", action="store_true",
                        help="First line is data, not a header")
    parser.add_argument("--strict-volume", action="store_true",
                        help="Reject rows without a numeric search volume")
    parser.add_argument("--dry-run", action="store_true",
                        help="Parse and report without writing to the database")
    args = parser.parse_args()

    files = args.files or sorted(config.KEYWORDS_IMPORT_DIR.glob("*.csv"))
    if not files:
        print(f"No CSV files given and none found in {config.KEYWORDS_IMPORT_DIR}")
        sys.exit(1)

    store = None if args.dry_run else create_store()
    totals = {"imported": 0, "skipped_existing": 0, "failed": 0, "invalid": 0}

    for path in files:
        print(f"\n{'='*60}")
        print(f"Importing: {path}")
        print(f"{'='*60}")
        try:
            parsed = load_keyword_file(
                path,
                locale=args.locale,
                category=args.category,
                delimiter=args.delimiter,
                skip_header=not args.no_header,
                validate_search_volume=args.strict_volume,
            )
        except (OSError, ValueError) as e:
            print(f"  ERROR {e}")
            continue

        stats = parsed["stats"]
        print(f"  -> {stats['valid_rows']} valid, {stats['invalid_rows']} invalid "
              f"({stats['duplicates_in_file']} duplicates)")
        for error in parsed["errors"][:10]:
            print(f"  Warning: row {error['row']}: {error['message']}")
        totals["invalid"] += stats["invalid_rows"]

        if args.dry_run:
            continue

        result = import_keywords(store, parsed["data"])
        print(f"  OK Imported {result['imported']}, already queued {result['skipped_existing']}, "
              f"failed {result['failed']}")
        for key in ("imported", "skipped_existing", "failed"):
            totals[key] += result[key]

    print(f"\nTotal: {totals['imported']} imported, {totals['skipped_existing']} already queued, "
          f"{totals['failed']} failed, {totals['invalid']} invalid rows")


if __name__ == "__main__":
    main()
