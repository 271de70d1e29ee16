"""Load keyword CSV files into the content_keywords queue.

File format, one keyword per line, `|`-separated:

    keyword_native|keyword_ko|search_volume
    rhinoplasty korea cost|코성형 한국 비용|2400

Lines starting with "#" are comments. The search volume is optional.
"""

from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Optional

from carekorea.errors import StoreError

_KANA = re.compile(r"[぀-ゟ゠-ヿ]")
_THAI = re.compile(r"[฀-๿]")
_CYRILLIC = re.compile(r"[а-яА-ЯёЁ]")
_MONGOLIAN = re.compile(r"[өӨүҮ᠀-᢯]")
_HAN = re.compile(r"[一-鿿]")
_TRADITIONAL = re.compile(r"[繁體醫療學習說話國語時間電話銀行機場]")
_HANGUL = re.compile(r"[가-힯ᄀ-ᇿ]")
_ASCII_TEXT = re.compile(r"^[a-zA-Z0-9\s\-'\",.:;!?()]+$")

# search volume -> priority, first match wins
PRIORITY_BY_VOLUME = [(1000, 10), (500, 8), (200, 6), (100, 4), (50, 2)]


def detect_locale(text: str) -> Optional[str]:
    """Guess a keyword's locale from its script, or None when unsure."""
    text = text.strip()
    if _KANA.search(text):
        return "ja"
    if _THAI.search(text):
        return "th"
    if _MONGOLIAN.search(text):
        return "mn"
    if _CYRILLIC.search(text):
        return "ru"
    if _HAN.search(text):
        return "zh-TW" if _TRADITIONAL.search(text) else "zh-CN"
    if _HANGUL.search(text):
        return "ko"
    if _ASCII_TEXT.match(text):
        return "en"
    return None


def priority_for_volume(search_volume: Optional[int]) -> int:
    for threshold, priority in PRIORITY_BY_VOLUME:
        if (search_volume or 0) >= threshold:
            return priority
    return 1


def _error(row: int, message: str, column: Optional[str] = None, value: Optional[str] = None) -> dict:
    error = {"row": row, "message": message}
    if column:
        error["column"] = column
    if value is not None:
        error["value"] = value
    return error


def parse_keyword_csv(
    text: str,
    locale: str,
    category: Optional[str] = None,
    delimiter: str = "|",
    skip_header: bool = True,
    validate_search_volume: bool = False,
) -> dict:
    """Parse keyword CSV text.

    Returns {success, data, errors, stats}. Rows are numbered from 1 over the
    non-empty lines; a bad row is reported and skipped.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return {
            "success": False,
            "data": [],
            "errors": [_error(0, "CSV file is empty")],
            "stats": {"total_rows": 0, "valid_rows": 0, "invalid_rows": 0, "duplicates_in_file": 0},
        }

    data, errors = [], []
    seen = set()
    duplicates = 0
    start = 1 if skip_header else 0

    for index in range(start, len(lines)):
        line = lines[index]
        row_number = index + 1
        if line.startswith("#"):
            continue

        parts = [p.strip() for p in next(csv.reader([line], delimiter=delimiter))]
        if len(parts) < 2:
            errors.append(_error(row_number, f"At least 2 columns required (native|korean), got {len(parts)}",
                                 value=line))
            continue

        keyword_native, keyword_ko = parts[0], parts[1]
        volume_text = parts[2] if len(parts) > 2 else ""
        if not keyword_native:
            errors.append(_error(row_number, "Native keyword is empty", column="keyword_native"))
            continue
        if not keyword_ko:
            errors.append(_error(row_number, "Korean keyword is empty", column="keyword_ko"))
            continue

        search_volume = None
        if volume_text:
            try:
                search_volume = int(volume_text.replace(",", ""))
            except ValueError:
                if validate_search_volume:
                    errors.append(_error(row_number, "Search volume is not a valid number",
                                         column="search_volume", value=volume_text))
                    continue
        elif validate_search_volume:
            errors.append(_error(row_number, "Search volume is required", column="search_volume"))
            continue

        key = f"{locale}:{keyword_native.lower()}"
        if key in seen:
            duplicates += 1
            errors.append(_error(row_number, "Duplicate keyword in file",
                                 column="keyword_native", value=keyword_native))
            continue
        seen.add(key)

        data.append({
            "keyword_native": keyword_native,
            "keyword_ko": keyword_ko,
            "search_volume": search_volume,
            "locale": locale,
            "category": category,
        })

    return {
        "success": not errors,
        "data": data,
        "errors": errors,
        "stats": {
            "total_rows": len(lines) - start,
            "valid_rows": len(data),
            "invalid_rows": len(errors),
            "duplicates_in_file": duplicates,
        },
    }


def load_keyword_file(path: Path, locale: Optional[str] = None, category: Optional[str] = None, **options) -> dict:
    """Parse a keyword file; without `locale` it is detected from the first keyword."""
    text = Path(path).read_text(encoding="utf-8-sig")
    if locale is None:
        locale = _detect_file_locale(text, options.get("delimiter", "|"), options.get("skip_header", True))
        if locale is None:
            raise ValueError(f"Could not detect the locale of {path}; pass it explicitly.")
        print(f"  Detected locale: {locale}")
    return parse_keyword_csv(text, locale, category=category, **options)


def _detect_file_locale(text: str, delimiter: str, skip_header: bool) -> Optional[str]:
    lines = [line.strip() for line in text.splitlines() if line.strip() and not line.strip().startswith("#")]
    for line in lines[1 if skip_header else 0:]:
        first = line.split(delimiter)[0].strip()
        if first:
            return detect_locale(first)
    return None


def import_keywords(store, parsed: list[dict], batch_size: int = 100) -> dict:
    """Insert parsed keywords as pending rows, skipping ones already queued.

    Returns {imported, skipped_existing, failed}.
    """
    existing_by_locale: dict[str, set] = {}
    rows = []
    skipped = 0
    for item in parsed:
        locale = item["locale"]
        if locale not in existing_by_locale:
            existing_by_locale[locale] = store.existing_keywords(locale)
        if item["keyword_native"].strip().lower() in existing_by_locale[locale]:
            skipped += 1
            continue
        rows.append({
            "keyword": item["keyword_native"],
            "keyword_ko": item["keyword_ko"],
            "locale": locale,
            "category": item.get("category") or "general",
            "search_volume": item["search_volume"],
            "priority": priority_for_volume(item["search_volume"]),
            "status": "pending",
        })

    imported = failed = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        try:
            imported += store.insert_keywords(batch)
        except StoreError as e:
            print(f"  Warning: batch {start // batch_size + 1} failed: {e}")
            failed += len(batch)
    return {"imported": imported, "skipped_existing": skipped, "failed": failed}
