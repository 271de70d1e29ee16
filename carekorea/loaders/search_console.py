"""Collect Search Console page performance into content_performance."""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from carekorea import config
from carekorea.errors import StoreError
from carekorea.pipeline.learning import run_learning_pipeline

SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]
JOB_NAME = "gsc-collect"

# Tier thresholds (ctr is a fraction, position is the average rank)
TOP_CTR = 0.05
TOP_POSITION = 10
MID_CTR_RANGE = (0.02, 0.05)
MID_POSITION_RANGE = (10, 30)


def get_date_range(days_ago: int, today: Optional[datetime] = None) -> tuple[str, str]:
    """(start, end) as YYYY-MM-DD. GSC data lags by about two days."""
    end = (today or datetime.now()) - timedelta(days=2)
    start = end - timedelta(days=days_ago)
    return start.strftime("%Y-%m-%d"), end.strftime("%Y-%m-%d")


def classify_performance_tier(ctr: float, position: float) -> str:
    if ctr > TOP_CTR and position < TOP_POSITION:
        return "top"
    if MID_CTR_RANGE[0] <= ctr <= MID_CTR_RANGE[1] or MID_POSITION_RANGE[0] <= position <= MID_POSITION_RANGE[1]:
        return "mid"
    return "low"


def is_high_performer(ctr: float, clicks: int, position: float, impressions: int) -> bool:
    return ctr >= 0.03 and clicks >= 50 and position <= 20 and impressions >= 500


# ── API access ────────────────────────────────────────────────────────────


def get_search_console_service():
    """Authorized Search Console service; runs the OAuth browser flow on first use."""
    from google.oauth2.credentials import Credentials
    from google_auth_oauthlib.flow import InstalledAppFlow
    from google.auth.transport.requests import Request
    from googleapiclient.discovery import build

    token_path = Path(config.GSC_TOKEN_PATH)
    creds = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            if not Path(config.GOOGLE_CREDENTIALS_PATH).exists():
                raise ValueError(
                    f"Missing credentials file: {config.GOOGLE_CREDENTIALS_PATH}. "
                    "Download OAuth credentials from Google Cloud Console."
                )
            flow = InstalledAppFlow.from_client_secrets_file(config.GOOGLE_CREDENTIALS_PATH, SCOPES)
            creds = flow.run_local_server(port=0)
        token_path.write_text(creds.to_json())

    return build("searchconsole", "v1", credentials=creds)


def fetch_page_rows(service, start_date: str, end_date: str, row_limit: int = 1000) -> list[dict]:
    """Per-page clicks, impressions, ctr and position for the date range."""
    request_body = {
        "startDate": start_date,
        "endDate": end_date,
        "dimensions": ["page"],
        "rowLimit": row_limit,
        "dataState": "final",
    }
    response = (
        service.searchanalytics()
        .query(siteUrl=config.GSC_SITE_URL, body=request_body)
        .execute()
    )

    rows = []
    for row in response.get("rows", []):
        rows.append(
            {
                "page": (row.get("keys") or [""])[0],
                "clicks": row.get("clicks", 0),
                "impressions": row.get("impressions", 0),
                "ctr": row.get("ctr", 0.0),
                "position": row.get("position", 0.0),
            }
        )
    return rows


# ── Collection ────────────────────────────────────────────────────────────


def build_post_url_map(posts: list[dict], site_url: Optional[str] = None) -> dict[str, str]:
    """{page URL: blog_post_id}, keyed with and without a trailing slash."""
    site_url = (site_url if site_url is not None else config.GSC_SITE_URL).rstrip("/")
    url_map = {}
    for post in posts:
        url = f"{site_url}/{post['locale']}/blog/{post['slug']}"
        url_map[url] = post["id"]
        url_map[url.rstrip("/")] = post["id"]
    return url_map


def collect_gsc_data(
    store,
    days_ago: int = 28,
    fetch_rows: Optional[Callable[[str, str], list[dict]]] = None,
    learn: Optional[Callable[[object, list[dict]], dict]] = None,
) -> dict:
    """Fetch page performance and upsert one content_performance row per blog post.

    Pages that are not blog posts are skipped. A failed upsert is recorded in
    "errors" and does not stop the run. When the run found high performers,
    the learning step indexes them for retrieval; its outcome is reported
    under "learning" and does not change the run status.

    Returns:
        {success, pages_processed, records, high_performers, errors[, learning]}
    """
    start = time.time()
    result = {"success": False, "pages_processed": 0, "records": 0, "high_performers": 0, "errors": []}

    high_performers = []
    try:
        high_performers = _collect(store, days_ago, fetch_rows, result)
    except Exception as e:
        result["errors"].append(f"Collection error: {e}")

    print(f"  OK {result['records']} records saved, {result['high_performers']} high performers")

    if result["success"] and high_performers:
        print("  -> Running learning step for high performers...")
        learn = learn or run_learning_pipeline
        try:
            result["learning"] = learn(store, high_performers)
        except Exception as e:
            print(f"  Warning: learning step failed: {e}")
            result["learning"] = {"processed": len(high_performers), "indexed": 0, "skipped": 0,
                                  "errors": [f"Learning error: {e}"]}

    if result["success"]:
        status = "partial" if result["errors"] else "success"
    else:
        status = "error"
    store.log_cron_execution(JOB_NAME, status, result, int((time.time() - start) * 1000))
    return result


def _collect(store, days_ago: int, fetch_rows, result: dict) -> list[dict]:
    start_date, end_date = get_date_range(days_ago)
    print(f"  -> Search Console {start_date} .. {end_date}")

    if fetch_rows is None:
        service = get_search_console_service()

        def fetch_rows(s, e):
            return fetch_page_rows(service, s, e, config.GSC_ROW_LIMIT)

    pages = fetch_rows(start_date, end_date)
    result["pages_processed"] = len(pages)
    print(f"  OK {len(pages)} pages returned")

    posts = store.fetch_blog_post_urls()
    if not posts:
        result["errors"].append("No blog posts found")
        return []

    url_map = build_post_url_map(posts)
    high_performers = []

    for page in pages:
        post_id = url_map.get(page["page"]) or url_map.get(page["page"].rstrip("/"))
        if not post_id:
            continue

        high = is_high_performer(page["ctr"], page["clicks"], page["position"], page["impressions"])
        if high:
            result["high_performers"] += 1
            high_performers.append({"blog_post_id": post_id, **page})

        record = {
            "blog_post_id": post_id,
            "gsc_impressions": page["impressions"],
            "gsc_clicks": page["clicks"],
            "gsc_ctr": page["ctr"],
            "gsc_position": page["position"],
            "date_range_start": start_date,
            "date_range_end": end_date,
            "is_high_performer": high,
            "performance_tier": classify_performance_tier(page["ctr"], page["position"]),
        }
        try:
            store.upsert_content_performance(record)
        except StoreError as e:
            result["errors"].append(f"Failed to save record for {post_id}: {e}")
            continue
        result["records"] += 1

    result["success"] = True
    return high_performers
