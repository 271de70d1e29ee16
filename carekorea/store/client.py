"""Supabase client for reading the keyword queue and writing generated posts."""

from __future__ import annotations

from datetime import datetime, timezone

from postgrest.exceptions import APIError

from carekorea import config
from carekorea.errors import StoreError


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContentStore:
    """Read personas, keywords and settings; write blog posts and statuses."""

    def __init__(self, client):
        self.client = client

    # ── Helpers ───────────────────────────────────────────────────────────

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as e:
            raise StoreError(f"{action} failed: {e.message}") from e

    def _first(self, rows):
        return rows[0] if rows else None

    # ── Author personas ───────────────────────────────────────────────────

    def fetch_personas_with_post_counts(self) -> list[dict]:
        """Active personas with a dynamic post_count (RPC get_authors_with_post_counts)."""
        response = self._execute(
            self.client.rpc("get_authors_with_post_counts"),
            "Fetching author personas",
        )
        return response.data or []

    def get_persona(self, persona_id: str) -> dict | None:
        response = self._execute(
            self.client.table("author_personas").select("*").eq("id", persona_id).limit(1),
            f"Loading author persona {persona_id}",
        )
        return self._first(response.data)

    # ── Keyword queue (content_keywords) ──────────────────────────────────

    def fetch_pending_keywords(self, limit: int, priority_threshold: int = 0) -> list[dict]:
        """Pending keywords, highest priority first, oldest first within a priority."""
        query = (
            self.client.table("content_keywords")
            .select("id, keyword, locale, category, priority, target_publish_date, author_persona_id")
            .eq("status", "pending")
        )
        if priority_threshold:
            query = query.gte("priority", priority_threshold)
        query = query.order("priority", desc=True).order("created_at").limit(limit)
        return self._execute(query, "Fetching pending keywords").data or []

    def get_keyword(self, keyword_id: str) -> dict | None:
        response = self._execute(
            self.client.table("content_keywords").select("*").eq("id", keyword_id).limit(1),
            f"Loading keyword {keyword_id}",
        )
        return self._first(response.data)

    def update_keyword_status(self, keyword_id: str, status: str, **extra) -> None:
        """Set content_keywords.status (and any extra columns) for one keyword."""
        values = {"status": status, "updated_at": now_iso(), **extra}
        self._execute(
            self.client.table("content_keywords").update(values).eq("id", keyword_id),
            f"Updating keyword {keyword_id} to '{status}'",
        )

    def rollback_keyword(self, keyword_id: str) -> None:
        self.update_keyword_status(keyword_id, "pending")

    def existing_keywords(self, locale: str) -> set[str]:
        response = self._execute(
            self.client.table("content_keywords").select("keyword").eq("locale", locale),
            f"Reading existing {locale} keywords",
        )
        return {row["keyword"].strip().lower() for row in response.data or [] if row.get("keyword")}

    def insert_keywords(self, rows: list[dict]) -> int:
        if not rows:
            return 0
        response = self._execute(
            self.client.table("content_keywords").insert(rows),
            "Inserting keywords",
        )
        return len(response.data or [])

    # ── Blog posts ────────────────────────────────────────────────────────

    def insert_blog_post(self, row: dict) -> dict:
        """Insert a blog_posts row and return {id, slug, title} of the saved post."""
        response = self._execute(
            self.client.table("blog_posts").insert(row),
            "Database save",
        )
        saved = self._first(response.data)
        if not saved:
            raise StoreError("Database save failed: no row returned")
        return {"id": saved["id"], "slug": saved.get("slug"), "title": saved.get("title")}

    def get_blog_post(self, post_id: str) -> dict | None:
        response = self._execute(
            self.client.table("blog_posts").select("*").eq("id", post_id).limit(1),
            f"Loading blog post {post_id}",
        )
        return self._first(response.data)

    def fetch_posts_for_publishing(self, limit: int) -> list[dict]:
        """Draft posts, oldest first."""
        query = (
            self.client.table("blog_posts")
            .select("*")
            .eq("status", "draft")
            .order("created_at")
            .limit(limit)
        )
        return self._execute(query, "Fetching draft posts").data or []

    def publish_post(self, post_id: str) -> str:
        published_at = now_iso()
        self._execute(
            self.client.table("blog_posts")
            .update({"status": "published", "published_at": published_at, "updated_at": published_at})
            .eq("id", post_id),
            f"Publishing post {post_id}",
        )
        return published_at

    def fetch_blog_post_urls(self) -> list[dict]:
        response = self._execute(
            self.client.table("blog_posts").select("id, slug, locale"),
            "Reading blog post slugs",
        )
        return response.data or []

    # ── Storage ───────────────────────────────────────────────────────────

    def upload_image(self, path: str, data: bytes, content_type: str) -> str:
        """Upload bytes to the blog image bucket and return the public URL."""
        bucket = self.client.storage.from_(config.IMAGE_STORAGE_BUCKET)
        try:
            bucket.upload(path, data, {"content-type": content_type, "upsert": "true"})
        except Exception as e:
            raise StoreError(f"Storage upload failed: {e}") from e
        return bucket.get_public_url(path)

    # ── Performance (content_performance) ─────────────────────────────────

    def upsert_content_performance(self, record: dict) -> None:
        self._execute(
            self.client.table("content_performance").upsert(
                {**record, "updated_at": now_iso()},
                on_conflict="blog_post_id,date_range_start,date_range_end",
            ),
            f"Saving performance for {record.get('blog_post_id')}",
        )

    # ── Settings / cron logs ──────────────────────────────────────────────

    def read_settings(self) -> dict:
        """Read system_settings as {key: value} (value is the JSONB object)."""
        response = self._execute(
            self.client.table("system_settings").select("key, value"),
            "Reading system settings",
        )
        return {row["key"]: row.get("value") or {} for row in response.data or []}

    def log_cron_execution(self, job_name: str, status: str, details: dict, execution_ms: int) -> None:
        """Insert a cron_logs row. A missing table or failed insert is only reported."""
        try:
            self.client.table("cron_logs").insert({
                "job_name": job_name,
                "status": status,
                "records_processed": details.get("generated", details.get("published", details.get("records", 0))),
                "execution_time_ms": execution_ms,
                "details": details,
                "created_at": now_iso(),
            }).execute()
        except APIError as e:
            print(f"  Warning: could not write cron log ({e.message})")


def create_store() -> ContentStore:
    """Build a ContentStore from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY."""
    if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE_KEY:
        raise ValueError(
            "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set. Add them to your .env file."
        )
    from supabase import create_client

    return ContentStore(create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY))
