"""In-memory fakes for the store, Anthropic, Replicate and the vector index."""

from __future__ import annotations

import json
import threading
from types import SimpleNamespace

import pytest

from carekorea import config
from carekorea.errors import StoreError

_CONFIG_SNAPSHOT = {name: getattr(config, name) for name in dir(config) if name.isupper()}


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Credentials for tests, and config restored after every test."""
    for name, value in _CONFIG_SNAPSHOT.items():
        monkeypatch.setattr(config, name, value)
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "test-anthropic-key")
    monkeypatch.setattr(config, "REPLICATE_API_TOKEN", "")
    monkeypatch.setattr(config, "PERSONA_RETRY_DELAY", 0)
    monkeypatch.setattr(config, "IMAGE_BATCH_DELAY", 0)
    yield


# ── Store ─────────────────────────────────────────────────────────────────


class FakeStore:
    """ContentStore stand-in backed by lists; `fail` maps method name -> error message."""

    def __init__(self, personas=None, keywords=None, posts=None, settings=None):
        self.personas = personas if personas is not None else []
        self.keywords = {k["id"]: dict(k) for k in keywords or []}
        self.posts = {p["id"]: dict(p) for p in posts or []}
        self.settings = settings or {}
        self.fail: dict[str, str] = {}
        self.status_updates: list[tuple] = []
        self.inserted_posts: list[dict] = []
        self.inserted_keywords: list[dict] = []
        self.performance: list[dict] = []
        self.uploads: list[tuple] = []
        self.cron_logs: list[dict] = []
        self.published: list[str] = []
        self.persona_fetches = 0
        self._lock = threading.Lock()

    def _check(self, method: str):
        if method in self.fail:
            raise StoreError(self.fail[method])

    def fetch_personas_with_post_counts(self):
        self.persona_fetches += 1
        self._check("fetch_personas_with_post_counts")
        return [dict(p) for p in self.personas]

    def get_persona(self, persona_id):
        return next((dict(p) for p in self.personas if p["id"] == persona_id), None)

    def fetch_pending_keywords(self, limit, priority_threshold=0):
        self._check("fetch_pending_keywords")
        pending = [
            k for k in self.keywords.values()
            if k.get("status", "pending") == "pending" and (k.get("priority") or 0) >= priority_threshold
        ]
        pending.sort(key=lambda k: -(k.get("priority") or 0))
        return [dict(k) for k in pending[:limit]]

    def get_keyword(self, keyword_id):
        row = self.keywords.get(keyword_id)
        return dict(row) if row else None

    def update_keyword_status(self, keyword_id, status, **extra):
        self._check("update_keyword_status")
        self.status_updates.append((keyword_id, status, extra))
        if keyword_id in self.keywords:
            self.keywords[keyword_id].update({"status": status, **extra})

    def rollback_keyword(self, keyword_id):
        self._check("rollback_keyword")
        self.update_keyword_status(keyword_id, "pending")

    def existing_keywords(self, locale):
        return {k["keyword"].lower() for k in self.keywords.values() if k["locale"] == locale}

    def insert_keywords(self, rows):
        self._check("insert_keywords")
        self.inserted_keywords.extend(rows)
        return len(rows)

    def insert_blog_post(self, row):
        self._check("insert_blog_post")
        post_id = f"post-{len(self.inserted_posts) + 1}"
        self.inserted_posts.append(row)
        self.posts[post_id] = {**row, "id": post_id}
        return {"id": post_id, "slug": row.get("slug"), "title": row.get("title")}

    def get_blog_post(self, post_id):
        self._check("get_blog_post")
        row = self.posts.get(post_id)
        return dict(row) if row else None

    def fetch_posts_for_publishing(self, limit):
        self._check("fetch_posts_for_publishing")
        drafts = [p for p in self.posts.values() if p.get("status") == "draft"]
        return [dict(p) for p in drafts[:limit]]

    def publish_post(self, post_id):
        self._check("publish_post")
        self.published.append(post_id)
        self.posts[post_id]["status"] = "published"
        return "2026-01-01T00:00:00+00:00"

    def fetch_blog_post_urls(self):
        return [{"id": p["id"], "slug": p["slug"], "locale": p["locale"]} for p in self.posts.values()]

    def upload_image(self, path, data, content_type):
        self._check("upload_image")
        with self._lock:
            self.uploads.append((path, data, content_type))
        return f"https://storage.example.com/blog-images/{path}"

    def upsert_content_performance(self, record):
        self._check("upsert_content_performance")
        self.performance.append(record)

    def read_settings(self):
        return self.settings

    def log_cron_execution(self, job_name, status, details, execution_ms):
        self.cron_logs.append({"job_name": job_name, "status": status, "details": details})


def make_persona(persona_id, slug, locales, specialty="general", post_count=0):
    return {
        "id": persona_id,
        "slug": slug,
        "name": {"en": slug.replace("-", " ").title(), "ko": slug},
        "years_of_experience": 7,
        "primary_specialty": specialty,
        "languages": [{"code": code, "proficiency": "native"} for code in locales],
        "bio_short": {"en": f"{slug} bio", "ko": f"{slug} 소개"},
        "post_count": post_count,
    }


@pytest.fixture
def personas():
    return [
        make_persona("p-en-1", "sarah-kim", ["en", "ko"], "plastic-surgery", post_count=4),
        make_persona("p-en-2", "david-lee", ["en", "ko"], "dermatology", post_count=1),
        make_persona("p-ja-1", "yuki-park", ["ja", "ko"], "plastic-surgery", post_count=2),
    ]


@pytest.fixture
def store(personas):
    return FakeStore(personas=personas)


# ── Anthropic ─────────────────────────────────────────────────────────────


class FakeMessages:
    def __init__(self, responder):
        self.responder = responder
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def create(self, **kwargs):
        with self._lock:
            self.calls.append(kwargs)
        text = self.responder(kwargs)
        if isinstance(text, Exception):
            raise text
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=text)],
            usage=SimpleNamespace(input_tokens=2000, output_tokens=1000),
        )


class FakeAnthropic:
    """Anthropic client whose messages.create answers with responder(kwargs)."""

    def __init__(self, responder):
        self.messages = FakeMessages(responder)


def generated_post(**overrides) -> dict:
    post = {
        "title": "Rhinoplasty in Korea: Costs, Clinics and Recovery Guide",
        "excerpt": "Everything you need to know about rhinoplasty in Korea, from prices to recovery timelines.",
        "content": (
            "<h2>Why Korea</h2><p>Rhinoplasty in Korea is popular.</p>"
            "<p>[IMAGE_PLACEHOLDER_1]</p><h2>Costs</h2><p>Prices start at $3,000.</p>"
        ),
        "contentFormat": "html",
        "metaTitle": "Rhinoplasty in Korea | GetCareKorea",
        "metaDescription": "Rhinoplasty in Korea explained by a medical interpreter.",
        "tags": ["rhinoplasty", "korea", "plastic surgery"],
        "faqSchema": [{"question": "Is it safe?", "answer": "Yes, at accredited clinics."}],
        "howToSchema": [],
        "images": [
            {
                "position": "after-intro",
                "placeholder": "[IMAGE_PLACEHOLDER_1]",
                "prompt": "A consultation room in a Seoul clinic.",
                "alt": "Consultation room",
                "caption": "A typical consultation",
            }
        ],
        "internalLinks": [],
    }
    post.update(overrides)
    return post


@pytest.fixture
def anthropic_post():
    """Fake Anthropic client returning a fenced JSON post."""
    return FakeAnthropic(lambda kwargs: "```json\n" + json.dumps(generated_post()) + "\n```")


# ── Replicate / vector index / embeddings ─────────────────────────────────


class FakeReplicate:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on or set()
        self.calls: list[tuple] = []
        self._lock = threading.Lock()

    def run(self, model, input):
        with self._lock:
            self.calls.append((model, input))
            number = len(self.calls)
        if any(marker in input["prompt"] for marker in self.fail_on):
            raise RuntimeError("NSFW content detected")
        return [SimpleNamespace(url=f"https://replicate.delivery/out-{number}.png")]


class FakeEmbedder:
    def __init__(self):
        self.embeddings = self
        self.inputs: list[str] = []

    def create(self, model, input):
        self.inputs.append(input)
        return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])


class FakeIndex:
    """Vector index returning canned results per `source` filter."""

    def __init__(self, results=None, fail_sources=()):
        self.results = results or {}
        self.fail_sources = fail_sources
        self.filters: list[str] = []
        self.upserts: list[tuple] = []

    def query(self, vector, top_k, include_metadata, filter=""):
        self.filters.append(filter)
        for source in self.fail_sources:
            if source in filter:
                raise ConnectionError("index unavailable")
        for source, rows in self.results.items():
            if f'source = "{source}"' in filter:
                return [SimpleNamespace(metadata=meta, score=score) for meta, score in rows][:top_k]
        return []

    def upsert(self, vectors):
        self.upserts.extend(vectors)


# ── Sample content ────────────────────────────────────────────────────────

SECTION_HTML = (
    "<p>Rhinoplasty in Korea is one of the most requested procedures for international patients, "
    "and you can expect costs from $3,000 to $6,500 depending on the clinic. Around 30% of my "
    "patients combine it with a health checkup. Recovery takes one to two weeks for most people, "
    "and the swelling fades gradually over several months. Choosing an expert surgeon matters.</p>"
    "<ul><li>Consultation with a board certified surgeon</li><li>Pre-operative tests</li>"
    "<li>Follow-up visits during recovery</li></ul>"
)


def good_post_html() -> str:
    sections = "".join(f"<h2>Section {i}: rhinoplasty korea details</h2>{SECTION_HTML}" for i in range(1, 5))
    intro = ("<p>As a medical interpreter in Seoul, I have accompanied hundreds of patients through "
             "rhinoplasty korea consultations. Is it safe? Here is what you should know.</p>")
    outro = ("<p>Contact us to book an appointment and learn more about rhinoplasty korea options "
             "with trusted, safe clinics.</p>")
    return intro + sections + outro
