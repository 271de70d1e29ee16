from carekorea import config
from carekorea.pipeline.batch import (
    build_request,
    run_auto_generate,
    source_content_from_post,
    translate_saved_post,
)

from conftest import FakeStore


def pending(keyword_id, keyword, priority=5, **extra):
    return {"id": keyword_id, "keyword": keyword, "locale": "en", "category": "dermatology",
            "priority": priority, "status": "pending", **extra}


class FakePipeline:
    """Pipeline stand-in; keywords listed in `fail` return a failure."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def __call__(self, store, request, assigned_in_batch=None, preassigned_author_id=None):
        self.calls.append({
            "request": request,
            "assigned": dict(assigned_in_batch),
            "preassigned": preassigned_author_id,
        })
        if request["keyword"] in self.fail:
            return {"success": False, "keyword_id": request["keyword_id"], "keyword": request["keyword"],
                    "locale": request["locale"], "error": "boom"}
        post = store.insert_blog_post({"title": request["keyword"], "locale": request["locale"]})
        return {"success": True, "keyword_id": request["keyword_id"], "keyword": request["keyword"],
                "locale": request["locale"], "blog_post_id": post["id"],
                "author_persona_id": "p-en-2", "total_cost": 0.25}


def test_build_request_uses_config_defaults_and_ignores_none_overrides():
    config.DEFAULT_IMAGE_COUNT = 2
    request = build_request(pending("k1", "acne laser"), include_rag=False, auto_publish=None)

    assert request["keyword_id"] == "k1"
    assert request["include_rag"] is False
    assert request["auto_publish"] is config.AUTO_PUBLISH
    assert request["image_count"] == 2


def test_batch_processes_queue_by_priority_and_spreads_authors():
    store = FakeStore(keywords=[
        pending("k1", "acne laser", priority=2),
        pending("k2", "botox seoul", priority=9, author_persona_id="p-en-1"),
        pending("k3", "pico toning", priority=5),
    ])
    pipeline = FakePipeline(fail={"pico toning"})

    summary = run_auto_generate(store, limit=10, pipeline=pipeline)

    assert [c["request"]["keyword"] for c in pipeline.calls] == ["botox seoul", "pico toning", "acne laser"]
    assert pipeline.calls[0]["preassigned"] == "p-en-1"
    assert pipeline.calls[2]["assigned"] == {"p-en-2": 1}
    assert summary["generated"] == 2
    assert summary["failed"] == 1
    assert summary["total_cost"] == 0.5
    assert ("k1", "generating", {}) in store.status_updates
    assert store.cron_logs[-1]["job_name"] == "auto-generate"
    assert store.cron_logs[-1]["status"] == "partial"


def test_limit_defaults_to_daily_generation_limit():
    config.DAILY_GENERATION_LIMIT = 1
    store = FakeStore(keywords=[pending("k1", "a"), pending("k2", "b")])

    summary = run_auto_generate(store, pipeline=FakePipeline())

    assert summary["total"] == 1
    assert store.cron_logs[-1]["status"] == "success"


def test_disabled_setting_skips_the_run():
    config.AUTO_GENERATE_ENABLED = False
    store = FakeStore(keywords=[pending("k1", "a")])
    pipeline = FakePipeline()

    summary = run_auto_generate(store, pipeline=pipeline)

    assert summary["total"] == 0
    assert pipeline.calls == []


def test_empty_queue_is_logged():
    store = FakeStore()
    summary = run_auto_generate(store, pipeline=FakePipeline())

    assert summary["success"] is True
    assert summary["message"] == "No pending keywords to process"
    assert store.cron_logs[-1]["status"] == "success"


def test_queue_fetch_error_is_logged_as_error():
    store = FakeStore()
    store.fail["fetch_pending_keywords"] = "relation does not exist"

    summary = run_auto_generate(store, pipeline=FakePipeline())

    assert summary["success"] is False
    assert store.cron_logs[-1]["status"] == "error"


def test_explicit_keyword_rows_run_even_when_disabled():
    config.AUTO_GENERATE_ENABLED = False
    store = FakeStore()
    pipeline = FakePipeline()

    summary = run_auto_generate(store, keyword_rows=[pending("k9", "fillers")], pipeline=pipeline)

    assert summary["generated"] == 1


def saved_post():
    return {
        "id": "post-src", "slug": "botox-seoul-en-abc", "locale": "en", "title": "Botox in Seoul",
        "excerpt": "Guide", "content": "<p>Body</p>", "category": "dermatology", "tags": ["botox"],
        "status": "draft", "author_persona_id": "p-en-2", "cover_image_url": "https://cdn/c.png",
        "cover_image_alt": "Clinic",
        "seo_meta": {"meta_title": "Botox Seoul", "meta_description": "All about botox", "og_image": "https://cdn/c.png"},
        "generation_metadata": {"keyword": "botox seoul", "faq_schema": [{"question": "q", "answer": "a"}]},
    }


def test_source_content_uses_saved_seo_fields():
    source = source_content_from_post(saved_post())
    assert source["metaTitle"] == "Botox Seoul"
    assert source["faqSchema"] == [{"question": "q", "answer": "a"}]


def test_translations_are_saved_as_drafts():
    store = FakeStore(posts=[saved_post()])

    def fake_translate(source, source_locale, targets, keyword, category=None):
        return {
            "translations": {loc: {"title": f"Botox ({loc})", "content": "<p>x</p>", "metaTitle": f"M {loc}"}
                             for loc in targets if loc != "th"},
            "errors": [{"locale": "th", "error": "overloaded"}] if "th" in targets else [],
            "hreflang_tags": [{"locale": "en", "url": "u"}],
            "total_cost": 0.1,
        }

    result = translate_saved_post(store, "post-src", ["ja", "th"], "botox seoul", translate=fake_translate)

    assert list(result["saved"]) == ["ja"]
    assert result["errors"] == [{"locale": "th", "error": "overloaded"}]
    row = store.inserted_posts[0]
    assert row["locale"] == "ja"
    assert row["status"] == "draft"
    assert row["seo_meta"]["og_image"] == "https://cdn/c.png"
    assert row["seo_meta"]["meta_title"] == "M ja"
    assert row["generation_metadata"]["source_post_id"] == "post-src"


def test_translate_missing_post():
    result = translate_saved_post(FakeStore(), "nope", ["ja"], "botox", translate=None)
    assert result["saved"] == {}
    assert "not found" in result["errors"][0]["error"]


def test_batch_translates_successful_posts(monkeypatch):
    from carekorea.pipeline import batch

    calls = []

    def fake_translate_saved(store, post_id, targets, keyword):
        calls.append((post_id, targets))
        return {"saved": {}, "errors": [], "total_cost": 0.05, "hreflang_tags": []}

    monkeypatch.setattr(batch, "translate_saved_post", fake_translate_saved)
    store = FakeStore(keywords=[pending("k1", "botox seoul")])

    summary = run_auto_generate(store, pipeline=FakePipeline(), translate_to=["en", "ja"])

    assert calls == [("post-1", ["ja"])]
    assert summary["total_cost"] == 0.25 + 0.05


def test_post_lookup_error_does_not_abort_the_batch():
    store = FakeStore(keywords=[pending("k1", "botox seoul", priority=9), pending("k2", "acne laser")])
    store.fail["get_blog_post"] = "connection reset"

    summary = run_auto_generate(store, pipeline=FakePipeline(), translate_to=["ja"])

    assert summary["generated"] == 2
    assert store.keywords["k2"]["status"] == "generating"
    assert summary["results"][0]["translations"]["saved"] == {}
    assert "connection reset" in summary["results"][0]["translations"]["errors"][0]["error"]
    assert store.cron_logs[-1]["job_name"] == "auto-generate"


def test_translator_crash_is_recorded_per_keyword(monkeypatch):
    from carekorea.pipeline import batch

    def exploding_translate(store, post_id, targets, keyword):
        raise RuntimeError("translator unavailable")

    monkeypatch.setattr(batch, "translate_saved_post", exploding_translate)
    store = FakeStore(keywords=[pending("k1", "botox seoul", priority=9), pending("k2", "acne laser")])

    summary = run_auto_generate(store, pipeline=FakePipeline(), translate_to=["ja"])

    assert summary["generated"] == 2
    assert summary["total_cost"] == 0.5
    for result in summary["results"]:
        assert result["translations"]["errors"] == [{"locale": None, "error": "translator unavailable"}]
    assert len(store.cron_logs) == 1
