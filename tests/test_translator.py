import json
import threading
import time

import pytest

from carekorea.pipeline.translator import (
    format_hreflang_tags,
    generate_hreflang_tags,
    generate_multi_language_content,
    translate_content,
)

from conftest import FakeAnthropic

SOURCE = {
    "title": "코성형 한국 가이드",
    "excerpt": "한국 코성형의 모든 것",
    "content": "<h2>소개</h2><p>내용</p>",
    "contentFormat": "html",
    "metaTitle": "코성형 가이드",
    "metaDescription": "코성형 설명",
    "tags": ["코성형"],
    "faqSchema": [],
    "howToSchema": [],
}


def target_of(kwargs) -> str:
    prompt = kwargs["messages"][0]["content"]
    for locale in ("zh-CN", "zh-TW", "en", "ja", "th", "ru", "mn"):
        if f" to {locale}." in prompt:
            return locale
    raise AssertionError("no target locale in prompt")


def translating_client(fail=(), delay=0.0, active=None):
    def responder(kwargs):
        locale = target_of(kwargs)
        if active is not None:
            with active["lock"]:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
        time.sleep(delay)
        if active is not None:
            with active["lock"]:
                active["now"] -= 1
        if locale in fail:
            return RuntimeError(f"{locale} overloaded")
        return json.dumps({**SOURCE, "title": f"Rhinoplasty guide ({locale})", "contentFormat": "markdown"})

    return FakeAnthropic(responder)


def test_translate_content_sets_locale_and_format():
    translated = translate_content(SOURCE, "ko", "en", {"name": "김서연", "name_en": "Kim Seo-yeon"},
                                   client=translating_client())
    assert translated["locale"] == "en"
    assert translated["contentFormat"] == "html"
    assert "content_format" not in translated


def test_all_targets_translated_with_hreflang():
    progress = []
    result = generate_multi_language_content(
        SOURCE, "ko", ["en", "ja"], "rhinoplasty korea",
        client=translating_client(), on_progress=progress.append,
    )

    assert set(result["translations"]) == {"en", "ja"}
    assert result["errors"] == []
    assert result["total_cost"] > 0
    assert progress[-1]["completed"] == 2
    assert progress[-1]["in_progress"] == 0
    locales = [tag["locale"] for tag in result["hreflang_tags"]]
    assert locales == ["ko", "en", "ja", "x-default"]


def test_failed_locale_is_reported_and_others_continue():
    result = generate_multi_language_content(
        SOURCE, "ko", ["en", "ja", "th"], "rhinoplasty korea",
        client=translating_client(fail={"ja"}),
    )

    assert set(result["translations"]) == {"en", "th"}
    assert result["errors"] == [{"locale": "ja", "error": "ja overloaded"}]
    assert [tag["locale"] for tag in result["hreflang_tags"]] == ["ko", "en", "th", "x-default"]


def test_concurrency_is_capped():
    active = {"now": 0, "max": 0, "lock": threading.Lock()}
    result = generate_multi_language_content(
        SOURCE, "ko", ["en", "ja", "th", "ru", "mn"], "rhinoplasty korea",
        max_concurrency=2, client=translating_client(delay=0.05, active=active),
    )

    assert len(result["translations"]) == 5
    assert active["max"] <= 2


def test_hreflang_x_default_prefers_english():
    tags = generate_hreflang_tags("ko", ["ja", "en"], "Rhinoplasty Korea!", base_url="https://example.com/")
    assert tags[-1] == {"locale": "x-default", "url": "https://example.com/en/blog/rhinoplasty-korea"}

    tags = generate_hreflang_tags("ja", ["th"], "Rhinoplasty Korea", base_url="https://example.com")
    assert tags[-1]["url"] == "https://example.com/ja/blog/rhinoplasty-korea"
    assert format_hreflang_tags(tags[:1]) == (
        '<link rel="alternate" hreflang="ja" href="https://example.com/ja/blog/rhinoplasty-korea" />'
    )


def test_missing_api_key_raises(monkeypatch):
    from carekorea import config

    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "")
    with pytest.raises(ValueError):
        generate_multi_language_content(SOURCE, "ko", ["en"], "rhinoplasty korea")
