from carekorea.validation import format_quality_report, meets_quality_threshold, score_content
from carekorea.validation.checks import (
    check_content_depth,
    check_seo,
    check_structure,
    html_to_text,
)
from carekorea.validation.report import compute_grade

from conftest import good_post_html


def test_html_to_text_keeps_headings_and_lists():
    text = html_to_text("<h2>Costs</h2><p>Prices vary.</p><ul><li>One</li><li>Two</li></ul>")

    assert "## Costs" in text
    assert "- One" in text
    assert "Prices vary." in text
    assert html_to_text("plain text") == "plain text"


def test_well_formed_post_scores_higher_than_thin_post():
    good = score_content(
        "Rhinoplasty Korea: Complete Cost and Recovery Guide for 2026",
        good_post_html(),
        "rhinoplasty korea",
        "en",
        excerpt="A medical interpreter's guide to rhinoplasty in Korea: prices, clinics and recovery.",
        meta_description="Rhinoplasty in Korea explained by a medical interpreter: real costs, how to pick a "
                         "clinic, and what recovery looks like.",
        tags=["rhinoplasty", "korea", "plastic surgery"],
    )
    thin = score_content("Nose", "<p>Short text.</p>", "rhinoplasty korea", "en")

    assert set(good["breakdown"]) == {
        "readability", "seo_optimization", "content_depth", "structure", "engagement", "uniqueness",
    }
    assert 0 <= thin["overall_score"] < good["overall_score"] <= 100
    assert good["breakdown"]["structure"] >= 90
    assert thin["suggestions"][0]["severity"] == "high"
    assert len(thin["suggestions"]) <= 10
    assert good["grade"] == compute_grade(good["overall_score"])


def test_seo_check_flags_missing_keyword_and_meta():
    suggestions = []
    score = check_seo("Short", "body text without it", "botox seoul", "", "", [], suggestions)

    messages = {s["message"] for s in suggestions}
    assert "Target keyword missing from title" in messages
    assert "Meta description is missing" in messages
    assert score < 60


def test_content_depth_uses_locale_targets():
    text = " ".join(["word"] * 700)
    assert check_content_depth(text, "ko", []) > check_content_depth(text, "en", [])


def test_structure_handles_empty_text():
    suggestions = []
    assert check_structure("", suggestions) >= 0
    assert any(s["message"] == "No H2 headings" for s in suggestions)


def test_grades_and_threshold():
    assert compute_grade(95) == "A"
    assert compute_grade(80) == "B"
    assert compute_grade(70) == "C"
    assert compute_grade(60) == "D"
    assert compute_grade(59) == "F"
    assert meets_quality_threshold({"overall_score": 70})
    assert not meets_quality_threshold({"overall_score": 69})
    assert meets_quality_threshold({"overall_score": 75}, threshold=75)


def test_quality_report_lists_issues():
    result = score_content("Nose", "<p>Short text.</p>", "rhinoplasty korea", "en")
    report = format_quality_report(result, "rhinoplasty korea")

    assert "QUALITY REPORT: rhinoplasty korea" in report
    assert f"Overall Score: {result['overall_score']}/100" in report
    assert "HIGH PRIORITY ISSUES" in report


def test_overall_score_rounds_halves_up(monkeypatch):
    from carekorea.validation import checks

    sub_scores = {
        "check_readability": 60,
        "check_seo": 90,
        "check_content_depth": 60,
        "check_structure": 100,
        "check_engagement": 70,
        "check_uniqueness": 60,
    }
    for name, score in sub_scores.items():
        monkeypatch.setattr(checks, name, lambda *args, _score=score: _score)

    result = score_content("Title", "<p>Body</p>", "keyword", "en")

    assert result["overall_score"] == 75
    assert meets_quality_threshold(result, 75)


def test_round_half_up():
    from carekorea.validation.checks import round_half_up

    assert round_half_up(74.5) == 75
    assert round_half_up(74.49999999999) == 75
    assert round_half_up(74.4) == 74
    assert round_half_up(0) == 0
