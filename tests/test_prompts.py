from carekorea.pipeline.personas import build_writer_persona
from carekorea.pipeline.prompts import build_system_prompt, build_translation_prompt, build_user_prompt

AUTHOR = build_writer_persona(None, "rhinoplasty korea", "plastic-surgery")


def test_system_prompt_includes_author_and_optional_sections():
    bare = build_system_prompt(AUTHOR)
    full = build_system_prompt(AUTHOR, rag_context="RAG-MARKER", additional_instructions="EXTRA-MARKER")

    assert AUTHOR["name_en"] in bare
    assert "RAG-MARKER" not in bare
    assert "RAG-MARKER" in full
    assert "EXTRA-MARKER" in full
    assert full.index("RAG-MARKER") < full.index("EXTRA-MARKER")


def test_user_prompt_targets_keyword_and_locale():
    prompt = build_user_prompt("rhinoplasty korea", "ja", "plastic-surgery", AUTHOR)
    assert 'SEO optimization for "rhinoplasty korea"' in prompt
    assert "Target audience: ja speakers" in prompt


def test_translation_prompt_localize_versus_translate():
    localized = build_translation_prompt('{"title": "x"}', "ko", "ja", AUTHOR, localize=True)
    translated = build_translation_prompt('{"title": "x"}', "ko", "ja", AUTHOR, localize=False)

    assert "LOCALIZATION REQUIREMENTS" in localized
    assert "日本語" in localized
    assert "TRANSLATION REQUIREMENTS" in translated
    assert translated.rstrip().endswith("Now provide the translated version:")
    assert '{"title": "x"}' in translated
