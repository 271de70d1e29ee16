from carekorea.loaders.seo_guide import (
    determine_priority,
    determine_type,
    index_chunks,
    split_by_size,
    split_into_chunks,
)
from carekorea.pipeline.rag import query_seo_guide

from conftest import FakeEmbedder, FakeIndex

GUIDE = """# Google SEO Guide

## E-E-A-T and content quality
Helpful content comes first. Show first-hand experience. Cite sources.

## Title links
### Writing titles
Every page needs a unique title. Keep it descriptive.
### Examples
Example: "Rhinoplasty in Korea: Costs and Recovery".

## Mobile experience
Pages must work on phones.
"""


def sentences(count):
    return " ".join(f"Sentence {i} has exactly forty chars ok." for i in range(count))


def test_split_by_size_overlaps_one_sentence():
    chunks = split_by_size(sentences(4), max_tokens=25)

    assert chunks == [
        "Sentence 0 has exactly forty chars ok. Sentence 1 has exactly forty chars ok.",
        "Sentence 1 has exactly forty chars ok. Sentence 2 has exactly forty chars ok.",
        "Sentence 2 has exactly forty chars ok. Sentence 3 has exactly forty chars ok.",
    ]
    assert len(split_by_size(sentences(4), max_tokens=25, overlap=0)) == 2
    assert split_by_size("") == []


def test_priority_and_type():
    assert determine_priority("E-E-A-T and content quality") == 10
    assert determine_priority("메타 설명") == 8
    assert determine_priority("URL 구조") == 6
    assert determine_priority("Mobile experience") == 4
    assert determine_type('Example: "a title"') == "example"
    assert determine_type("- item one") == "checklist"
    assert determine_type("Structured data definition.") == "definition"
    assert determine_type("Write for people.") == "guideline"


def test_guide_is_split_by_section_and_subsection():
    chunks = split_into_chunks(GUIDE)

    assert [c["id"] for c in chunks] == ["seo-guide-0", "seo-guide-1", "seo-guide-2", "seo-guide-3"]
    quality, titles, examples, mobile = chunks
    assert quality["metadata"]["section"] == "E-E-A-T and content quality"
    assert quality["metadata"]["priority"] == 10
    assert "subsection" not in quality["metadata"]
    assert titles["metadata"]["subsection"] == "Writing titles"
    assert titles["metadata"]["keywords"] == ["title"]
    assert examples["metadata"]["type"] == "example"
    assert mobile["metadata"]["priority"] == 4
    assert all(c["metadata"]["source"] == "google-seo-guide" for c in chunks)


def test_chunks_are_indexed_in_batches_and_readable_by_retrieval():
    chunks = split_into_chunks(GUIDE)
    index = FakeIndex()
    sleeps = []

    indexed = index_chunks(chunks, embedder=FakeEmbedder(), index=index, batch_size=3,
                           delay=0.25, sleep=sleeps.append)

    assert indexed == 4
    assert sleeps == [0.25]
    assert [v[0] for v in index.upserts] == ["seo-guide-0", "seo-guide-1", "seo-guide-2", "seo-guide-3"]
    assert index.upserts[1][2]["text"] == "Every page needs a unique title. Keep it descriptive."

    index.results = {"google-seo-guide": [(index.upserts[1][2], 0.88)]}
    guidelines = query_seo_guide(index, [0.1, 0.2, 0.3], 3)
    assert guidelines[0]["section"] == "Title links"
    assert guidelines[0]["priority"] == 8
    assert guidelines[0]["relevance_score"] == 0.88
